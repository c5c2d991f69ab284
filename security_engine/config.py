"""
security_engine/config.py

Configuration loading.

Config is read from a YAML file once per invocation and handed around as a
frozen value. Nothing in the core reads process-wide state: the orchestrator
and policy engine receive what they need through their constructors.

Search order when no explicit path is given:
    ./depguard.yaml
    ~/.config/depguard/config.yaml
A missing file means "all defaults". The Socket token falls back to the
SOCKET_API_TOKEN environment variable (populated from .env by the CLI).
"""

import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional

import yaml

from .errors import ConfigError
from .policy import Policy

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "depguard.yaml"
USER_CONFIG_PATH = Path("~/.config/depguard/config.yaml")
SOCKET_TOKEN_ENV = "SOCKET_API_TOKEN"

DEFAULT_TIMEOUT = 30.0

_DURATION = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>ms|s|m|h)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value, setting: str) -> float:
    """Accept 30, 30.0, "30", "30s", "500ms", "2m" → seconds."""
    if isinstance(value, bool):
        raise ConfigError(f"{setting} must be a duration, got {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION.match(str(value))
        if not match:
            raise ConfigError(f"{setting} must be a duration like '30s', got {value!r}")
        seconds = float(match.group("value")) * _UNIT_SECONDS[match.group("unit")]
    if seconds <= 0:
        raise ConfigError(f"{setting} must be positive")
    return seconds


@dataclass(frozen=True)
class SocketConfig:
    enabled: bool = True
    api_token: str = ""
    timeout: float = DEFAULT_TIMEOUT


@dataclass(frozen=True)
class OSVConfig:
    enabled: bool = True
    timeout: float = DEFAULT_TIMEOUT


@dataclass(frozen=True)
class ScanningConfig:
    enabled: bool = True
    socket: SocketConfig = field(default_factory=SocketConfig)
    osv: OSVConfig = field(default_factory=OSVConfig)
    policy: Policy = field(default_factory=Policy)


@dataclass(frozen=True)
class UIConfig:
    color: bool = True
    verbose: bool = False
    quiet: bool = False


@dataclass(frozen=True)
class Config:
    package_manager: str = "auto"
    scanning: ScanningConfig = field(default_factory=ScanningConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    source: Optional[str] = None

    def has_socket_token(self) -> bool:
        return bool(self.scanning.socket.api_token)

    def coverage_gap(self) -> bool:
        """
        True when the malware scanner is wanted but cannot run. The caller
        must get an explicit acknowledgment before scanning.
        """
        return self.scanning.socket.enabled and not self.has_socket_token()

    def without_socket(self) -> "Config":
        """Copy of this config with the Socket scanner disabled."""
        socket = replace(self.scanning.socket, enabled=False)
        return replace(self, scanning=replace(self.scanning, socket=socket))

    def with_ui(self, **overrides) -> "Config":
        return replace(self, ui=replace(self.ui, **overrides))


def _section(raw: Mapping, key: str) -> Mapping:
    value = raw.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def config_from_dict(raw: Optional[Mapping], env: Optional[Mapping] = None) -> Config:
    """Build a Config from parsed YAML, applying defaults and env fallbacks."""
    env = os.environ if env is None else env
    raw = raw or {}
    if not isinstance(raw, Mapping):
        raise ConfigError("config file must contain a mapping at the top level")

    scanning_raw = _section(raw, "scanning")
    socket_raw = _section(scanning_raw, "socket")
    osv_raw = _section(scanning_raw, "osv")
    ui_raw = _section(raw, "ui")
    pm_raw = raw.get("package_manager") or {}
    preferred = pm_raw.get("preferred", "auto") if isinstance(pm_raw, Mapping) else str(pm_raw)

    socket = SocketConfig(
        enabled=bool(socket_raw.get("enabled", True)),
        api_token=str(socket_raw.get("api_token") or env.get(SOCKET_TOKEN_ENV, "") or ""),
        timeout=parse_duration(socket_raw.get("timeout", DEFAULT_TIMEOUT), "scanning.socket.timeout"),
    )
    osv = OSVConfig(
        enabled=bool(osv_raw.get("enabled", True)),
        timeout=parse_duration(osv_raw.get("timeout", DEFAULT_TIMEOUT), "scanning.osv.timeout"),
    )
    scanning = ScanningConfig(
        enabled=bool(scanning_raw.get("enabled", True)),
        socket=socket,
        osv=osv,
        policy=Policy.from_dict(scanning_raw.get("policy")),
    )
    ui = UIConfig(
        color=bool(ui_raw.get("color", True)),
        verbose=bool(ui_raw.get("verbose", False)),
        quiet=bool(ui_raw.get("quiet", False)),
    )

    if preferred not in ("auto", "npm", "bun"):
        raise ConfigError(f"package_manager.preferred must be auto, npm or bun, got {preferred!r}")

    return Config(package_manager=preferred, scanning=scanning, ui=ui)


def find_config_file(cwd: Optional[Path] = None) -> Optional[Path]:
    candidates = [
        (cwd or Path.cwd()) / CONFIG_FILENAME,
        USER_CONFIG_PATH.expanduser(),
    ]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Optional[str] = None, env: Optional[Mapping] = None) -> Config:
    """
    Load configuration from `path`, or from the default search locations.

    Raises:
        ConfigError: explicit path missing, unreadable, or invalid YAML/values.
    """
    if path is not None:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigError(f"config file not found: {path}")
    else:
        config_path = find_config_file()

    if config_path is None:
        logger.debug("No config file found, using defaults")
        return config_from_dict({}, env)

    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {config_path}", exc) from exc
    except OSError as exc:
        raise ConfigError(f"cannot read {config_path}", exc) from exc

    logger.info("Using config file: %s", config_path)
    return replace(config_from_dict(raw, env), source=str(config_path))


# ─────────────────────────────────────────────────────────────────────────────
# `depguard config init` / `depguard config show`
# ─────────────────────────────────────────────────────────────────────────────

DEFAULT_CONFIG_TEMPLATE = """\
# depguard configuration

# Package manager settings
package_manager:
  # Which package manager to use: auto, npm, bun
  preferred: auto

# Security scanning settings
scanning:
  enabled: true

  # Socket.dev settings (malware detection)
  socket:
    enabled: true
    # Set SOCKET_API_TOKEN (environment or .env) for authentication
    timeout: 30s

  # Google OSV settings (CVE detection)
  osv:
    enabled: true
    timeout: 30s

  # Security policy
  policy:
    # Action on malware detection: block, warn, ignore
    malware: block

    # Action by CVE severity
    cve:
      critical: block
      high: block
      medium: block
      low: warn

    # Allow a human to override blocks by typing 'force'
    allow_override: false

    # Packages never sent to scanners (trusted)
    allowlist: []

    # Packages always reported as malware
    blocklist: []

# UI settings
ui:
  color: true
  verbose: false
  quiet: false
"""


def write_default_config(path: Path) -> bool:
    """
    Write the commented default config to `path`.

    Returns False, leaving the file untouched, when `path` already exists.

    Raises:
        ConfigError: the file cannot be written.
    """
    try:
        with path.open("x", encoding="utf-8") as f:
            f.write(DEFAULT_CONFIG_TEMPLATE)
    except FileExistsError:
        return False
    except OSError as exc:
        raise ConfigError(f"failed to write {path}", exc) from exc
    logger.info("Wrote default config to %s", path)
    return True


def config_to_dict(config: Config) -> dict:
    """Effective settings in config-file layout. The Socket token is masked."""
    policy = config.scanning.policy
    socket = config.scanning.socket
    return {
        "package_manager": {"preferred": config.package_manager},
        "scanning": {
            "enabled": config.scanning.enabled,
            "socket": {
                "enabled": socket.enabled,
                "api_token": "(set)" if config.has_socket_token() else "(not set)",
                "timeout": f"{socket.timeout:g}s",
            },
            "osv": {
                "enabled": config.scanning.osv.enabled,
                "timeout": f"{config.scanning.osv.timeout:g}s",
            },
            "policy": {
                "malware": policy.malware_action.value,
                "cve": {sev.value: action.value for sev, action in policy.cve_actions.items()},
                "allow_override": policy.allow_override,
                "allowlist": sorted(policy.allowlist),
                "blocklist": sorted(policy.blocklist),
            },
        },
        "ui": {
            "color": config.ui.color,
            "verbose": config.ui.verbose,
            "quiet": config.ui.quiet,
        },
    }
