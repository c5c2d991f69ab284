"""
security_engine/policy.py

Policy engine: maps aggregated findings to a pass/block decision.

The engine is pure: it reads an immutable Policy and an AggregatedResult and
returns a Decision. It never prompts and never raises on a block. Turning an
overridable block into "proceed anyway" is the console layer's job
(console/prompt.py), driven by `Decision.overridable`.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from .errors import ConfigError
from .models import AggregatedResult, Finding, Severity

logger = logging.getLogger(__name__)


class Action(str, Enum):
    BLOCK = "block"
    WARN = "warn"
    IGNORE = "ignore"

    @classmethod
    def parse(cls, value, setting: str) -> "Action":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigError(
                f"invalid action {value!r} for {setting} (expected block, warn or ignore)"
            ) from None


DEFAULT_CVE_ACTIONS: Dict[Severity, Action] = {
    Severity.CRITICAL: Action.BLOCK,
    Severity.HIGH: Action.BLOCK,
    Severity.MEDIUM: Action.BLOCK,
    Severity.LOW: Action.WARN,
}


@dataclass(frozen=True)
class Policy:
    """
    Security policy, loaded once per invocation and read-only afterwards.

    Attributes:
        malware_action : What to do when any malware/typosquat finding exists.
        cve_actions    : Action per CVE severity. Unmapped severities are
                         ignored.
        allow_override : Whether a block may be overridden by a human typing
                         the override phrase.
        allowlist      : Package names never sent to scanners.
        blocklist      : Package names always reported as critical malware.
                         Wins over the allowlist.
    """
    malware_action: Action = Action.BLOCK
    cve_actions: Mapping[Severity, Action] = field(
        default_factory=lambda: dict(DEFAULT_CVE_ACTIONS)
    )
    allow_override: bool = False
    allowlist: FrozenSet[str] = frozenset()
    blocklist: FrozenSet[str] = frozenset()

    @classmethod
    def from_dict(cls, raw: Optional[Mapping]) -> "Policy":
        """
        Build a Policy from the `policy:` section of the config file::

            malware: block|warn|ignore
            cve: {critical: action, high: action, medium: action, low: action}
            allow_override: bool
            allowlist: [name, ...]
            blocklist: [name, ...]

        CVE entries override the defaults key by key.
        """
        raw = raw or {}
        if not isinstance(raw, Mapping):
            raise ConfigError("policy must be a mapping")

        cve_actions = dict(DEFAULT_CVE_ACTIONS)
        cve_raw = raw.get("cve") or {}
        if not isinstance(cve_raw, Mapping):
            raise ConfigError("policy.cve must be a mapping of severity to action")
        for sev_name, action in cve_raw.items():
            try:
                severity = Severity(str(sev_name).lower())
            except ValueError:
                raise ConfigError(f"unknown severity {sev_name!r} in policy.cve") from None
            cve_actions[severity] = Action.parse(action, f"policy.cve.{severity.value}")

        return cls(
            malware_action=Action.parse(raw.get("malware", Action.BLOCK.value), "policy.malware"),
            cve_actions=cve_actions,
            allow_override=bool(raw.get("allow_override", False)),
            allowlist=_name_set(raw.get("allowlist"), "policy.allowlist"),
            blocklist=_name_set(raw.get("blocklist"), "policy.blocklist"),
        )

    def cve_action(self, severity: Severity) -> Action:
        return self.cve_actions.get(severity, Action.IGNORE)

    def is_allowlisted(self, name: str) -> bool:
        return name in self.allowlist

    def is_blocklisted(self, name: str) -> bool:
        return name in self.blocklist


def _name_set(value, setting: str) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ConfigError(f"{setting} must be a list of package names")
    return frozenset(str(v).strip() for v in value if str(v).strip())


class Verdict(str, Enum):
    PASS = "pass"
    BLOCK = "block"


@dataclass(frozen=True)
class Decision:
    """
    Outcome of a policy evaluation.

    Attributes:
        verdict     : PASS or BLOCK.
        reasons     : Human-readable block reasons, most severe first.
        overridable : True only for a BLOCK under a policy that allows a
                      human override.
        blocking    : Findings that triggered the block.
        warnings    : Findings mapped to `warn`; surfaced, never blocking.
    """
    verdict: Verdict
    reasons: Tuple[str, ...] = ()
    overridable: bool = False
    blocking: Tuple[Finding, ...] = ()
    warnings: Tuple[Finding, ...] = ()

    @property
    def passed(self) -> bool:
        return self.verdict == Verdict.PASS

    @property
    def blocked(self) -> bool:
        return self.verdict == Verdict.BLOCK

    @property
    def reason(self) -> str:
        return self.reasons[0] if self.reasons else ""


class PolicyEngine:
    """
    Evaluates an AggregatedResult against a Policy.

    Rules are independent; any one of them blocking is sufficient:
      - malware present and malware action is block → "malware detected"
      - for each CVE severity present whose action is block →
        "<severity> vulnerabilities detected"
    """

    def __init__(self, policy: Policy) -> None:
        self._policy = policy

    @property
    def policy(self) -> Policy:
        return self._policy

    def decide(self, result: AggregatedResult) -> Decision:
        reasons = []
        blocking = []
        warnings = []

        malware = result.malware_findings()
        if result.has_malware:
            if self._policy.malware_action == Action.BLOCK:
                reasons.append("malware detected")
                blocking.extend(malware)
            elif self._policy.malware_action == Action.WARN:
                warnings.extend(malware)

        cves = result.cve_findings()
        for severity in Severity:
            matching = [f for f in cves if f.severity == severity]
            if not matching:
                continue
            action = self._policy.cve_action(severity)
            if action == Action.BLOCK:
                reasons.append(f"{severity.value} vulnerabilities detected")
                blocking.extend(matching)
            elif action == Action.WARN:
                warnings.extend(matching)

        if reasons:
            decision = Decision(
                verdict=Verdict.BLOCK,
                reasons=tuple(reasons),
                overridable=self._policy.allow_override,
                blocking=tuple(blocking),
                warnings=tuple(warnings),
            )
            logger.info(
                "Policy decision: BLOCK (%s) overridable=%s",
                "; ".join(reasons), decision.overridable,
            )
            return decision

        logger.info("Policy decision: PASS (%d warning finding(s))", len(warnings))
        return Decision(verdict=Verdict.PASS, warnings=tuple(warnings))
