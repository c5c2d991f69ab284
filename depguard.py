#!/usr/bin/env python3
"""
depguard.py — depguard entry point.
────────────────────────────────────
Pre-flight security vetting for npm/bun dependencies:

    depguard scan                 # scan everything in package.json / lockfile
    depguard scan --json          # machine-readable output
    depguard install lodash       # scan, then install if the policy allows it
    depguard config init          # write a commented default depguard.yaml
    depguard config show          # print the effective configuration

depguard will:
  1. Load the YAML policy/config and .env (SOCKET_API_TOKEN).
  2. Ask for an explicit 'unsecure' acknowledgment if malware scanning cannot
     run, BEFORE scanning anything.
  3. Resolve package identities from package-lock.json (or package.json).
  4. Query Socket.dev and Google OSV concurrently.
  5. Apply the policy: pass, warn, or block. An overridable block can be
     bypassed by typing 'force'.
  6. For `install`, run the package manager only after a pass or override.

Exit Codes
──────────
  0     Success / policy passed.
  1     General error.
  2     Blocked by security policy.
  3     Configuration error.
  6     All scanners failed.
  7     Manifest (package.json / lockfile) error.
  130   Cancelled by the user.
  Any other value from `install` is the package manager's own exit code.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional

import yaml
from dotenv import load_dotenv

import pkgmanager
from console.display import Display
from console.prompt import acknowledge_coverage_gap, prompt_force
from console.report import write_report
from manifest.parser import ManifestParser
from manifest.resolver import packages_from_args
from security_engine.config import (
    CONFIG_FILENAME,
    Config,
    config_to_dict,
    load_config,
    write_default_config,
)
from security_engine.errors import (
    EXIT_GENERAL_ERROR,
    EXIT_SUCCESS,
    EXIT_USER_ABORT,
    DepGuardError,
    ManifestError,
    PolicyBlockError,
    UserAbortError,
)
from security_engine.models import AggregatedResult, Package
from security_engine.orchestrator import ScanOrchestrator
from security_engine.policy import Decision, PolicyEngine

__version__ = "0.1.0"

logger = logging.getLogger("depguard")

OrchestratorFactory = Callable[[Config], ScanOrchestrator]


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="depguard",
        description=(
            "depguard — pre-flight security scanning for npm/bun dependencies "
            "(Socket.dev malware detection + Google OSV vulnerabilities)."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        default=None,
        metavar="PATH",
        help="Config file. Default: ./depguard.yaml or ~/.config/depguard/config.yaml",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output.")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress non-error output.")
    parser.add_argument("--no-color", action="store_true", help="Disable coloured output.")
    parser.add_argument(
        "--package-manager",
        choices=["npm", "bun"],
        default=None,
        help="Force the package manager instead of detecting it.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the Python logging level. Default: WARNING.",
    )
    parser.add_argument("--version", action="version", version=f"depguard {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Run a security scan on dependencies.")
    scan.add_argument("--json", action="store_true", help="Output results as JSON.")
    scan.add_argument(
        "--include",
        choices=["all", "prod", "dev"],
        default="all",
        help="Which dependencies to scan. Default: all.",
    )

    install = sub.add_parser("install", help="Scan, then install dependencies.")
    install.add_argument("packages", nargs="*", help="Packages to install (name or name@version).")
    install.add_argument("--skip-scan", action="store_true", help="Skip security scanning.")
    install.add_argument(
        "--force",
        action="store_true",
        help="Pre-confirm the override of a block (only when the policy allows overrides).",
    )
    install.add_argument("-D", "--save-dev", action="store_true", help="Install as devDependency.")
    install.add_argument(
        "--dry-run",
        action="store_true",
        help="Scan and decide, but only print the install command.",
    )

    config_cmd = sub.add_parser("config", help="Manage depguard configuration.")
    config_sub = config_cmd.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("init", help=f"Create a commented default {CONFIG_FILENAME} here.")
    config_sub.add_parser("show", help="Show the effective configuration.")
    return parser


def configure_logging(level_str: str) -> None:
    """Set up structured logging to stderr."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level_str.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_display(config: Config, json_mode: bool = False) -> Display:
    # In JSON mode stdout carries the report; human text goes to stderr.
    return Display(
        verbose=config.ui.verbose,
        quiet=config.ui.quiet,
        use_color=config.ui.color,
        stream=sys.stderr if json_mode else None,
    )


def apply_cli_overrides(config: Config, args: argparse.Namespace) -> Config:
    overrides = {}
    if args.verbose:
        overrides["verbose"] = True
    if args.quiet:
        overrides["quiet"] = True
    if args.no_color:
        overrides["color"] = False
    return config.with_ui(**overrides) if overrides else config


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────

def _require_manifest(project_dir: Path, display: Display) -> ManifestParser:
    parser = ManifestParser(project_dir)
    if not parser.has_manifest():
        display.error("No package.json found in current directory")
        raise ManifestError("no package.json found")
    return parser


def _scan(
    packages: List[Package],
    config: Config,
    display: Display,
    orchestrator_factory: OrchestratorFactory,
    show_progress: bool = True,
) -> Optional[AggregatedResult]:
    """Run the orchestrator. Returns None when no scanner can run."""
    orchestrator = orchestrator_factory(config)
    scanners = orchestrator.available_scanners()
    if not scanners:
        display.warning("No scanners available")
        return None

    display.verbose(f"Scanning {len(packages)} packages with {', '.join(scanners)}...")
    return orchestrator.scan(packages, on_progress=display.scanner_status if show_progress else None)


def run_scan(
    args: argparse.Namespace,
    config: Config,
    display: Display,
    project_dir: Path,
    orchestrator_factory: OrchestratorFactory = ScanOrchestrator.from_config,
    out=None,
    read=input,
) -> int:
    out = out or sys.stdout
    parser = _require_manifest(project_dir, display)

    if not args.json:
        display.scanning_header()

    if config.coverage_gap():
        if args.json:
            logger.warning("SOCKET_API_TOKEN not set; malware scanning disabled for this run")
            config = config.without_socket()
        else:
            config = acknowledge_coverage_gap(config, display, read)

    include_dev = args.include in ("all", "dev")
    packages = parser.get_dependencies(include_dev)

    if not packages:
        if args.json:
            write_report(AggregatedResult(), out)
        else:
            display.info("No packages to scan")
        return EXIT_SUCCESS

    result = _scan(packages, config, display, orchestrator_factory, show_progress=not args.json)
    if result is None:
        return EXIT_SUCCESS

    decision = PolicyEngine(config.scanning.policy).decide(result)

    if args.json:
        write_report(result, out)
    else:
        display.print_summary(result)
        display.print_findings(result)
        display.print_decision(decision)

    if decision.blocked:
        raise PolicyBlockError(decision.reason).with_detail("reasons", list(decision.reasons))
    return EXIT_SUCCESS


def _resolve_block(decision: Decision, args: argparse.Namespace, display: Display, read=input) -> None:
    """
    Handle a blocking decision for `install`.

    A non-overridable block is final. An overridable one needs the 'force'
    phrase, which --force pre-confirms.
    """
    if not decision.overridable:
        display.error("Security scan blocked installation due to detected threats")
        raise PolicyBlockError(decision.reason).with_detail("reasons", list(decision.reasons))
    if not args.force and not prompt_force(display, read):
        raise UserAbortError()
    display.warning("Proceeding despite security warnings...")


def run_install(
    args: argparse.Namespace,
    config: Config,
    display: Display,
    project_dir: Path,
    orchestrator_factory: OrchestratorFactory = ScanOrchestrator.from_config,
    runner: Callable = pkgmanager.run_install,
    read=input,
) -> int:
    parser = _require_manifest(project_dir, display)
    manager = pkgmanager.detect(
        args.package_manager or config.package_manager,
        parser.detect_package_manager(),
    )
    display.verbose(f"Using package manager: {manager.name}")

    if config.scanning.enabled and not args.skip_scan:
        display.scanning_header()
        config = acknowledge_coverage_gap(config, display, read)

        try:
            packages = parser.get_dependencies(include_dev=True)
        except ManifestError as exc:
            logger.warning("Could not parse dependencies: %s", exc)
            display.warning("Could not parse dependencies, scanning new packages only")
            packages = []
        packages.extend(packages_from_args(args.packages))

        if not packages:
            display.info("No packages to scan")
        else:
            result = _scan(packages, config, display, orchestrator_factory)
            if result is not None:
                decision = PolicyEngine(config.scanning.policy).decide(result)
                display.print_summary(result)
                display.print_findings(result)
                display.print_decision(decision)
                if decision.blocked:
                    _resolve_block(decision, args, display, read)
    elif args.skip_scan:
        display.warning("Security scan skipped (--skip-scan)")

    command = manager.install_command(args.packages, args.save_dev)
    display.warning("Running without container isolation")
    display.info(f"Command: {' '.join(command)}")
    if args.dry_run:
        return EXIT_SUCCESS

    exit_code = runner(command, project_dir)
    if exit_code == 0:
        display.success("Installation complete")
    else:
        display.error(f"{manager.name} exited with code {exit_code}")
    return exit_code


def run_config_init(project_dir: Path, display: Display) -> int:
    """Write a commented default config; an existing file is left alone."""
    path = project_dir / CONFIG_FILENAME
    if not write_default_config(path):
        display.warning(f"Configuration file already exists: {CONFIG_FILENAME}")
        display.info("Use --config to point at a different file")
        return EXIT_SUCCESS
    display.success(f"Created {CONFIG_FILENAME}")
    display.info("Edit this file to customize your settings")
    display.info("Set SOCKET_API_TOKEN for malware detection")
    return EXIT_SUCCESS


def run_config_show(config: Config, display: Display, out=None) -> int:
    out = out or sys.stdout
    display.info(f"Config file: {config.source or '(using defaults)'}")
    display.print()
    yaml.safe_dump(config_to_dict(config), out, sort_keys=False, default_flow_style=False)
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """
    depguard entry point.

    Returns the exit code to pass to the OS.
    """
    load_dotenv(os.path.join(os.getcwd(), ".env"))

    parser = build_arg_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose and args.log_level == "WARNING" else args.log_level)
    logger.info("depguard %s starting: command=%s", __version__, args.command)

    display = Display()
    try:
        if args.command == "config" and args.config_command == "init":
            # No config load here: init must work next to a broken file.
            display = Display(quiet=args.quiet, use_color=not args.no_color)
            return run_config_init(Path.cwd(), display)

        config = apply_cli_overrides(load_config(args.config), args)
        display = build_display(config, json_mode=getattr(args, "json", False))
        project_dir = Path.cwd()

        if args.command == "scan":
            return run_scan(args, config, display, project_dir)
        if args.command == "config":
            return run_config_show(config, display)
        return run_install(args, config, display, project_dir)

    except PolicyBlockError as exc:
        logger.info("Blocked by policy: %s", exc)
        return exc.exit_code
    except DepGuardError as exc:
        display.error(str(exc))
        for key, value in exc.details.items():
            display.info(f"{key}: {value}")
        return exc.exit_code
    except KeyboardInterrupt:
        display.print()
        return EXIT_USER_ABORT
    except Exception as exc:
        logger.exception("Unhandled exception: %s", exc)
        display.error(f"Fatal error: {exc}")
        return EXIT_GENERAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
