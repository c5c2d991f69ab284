"""
console/display.py

Terminal output for depguard.

All human-facing text goes through Display so verbosity, quiet mode and colour
are decided in one place. Machine output (--json) bypasses this module and is
written by console/report.py.
"""

import sys
from typing import IO, Optional

from colorama import Fore, Style, init as colorama_init

from security_engine.models import AggregatedResult, Finding, Severity
from security_engine.orchestrator import ScanProgress
from security_engine.policy import Decision

colorama_init()

_RESET = Style.RESET_ALL
_ERROR = f"{Fore.RED}{Style.BRIGHT}"
_SUCCESS = f"{Fore.GREEN}{Style.BRIGHT}"
_INFO = f"{Fore.CYAN}{Style.BRIGHT}"
_WARN = f"{Fore.YELLOW}{Style.BRIGHT}"
_MUTED = Style.DIM

_SEVERITY_COLOURS = {
    Severity.CRITICAL: _ERROR,
    Severity.HIGH: f"{Fore.RED}",
    Severity.MEDIUM: _WARN,
    Severity.LOW: f"{Fore.CYAN}",
    Severity.INFO: _MUTED,
}

_CVE_SEVERITIES = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)


class Display:
    """
    Args:
        verbose   : Show verbose() lines.
        quiet     : Suppress everything except errors, warnings and prompts.
        use_color : Emit ANSI colour codes.
        stream    : Output stream (stdout by default; tests pass a StringIO).
    """

    def __init__(
        self,
        verbose: bool = False,
        quiet: bool = False,
        use_color: bool = True,
        stream: Optional[IO[str]] = None,
    ) -> None:
        self._verbose = verbose
        self._quiet = quiet
        self._use_color = use_color
        self._stream = stream

    @property
    def stream(self) -> IO[str]:
        return self._stream or sys.stdout

    def _style(self, style: str, text: str) -> str:
        return f"{style}{text}{_RESET}" if self._use_color else text

    def _write(self, text: str) -> None:
        print(text, file=self.stream, flush=True)

    # ── Levels ────────────────────────────────────────────────────────────────

    def print(self, msg: str = "") -> None:
        if not self._quiet:
            self._write(msg)

    def success(self, msg: str) -> None:
        if not self._quiet:
            self._write(self._style(_SUCCESS, f"✓ {msg}"))

    def info(self, msg: str) -> None:
        if not self._quiet:
            self._write(self._style(_INFO, f"ℹ {msg}"))

    def verbose(self, msg: str) -> None:
        if self._verbose and not self._quiet:
            self._write(self._style(_MUTED, msg))

    def warning(self, msg: str) -> None:
        self._write(self._style(_WARN, f"⚠ {msg}"))

    def error(self, msg: str) -> None:
        self._write(self._style(_ERROR, f"✗ {msg}"))

    def prompt(self, msg: str, danger: bool = False) -> str:
        """Render a prompt label for input()."""
        return self._style(_ERROR if danger else _WARN, msg) + " "

    # ── Scan output ───────────────────────────────────────────────────────────

    def scanning_header(self) -> None:
        self.print()
        self.print(self._style(_INFO, "Pre-flight security scan"))
        self.print(self._style(_INFO, "─" * 40))

    def scanner_status(self, scanner: str, progress: ScanProgress) -> None:
        if progress == ScanProgress.STARTED:
            self.print(f"  {self._style(_MUTED, '…')} {scanner}: scanning...")
        else:
            self.print(f"  {self._style(_SUCCESS, '✓')} {scanner}: complete")

    def threat_found(self, severity: Severity, package: str, description: str) -> None:
        label = self._style(_SEVERITY_COLOURS.get(severity, ""), f"[{severity.value.upper()}]")
        self._write(f"  {label} {package}  {description}")

    def print_summary(self, result: AggregatedResult) -> None:
        self.print()
        self.print(f"Scanned {result.total_packages} packages in {result.duration:.2f}s")

        if result.total_findings == 0:
            self.success("No security issues found")
            return

        self.print()
        self.print(f"Found {result.total_findings} issue(s):")
        malware = len(result.malware_findings())
        if malware:
            self.error(f"  Malware/Supply Chain: {malware}")
        counts = {sev: result.count_by_severity(sev) for sev in _CVE_SEVERITIES}
        if counts[Severity.CRITICAL]:
            self.error(f"  Critical: {counts[Severity.CRITICAL]}")
        if counts[Severity.HIGH]:
            self.warning(f"  High: {counts[Severity.HIGH]}")
        if counts[Severity.MEDIUM]:
            self.info(f"  Medium: {counts[Severity.MEDIUM]}")
        if counts[Severity.LOW]:
            self.verbose(f"  Low: {counts[Severity.LOW]}")

    def print_findings(self, result: AggregatedResult) -> None:
        """Malware section first, then CVEs grouped in severity order."""
        malware = result.malware_findings()
        if malware:
            self._write("")
            self.error("Malware/Supply Chain Threats:")
            for f in result.sorted_findings(malware):
                self.threat_found(f.severity, _label(f), f.description or f.title)

        cves = result.cve_findings()
        if cves:
            self._write("")
            self.warning("Vulnerabilities (CVEs):")
            for f in result.sorted_findings(cves):
                desc = f"{f.id}: {f.title}" if f.id and f.id != f.title else f.title
                self.threat_found(f.severity, _label(f), desc)

    def print_decision(self, decision: Decision) -> None:
        if decision.passed:
            if decision.warnings:
                self.warning(f"{len(decision.warnings)} finding(s) allowed by policy (warn)")
            return
        self._write("")
        for reason in decision.reasons:
            self.error(f"Blocked: {reason}")


def _label(finding: Finding) -> str:
    return f"{finding.package}@{finding.version}" if finding.version else finding.package
