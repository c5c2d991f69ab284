"""
security_engine/models.py

Shared data shapes passed between scanners, the orchestrator, the policy
engine and the reporting layer.

All value objects are created fresh for one scan + decision cycle and are
never persisted. Findings are frozen: a scanner builds them once and nothing
downstream mutates them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple, Union


class FindingType(str, Enum):
    MALWARE = "malware"
    CVE = "cve"
    TYPOSQUAT = "typosquat"
    LICENSE = "license"
    MAINTAINER = "maintainer"
    QUALITY = "quality"


class Severity(str, Enum):
    """
    Finding severity. Declared in precedence order, so `rank` gives the
    total order critical < high < medium < low < info used for display
    and policy reporting.
    """
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {sev: i for i, sev in enumerate(Severity)}


def severity_order(severity: Union[Severity, str]) -> int:
    """Numeric sort key for a severity; unknown values sort with info."""
    try:
        return Severity(severity).rank
    except ValueError:
        return Severity.INFO.rank


@dataclass(frozen=True)
class Package:
    """A dependency identified by (name, version)."""
    name: str
    version: str
    ecosystem: str = "npm"

    @property
    def key(self) -> Tuple[str, str]:
        return (self.name, self.version)

    @property
    def purl(self) -> str:
        return f"pkg:{self.ecosystem}/{self.name}@{self.version}"


@dataclass(frozen=True)
class Finding:
    """
    A single security issue reported against one package/version by one
    scanner.

    Attributes:
        package     : Package name.
        version     : Package version the finding applies to.
        type        : FindingType category.
        severity    : Severity level.
        title       : Short headline (advisory summary, alert type, …).
        description : Longer text, possibly truncated by the scanner.
        id          : Advisory / alert identifier, "" when none.
        references  : URLs with more detail.
        remediation : Suggested fix, "" when none.
    """
    package: str
    version: str
    type: FindingType
    severity: Severity
    title: str
    description: str = ""
    id: str = ""
    references: Tuple[str, ...] = ()
    remediation: str = ""

    @property
    def is_malware(self) -> bool:
        return self.type in (FindingType.MALWARE, FindingType.TYPOSQUAT)

    def to_dict(self) -> dict:
        data = {
            "package": self.package,
            "version": self.version,
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
        }
        if self.id:
            data["id"] = self.id
        if self.references:
            data["references"] = list(self.references)
        if self.remediation:
            data["remediation"] = self.remediation
        return data


@dataclass
class ScanResult:
    """One scanner's output for one scan invocation. `duration` is seconds."""
    scanner: str
    packages: int
    findings: List[Finding] = field(default_factory=list)
    duration: float = 0.0
    cached: bool = False


@dataclass
class AggregatedResult:
    """Merged view across every successful scanner for one scan."""
    results: List[ScanResult] = field(default_factory=list)
    total_packages: int = 0
    total_findings: int = 0
    has_malware: bool = False
    has_critical: bool = False
    has_high: bool = False
    duration: float = 0.0

    @classmethod
    def from_results(cls, results: Iterable[ScanResult]) -> "AggregatedResult":
        """
        Fold scanner results into an aggregate.

        The fold only counts and ORs flags, so the outcome does not depend on
        the order in which scanners finished. Findings are not de-duplicated:
        two scanners reporting the same advisory yield two findings.
        """
        aggregated = cls(results=list(results))
        for result in aggregated.results:
            for finding in result.findings:
                aggregated._absorb(finding)
        return aggregated

    def add_result(self, result: ScanResult) -> None:
        self.results.append(result)
        for finding in result.findings:
            self._absorb(finding)

    def _absorb(self, finding: Finding) -> None:
        self.total_findings += 1
        if finding.is_malware:
            self.has_malware = True
        if finding.severity == Severity.CRITICAL:
            self.has_critical = True
        elif finding.severity == Severity.HIGH:
            self.has_high = True

    # ── Derived queries ───────────────────────────────────────────────────────

    def all_findings(self) -> List[Finding]:
        return [f for result in self.results for f in result.findings]

    def count_by_severity(self, severity: Severity) -> int:
        return sum(1 for f in self.all_findings() if f.severity == severity)

    def count_by_type(self, finding_type: FindingType) -> int:
        return sum(1 for f in self.all_findings() if f.type == finding_type)

    def malware_findings(self) -> List[Finding]:
        return [f for f in self.all_findings() if f.is_malware]

    def cve_findings(self) -> List[Finding]:
        return [f for f in self.all_findings() if f.type == FindingType.CVE]

    def sorted_findings(self, findings: Optional[Sequence[Finding]] = None) -> List[Finding]:
        """Findings ordered by severity precedence; ties keep scanner order."""
        if findings is None:
            findings = self.all_findings()
        return sorted(findings, key=lambda f: f.severity.rank)
