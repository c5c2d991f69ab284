"""
console/report.py

Machine-readable scan output (--json):

    {
      "packages_scanned": int,
      "findings": [Finding, ...],
      "summary": {"total", "critical", "high", "medium", "low", "malware"}
    }

`malware` counts malware and typosquat findings together.
"""

import json
from typing import IO

from security_engine.models import AggregatedResult, FindingType, Severity


def build_report(result: AggregatedResult) -> dict:
    return {
        "packages_scanned": result.total_packages,
        "findings": [f.to_dict() for f in result.all_findings()],
        "summary": {
            "total": result.total_findings,
            "critical": result.count_by_severity(Severity.CRITICAL),
            "high": result.count_by_severity(Severity.HIGH),
            "medium": result.count_by_severity(Severity.MEDIUM),
            "low": result.count_by_severity(Severity.LOW),
            "malware": (
                result.count_by_type(FindingType.MALWARE)
                + result.count_by_type(FindingType.TYPOSQUAT)
            ),
        },
    }


def write_report(result: AggregatedResult, stream: IO[str]) -> None:
    json.dump(build_report(result), stream, indent=2)
    stream.write("\n")
    stream.flush()
