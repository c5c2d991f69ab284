"""
security_engine/osv_scanner.py

Concrete Strategy: OSVScanner
─────────────────────────────
Looks up known vulnerabilities (CVE / GHSA advisories) for npm packages in the
Google OSV database. No credentials are required, so this scanner is always
available.

Flow per scan:
  1. POST /v1/querybatch with one query per package (batches of ≤ 1000).
  2. The batch endpoint only returns advisory ids for most records, so any
     advisory without a summary/details/severity is fetched once from
     GET /v1/vulns/{id}.
  3. Every advisory becomes a `cve` Finding with a mapped severity.

Severity mapping:
    OSV ships CVSS *vectors*, not scores. Computing a real CVSS base score is
    out of scope, so `estimate_cvss_score()` is a deliberately coarse
    heuristic that counts high-impact flags in the vector. Treat its output as
    a bucket, never as an accurate CVSS number.
"""

import logging
import threading
import time
from typing import Dict, List, Optional, Sequence

import requests

from .base import Scanner
from .errors import ScannerError, ScannerErrorKind
from .http_client import build_session, truncate
from .models import Finding, FindingType, Package, ScanResult, Severity

logger = logging.getLogger(__name__)

OSV_BASE_URL = "https://api.osv.dev/v1"
MAX_BATCH_SIZE = 1000
MAX_DETAILS_LEN = 500

# Vector flags counted by the heuristic below.
_HIGH_IMPACT_FLAGS = ("/C:H", "/I:H", "/A:H", "/AV:N", "/PR:N")

_ECOSYSTEM_SEVERITY = {
    "CRITICAL": Severity.CRITICAL,
    "HIGH": Severity.HIGH,
    "MODERATE": Severity.MEDIUM,
    "MEDIUM": Severity.MEDIUM,
    "LOW": Severity.LOW,
}


def estimate_cvss_score(vector: str) -> float:
    """
    Heuristic CVSS estimate from a v3 vector string.

    Counts how many of C:H, I:H, A:H, AV:N and PR:N appear:
        ≥4 → 9.0,  3 → 7.5,  2 → 5.0,  otherwise 3.0
    """
    hits = sum(1 for flag in _HIGH_IMPACT_FLAGS if flag in vector)
    if hits >= 4:
        return 9.0
    if hits >= 3:
        return 7.5
    if hits >= 2:
        return 5.0
    return 3.0


def severity_from_score(score: float) -> Severity:
    if score >= 9.0:
        return Severity.CRITICAL
    if score >= 7.0:
        return Severity.HIGH
    if score >= 4.0:
        return Severity.MEDIUM
    return Severity.LOW


def map_severity(vuln: dict) -> Severity:
    """
    Pick a Severity for one OSV advisory.

    Order: CVSS_V3 vector heuristic, then an ECOSYSTEM score, then the
    database_specific severity (GitHub advisories), then medium.
    """
    severities = vuln.get("severity") or []

    for sev in severities:
        if sev.get("type") == "CVSS_V3":
            return severity_from_score(estimate_cvss_score(sev.get("score", "")))

    for sev in severities:
        if sev.get("type") == "ECOSYSTEM":
            mapped = _ECOSYSTEM_SEVERITY.get(str(sev.get("score", "")).upper())
            if mapped is not None:
                return mapped

    db_specific = vuln.get("database_specific") or {}
    mapped = _ECOSYSTEM_SEVERITY.get(str(db_specific.get("severity", "")).upper())
    if mapped is not None:
        return mapped

    return Severity.MEDIUM


def _needs_hydration(vuln: dict) -> bool:
    return not (vuln.get("summary") or vuln.get("details")) or not (
        vuln.get("severity") or vuln.get("database_specific")
    )


class OSVScanner(Scanner):
    """
    Google OSV client.

    Args:
        timeout  : Per-request timeout in seconds. The whole scan, batches
                   and advisory lookups included, must finish within
                   4 × timeout.
        session  : Optional pre-built requests Session (tests inject a mock).
        base_url : API root, overridable for mirrors.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        base_url: str = OSV_BASE_URL,
    ) -> None:
        self._timeout = timeout
        self._session = session or build_session()
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "Google OSV"

    def scan(
        self,
        packages: Sequence[Package],
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanResult:
        start = time.monotonic()
        deadline = start + self._timeout * 4

        if not packages:
            return ScanResult(scanner=self.name, packages=0, duration=time.monotonic() - start)

        packages = list(packages)
        findings: List[Finding] = []
        hydrated: Dict[str, dict] = {}

        for offset in range(0, len(packages), MAX_BATCH_SIZE):
            batch = packages[offset:offset + MAX_BATCH_SIZE]
            self._check_cancelled(cancel_event)
            self._check_deadline(deadline)

            response = self._query_batch(batch)
            for pkg, result in zip(batch, response.get("results") or []):
                for vuln in (result or {}).get("vulns") or []:
                    if _needs_hydration(vuln):
                        vuln = self._hydrate(vuln, hydrated, cancel_event, deadline)
                    findings.append(self._to_finding(pkg, vuln))

        logger.debug("[%s] %d packages → %d findings", self.name, len(packages), len(findings))
        return ScanResult(
            scanner=self.name,
            packages=len(packages),
            findings=findings,
            duration=time.monotonic() - start,
        )

    # ── HTTP ──────────────────────────────────────────────────────────────────

    def _query_batch(self, batch: Sequence[Package]) -> dict:
        payload = {
            "queries": [
                {
                    "package": {"name": pkg.name, "ecosystem": "npm"},
                    "version": pkg.version,
                }
                for pkg in batch
            ]
        }
        return self._request("POST", f"{self._base_url}/querybatch", json=payload)

    def _hydrate(
        self,
        vuln: dict,
        cache: Dict[str, dict],
        cancel_event: Optional[threading.Event],
        deadline: float,
    ) -> dict:
        vuln_id = vuln.get("id")
        if not vuln_id:
            return vuln
        if vuln_id not in cache:
            self._check_cancelled(cancel_event)
            self._check_deadline(deadline)
            cache[vuln_id] = self._request("GET", f"{self._base_url}/vulns/{vuln_id}")
        return {**vuln, **cache[vuln_id]}

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            resp = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.exceptions.Timeout as exc:
            raise ScannerError(self.name, "request timed out", ScannerErrorKind.TRANSPORT, exc) from exc
        except requests.exceptions.RequestException as exc:
            raise ScannerError(self.name, "failed to query OSV API", ScannerErrorKind.TRANSPORT, exc) from exc

        if resp.status_code == 429:
            raise ScannerError(self.name, "OSV API rate limit exceeded", ScannerErrorKind.QUOTA)
        if resp.status_code != 200:
            raise ScannerError(
                self.name,
                f"OSV API returned status {resp.status_code}: {resp.text[:200]}",
                ScannerErrorKind.TRANSPORT,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise ScannerError(self.name, "failed to decode response", ScannerErrorKind.TRANSPORT, exc) from exc

    def _check_deadline(self, deadline: float) -> None:
        if time.monotonic() > deadline:
            raise ScannerError(self.name, "scan deadline exceeded", ScannerErrorKind.TRANSPORT)

    # ── Conversion ────────────────────────────────────────────────────────────

    @staticmethod
    def _to_finding(pkg: Package, vuln: dict) -> Finding:
        references = tuple(
            ref["url"] for ref in vuln.get("references") or [] if ref.get("url")
        )
        vuln_id = vuln.get("id", "")
        return Finding(
            package=pkg.name,
            version=pkg.version,
            type=FindingType.CVE,
            severity=map_severity(vuln),
            title=vuln.get("summary") or vuln_id,
            description=truncate(vuln.get("details") or "", MAX_DETAILS_LEN),
            id=vuln_id,
            references=references,
        )
