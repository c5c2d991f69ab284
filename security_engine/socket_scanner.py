"""
security_engine/socket_scanner.py

Concrete Strategy: SocketScanner
────────────────────────────────
Supply-chain threat detection via the Socket.dev API: malware, typosquats,
install-script abuse, suspicious maintainers, licence problems.

This is the only malware-capable source depguard ships. It needs an API token
(SOCKET_API_TOKEN); without one `is_available()` is False and the CLI asks the
user to acknowledge the reduced coverage before scanning at all.
"""

import logging
import threading
import time
from typing import List, Optional, Sequence, Tuple

import requests

from .base import Scanner
from .errors import ScannerError, ScannerErrorKind
from .http_client import build_session
from .models import Finding, FindingType, Package, ScanResult, Severity

logger = logging.getLogger(__name__)

SOCKET_BASE_URL = "https://api.socket.dev/v0"
SOCKET_SCANNER_NAME = "Socket.dev"

_PURL_PREFIX = "pkg:npm/"

_ALERT_TYPES = {
    "malware": FindingType.MALWARE,
    "potentialVulnerability": FindingType.MALWARE,
    "protestware": FindingType.MALWARE,
    "typosquat": FindingType.TYPOSQUAT,
    "socketPkgWithoutProvenance": FindingType.TYPOSQUAT,
    "cve": FindingType.CVE,
    "vulnerability": FindingType.CVE,
    "criticalCVE": FindingType.CVE,
    "highCVE": FindingType.CVE,
    "moderateCVE": FindingType.CVE,
    "lowCVE": FindingType.CVE,
    "copyleftLicense": FindingType.LICENSE,
    "nonpermissiveLicense": FindingType.LICENSE,
    "unknownLicense": FindingType.LICENSE,
    "newAuthor": FindingType.MAINTAINER,
    "noAuthor": FindingType.MAINTAINER,
    "suspiciousAuthorEmail": FindingType.MAINTAINER,
}

_SEVERITIES = {
    "critical": Severity.CRITICAL,
    "high": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "low": Severity.LOW,
}


def map_alert_type(alert_type: str) -> FindingType:
    return _ALERT_TYPES.get(alert_type, FindingType.QUALITY)


def map_severity(severity: str) -> Severity:
    return _SEVERITIES.get((severity or "").lower(), Severity.INFO)


def parse_purl(purl: str) -> Tuple[str, str]:
    """
    Split an npm purl into (name, version).

    pkg:npm/lodash@4.17.21       → ("lodash", "4.17.21")
    pkg:npm/@babel/core@7.24.0   → ("@babel/core", "7.24.0")
    pkg:npm/@babel/core          → ("@babel/core", "")
    """
    rest = purl[len(_PURL_PREFIX):] if purl.startswith(_PURL_PREFIX) else purl
    idx = rest.rfind("@")
    # idx == 0 is the scope marker, not a version separator
    if idx > 0:
        return rest[:idx], rest[idx + 1:]
    return rest, ""


class SocketScanner(Scanner):
    """
    Socket.dev client.

    Args:
        api_token : Bearer token. Empty/None makes the scanner unavailable.
        timeout   : Per-request timeout in seconds.
        session   : Optional pre-built requests Session (tests inject a mock).
    """

    def __init__(
        self,
        api_token: Optional[str],
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        base_url: str = SOCKET_BASE_URL,
    ) -> None:
        self._api_token = api_token or ""
        self._timeout = timeout
        self._session = session or build_session()
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return SOCKET_SCANNER_NAME

    def is_available(self) -> bool:
        return bool(self._api_token)

    def scan(
        self,
        packages: Sequence[Package],
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanResult:
        start = time.monotonic()

        if not self.is_available() or not packages:
            return ScanResult(scanner=self.name, packages=0, duration=time.monotonic() - start)

        self._check_cancelled(cancel_event)
        payload = {"packages": [{"purl": pkg.purl} for pkg in packages]}
        response = self._post("/purl", payload)
        findings = self._to_findings(response)

        logger.debug("[%s] %d packages → %d findings", self.name, len(packages), len(findings))
        return ScanResult(
            scanner=self.name,
            packages=len(packages),
            findings=findings,
            duration=time.monotonic() - start,
        )

    def _post(self, path: str, payload: dict) -> dict:
        try:
            resp = self._session.post(
                f"{self._base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_token}"},
                timeout=self._timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise ScannerError(self.name, "request timed out", ScannerErrorKind.TRANSPORT, exc) from exc
        except requests.exceptions.RequestException as exc:
            raise ScannerError(self.name, "failed to query Socket API", ScannerErrorKind.TRANSPORT, exc) from exc

        if resp.status_code == 401:
            raise ScannerError(self.name, "invalid Socket API token", ScannerErrorKind.AUTH)
        if resp.status_code == 403:
            raise ScannerError(
                self.name, "Socket API access denied - check your subscription", ScannerErrorKind.AUTH,
            )
        if resp.status_code == 429:
            raise ScannerError(self.name, "Socket API rate limit exceeded", ScannerErrorKind.QUOTA)
        if resp.status_code != 200:
            raise ScannerError(
                self.name,
                f"Socket API returned status {resp.status_code}: {resp.text[:200]}",
                ScannerErrorKind.TRANSPORT,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise ScannerError(self.name, "failed to decode response", ScannerErrorKind.TRANSPORT, exc) from exc

    @staticmethod
    def _to_findings(response: dict) -> List[Finding]:
        findings = []
        for result in response.get("results") or []:
            name, version = parse_purl(result.get("purl", ""))
            for alert in result.get("alerts") or []:
                alert_type = alert.get("type", "")
                findings.append(Finding(
                    package=name,
                    version=version,
                    type=map_alert_type(alert_type),
                    severity=map_severity(alert.get("severity", "")),
                    title=alert_type,
                    description=alert.get("message", ""),
                    id=alert.get("key", ""),
                ))
        return findings
