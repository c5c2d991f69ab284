"""
security_engine/orchestrator.py

ScanOrchestrator — concurrent fan-out over every configured Scanner.
────────────────────────────────────────────────────────────────────
This class owns the scanner set and runs one scan cycle:

  1. Drop allowlisted packages.
  2. Run every available scanner in its own worker thread against the same
     read-only package list. Each worker catches its own failure, so one
     scanner never cancels or delays another.
  3. Wait for all workers (the barrier), then fold the successful results
     into an AggregatedResult.
  4. Inject a critical malware finding for every blocklisted package from
     the ORIGINAL list. Blocklist wins over allowlist.

Failure policy: partial failure is tolerated and logged. Only when every
scanner fails does the scan raise AllScannersFailedError.

Swapping or adding sources only changes how the orchestrator is constructed;
see `from_config()`.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .base import Scanner
from .errors import AllScannersFailedError, ScannerError, ScannerErrorKind, UserAbortError
from .models import AggregatedResult, Finding, FindingType, Package, ScanResult, Severity
from .osv_scanner import OSVScanner
from .policy import Policy
from .socket_scanner import SOCKET_SCANNER_NAME, SocketScanner

logger = logging.getLogger(__name__)

POLICY_SCANNER_NAME = "policy"

# Scanners able to detect malware / supply-chain attacks, by name.
MALWARE_SCANNERS = frozenset({SOCKET_SCANNER_NAME})


class ScanProgress(str, Enum):
    STARTED = "started"
    FINISHED = "finished"


ProgressCallback = Callable[[str, ScanProgress], None]


@dataclass
class _Outcome:
    """What one worker hands back through the barrier."""
    scanner: str
    result: Optional[ScanResult] = None
    error: Optional[ScannerError] = None


class ScanOrchestrator:
    """
    Runs a set of Scanner strategies concurrently and aggregates the results.

    Args:
        scanners : Every configured scanner, available or not. Availability
                   is checked at scan time.
        policy   : Immutable policy; only its allow/block lists are used here.

    Usage:
        orchestrator = ScanOrchestrator.from_config(config)
        result = orchestrator.scan(packages)
        decision = PolicyEngine(config.scanning.policy).decide(result)
    """

    def __init__(self, scanners: Sequence[Scanner], policy: Policy) -> None:
        self._scanners = list(scanners)
        self._policy = policy
        self._cancel_lock = threading.Lock()
        self._cancel_event: Optional[threading.Event] = None

        logger.debug(
            "ScanOrchestrator initialised | scanners=%s | allowlist=%d | blocklist=%d",
            [s.name for s in self._scanners],
            len(policy.allowlist),
            len(policy.blocklist),
        )

    @classmethod
    def from_config(cls, config) -> "ScanOrchestrator":
        """Build the enabled scanners from a security_engine.config.Config."""
        scanning = config.scanning
        scanners: List[Scanner] = []
        if scanning.socket.enabled:
            scanners.append(SocketScanner(scanning.socket.api_token, timeout=scanning.socket.timeout))
        if scanning.osv.enabled:
            scanners.append(OSVScanner(timeout=scanning.osv.timeout))
        return cls(scanners, scanning.policy)

    # ── Capability queries ────────────────────────────────────────────────────

    def available_scanners(self) -> List[str]:
        return [s.name for s in self._scanners if s.is_available()]

    def has_scanner(self, name: str) -> bool:
        return name in self.available_scanners()

    def has_malware_scanner(self) -> bool:
        return any(name in MALWARE_SCANNERS for name in self.available_scanners())

    # ── Scanning ──────────────────────────────────────────────────────────────

    def scan(
        self,
        packages: Sequence[Package],
        on_progress: Optional[ProgressCallback] = None,
    ) -> AggregatedResult:
        """
        Scan `packages` with every available scanner.

        Args:
            packages    : Flat package list; trusted as given.
            on_progress : Optional callback invoked from each worker with
                          (scanner_name, STARTED) and (scanner_name, FINISHED).
                          Observability only; it does not change the result.

        Raises:
            AllScannersFailedError : every scanner that ran failed.
            UserAbortError         : the caller interrupted the scan.
        """
        start = time.monotonic()

        if not packages:
            return AggregatedResult(duration=time.monotonic() - start)

        filtered = tuple(p for p in packages if not self._policy.is_allowlisted(p.name))
        skipped = len(packages) - len(filtered)
        if skipped:
            logger.info("Skipping %d allowlisted package(s)", skipped)

        outcomes = self._fan_out(filtered, on_progress)

        results = [o.result for o in outcomes if o.result is not None]
        errors = [o.error for o in outcomes if o.error is not None]

        if errors and not results:
            raise AllScannersFailedError(errors)
        for error in errors:
            logger.warning("Scanner failed, continuing without it: %s", error)

        aggregated = AggregatedResult.from_results(results)
        aggregated.total_packages = len(filtered)

        for pkg in packages:
            if self._policy.is_blocklisted(pkg.name):
                aggregated.add_result(self._blocklist_result(pkg))

        aggregated.duration = time.monotonic() - start
        logger.info(
            "Scan complete: %d package(s), %d finding(s), %d/%d scanner(s) succeeded in %.2fs",
            aggregated.total_packages, aggregated.total_findings,
            len(results), len(outcomes), aggregated.duration,
        )
        return aggregated

    def cancel(self) -> None:
        """Abandon the in-flight scan; every running scanner sees the signal."""
        with self._cancel_lock:
            if self._cancel_event is not None:
                self._cancel_event.set()

    def _fan_out(
        self,
        packages: Sequence[Package],
        on_progress: Optional[ProgressCallback],
    ) -> List[_Outcome]:
        active = [s for s in self._scanners if s.is_available()]
        for scanner in self._scanners:
            if scanner not in active:
                logger.debug("[%s] unavailable, skipping", scanner.name)
        if not active:
            logger.warning("No scanners available")
            return []

        cancel_event = threading.Event()
        with self._cancel_lock:
            self._cancel_event = cancel_event

        # One slot per scanner; each worker only ever fills its own slot.
        outcomes: List[Optional[_Outcome]] = [None] * len(active)
        completion_order: List[int] = []
        executor = ThreadPoolExecutor(max_workers=len(active), thread_name_prefix="scanner")
        interrupted = False
        try:
            futures = {
                executor.submit(self._run_scanner, scanner, packages, cancel_event, on_progress): slot
                for slot, scanner in enumerate(active)
            }
            for future in as_completed(futures):
                slot = futures[future]
                outcomes[slot] = future.result()
                completion_order.append(slot)
        except KeyboardInterrupt as exc:
            interrupted = True
            cancel_event.set()
            executor.shutdown(wait=False, cancel_futures=True)
            raise UserAbortError("scan interrupted") from exc
        finally:
            with self._cancel_lock:
                self._cancel_event = None
            if not interrupted:
                executor.shutdown(wait=True)

        if cancel_event.is_set():
            raise UserAbortError("scan cancelled")
        # Completion order, so the first error reported is the first observed.
        return [outcomes[slot] for slot in completion_order]

    @staticmethod
    def _notify(on_progress: Optional[ProgressCallback], name: str, progress: ScanProgress) -> None:
        if on_progress is None:
            return
        try:
            on_progress(name, progress)
        except Exception:
            # Progress is display only; a broken callback never touches the scan.
            logger.debug("[%s] progress callback failed (%s)", name, progress.value, exc_info=True)

    @staticmethod
    def _run_scanner(
        scanner: Scanner,
        packages: Sequence[Package],
        cancel_event: threading.Event,
        on_progress: Optional[ProgressCallback],
    ) -> _Outcome:
        name = scanner.name
        ScanOrchestrator._notify(on_progress, name, ScanProgress.STARTED)
        logger.info("[%s] scanning %d package(s)", name, len(packages))
        try:
            result = scanner.scan(packages, cancel_event)
            outcome = _Outcome(scanner=name, result=result)
        except ScannerError as exc:
            outcome = _Outcome(scanner=name, error=exc)
        except Exception as exc:
            # Contain unexpected failures to this scanner's slot.
            logger.debug("[%s] unexpected error", name, exc_info=True)
            outcome = _Outcome(
                scanner=name,
                error=ScannerError(name, str(exc), ScannerErrorKind.TRANSPORT, exc),
            )
        ScanOrchestrator._notify(on_progress, name, ScanProgress.FINISHED)
        return outcome

    @staticmethod
    def _blocklist_result(pkg: Package) -> ScanResult:
        return ScanResult(
            scanner=POLICY_SCANNER_NAME,
            packages=1,
            findings=[Finding(
                package=pkg.name,
                version=pkg.version,
                type=FindingType.MALWARE,
                severity=Severity.CRITICAL,
                title="Blocklisted package",
                description="This package is in your blocklist",
            )],
        )
