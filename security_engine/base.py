"""
security_engine/base.py

Defines the scanner abstraction every threat-intelligence source implements.

Architecture Note:
    This module implements the Strategy Pattern. `Scanner` is the abstract
    "strategy" interface. Concrete implementations (OSVScanner,
    SocketScanner, test doubles, …) are injected into the ScanOrchestrator in
    orchestrator.py, which depends only on this contract. Adding a new source
    means adding a subclass; nothing in the orchestrator or policy engine
    changes.
"""

import threading
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .errors import ScannerError, ScannerErrorKind
from .models import Package, ScanResult


class Scanner(ABC):
    """
    Abstract base class (the Strategy Interface) for all threat sources.

    Contract:
        name           : Stable identifier, used for display and for the
                         orchestrator's capability queries.
        is_available() : True when the scanner has what it needs (e.g.
                         credentials) to run meaningfully. Unavailable
                         scanners are skipped, not treated as failures.
        scan()         : Returns a ScanResult, or raises ScannerError on
                         auth, quota or transport failure. Scanners must not
                         mutate `packages`.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable identifier for this scanner."""
        ...

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def scan(
        self,
        packages: Sequence[Package],
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanResult:
        """
        Query this source for findings about `packages`.

        Args:
            packages     : Read-only package list shared with other scanners.
            cancel_event : Set by the orchestrator when the caller abandons
                           the scan. Long-running scanners should call
                           `self._check_cancelled(cancel_event)` between
                           network round-trips.
        """
        ...

    def _check_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ScannerError(self.name, "scan cancelled", ScannerErrorKind.CANCELLED)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
