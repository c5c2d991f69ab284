"""
security_engine — depguard's pluggable dependency scanning layer.

Public API:
    ScanOrchestrator : Concurrent fan-out over all scanners; use this from
                       application code.
    Scanner          : Abstract base; subclass this to add a threat source.
    OSVScanner       : Google OSV vulnerability lookups.
    SocketScanner    : Socket.dev malware / supply-chain alerts.
    PolicyEngine     : Maps an AggregatedResult to a pass/block Decision.
    Policy, Action   : Policy configuration values.
    Package, Finding, ScanResult, AggregatedResult, Severity, FindingType:
                       Shared result model.
"""

from .base import Scanner
from .models import (
    AggregatedResult,
    Finding,
    FindingType,
    Package,
    ScanResult,
    Severity,
    severity_order,
)
from .orchestrator import ScanOrchestrator, ScanProgress
from .osv_scanner import OSVScanner
from .policy import Action, Decision, Policy, PolicyEngine, Verdict
from .socket_scanner import SocketScanner

__all__ = [
    "Scanner",
    "AggregatedResult",
    "Finding",
    "FindingType",
    "Package",
    "ScanResult",
    "Severity",
    "severity_order",
    "ScanOrchestrator",
    "ScanProgress",
    "OSVScanner",
    "SocketScanner",
    "Action",
    "Decision",
    "Policy",
    "PolicyEngine",
    "Verdict",
]
