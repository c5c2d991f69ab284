"""
tests/test_policy.py

Unit tests for Policy parsing and PolicyEngine decisions.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from security_engine.errors import ConfigError
from security_engine.models import AggregatedResult, Finding, FindingType, ScanResult, Severity
from security_engine.policy import Action, Policy, PolicyEngine, Verdict


def _result(*findings):
    return AggregatedResult.from_results([ScanResult("test", len(findings), list(findings))])


def _cve(severity):
    return Finding("pkg", "1.0.0", FindingType.CVE, severity, f"{severity.value} issue")


def _malware(type_=FindingType.MALWARE):
    return Finding("evil", "6.6.6", type_, Severity.CRITICAL, "malware")


WARN_HIGH_POLICY = {
    "malware": "block",
    "cve": {"critical": "block", "high": "warn", "medium": "warn", "low": "ignore"},
}


# ─────────────────────────────────────────────────────────────────────────────
# Policy parsing
# ─────────────────────────────────────────────────────────────────────────────

class TestPolicyFromDict(unittest.TestCase):

    def test_defaults(self):
        policy = Policy.from_dict(None)
        self.assertEqual(policy.malware_action, Action.BLOCK)
        self.assertEqual(policy.cve_action(Severity.CRITICAL), Action.BLOCK)
        self.assertEqual(policy.cve_action(Severity.MEDIUM), Action.BLOCK)
        self.assertEqual(policy.cve_action(Severity.LOW), Action.WARN)
        self.assertEqual(policy.cve_action(Severity.INFO), Action.IGNORE)
        self.assertFalse(policy.allow_override)

    def test_cve_entries_merge_over_defaults(self):
        policy = Policy.from_dict({"cve": {"high": "WARN"}})
        self.assertEqual(policy.cve_action(Severity.HIGH), Action.WARN)
        self.assertEqual(policy.cve_action(Severity.CRITICAL), Action.BLOCK)

    def test_lists(self):
        policy = Policy.from_dict({"allowlist": ["lodash", " "], "blocklist": ["malicious-lib"]})
        self.assertTrue(policy.is_allowlisted("lodash"))
        self.assertEqual(policy.allowlist, frozenset({"lodash"}))
        self.assertTrue(policy.is_blocklisted("malicious-lib"))

    def test_invalid_values(self):
        with self.assertRaises(ConfigError):
            Policy.from_dict({"malware": "explode"})
        with self.assertRaises(ConfigError):
            Policy.from_dict({"cve": {"severe": "block"}})
        with self.assertRaises(ConfigError):
            Policy.from_dict({"allowlist": "lodash"})
        with self.assertRaises(ConfigError):
            Policy.from_dict(["not", "a", "mapping"])


# ─────────────────────────────────────────────────────────────────────────────
# Decisions
# ─────────────────────────────────────────────────────────────────────────────

class TestPolicyEngine(unittest.TestCase):

    def setUp(self):
        self.engine = PolicyEngine(Policy.from_dict(WARN_HIGH_POLICY))

    def test_high_cve_under_warn_passes(self):
        decision = self.engine.decide(_result(_cve(Severity.HIGH)))
        self.assertEqual(decision.verdict, Verdict.PASS)
        self.assertEqual(len(decision.warnings), 1)

    def test_critical_cve_blocks(self):
        decision = self.engine.decide(_result(_cve(Severity.CRITICAL)))
        self.assertEqual(decision.verdict, Verdict.BLOCK)
        self.assertEqual(decision.reason, "critical vulnerabilities detected")

    def test_malware_blocks_first(self):
        decision = self.engine.decide(_result(_cve(Severity.CRITICAL), _malware()))
        self.assertEqual(
            decision.reasons,
            ("malware detected", "critical vulnerabilities detected"),
        )
        self.assertEqual(len(decision.blocking), 2)

    def test_typosquat_is_malware(self):
        decision = self.engine.decide(_result(_malware(FindingType.TYPOSQUAT)))
        self.assertEqual(decision.reason, "malware detected")

    def test_ignored_severity_passes_silently(self):
        decision = self.engine.decide(_result(_cve(Severity.LOW)))
        self.assertTrue(decision.passed)
        self.assertEqual(decision.warnings, ())

    def test_malware_warn(self):
        engine = PolicyEngine(Policy.from_dict({"malware": "warn"}))
        decision = engine.decide(_result(_malware()))
        self.assertTrue(decision.passed)
        self.assertEqual(len(decision.warnings), 1)

    def test_empty_result_passes(self):
        self.assertTrue(self.engine.decide(AggregatedResult()).passed)

    def test_overridable_follows_policy(self):
        self.assertFalse(self.engine.decide(_result(_malware())).overridable)
        engine = PolicyEngine(Policy.from_dict({"allow_override": True}))
        self.assertTrue(engine.decide(_result(_malware())).overridable)

    def test_pass_is_never_overridable(self):
        engine = PolicyEngine(Policy.from_dict({"allow_override": True}))
        self.assertFalse(engine.decide(AggregatedResult()).overridable)


if __name__ == "__main__":
    unittest.main()
