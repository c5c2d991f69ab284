"""
tests/test_models.py

Unit tests for the result model: aggregation flags, counts and ordering.
"""

import itertools
import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from security_engine.models import (
    AggregatedResult,
    Finding,
    FindingType,
    Package,
    ScanResult,
    Severity,
    severity_order,
)


def _finding(package="pkg", severity=Severity.MEDIUM, type_=FindingType.CVE, **kw):
    return Finding(package=package, version="1.0.0", type=type_, severity=severity, title="t", **kw)


class TestPackage(unittest.TestCase):

    def test_purl_and_key(self):
        pkg = Package("@babel/core", "7.24.0")
        self.assertEqual(pkg.purl, "pkg:npm/@babel/core@7.24.0")
        self.assertEqual(pkg.key, ("@babel/core", "7.24.0"))

    def test_equality_by_value(self):
        self.assertEqual(Package("a", "1"), Package("a", "1"))
        self.assertNotEqual(Package("a", "1"), Package("a", "2"))


class TestSeverity(unittest.TestCase):

    def test_precedence(self):
        ordered = sorted(["low", "critical", "info", "high", "medium"], key=severity_order)
        self.assertEqual(ordered, ["critical", "high", "medium", "low", "info"])

    def test_unknown_sorts_with_info(self):
        self.assertEqual(severity_order("bogus"), Severity.INFO.rank)


class TestFinding(unittest.TestCase):

    def test_typosquat_counts_as_malware(self):
        self.assertTrue(_finding(type_=FindingType.TYPOSQUAT).is_malware)
        self.assertTrue(_finding(type_=FindingType.MALWARE).is_malware)
        self.assertFalse(_finding(type_=FindingType.CVE).is_malware)

    def test_to_dict_omits_empty_optionals(self):
        data = _finding().to_dict()
        self.assertEqual(data["type"], "cve")
        self.assertEqual(data["severity"], "medium")
        self.assertNotIn("id", data)
        self.assertNotIn("references", data)

        data = _finding(id="GHSA-1", references=("https://x",)).to_dict()
        self.assertEqual(data["id"], "GHSA-1")
        self.assertEqual(data["references"], ["https://x"])


class TestAggregatedResult(unittest.TestCase):

    def setUp(self):
        self.results = [
            ScanResult("a", 3, [_finding(severity=Severity.HIGH), _finding(severity=Severity.LOW)]),
            ScanResult("b", 3, [_finding(severity=Severity.CRITICAL, type_=FindingType.MALWARE)]),
            ScanResult("c", 3, []),
        ]

    def test_flags_and_counts(self):
        agg = AggregatedResult.from_results(self.results)
        self.assertEqual(agg.total_findings, 3)
        self.assertTrue(agg.has_malware)
        self.assertTrue(agg.has_critical)
        self.assertTrue(agg.has_high)
        self.assertEqual(agg.count_by_severity(Severity.LOW), 1)
        self.assertEqual(agg.count_by_type(FindingType.CVE), 2)
        self.assertEqual(len(agg.malware_findings()), 1)
        self.assertEqual(len(agg.cve_findings()), 2)

    def test_empty(self):
        agg = AggregatedResult.from_results([])
        self.assertEqual(agg.total_findings, 0)
        self.assertFalse(agg.has_malware or agg.has_critical or agg.has_high)

    def test_fold_is_order_independent(self):
        baseline = AggregatedResult.from_results(self.results)
        for perm in itertools.permutations(self.results):
            agg = AggregatedResult.from_results(perm)
            self.assertEqual(
                (agg.total_findings, agg.has_malware, agg.has_critical, agg.has_high),
                (baseline.total_findings, baseline.has_malware, baseline.has_critical, baseline.has_high),
            )

    def test_add_result_matches_from_results(self):
        incremental = AggregatedResult()
        for r in self.results:
            incremental.add_result(r)
        folded = AggregatedResult.from_results(self.results)
        self.assertEqual(incremental.total_findings, folded.total_findings)
        self.assertEqual(incremental.has_critical, folded.has_critical)

    def test_duplicate_findings_are_kept(self):
        same = _finding(id="CVE-1")
        agg = AggregatedResult.from_results([ScanResult("a", 1, [same]), ScanResult("b", 1, [same])])
        self.assertEqual(agg.total_findings, 2)

    def test_sorted_findings(self):
        agg = AggregatedResult.from_results(self.results)
        severities = [f.severity for f in agg.sorted_findings()]
        self.assertEqual(severities, [Severity.CRITICAL, Severity.HIGH, Severity.LOW])


if __name__ == "__main__":
    unittest.main()
