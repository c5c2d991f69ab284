"""
tests/test_http_client.py

Unit tests for the shared requests Session: the fixed retry policy and the
default headers every scanner sends.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from security_engine.http_client import USER_AGENT, build_session, truncate


class TestRetryPolicy(unittest.TestCase):

    def setUp(self):
        self.session = build_session()

    def test_fixed_retry_count_on_server_errors(self):
        retry = self.session.get_adapter("https://").max_retries
        self.assertEqual(retry.total, 3)
        self.assertEqual(set(retry.status_forcelist), {500, 502, 503, 504})
        self.assertFalse(retry.raise_on_status)

    def test_post_is_retried(self):
        retry = self.session.get_adapter("https://").max_retries
        self.assertEqual(set(retry.allowed_methods), {"GET", "POST"})

    def test_client_errors_are_not_retried(self):
        retry = self.session.get_adapter("https://").max_retries
        for status in (401, 403, 429):
            with self.subTest(status=status):
                self.assertNotIn(status, retry.status_forcelist)

    def test_http_scheme_shares_policy(self):
        retry = self.session.get_adapter("http://").max_retries
        self.assertEqual(retry.total, 3)

    def test_custom_retry_count(self):
        self.assertEqual(build_session(retries=0).get_adapter("https://").max_retries.total, 0)

    def test_default_headers(self):
        self.assertEqual(self.session.headers["User-Agent"], USER_AGENT)
        self.assertEqual(self.session.headers["Accept"], "application/json")


class TestTruncate(unittest.TestCase):

    def test_short_text_unchanged(self):
        self.assertEqual(truncate("abc", 10), "abc")

    def test_long_text_ends_with_ellipsis(self):
        text = truncate("x" * 600, 500)
        self.assertEqual(len(text), 500)
        self.assertTrue(text.endswith("..."))


if __name__ == "__main__":
    unittest.main()
