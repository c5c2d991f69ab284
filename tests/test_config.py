"""
tests/test_config.py

Unit tests for YAML configuration loading and defaults.
"""

import os
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import yaml

from security_engine.config import (
    DEFAULT_CONFIG_TEMPLATE,
    Config,
    config_from_dict,
    config_to_dict,
    load_config,
    parse_duration,
    write_default_config,
)
from security_engine.errors import ConfigError
from security_engine.models import Severity
from security_engine.policy import Action


SAMPLE_YAML = """
package_manager:
  preferred: bun
scanning:
  socket:
    timeout: 10s
  osv:
    enabled: false
  policy:
    malware: warn
    cve:
      high: warn
    allow_override: true
    allowlist: [lodash]
    blocklist: [malicious-lib]
ui:
  color: false
"""


class TestParseDuration(unittest.TestCase):

    def test_formats(self):
        self.assertEqual(parse_duration(30, "t"), 30.0)
        self.assertEqual(parse_duration("30", "t"), 30.0)
        self.assertEqual(parse_duration("30s", "t"), 30.0)
        self.assertEqual(parse_duration("500ms", "t"), 0.5)
        self.assertEqual(parse_duration("2m", "t"), 120.0)
        self.assertEqual(parse_duration("1h", "t"), 3600.0)

    def test_invalid(self):
        for value in ("soon", "-1s", 0, True):
            with self.subTest(value=value):
                with self.assertRaises(ConfigError):
                    parse_duration(value, "t")


class TestConfigFromDict(unittest.TestCase):

    def test_defaults(self):
        config = config_from_dict({}, env={})
        self.assertEqual(config.package_manager, "auto")
        self.assertTrue(config.scanning.enabled)
        self.assertEqual(config.scanning.socket.timeout, 30.0)
        self.assertEqual(config.scanning.policy.malware_action, Action.BLOCK)
        self.assertFalse(config.has_socket_token())
        self.assertTrue(config.coverage_gap())

    def test_token_from_env(self):
        config = config_from_dict({}, env={"SOCKET_API_TOKEN": "env-tok"})
        self.assertEqual(config.scanning.socket.api_token, "env-tok")
        self.assertFalse(config.coverage_gap())

    def test_file_token_wins_over_env(self):
        raw = {"scanning": {"socket": {"api_token": "file-tok"}}}
        config = config_from_dict(raw, env={"SOCKET_API_TOKEN": "env-tok"})
        self.assertEqual(config.scanning.socket.api_token, "file-tok")

    def test_disabled_socket_is_not_a_gap(self):
        config = config_from_dict({"scanning": {"socket": {"enabled": False}}}, env={})
        self.assertFalse(config.coverage_gap())

    def test_without_socket_leaves_original_untouched(self):
        config = Config()
        trimmed = config.without_socket()
        self.assertFalse(trimmed.scanning.socket.enabled)
        self.assertTrue(config.scanning.socket.enabled)

    def test_invalid_package_manager(self):
        with self.assertRaises(ConfigError):
            config_from_dict({"package_manager": {"preferred": "yarn"}}, env={})

    def test_invalid_section(self):
        with self.assertRaises(ConfigError):
            config_from_dict({"scanning": ["nope"]}, env={})


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_loads_yaml_file(self):
        path = self.dir / "depguard.yaml"
        path.write_text(SAMPLE_YAML)
        config = load_config(str(path), env={})

        self.assertEqual(config.source, str(path))
        self.assertEqual(config.package_manager, "bun")
        self.assertEqual(config.scanning.socket.timeout, 10.0)
        self.assertFalse(config.scanning.osv.enabled)
        policy = config.scanning.policy
        self.assertEqual(policy.malware_action, Action.WARN)
        self.assertEqual(policy.cve_action(Severity.HIGH), Action.WARN)
        self.assertEqual(policy.cve_action(Severity.CRITICAL), Action.BLOCK)
        self.assertTrue(policy.allow_override)
        self.assertTrue(policy.is_allowlisted("lodash"))
        self.assertTrue(policy.is_blocklisted("malicious-lib"))
        self.assertFalse(config.ui.color)

    def test_missing_explicit_path(self):
        with self.assertRaises(ConfigError):
            load_config(str(self.dir / "missing.yaml"), env={})

    def test_invalid_yaml(self):
        path = self.dir / "bad.yaml"
        path.write_text("scanning: [unclosed\n")
        with self.assertRaises(ConfigError):
            load_config(str(path), env={})

    def test_empty_file_means_defaults(self):
        path = self.dir / "empty.yaml"
        path.write_text("")
        config = load_config(str(path), env={})
        self.assertEqual(config.package_manager, "auto")


class TestDefaultConfigFile(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "depguard.yaml"

    def tearDown(self):
        self._tmp.cleanup()

    def test_template_matches_built_in_defaults(self):
        from_template = config_from_dict(yaml.safe_load(DEFAULT_CONFIG_TEMPLATE), env={})
        self.assertEqual(from_template, config_from_dict({}, env={}))

    def test_write_creates_loadable_file(self):
        self.assertTrue(write_default_config(self.path))
        self.assertIn("# depguard configuration", self.path.read_text())
        config = load_config(str(self.path), env={})
        self.assertEqual(config.package_manager, "auto")
        self.assertEqual(config.scanning.policy.cve_action(Severity.LOW), Action.WARN)

    def test_write_refuses_to_overwrite(self):
        self.path.write_text("ui:\n  color: false\n")
        self.assertFalse(write_default_config(self.path))
        self.assertEqual(self.path.read_text(), "ui:\n  color: false\n")


class TestConfigToDict(unittest.TestCase):

    def test_token_is_masked(self):
        shown = config_to_dict(config_from_dict({}, env={"SOCKET_API_TOKEN": "secret"}))
        self.assertEqual(shown["scanning"]["socket"]["api_token"], "(set)")
        self.assertNotIn("secret", yaml.safe_dump(shown))
        unset = config_to_dict(config_from_dict({}, env={}))
        self.assertEqual(unset["scanning"]["socket"]["api_token"], "(not set)")

    def test_reloads_to_same_settings(self):
        config = config_from_dict(yaml.safe_load(SAMPLE_YAML), env={})
        shown = config_to_dict(config)
        shown["scanning"]["socket"].pop("api_token")
        self.assertEqual(config_from_dict(shown, env={}), config)
        self.assertEqual(shown["scanning"]["policy"]["cve"]["high"], "warn")
        self.assertEqual(shown["scanning"]["socket"]["timeout"], "10s")


if __name__ == "__main__":
    unittest.main()
