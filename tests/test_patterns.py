"""
Tests for entity patterns, the registry and pattern configuration.
"""

import json
import re
import shutil
import tempfile
import unittest
from pathlib import Path

from logkg.config import PatternSpec, build_registry, default_registry, load_pattern_specs, load_registry
from logkg.errors import PatternConfigError, UnknownPatternScope
from logkg.patterns import EntityPattern, PatternRegistry, PatternScope


class TestEntityPattern(unittest.TestCase):
    """Test matching of single patterns."""

    def setUp(self):
        self.registry = default_registry()

    def test_parameter_scope_matches_substring(self):
        """Parameter patterns search inside the value."""
        host = self.registry.get("Host")
        self.assertTrue(host.match("10.0.0.5"))
        self.assertTrue(host.match("from 10.0.0.5:22"))
        self.assertFalse(host.match("alice"))

    def test_domain_also_matches_url(self):
        """Domain alone would type a URL value, which is why order matters."""
        domain = self.registry.get("Domain")
        self.assertTrue(domain.match("http://example.com"))

    def test_line_scope_containment(self):
        """Line patterns only accept values inside the matched span."""
        user = self.registry.get("User")
        content = "Failed login for user: alice from host"

        self.assertTrue(user.match("alice", content))
        self.assertFalse(user.match("bob", content))
        self.assertFalse(user.match("host", content))

    def test_line_scope_without_match(self):
        user = self.registry.get("User")
        self.assertFalse(user.match("alice", "Connection closed by alice"))

    def test_port_is_literal(self):
        port = self.registry.get("Port")
        self.assertFalse(port.produces_node)
        self.assertEqual(port.relation, "port")
        self.assertTrue(port.match("22", "Server listening on 0.0.0.0 port 22."))

    def test_unknown_scope_raises(self):
        """An unrecognized scope is reported through UnknownPatternScope."""
        pattern = EntityPattern("Mac", re.compile(r"[0-9a-f:]{17}"), "token", "connectedMac")
        self.assertFalse(pattern.is_recognized)
        with self.assertRaises(UnknownPatternScope) as ctx:
            pattern.match("00:1b:44:11:3a:b7", "")
        self.assertEqual(ctx.exception.scope, "token")


class TestPatternRegistry(unittest.TestCase):
    """Test registry ordering and lookups."""

    def test_default_order(self):
        registry = default_registry()
        self.assertEqual([p.name for p in registry], ["URL", "Host", "Domain", "User", "Port"])
        self.assertEqual([p.name for p in registry.parameter_patterns()], ["URL", "Host", "Domain"])
        self.assertEqual([p.name for p in registry.line_patterns()], ["User", "Port"])

    def test_duplicate_name_rejected(self):
        registry = PatternRegistry()
        registry.register(EntityPattern("Host", re.compile("x"), PatternScope.PARAMETER, "h"))
        with self.assertRaises(ValueError):
            registry.register(EntityPattern("Host", re.compile("y"), PatternScope.PARAMETER, "h"))

    def test_contains_and_get(self):
        registry = default_registry()
        self.assertIn("User", registry)
        self.assertNotIn("Mac", registry)
        self.assertIsNone(registry.get("Mac"))
        self.assertEqual(len(registry), 5)


class TestPatternConfig(unittest.TestCase):
    """Test loading patterns from JSON files."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, name, data) -> str:
        path = Path(self.temp_dir) / name
        with open(path, 'w', encoding='utf-8') as f:
            if isinstance(data, str):
                f.write(data)
            else:
                json.dump(data, f)
        return str(path)

    def test_load_specs(self):
        path = self._write("patterns.json", [
            {"name": "Host", "regex": r"(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})",
             "scope": "parameter", "relation": "connectedHost"},
            {"name": "Port", "regex": r"(port)(:|-|\s)(\d+)", "scope": "LINE",
             "relation": "port", "produces_node": False},
        ])
        registry = load_registry(path)

        self.assertEqual([p.name for p in registry], ["Host", "Port"])
        self.assertIs(registry.get("Port").scope, PatternScope.LINE)
        self.assertFalse(registry.get("Port").produces_node)
        self.assertTrue(registry.get("Host").produces_node)

    def test_unknown_scope_is_kept(self):
        """Unrecognized scopes survive loading so they can be reported later."""
        spec = PatternSpec("Mac", r"[0-9a-f:]{17}", "token", "connectedMac")
        with self.assertLogs("logkg", level="WARNING"):
            registry = build_registry([spec])
        self.assertEqual(registry.get("Mac").scope, "token")

    def test_invalid_regex(self):
        path = self._write("bad_regex.json", [
            {"name": "Broken", "regex": "(unclosed", "scope": "parameter", "relation": "r"},
        ])
        with self.assertRaises(PatternConfigError):
            load_registry(path)

    def test_reserved_relation_rejected(self):
        path = self._write("reserved.json", [
            {"name": "Port", "regex": r"(port)(:|-|\s)(\d+)", "scope": "line",
             "relation": "label", "produces_node": False},
        ])
        with self.assertRaises(PatternConfigError):
            load_registry(path)

    def test_invalid_json(self):
        path = self._write("bad.json", "{not json")
        with self.assertRaises(PatternConfigError):
            load_pattern_specs(path)

    def test_not_a_list(self):
        path = self._write("obj.json", {"name": "Host"})
        with self.assertRaises(PatternConfigError):
            load_pattern_specs(path)

    def test_missing_file(self):
        with self.assertRaises(PatternConfigError):
            load_pattern_specs(str(Path(self.temp_dir) / "missing.json"))

    def test_default_without_path(self):
        self.assertEqual(len(load_registry(None)), 5)


if __name__ == '__main__':
    unittest.main()
