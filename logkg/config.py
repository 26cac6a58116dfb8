"""
Pattern configuration.

Patterns can be supplied as a JSON list of objects, in priority order::

    [
      {"name": "Port", "regex": "(port)(:|-| )([0-9]+)", "scope": "line",
       "relation": "port", "produces_node": false}
    ]
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dataclasses_json import dataclass_json

from .errors import PatternConfigError
from .graph import RESERVED_ATTRS
from .log_utils import get_logger
from .patterns import (REGEX_DOMAIN, REGEX_HOST, REGEX_PORT, REGEX_URL, REGEX_USER,
                       EntityPattern, PatternRegistry, PatternScope)


@dataclass_json
@dataclass
class PatternSpec:
    """Serializable description of one entity pattern."""
    name: str
    regex: str
    scope: str
    relation: str
    produces_node: bool = True

    def build(self) -> EntityPattern:
        if self.relation in RESERVED_ATTRS:
            raise PatternConfigError(f"Pattern '{self.name}': relation '{self.relation}' is reserved")

        try:
            compiled = re.compile(self.regex)
        except re.error as e:
            raise PatternConfigError(f"Pattern '{self.name}': invalid regex: {e}") from e

        try:
            scope = PatternScope(str(self.scope).lower())
        except ValueError:
            # kept so the annotator reports it per value instead of failing here
            get_logger().warning("Pattern '%s' has unrecognized scope '%s'", self.name, self.scope)
            scope = self.scope

        return EntityPattern(self.name, compiled, scope, self.relation, self.produces_node)


DEFAULT_PATTERN_SPECS: List[PatternSpec] = [
    PatternSpec("URL", REGEX_URL, "parameter", "connectedURL"),
    PatternSpec("Host", REGEX_HOST, "parameter", "connectedHost"),
    PatternSpec("Domain", REGEX_DOMAIN, "parameter", "connectedDomain"),
    PatternSpec("User", REGEX_USER, "line", "connectedUser"),
    PatternSpec("Port", REGEX_PORT, "line", "port", produces_node=False),
]


def build_registry(specs: Optional[List[PatternSpec]] = None) -> PatternRegistry:
    """Registry built from ``specs`` (default patterns if None)."""
    if specs is None:
        specs = DEFAULT_PATTERN_SPECS
    return PatternRegistry([spec.build() for spec in specs])


def load_pattern_specs(path: str) -> List[PatternSpec]:
    """
    Read pattern specs from a JSON file.

    Raises:
        PatternConfigError: on unreadable files or malformed entries
    """
    try:
        with open(Path(path), 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PatternConfigError(f"Cannot read pattern file {path}: {e}") from e

    if not isinstance(data, list):
        raise PatternConfigError(f"{path}: expected a JSON list of patterns")

    specs = []
    for i, entry in enumerate(data):
        try:
            specs.append(PatternSpec.from_dict(entry))
        except (KeyError, TypeError, AttributeError) as e:
            raise PatternConfigError(f"{path}: invalid pattern entry #{i}: {e}") from e
    return specs


def load_registry(path: Optional[str] = None) -> PatternRegistry:
    """Registry from a pattern file, or the default one without a path."""
    if path is None:
        return build_registry()
    return build_registry(load_pattern_specs(path))


def default_registry() -> PatternRegistry:
    """Registry with the URL/Host/Domain/User/Port patterns."""
    return build_registry()
