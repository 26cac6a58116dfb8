"""
Typed entity patterns and the ordered registry they live in.

Parameter-scoped patterns look at a single parameter value. Line-scoped
patterns need the surrounding text of the log message, e.g. the ``user``
keyword before a bare account name, and only accept a parameter whose value
lies inside the matched span.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Union

from .errors import UnknownPatternScope


class PatternScope(Enum):
    """What text a pattern is matched against."""
    PARAMETER = "parameter"
    LINE = "line"

    def __str__(self) -> str:
        return self.value


REGEX_URL = r"(https?|ftp|file)://[-a-zA-Z0-9+&@#/%?=~_|!:,.;]*[-a-zA-Z0-9+&@#/%=~_|]"
REGEX_HOST = r"(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})"
REGEX_DOMAIN = r"((?!-)[A-Za-z0-9-]{1,63}(?<!-)\.)+[A-Za-z]{2,6}"
REGEX_USER = r"(user|usr|ruser|uid|euid)(:|-|\s)(\w+)"
REGEX_PORT = r"(port)(:|-|\s)(\d+)"


@dataclass(frozen=True)
class EntityPattern:
    """
    A regex bound to an entity class and the relation it feeds.

    ``scope`` is normally a :class:`PatternScope`. Entries built from
    configuration keep an unrecognized raw scope value so the annotator can
    report it instead of refusing to start.
    """
    name: str
    regex: re.Pattern
    scope: Union[PatternScope, str]
    relation: str
    produces_node: bool = True

    @property
    def is_recognized(self) -> bool:
        return isinstance(self.scope, PatternScope)

    def match(self, value: str, content: str = "") -> bool:
        """
        Check whether this pattern types ``value``.

        Args:
            value: A single parameter value
            content: The full message the value was taken from

        Raises:
            UnknownPatternScope: if the scope is not a PatternScope
        """
        if self.scope is PatternScope.PARAMETER:
            return self.regex.search(value) is not None
        if self.scope is PatternScope.LINE:
            match = self.regex.search(content)
            return match is not None and value in match.group(0)
        raise UnknownPatternScope(self.name, self.scope)

    def __str__(self) -> str:
        return f"{self.name}({self.scope})"


class PatternRegistry:
    """
    Ordered collection of entity patterns.

    Registration order is the priority order used when several
    parameter-scoped patterns would match the same value (URL before Host
    before Domain).
    """

    def __init__(self, patterns: Optional[List[EntityPattern]] = None):
        self._patterns: List[EntityPattern] = []
        for pattern in patterns or []:
            self.register(pattern)

    def register(self, pattern: EntityPattern) -> None:
        if self.get(pattern.name) is not None:
            raise ValueError(f"Pattern '{pattern.name}' is already registered")
        self._patterns.append(pattern)

    def get(self, name: str) -> Optional[EntityPattern]:
        for pattern in self._patterns:
            if pattern.name == name:
                return pattern
        return None

    def parameter_patterns(self) -> List[EntityPattern]:
        return [p for p in self._patterns if p.scope is PatternScope.PARAMETER]

    def line_patterns(self) -> List[EntityPattern]:
        return [p for p in self._patterns if p.scope is PatternScope.LINE]

    def __iter__(self) -> Iterator[EntityPattern]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None
