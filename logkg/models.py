"""
Core data models for template annotation and log line typing.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from dataclasses_json import dataclass_json

from .patterns import EntityPattern, PatternRegistry
from .log_utils import get_logger


def split_parameters(parameter_list: str) -> List[str]:
    """
    Split a raw parameter list such as ``"['alice', '10.0.0.5']"``.

    The outer wrapper characters are dropped, single quotes removed, and
    the rest split on commas. An empty list yields no values.
    """
    if not parameter_list:
        return []
    inner = parameter_list[1:-1].replace("'", "")
    if not inner.strip():
        return []
    return [value.strip() for value in inner.split(",")]


@dataclass(frozen=True)
class LogRecord:
    """A single parsed log line, already assigned to a template."""
    line_id: str
    content: str
    event_id: str
    parameter_list: str = "[]"
    event_template: str = ""
    month: str = ""
    day: str = ""
    time: str = ""
    timestamp: Optional[str] = None  # ISO-8601, normalized at ingestion
    level: str = ""
    component: str = ""

    @property
    def parameters(self) -> List[str]:
        return split_parameters(self.parameter_list)


@dataclass(frozen=True)
class TemplateDefinition:
    """An event template as labeled by the upstream parser."""
    template_id: str
    template_text: str


@dataclass(frozen=True)
class Matched:
    """A parameter slot typed by a pattern."""
    pattern: EntityPattern

    @property
    def name(self) -> str:
        return self.pattern.name


class _Unknown:
    """A parameter slot no pattern could type."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __bool__(self) -> bool:
        return False


UNKNOWN = _Unknown()

Slot = Union[Matched, _Unknown]


@dataclass_json
@dataclass
class TemplateRecord:
    """Persisted form of an annotated template (one JSONL line)."""
    fingerprint: str
    template_text: str
    parameter_types: List[Optional[str]] = field(default_factory=list)
    has_exemplar: bool = True


@dataclass
class AnnotatedTemplate:
    """
    A template text with the type inferred for each parameter position.

    The fingerprint is the identity: two definitions with the same text
    share one AnnotatedTemplate regardless of their event ids.
    """
    fingerprint: str
    template_text: str
    type_vector: List[Slot] = field(default_factory=list)
    has_exemplar: bool = True

    def slot(self, position: int) -> Slot:
        """Type of a parameter position; out-of-range positions are unknown."""
        if 0 <= position < len(self.type_vector):
            return self.type_vector[position]
        return UNKNOWN

    def to_record(self) -> TemplateRecord:
        return TemplateRecord(
            fingerprint=self.fingerprint,
            template_text=self.template_text,
            parameter_types=[s.name if isinstance(s, Matched) else None
                             for s in self.type_vector],
            has_exemplar=self.has_exemplar,
        )

    @classmethod
    def from_record(cls, record: TemplateRecord,
                    registry: PatternRegistry) -> 'AnnotatedTemplate':
        """Rebuild the type vector, resolving pattern names in ``registry``."""
        type_vector: List[Slot] = []
        for position, name in enumerate(record.parameter_types):
            if name is None:
                type_vector.append(UNKNOWN)
                continue
            pattern = registry.get(name)
            if pattern is None:
                get_logger().warning(
                    "Template %s position %d refers to unregistered pattern '%s'",
                    record.fingerprint[:12], position, name,
                )
                type_vector.append(UNKNOWN)
            else:
                type_vector.append(Matched(pattern))
        return cls(
            fingerprint=record.fingerprint,
            template_text=record.template_text,
            type_vector=type_vector,
            has_exemplar=record.has_exemplar,
        )

    def __str__(self) -> str:
        types = ", ".join(str(s.name) if isinstance(s, Matched) else "?"
                          for s in self.type_vector)
        return f"Template({self.fingerprint[:12]}, [{types}])"
