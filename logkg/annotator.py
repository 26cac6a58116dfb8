"""
Infers the entity type of every parameter position of a template.

A template is annotated from a single exemplar log line: the first line
labeled with the template's id. Each parameter value of that line is
checked against the pattern registry and the result becomes the slot type
for that position in all lines sharing the template.
"""

from typing import Dict, Iterable, List, Optional, Set

from .log_utils import get_logger
from .models import UNKNOWN, LogRecord, Matched, Slot, TemplateDefinition, split_parameters
from .config import default_registry
from .patterns import PatternRegistry, PatternScope


def index_exemplars(records: Iterable[LogRecord]) -> Dict[str, LogRecord]:
    """Map each event id to the first record seen with it."""
    exemplars: Dict[str, LogRecord] = {}
    for record in records:
        exemplars.setdefault(record.event_id, record)
    return exemplars


class TemplateAnnotator:
    """Builds type vectors from exemplar lines using a pattern registry."""

    def __init__(self, registry: Optional[PatternRegistry] = None):
        self.registry = registry if registry is not None else default_registry()
        self.misconfigured: Set[str] = set()

    def classify(self, value: str, content: str) -> Slot:
        """
        Type a single parameter value.

        Parameter-scoped patterns are tried in registry order and the first
        hit wins. Only if none hits are line-scoped patterns tried; among
        those every confirmed match replaces the previous one.
        """
        if not value:
            get_logger().debug("Empty parameter value left untyped")
            return UNKNOWN

        line_scoped = []
        for pattern in self.registry:
            if pattern.scope is PatternScope.PARAMETER:
                if pattern.match(value, content):
                    get_logger().debug("Found parameter regex: %s of %s", value, pattern.name)
                    return Matched(pattern)
            elif pattern.scope is PatternScope.LINE:
                line_scoped.append(pattern)
            else:
                self._report_misconfigured(pattern)

        found: Slot = UNKNOWN
        for pattern in line_scoped:
            if pattern.match(value, content):
                get_logger().debug("Found content regex: %s of %s", value, pattern.name)
                found = Matched(pattern)

        if not found:
            get_logger().warning("Value '%s' doesn't match any patterns", value)
        return found

    def annotate(self, definition: TemplateDefinition,
                 exemplar: Optional[LogRecord]) -> List[Slot]:
        """
        Produce the type vector of ``definition``.

        Args:
            definition: The template to annotate
            exemplar: First log line labeled with the template id, if any

        Returns:
            One slot per parameter of the exemplar; empty without exemplar
        """
        if exemplar is None:
            get_logger().info("No example line for template %s", definition.template_id)
            return []

        get_logger().info("Found template example: %s:%s", exemplar.event_id, exemplar.content)
        return [self.classify(value, exemplar.content)
                for value in split_parameters(exemplar.parameter_list)]

    def _report_misconfigured(self, pattern) -> None:
        get_logger().error("Found unrecognized pattern type: %r (pattern %s)",
                           pattern.scope, pattern.name)
        self.misconfigured.add(pattern.name)


def annotate(definition: TemplateDefinition, exemplar: Optional[LogRecord],
             registry: Optional[PatternRegistry] = None) -> List[Slot]:
    """Convenience wrapper around :class:`TemplateAnnotator`."""
    return TemplateAnnotator(registry).annotate(definition, exemplar)
