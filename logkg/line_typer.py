"""
Turns log lines into graph nodes and typed entity links.

Every line becomes a ``LogEntry`` node with its base attributes, even when
its template is unknown. Parameters are then typed position by position
from the template's type vector.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .graph import GraphSink
from .log_utils import get_logger
from .models import AnnotatedTemplate, LogRecord, Matched, split_parameters
from .store import TemplateStore

LOG_ENTRY_CLASS = "LogEntry"
SOURCE_CLASS = "Source"
TEMPLATE_CLASS = "ExtractedTemplate"
PARAMETER_CLASS = "ExtractedParameter"

_UNSAFE_KEY_CHARS = re.compile(r"[\[\.\]\s]")


def normalize_value(value: str) -> str:
    """Node key for a raw parameter value."""
    return _UNSAFE_KEY_CHARS.sub("_", value.strip())


@dataclass
class LineResult:
    """What typing one line produced."""
    node: str
    template_found: bool = False
    entities: int = 0
    literals: int = 0


def emit_template(sink: GraphSink, template: AnnotatedTemplate) -> str:
    """Add an annotated template and its typed parameter positions to the graph."""
    node = sink.create_or_get_node(TEMPLATE_CLASS, template.fingerprint,
                                   label=template.template_text)
    sink.add_literal(node, "content", template.template_text)
    sink.add_literal(node, "hash", template.fingerprint)

    for position, slot in enumerate(template.type_vector):
        if not isinstance(slot, Matched):
            continue
        param = sink.create_or_get_node(PARAMETER_CLASS, f"{template.fingerprint}_{position}")
        sink.add_literal(param, "position", position)
        sink.add_literal(param, "type", slot.name)
        sink.add_relation(node, "hasParameter", param)
    return node


class LineTyper:
    """Applies template type vectors to log lines."""

    def type_line(self, record: LogRecord, store: TemplateStore,
                  sink: GraphSink) -> LineResult:
        """
        Emit ``record`` and its typed parameters into ``sink``.

        Lines whose template id is not indexed keep their base attributes
        and get no entity links. Parameter positions beyond the type vector
        and empty values are skipped.
        """
        get_logger().debug("Process logline-%s", record.line_id)
        result = LineResult(node=self._emit_base(record, sink))

        template = store.lookup(record.event_id)
        if template is None:
            get_logger().debug("No annotated template for event id %s (line %s)",
                               record.event_id, record.line_id)
            return result
        result.template_found = True
        template_node = sink.create_or_get_node(TEMPLATE_CLASS, template.fingerprint,
                                                label=template.template_text)
        sink.add_relation(result.node, "hasTemplate", template_node)

        for position, value in enumerate(split_parameters(record.parameter_list)):
            if not value:
                continue
            slot = template.slot(position)
            if not isinstance(slot, Matched):
                continue
            pattern = slot.pattern
            get_logger().debug("Found: %s of Type %s", value, pattern.name)

            if pattern.produces_node:
                entity = sink.create_or_get_node(pattern.name, normalize_value(value), label=value)
                sink.add_relation(result.node, pattern.relation, entity)
                result.entities += 1
            else:
                sink.add_literal(result.node, pattern.relation, value)
                result.literals += 1

        return result

    def _emit_base(self, record: LogRecord, sink: GraphSink) -> str:
        node = sink.create_or_get_node(LOG_ENTRY_CLASS, record.line_id, label=record.content)
        sink.add_literal(node, "templateId", record.event_id)
        sink.add_literal(node, "logMessage", record.content)
        if record.timestamp:
            sink.add_literal(node, "timestamp", record.timestamp)
        if record.level:
            sink.add_literal(node, "level", record.level)
        sink.add_literal(node, "sequence", record.line_id)

        if record.component:
            source = sink.create_or_get_node(SOURCE_CLASS, normalize_value(record.component),
                                             label=record.component)
            sink.add_relation(node, "hasSource", source)
        return node


def type_line(record: LogRecord, store: TemplateStore, sink: GraphSink,
              typer: Optional[LineTyper] = None) -> LineResult:
    return (typer or LineTyper()).type_line(record, store, sink)
