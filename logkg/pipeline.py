"""
Batch pipeline: annotate templates, then type every log line.

Annotation has to finish for all templates before any line is typed,
since typing reads the completed template index.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from dataclasses_json import dataclass_json
from tqdm import tqdm

from .annotator import TemplateAnnotator, index_exemplars
from .graph import GraphSink, NetworkXGraphSink
from .line_typer import LineResult, LineTyper, emit_template
from .log_utils import get_logger
from .models import AnnotatedTemplate, LogRecord, TemplateDefinition
from .patterns import PatternRegistry
from .store import TemplateStore


@dataclass_json
@dataclass
class BuildReport:
    """Counters collected over one build."""
    templates_defined: int = 0
    templates_created: int = 0
    templates_reused: int = 0
    templates_without_exemplar: int = 0
    total_lines: int = 0
    typed_lines: int = 0
    index_misses: int = 0
    failed_lines: int = 0
    entities: int = 0
    literals: int = 0
    misconfigured_patterns: List[str] = field(default_factory=list)
    missed_event_ids: Dict[str, int] = field(default_factory=dict)

    def add_line(self, record: LogRecord, result: LineResult) -> None:
        self.total_lines += 1
        self.entities += result.entities
        self.literals += result.literals
        if result.template_found:
            self.typed_lines += 1
        else:
            self.index_misses += 1
            self.missed_event_ids[record.event_id] = self.missed_event_ids.get(record.event_id, 0) + 1

    def get_summary(self) -> Dict[str, Any]:
        summary = self.to_dict()
        summary["index_miss_rate"] = (self.index_misses / self.total_lines * 100) if self.total_lines else 0
        return summary


class KnowledgeGraphBuilder:
    """
    Builds a knowledge graph from template definitions and log records.

    Args:
        registry: Entity patterns (default patterns if None)
        store: Template store to resolve into; a fresh one if None
        sink: Graph sink to write to; a NetworkXGraphSink if None
        workers: Threads used per phase; 1 runs everything inline
        progress: Show tqdm progress bars
    """

    def __init__(self,
                 registry: Optional[PatternRegistry] = None,
                 store: Optional[TemplateStore] = None,
                 sink: Optional[GraphSink] = None,
                 workers: int = 1,
                 progress: bool = False):
        self.store = store if store is not None else TemplateStore(annotator=TemplateAnnotator(registry))
        self.sink = sink if sink is not None else NetworkXGraphSink()
        self.typer = LineTyper()
        self.workers = max(1, workers or 1)
        self.progress = progress
        self.report = BuildReport()

    def annotate_templates(self, definitions: Sequence[TemplateDefinition],
                           records: Sequence[LogRecord]) -> None:
        """Resolve every definition in the store and add templates to the graph."""
        exemplars = index_exemplars(records)
        created_before, reused_before = self.store.created, self.store.reused

        def resolve(definition: TemplateDefinition) -> str:
            return self.store.resolve(definition, exemplars.get(definition.template_id))

        self._run(resolve, definitions, "Annotating templates")

        for key in sorted(set(self.store.index.values())):
            emit_template(self.sink, self.store.templates[key])

        self.report.templates_defined += len(definitions)
        self.report.templates_without_exemplar += sum(
            1 for d in definitions if d.template_id not in exemplars)
        self.report.templates_created += self.store.created - created_before
        self.report.templates_reused += self.store.reused - reused_before
        self.report.misconfigured_patterns = sorted(self.store.annotator.misconfigured)

    def type_lines(self, records: Sequence[LogRecord]) -> None:
        """Emit every record into the sink."""
        def type_one(record: LogRecord) -> LineResult:
            return self.typer.type_line(record, self.store, self.sink)

        for record, result in self._run(type_one, records, "Typing log lines"):
            if result is None:
                self.report.failed_lines += 1
            else:
                self.report.add_line(record, result)

    def build(self, definitions: Iterable[TemplateDefinition],
              records: Iterable[LogRecord],
              prior_templates: Iterable[AnnotatedTemplate] = ()) -> Tuple[TemplateStore, GraphSink]:
        definitions = list(definitions)
        records = list(records)

        self.store.load(prior_templates)
        self.annotate_templates(definitions, records)
        self.type_lines(records)

        get_logger().info(
            "Built graph from %d lines: %d entities, %d literals, %d lines without template",
            self.report.total_lines, self.report.entities, self.report.literals,
            self.report.index_misses,
        )
        return self.store, self.sink

    def _run(self, func, items: Sequence, desc: str) -> List[Tuple[Any, Any]]:
        """
        Apply ``func`` to every item, inline or on a thread pool.

        A failing item is logged and paired with None; it never aborts the
        batch.
        """
        results = []
        with tqdm(total=len(items), desc=desc, disable=not self.progress) as pbar:
            if self.workers == 1:
                for item in items:
                    results.append((item, self._call(func, item)))
                    pbar.update(1)
            else:
                with ThreadPoolExecutor(max_workers=self.workers) as executor:
                    future_to_item = {executor.submit(self._call, func, item): item
                                      for item in items}
                    for future in as_completed(future_to_item):
                        results.append((future_to_item[future], future.result()))
                        pbar.update(1)
        return results

    @staticmethod
    def _call(func, item):
        try:
            return func(item)
        except Exception:
            get_logger().exception("Error processing %r", item)
            return None


def build_knowledge_graph(template_definitions: Iterable[TemplateDefinition],
                          log_records: Iterable[LogRecord],
                          prior_templates: Iterable[AnnotatedTemplate] = (),
                          registry: Optional[PatternRegistry] = None,
                          sink: Optional[GraphSink] = None,
                          workers: int = 1,
                          progress: bool = False) -> Tuple[TemplateStore, GraphSink]:
    """
    Annotate templates and type all log records into a graph.

    Returns:
        The updated template store and the populated graph sink
    """
    builder = KnowledgeGraphBuilder(registry=registry, sink=sink,
                                    workers=workers, progress=progress)
    return builder.build(template_definitions, log_records, prior_templates)
