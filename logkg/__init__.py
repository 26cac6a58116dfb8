"""
Log Knowledge Graph Builder

A Python library that annotates log templates with entity types and turns
structured log lines into a knowledge graph of log entries, hosts, users,
domains, URLs and ports.
"""

__version__ = "1.0.0"
__author__ = "Log Knowledge Graph Builder"

from .annotator import TemplateAnnotator, annotate, index_exemplars
from .config import build_registry, default_registry, load_registry
from .graph import GraphSink, NetworkXGraphSink
from .io_utils import TemplateRepository
from .line_typer import LineTyper, normalize_value
from .models import UNKNOWN, AnnotatedTemplate, LogRecord, Matched, TemplateDefinition
from .patterns import EntityPattern, PatternRegistry, PatternScope
from .pipeline import BuildReport, KnowledgeGraphBuilder, build_knowledge_graph
from .store import TemplateStore, fingerprint

__all__ = [
    "TemplateAnnotator",
    "annotate",
    "index_exemplars",
    "build_registry",
    "default_registry",
    "load_registry",
    "GraphSink",
    "NetworkXGraphSink",
    "TemplateRepository",
    "LineTyper",
    "normalize_value",
    "UNKNOWN",
    "AnnotatedTemplate",
    "LogRecord",
    "Matched",
    "TemplateDefinition",
    "EntityPattern",
    "PatternRegistry",
    "PatternScope",
    "BuildReport",
    "KnowledgeGraphBuilder",
    "build_knowledge_graph",
    "TemplateStore",
    "fingerprint",
]
