"""
Integration tests for the complete log knowledge graph pipeline.
"""

import json
import logging
import shutil
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

import networkx as nx
from click.testing import CliRunner

import build_graph
from logkg import KnowledgeGraphBuilder, TemplateRepository, TemplateStore, build_knowledge_graph
from logkg.config import default_registry
from logkg.ingest import normalize_timestamp, read_log_records, read_template_definitions
from logkg.log_utils import get_logger
from logkg.models import Matched
from logkg.store import fingerprint
from tests.test_data.openssh_samples import EXPECTED_TYPES, STRUCTURED_CSV, TEMPLATES_CSV


class TestIngest(unittest.TestCase):
    """Test reading structured log CSVs."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.templates_file = Path(self.temp_dir) / "templates.csv"
        self.log_file = Path(self.temp_dir) / "structured.csv"
        self.templates_file.write_text(TEMPLATES_CSV, encoding="utf-8")
        self.log_file.write_text(STRUCTURED_CSV, encoding="utf-8")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_read_records(self):
        records = read_log_records(str(self.log_file), year=2017)

        self.assertEqual(len(records), 10)
        first = records[0]
        self.assertEqual(first.line_id, "1")
        self.assertEqual(first.event_id, "E27")
        self.assertEqual(first.parameters, ["ns.marryaldkfaczcz.com", "173.234.31.186"])
        self.assertEqual(first.timestamp, "2017-12-10T06:55:46")
        self.assertEqual(first.component, "LabSZ")
        self.assertEqual(first.level, "")

    def test_component_brackets_removed(self):
        records = read_log_records(str(self.log_file), year=2017)
        self.assertEqual(records[-1].component, "LabSZ")

    def test_read_templates(self):
        definitions = read_template_definitions(str(self.templates_file))
        self.assertEqual(len(definitions), 8)
        self.assertEqual(definitions[1].template_id, "E13")
        self.assertEqual(definitions[1].template_text, "Invalid user <*> from <*>")

    def test_missing_column(self):
        bad = Path(self.temp_dir) / "bad.csv"
        bad.write_text("Foo,Bar\n1,2\n", encoding="utf-8")
        with self.assertRaises(ValueError):
            read_log_records(str(bad))
        with self.assertRaises(ValueError):
            read_template_definitions(str(bad))

    def test_normalize_timestamp(self):
        self.assertEqual(normalize_timestamp("Jan", "5", "10:00:01", 2020), "2020-01-05T10:00:01")
        self.assertIsNone(normalize_timestamp("", "", ""))
        with self.assertLogs("logkg", level="WARNING"):
            self.assertIsNone(normalize_timestamp("Foo", "99", "xx", 2020))


class TestPipeline(unittest.TestCase):
    """End-to-end tests of annotation and typing."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        templates_file = Path(self.temp_dir) / "templates.csv"
        log_file = Path(self.temp_dir) / "structured.csv"
        templates_file.write_text(TEMPLATES_CSV, encoding="utf-8")
        log_file.write_text(STRUCTURED_CSV, encoding="utf-8")

        self.definitions = read_template_definitions(str(templates_file))
        self.records = read_log_records(str(log_file), year=2017)
        self.registry = default_registry()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_type_vectors(self):
        store, _ = build_knowledge_graph(self.definitions, self.records, registry=self.registry)

        for template_id, expected in EXPECTED_TYPES.items():
            with self.subTest(template_id=template_id):
                template = store.lookup(template_id)
                self.assertIsNotNone(template)
                names = [s.name if isinstance(s, Matched) else None for s in template.type_vector]
                self.assertEqual(names, expected)

    def test_graph_contents(self):
        builder = KnowledgeGraphBuilder(registry=self.registry)
        _, sink = builder.build(self.definitions, self.records)

        # every line is kept, including the one with an unknown template
        self.assertEqual(len(sink.nodes_of_class("LogEntry")), 10)
        self.assertEqual(builder.report.total_lines, 10)
        self.assertEqual(builder.report.index_misses, 1)
        self.assertEqual(builder.report.missed_event_ids, {"E777": 1})
        self.assertEqual(builder.report.templates_without_exemplar, 1)
        self.assertEqual(builder.report.failed_lines, 0)

        self.assertEqual(
            sorted(sink.nodes_of_class("Host")),
            ["Host_173_234_31_186", "Host_212_47_254_145", "Host_52_80_34_196"],
        )
        self.assertEqual(sorted(sink.nodes_of_class("User")), ["User_test9", "User_webmaster"])
        self.assertEqual(len(sink.nodes_of_class("Domain")), 2)
        self.assertEqual(sink.literals("LogEntry_4", "port"), ["38926"])
        self.assertEqual(sink.objects("LogEntry_10", "connectedHost"), [])
        self.assertEqual(sink.objects("LogEntry_10", "hasSource"), ["Source_LabSZ"])
        self.assertEqual(len(sink.nodes_of_class("ExtractedTemplate")), 8)

    def test_parallel_matches_serial(self):
        _, serial = build_knowledge_graph(self.definitions, self.records, registry=self.registry)
        _, parallel = build_knowledge_graph(self.definitions, self.records,
                                            registry=self.registry, workers=4)

        self.assertEqual(set(serial.graph.nodes), set(parallel.graph.nodes))
        self.assertEqual(set(serial.graph.edges(keys=True)), set(parallel.graph.edges(keys=True)))

    def test_second_run_reuses_templates(self):
        """Renumbered event ids from a later run map onto stored templates."""
        repository = TemplateRepository(str(Path(self.temp_dir) / "store.jsonl"))
        store, _ = build_knowledge_graph(self.definitions, self.records, registry=self.registry)
        store.persist(repository)

        renumbered = {d.template_id: f"X{i}" for i, d in enumerate(self.definitions)}
        definitions = [replace(d, template_id=renumbered[d.template_id]) for d in self.definitions]
        records = [replace(r, event_id=renumbered.get(r.event_id, r.event_id)) for r in self.records]

        builder = KnowledgeGraphBuilder(store=TemplateStore(self.registry))
        second_store, sink = builder.build(definitions, records, repository.load(self.registry))

        self.assertEqual(builder.report.templates_created, 1)  # E99 has no exemplar
        self.assertEqual(builder.report.templates_reused, 7)
        self.assertEqual(len(second_store), 8)
        self.assertEqual(second_store.lookup(renumbered["E13"]).fingerprint,
                         fingerprint("Invalid user <*> from <*>"))
        self.assertEqual(sink.objects("LogEntry_2", "connectedUser"), ["User_webmaster"])

    def test_serialize_json_and_graphml(self):
        _, sink = build_knowledge_graph(self.definitions, self.records, registry=self.registry)

        json_path = Path(self.temp_dir) / "out" / "kg.json"
        sink.serialize(json_path)
        with open(json_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        node_ids = {node["id"] for node in data["nodes"]}
        self.assertIn("Host_173_234_31_186", node_ids)

        graphml_path = Path(self.temp_dir) / "kg.graphml"
        sink.serialize(graphml_path)
        loaded = nx.read_graphml(graphml_path)
        self.assertEqual(loaded.number_of_nodes(), sink.graph.number_of_nodes())
        self.assertEqual(json.loads(loaded.nodes["LogEntry_4"]["port"]), ["38926"])


class TestCLI(unittest.TestCase):
    """Test the build_graph command line tools."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.templates_file = Path(self.temp_dir) / "templates.csv"
        self.log_file = Path(self.temp_dir) / "structured.csv"
        self.store_file = Path(self.temp_dir) / "templates.jsonl"
        self.out_file = Path(self.temp_dir) / "kg.json"
        self.templates_file.write_text(TEMPLATES_CSV, encoding="utf-8")
        self.log_file.write_text(STRUCTURED_CSV, encoding="utf-8")
        self.runner = CliRunner()

    def tearDown(self):
        logger = get_logger()
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _build(self, *extra):
        return self.runner.invoke(build_graph.build_graph, [
            "--templates", str(self.templates_file),
            "--logs", str(self.log_file),
            "--store", str(self.store_file),
            "--out", str(self.out_file),
            "--year", "2017",
            *extra,
        ])

    def test_build_and_rerun(self):
        result = self._build()
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(self.out_file.exists())
        self.assertTrue(self.store_file.exists())
        self.assertIn("8 annotated", result.output)

        rerun = self._build()
        self.assertEqual(rerun.exit_code, 0, rerun.output)
        self.assertIn("1 annotated, 7 reused", rerun.output)

    def test_no_persist(self):
        result = self._build("--no-persist")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertFalse(self.store_file.exists())

    def test_persist_failure_still_writes_graph(self):
        blocker = Path(self.temp_dir) / "blocker"
        blocker.write_text("file")
        self.store_file = blocker / "templates.jsonl"

        result = self._build()

        self.assertEqual(result.exit_code, 2, result.output)
        self.assertTrue(self.out_file.exists())
        self.assertIn("Could not persist templates", result.output)

    def test_unreadable_store_is_left_untouched(self):
        """A store that cannot be read disables persistence for the run."""
        original = b"\xff\xfe not utf-8 \x80\n"
        self.store_file.write_bytes(original)

        result = self._build()

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Could not load template store", result.output)
        self.assertTrue(self.out_file.exists())
        self.assertEqual(self.store_file.read_bytes(), original)
        self.assertFalse(Path(str(self.store_file) + ".tmp").exists())

    def test_inspect_store(self):
        self._build()
        result = self.runner.invoke(build_graph.inspect_store, ["--store", str(self.store_file)])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Total templates: 7", result.output)
        self.assertIn("Host", result.output)


if __name__ == '__main__':
    unittest.main()
