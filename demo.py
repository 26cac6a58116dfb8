#!/usr/bin/env python3
"""
Demo script for the log knowledge graph builder.
"""

import shutil
import tempfile
from pathlib import Path

from logkg import KnowledgeGraphBuilder, TemplateRepository, TemplateStore, default_registry
from logkg.models import LogRecord, Matched, TemplateDefinition


def create_sample_templates():
    """Template definitions as an upstream log parser would label them."""
    return [
        TemplateDefinition("E1", "Accepted password for <*> from <*> port <*> ssh2"),
        TemplateDefinition("E2", "Invalid user <*> from <*>"),
        TemplateDefinition("E3", "Fetching <*> for update check"),
        TemplateDefinition("E4", "Connection closed by <*> [preauth]"),
    ]


def create_sample_logs():
    """Parsed log lines with their event ids and parameter lists."""
    return [
        LogRecord("1", "Accepted password for alice from 10.0.0.5 port 52144 ssh2", "E1",
                  parameter_list="['alice', '10.0.0.5', '52144']", component="sshd", level="INFO"),
        LogRecord("2", "Invalid user admin from 203.0.113.7", "E2",
                  parameter_list="['admin', '203.0.113.7']", component="sshd", level="WARN"),
        LogRecord("3", "Fetching https://updates.example.com/latest for update check", "E3",
                  parameter_list="['https://updates.example.com/latest']", component="updater"),
        LogRecord("4", "Connection closed by 203.0.113.7 [preauth]", "E4",
                  parameter_list="['203.0.113.7']", component="sshd"),
        LogRecord("5", "Accepted password for bob from 10.0.0.5 port 52190 ssh2", "E1",
                  parameter_list="['bob', '10.0.0.5', '52190']", component="sshd", level="INFO"),
        LogRecord("6", "Kernel panic - not syncing", "E9", component="kernel", level="FATAL"),
    ]


def main():
    """Run the demo."""
    print("🚀 Log Knowledge Graph Builder Demo")
    print("=" * 50)

    temp_dir = tempfile.mkdtemp()
    print(f"📁 Working in temporary directory: {temp_dir}")

    try:
        registry = default_registry()
        repository = TemplateRepository(str(Path(temp_dir) / "templates.jsonl"))

        # Step 1: Annotate templates and type log lines
        print("\n🔍 Annotating templates and typing log lines...")
        builder = KnowledgeGraphBuilder(store=TemplateStore(registry))
        store, sink = builder.build(create_sample_templates(), create_sample_logs())

        print("\n📋 Annotated Templates:")
        for template_id in sorted(store.index):
            template = store.lookup(template_id)
            types = [s.name if isinstance(s, Matched) else "-" for s in template.type_vector]
            print(f"  {template_id}: {template.template_text}")
            print(f"      🎯 Parameter types: {types}")

        # Step 2: Persist templates for the next run
        store.persist(repository)
        print(f"\n💾 Saved {len(store.persistable())} templates to: {repository.file_path.name}")

        # Step 3: Show the graph
        summary = sink.summary()
        print(f"\n🌳 Graph: {summary['nodes']} nodes, {summary['edges']} edges")
        for node_class, count in sorted(summary['nodes_by_class'].items()):
            print(f"   • {node_class}: {count}")

        print("\n🔗 Hosts and the lines that mention them:")
        for host in sorted(sink.nodes_of_class("Host")):
            lines = sorted(source for source, _ in sink.graph.in_edges(host))
            print(f"   • {sink.graph.nodes[host]['label']}: {', '.join(lines)}")

        # Step 4: Second run with renumbered event ids reuses the stored annotations
        print("\n♻️  Second run with renumbered event ids...")
        renumbered = [TemplateDefinition(f"X{d.template_id}", d.template_text)
                      for d in create_sample_templates()]
        rerun = KnowledgeGraphBuilder(store=TemplateStore(registry))
        rerun.build(renumbered, [], repository.load(registry))
        print(f"   • Annotated: {rerun.report.templates_created}, reused: {rerun.report.templates_reused}")

        out_file = Path(temp_dir) / "log_kg.json"
        sink.serialize(out_file)
        print(f"\n💾 Graph written to: {out_file.name}")

        print(f"\n🎉 Demo completed successfully!")

    except Exception as e:
        print(f"\n❌ Demo failed with error: {e}")
        import traceback
        traceback.print_exc()

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)
        print(f"\n🧹 Cleaned up temporary directory")


if __name__ == '__main__':
    main()
