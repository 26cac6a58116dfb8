#!/usr/bin/env python3
"""
CLI tool for building a knowledge graph from structured log files.

Usage:
    python build_graph.py --templates OpenSSH_2k.log_templates.csv \\
        --logs OpenSSH_2k.log_structured.csv --store templates.jsonl --out log_kg.json
"""

import click
import logging
import os
import sys
from pathlib import Path

# Add the package to Python path
sys.path.insert(0, os.path.dirname(__file__))

from logkg import KnowledgeGraphBuilder, TemplateRepository, TemplateStore
from logkg.config import load_registry
from logkg.errors import PatternConfigError, StoreIOFailure
from logkg.ingest import read_log_records, read_template_definitions
from logkg.log_utils import setup_logger
from logkg.models import Matched


@click.command()
@click.option('--templates', '-t',
              required=True,
              type=click.Path(exists=True, dir_okay=False),
              help='Template table CSV (EventId, EventTemplate)')
@click.option('--logs', '-l',
              required=True,
              type=click.Path(exists=True, dir_okay=False),
              help='Structured log CSV with EventId and ParameterList columns')
@click.option('--out', '-o',
              default='log_kg.json',
              type=click.Path(dir_okay=False),
              help='Output graph file (.json node-link or .graphml)')
@click.option('--store', '-s',
              default='templates.jsonl',
              type=click.Path(dir_okay=False),
              help='JSONL file of annotated templates kept across runs')
@click.option('--patterns', '-p',
              type=click.Path(exists=True, dir_okay=False),
              help='JSON file with entity patterns (default: URL, Host, Domain, User, Port)')
@click.option('--year',
              type=int,
              default=None,
              help='Year for syslog timestamps without one (default: current year)')
@click.option('--workers', '-w',
              type=int,
              default=1,
              help='Number of worker threads per phase')
@click.option('--no-persist',
              is_flag=True,
              help='Do not write annotated templates back to the store')
@click.option('--verbose', '-v',
              is_flag=True,
              help='Enable verbose output')
def build_graph(templates: str,
                logs: str,
                out: str,
                store: str,
                patterns: str,
                year: int,
                workers: int,
                no_persist: bool,
                verbose: bool):
    """
    Build a knowledge graph from parsed log lines.

    Templates are annotated with entity types from one example line each,
    de-duplicated against the template store by content hash, and then
    applied to every log line. Lines become LogEntry nodes linked to Host,
    User, Domain and URL nodes found in their parameters.

    Examples:

    \b
    # First run creates the template store
    python build_graph.py -t OpenSSH_2k.log_templates.csv \\
        -l OpenSSH_2k.log_structured.csv -o log_kg.json

    \b
    # GraphML output for Gephi or yEd, keeping the store untouched
    python build_graph.py -t templates.csv -l structured.csv \\
        -o log_kg.graphml --no-persist
    """
    setup_logger(logging.DEBUG if verbose else logging.WARNING)
    persist_failed = False

    try:
        registry = load_registry(patterns)

        if verbose:
            click.echo(f"Templates: {templates}")
            click.echo(f"Logs: {logs}")
            click.echo(f"Template store: {store}")
            click.echo(f"Patterns: {', '.join(str(p) for p in registry)}")
            click.echo()

        definitions = read_template_definitions(templates)
        records = read_log_records(logs, year=year)

        if not records:
            click.echo("No log lines found in the input file.")
            return

        repository = TemplateRepository(store)
        prior = []
        try:
            prior = repository.load(registry)
        except StoreIOFailure as e:
            # a store we could not read must not be overwritten
            click.echo(f"⚠️  Could not load template store: {e}")
            no_persist = True

        builder = KnowledgeGraphBuilder(store=TemplateStore(registry),
                                        workers=workers, progress=verbose)
        template_store, sink = builder.build(definitions, records, prior)

        sink.serialize(out)

        if not no_persist:
            try:
                template_store.persist(repository)
            except StoreIOFailure as e:
                click.echo(f"❌ Could not persist templates: {e}")
                persist_failed = True

        summary = builder.report.get_summary()
        click.echo(f"\n✅ Graph built successfully!")
        click.echo(f"📊 Statistics:")
        click.echo(f"   • Log lines: {summary['total_lines']}")
        click.echo(f"   • Templates: {summary['templates_defined']} "
                   f"({summary['templates_created']} annotated, {summary['templates_reused']} reused)")
        click.echo(f"   • Entity links: {summary['entities']}")
        click.echo(f"   • Literal attributes: {summary['literals']}")
        click.echo(f"   • Lines without template: {summary['index_misses']}")
        click.echo(f"   • Output file: {Path(out).absolute()}")

        if summary['misconfigured_patterns']:
            click.echo(f"   • Misconfigured patterns: {', '.join(summary['misconfigured_patterns'])}")

        if verbose:
            graph_summary = sink.summary()
            click.echo(f"   • Nodes by class:")
            for node_class, count in sorted(graph_summary['nodes_by_class'].items()):
                click.echo(f"     - {node_class}: {count}")

    except KeyboardInterrupt:
        click.echo("\n❌ Build cancelled by user")
        sys.exit(1)
    except (PatternConfigError, ValueError, OSError) as e:
        click.echo(f"\n❌ Error during build: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)

    if persist_failed:
        sys.exit(2)


@click.command()
@click.option('--store', '-s',
              required=True,
              type=click.Path(exists=True, dir_okay=False),
              help='Path to the template store JSONL file')
@click.option('--patterns', '-p',
              type=click.Path(exists=True, dir_okay=False),
              help='JSON file with entity patterns')
def inspect_store(store: str, patterns: str):
    """
    Show the annotated templates kept in a template store.
    """
    try:
        registry = load_registry(patterns)
        template_list = TemplateRepository(store).load(registry)
    except (PatternConfigError, StoreIOFailure) as e:
        click.echo(f"❌ Error reading template store: {e}")
        sys.exit(1)

    if not template_list:
        click.echo("No templates found in the store.")
        return

    click.echo(f"📋 Template store: {store}")
    click.echo(f"=" * 60)
    click.echo(f"Total templates: {len(template_list)}")
    click.echo()

    type_counts = {}
    for template in template_list:
        for slot in template.type_vector:
            if isinstance(slot, Matched):
                type_counts[slot.name] = type_counts.get(slot.name, 0) + 1

    click.echo("Typed parameter positions:")
    for name, count in sorted(type_counts.items(), key=lambda x: x[1], reverse=True):
        click.echo(f"  {name:8}: {count:6}")
    click.echo()

    click.echo("Templates:")
    for template in sorted(template_list, key=lambda t: t.template_text):
        text = template.template_text
        display_text = text[:60] + "..." if len(text) > 60 else text
        click.echo(f"  {template.fingerprint[:12]} {display_text}")
        types = [s.name if isinstance(s, Matched) else "-" for s in template.type_vector]
        if types:
            click.echo(f"               [{', '.join(types)}]")


if __name__ == '__main__':
    build_graph()
