"""Main CLI entry point for orthoscope.

Provides the command group with global options and the ingestion and
query subcommands.
"""

import logging
from pathlib import Path

import click

from orthoscope import __version__
from orthoscope.config.loader import load_config_with_overrides, parse_overrides
from orthoscope.cli.ingest_cmd import ingest
from orthoscope.cli.query_cmd import compare, orthologs, paralogs
from orthoscope.persistence import IndexStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@click.group()
@click.option(
    '--config',
    type=click.Path(exists=True, path_type=Path),
    default='config/default.yaml',
    help='Path to orthoscope configuration YAML file'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose logging (DEBUG level)'
)
@click.option(
    '--set',
    'overrides',
    multiple=True,
    metavar='KEY=VALUE',
    help='Override a configuration value, e.g. query.max_workers=8 (repeatable)'
)
@click.pass_context
def cli(ctx, config, verbose, overrides):
    """Orthoscope: hierarchical orthology index and multi-species query scoping.

    Ingests hierarchical orthologous groups into a nested-set index, answers
    ortholog lookups at any taxonomic level, and resolves multi-species
    comparisons with gene orthology and anatomical homology.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose
    try:
        ctx.obj['overrides'] = parse_overrides(overrides)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--set')

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Verbose logging enabled")


@cli.command()
@click.pass_context
def info(ctx):
    """Display orthoscope information and configuration summary."""
    config_path = ctx.obj['config_path']

    click.echo(f"Orthoscope v{__version__}")
    click.echo(f"Config: {config_path}")
    click.echo()

    try:
        config = load_config_with_overrides(config_path, ctx.obj['overrides'])

        config_hash = config.config_hash()
        click.echo(f"Config Hash: {config_hash[:16]}...")
        click.echo()

        click.echo(click.style("Data Source Versions:", bold=True))
        click.echo(f"  OMA Release:      {config.versions.oma_release}")
        click.echo(f"  Uberon Version:   {config.versions.uberon_version}")
        click.echo(f"  Taxonomy Version: {config.versions.taxonomy_version}")
        click.echo()

        click.echo(click.style("Paths:", bold=True))
        click.echo(f"  Data Directory: {config.data_dir}")
        click.echo(f"  DuckDB Path: {config.duckdb_path}")
        click.echo()

        click.echo(click.style("Query Configuration:", bold=True))
        click.echo(f"  Max Workers: {config.query.max_workers}")
        timeout = config.query.lookup_timeout_seconds
        timeout_text = f"{timeout}s" if timeout is not None else "none"
        click.echo(f"  Lookup Timeout: {timeout_text}")

        if Path(config.duckdb_path).exists():
            click.echo()
            click.echo(click.style("Stored Tables:", bold=True))
            with IndexStore(config.duckdb_path, read_only=True) as store:
                for checkpoint in store.list_checkpoints():
                    click.echo(
                        f"  {checkpoint['table_name']}: {checkpoint['row_count']} rows "
                        f"({checkpoint['created_at']})"
                    )

    except Exception as e:
        click.echo(click.style(f"Error loading config: {e}", fg='red'), err=True)
        ctx.exit(1)


# Register commands
cli.add_command(ingest)
cli.add_command(orthologs)
cli.add_command(paralogs)
cli.add_command(compare)


if __name__ == '__main__':
    cli()
