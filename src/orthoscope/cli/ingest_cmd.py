"""Ingest command: build the orthology index from an OrthoXML file.

Orchestrates the ingestion flow:
1. Load config
2. Create IndexStore and ProvenanceTracker
3. Check for an existing index
4. Build the taxon scope registry from TSV files
5. Read hierarchical orthologous groups from OrthoXML
6. Ingest group trees into nested-set records
7. Save all tables to DuckDB in one transaction, with provenance
"""

import logging
import sys
from pathlib import Path

import click

from orthoscope.config.loader import load_config_with_overrides
from orthoscope.orthology import OrthologGroupIngester, load_to_duckdb, read_orthoxml
from orthoscope.orthology.models import GROUP_TABLE_NAME
from orthoscope.persistence import IndexStore, ProvenanceTracker
from orthoscope.taxonomy import build_registry

logger = logging.getLogger(__name__)

# Number of individual warnings echoed before summarizing
MAX_WARNINGS_SHOWN = 10


@click.command('ingest')
@click.option(
    '--orthoxml',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='OrthoXML file of hierarchical orthologous groups'
)
@click.option(
    '--taxa',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='TSV file of taxa and species (taxon_id, name, parent_id, is_species)'
)
@click.option(
    '--genes',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='TSV file of genes of the installation (gene_id, species_id)'
)
@click.option(
    '--xrefs',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help='Optional TSV file mapping cross-reference IDs to gene IDs ("gene ID", "xref ID")'
)
@click.option(
    '--force',
    is_flag=True,
    help='Re-ingest even if an orthology index already exists'
)
@click.pass_context
def ingest(ctx, orthoxml, taxa, genes, xrefs, force):
    """Build the nested-set orthology index from an OrthoXML file.

    Groups of taxa absent from the installation are dropped with their
    subtree. Genes found in several groups keep their first group; the
    rejected assignments are stored in the gene_conflict table.
    """
    config_path = ctx.obj['config_path']
    click.echo(click.style("=== Orthology Ingestion ===", bold=True))
    click.echo()

    try:
        # 1. Load config
        click.echo("Loading configuration...")
        config = load_config_with_overrides(config_path, ctx.obj['overrides'])
        click.echo(click.style(f"  Config loaded: {config_path}", fg='green'))
        click.echo(f"  OMA Release: {config.versions.oma_release}")
        click.echo(f"  DuckDB Path: {config.duckdb_path}")
        click.echo()

        # 2. Storage and provenance
        store = IndexStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)

        # 3. Check checkpoint
        if store.has_checkpoint(GROUP_TABLE_NAME) and not force:
            click.echo(click.style(
                "Orthology index exists. Skipping ingestion (use --force to re-ingest).",
                fg='yellow'
            ))
            return

        # 4. Registry
        click.echo("Loading taxonomy and genes...")
        registry = build_registry(taxa, genes, xrefs_path=xrefs)
        click.echo(click.style(
            f"  {len(registry.species_ids)} species, {len(registry.genes)} genes",
            fg='green'
        ))
        provenance.record_scope(registry)
        click.echo()

        # 5. OrthoXML
        click.echo(f"Reading {orthoxml}...")
        data = read_orthoxml(
            orthoxml,
            taxon_id_property=config.ingestion.taxon_id_property,
            taxon_range_property=config.ingestion.taxon_range_property,
            gene_id_separator=config.ingestion.gene_id_separator,
        )
        common_species = data.species_ids & registry.species_ids
        if not common_species:
            raise ValueError(
                "There is no common species between the installation and the OrthoXML file"
            )
        click.echo(click.style(
            f"  {len(data.groups)} gene families, "
            f"{len(common_species)}/{len(data.species_ids)} species in the installation",
            fg='green'
        ))
        missing_species = sorted(registry.species_ids - data.species_ids)
        if missing_species:
            click.echo(click.style(
                f"  Species without orthology data: {missing_species}",
                fg='yellow'
            ))
        provenance.record_source(orthoxml, data.origin, data.origin_version)
        provenance.record_step(
            'read_orthoxml',
            group_count=len(data.groups),
            species_in_file=len(data.species_ids),
            common_species=len(common_species),
        )
        click.echo()

        # 6. Ingest
        click.echo("Ingesting hierarchical groups...")
        ingester = OrthologGroupIngester.from_registry(registry)
        result = ingester.ingest(data.groups)
        click.echo(click.style(
            f"  {len(result.records)} groups, {len(result.assignments)} gene assignments",
            fg='green'
        ))

        if result.warnings:
            click.echo(click.style(
                f"  {len(result.warnings)} genes found in different hierarchical groups "
                "(first group kept)",
                fg='yellow'
            ))
            for warning in result.warnings[:MAX_WARNINGS_SHOWN]:
                click.echo(
                    f"    {warning.external_gene_id}: kept group {warning.existing_group_id}, "
                    f"rejected group {warning.attempted_group_id}"
                )
        if result.unresolved:
            click.echo(f"  {len(result.unresolved)} member genes not in the installation")
        click.echo()

        # 7. Save
        click.echo("Saving orthology index to DuckDB...")
        load_to_duckdb(result, store, provenance, genes=registry.genes)
        provenance.save_to_store(store)
        provenance_path = provenance.save_sidecar(Path(config.duckdb_path))
        click.echo(click.style(f"  Provenance saved: {provenance_path}", fg='green'))
        click.echo()

        click.echo(click.style("=== Ingestion Summary ===", bold=True))
        click.echo(f"Gene Families: {len({r.orthologous_group_id for r in result.records})}")
        click.echo(f"Hierarchical Groups: {len(result.records)}")
        click.echo(f"Gene Assignments: {len(result.assignments)}")
        click.echo(f"Conflicts: {len(result.warnings)}")
        click.echo(f"Unresolved Genes: {len(result.unresolved)}")
        click.echo(f"DuckDB Path: {config.duckdb_path}")
        click.echo()
        click.echo(click.style("Ingestion complete!", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Ingestion failed: {e}", fg='red'), err=True)
        logger.exception("Ingest command failed")
        sys.exit(1)
    finally:
        if 'store' in locals():
            store.close()
