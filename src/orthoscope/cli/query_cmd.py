"""Query commands: ortholog lookups and multi-species comparison scoping."""

import logging
import sys
from pathlib import Path

import click

from orthoscope.config.loader import load_config_with_overrides
from orthoscope.homology import HomologyRelationResolver, load_relations
from orthoscope.multispecies import (
    CallFilter,
    ConditionFilter,
    GeneFilter,
    MultiSpeciesCallFilterComposer,
    TaxonomyFilter,
)
from orthoscope.orthology import (
    describe_genes,
    load_index,
    query_orthologs,
    resolve_external_gene,
)
from orthoscope.persistence import IndexStore
from orthoscope.taxonomy import build_registry

logger = logging.getLogger(__name__)


def _echo_genes(store: IndexStore, gene_ids, indent: str = "  ") -> None:
    df = describe_genes(store, gene_ids)
    for row in df.iter_rows(named=True):
        click.echo(f"{indent}{row['external_id']}\t(species {row['species_id']})")


@click.command('orthologs')
@click.argument('gene_id')
@click.option(
    '--taxon',
    type=int,
    default=None,
    help='NCBI taxon ID of the taxonomic level (default: every level of the gene)'
)
@click.pass_context
def orthologs(ctx, gene_id, taxon):
    """List genes orthologous to GENE_ID.

    With --taxon, the lookup runs directly against DuckDB; without it,
    orthologs are listed for every taxon from the closest to the farthest.
    """
    config_path = ctx.obj['config_path']

    try:
        config = load_config_with_overrides(config_path, ctx.obj['overrides'])
        store = IndexStore(config.duckdb_path, read_only=True)

        internal_id = resolve_external_gene(store, gene_id)
        if internal_id is None:
            raise ValueError(f"Unknown gene: {gene_id}")

        if taxon is not None:
            found = query_orthologs(store, internal_id, taxon)
            click.echo(click.style(
                f"Orthologs of {gene_id} at taxon {taxon}: {len(found)}", bold=True
            ))
            _echo_genes(store, found)
            return

        index = load_index(store)
        by_taxon = index.orthologs_by_taxon(internal_id)
        if not by_taxon:
            click.echo(click.style(f"No orthology data for {gene_id}", fg='yellow'))
            return
        for level, found in by_taxon.items():
            click.echo(click.style(f"Taxon {level}: {len(found)} genes", bold=True))
            _echo_genes(store, found)

    except Exception as e:
        click.echo(click.style(f"Ortholog lookup failed: {e}", fg='red'), err=True)
        logger.exception("Orthologs command failed")
        sys.exit(1)
    finally:
        if 'store' in locals():
            store.close()


@click.command('paralogs')
@click.argument('gene_id')
@click.option(
    '--taxon',
    type=int,
    default=None,
    help='NCBI taxon ID bounding the duplications considered (default: whole gene family)'
)
@click.pass_context
def paralogs(ctx, gene_id, taxon):
    """List genes of the same species paralogous to GENE_ID."""
    config_path = ctx.obj['config_path']

    try:
        config = load_config_with_overrides(config_path, ctx.obj['overrides'])
        store = IndexStore(config.duckdb_path, read_only=True)

        internal_id = resolve_external_gene(store, gene_id)
        if internal_id is None:
            raise ValueError(f"Unknown gene: {gene_id}")

        found = load_index(store).lookup_paralogs(internal_id, taxon)
        level = f" at taxon {taxon}" if taxon is not None else ""
        click.echo(click.style(f"Paralogs of {gene_id}{level}: {len(found)}", bold=True))
        _echo_genes(store, found)

    except Exception as e:
        click.echo(click.style(f"Paralog lookup failed: {e}", fg='red'), err=True)
        logger.exception("Paralogs command failed")
        sys.exit(1)
    finally:
        if 'store' in locals():
            store.close()

@click.command('compare')
@click.option(
    '--taxa',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='TSV file of taxa and species used at ingestion'
)
@click.option(
    '--genes',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='TSV file of genes used at ingestion'
)
@click.option(
    '--constraints',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help='Optional TSV file of species where entities exist (entity_id, species_id)'
)
@click.option(
    '--relations',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='TSV file of homology/homoplasy annotations'
)
@click.option('--taxon', type=int, default=None, help='Comparison taxon ID')
@click.option('--species', 'species_ids', type=int, multiple=True, help='Targeted species ID (repeatable)')
@click.option('--gene', 'gene_ids', multiple=True, help='Requested gene ID (repeatable)')
@click.option('--anat-entity', 'anat_entity_ids', multiple=True, help='Requested anatomical entity ID (repeatable)')
@click.option('--dev-stage', 'dev_stage_ids', multiple=True, help='Requested developmental stage ID (repeatable)')
@click.option(
    '--force-homology',
    is_flag=True,
    help='Expand genes to orthologs and entities to homologous entities'
)
@click.pass_context
def compare(ctx, taxa, genes, constraints, relations, taxon, species_ids,
            gene_ids, anat_entity_ids, dev_stage_ids, force_homology):
    """Resolve the per-species query scope of a multi-species comparison."""
    config_path = ctx.obj['config_path']

    try:
        config = load_config_with_overrides(config_path, ctx.obj['overrides'])
        registry = build_registry(taxa, genes, constraints_path=constraints)

        store = IndexStore(config.duckdb_path, read_only=True)
        index = load_index(store)
        resolver = HomologyRelationResolver(load_relations(relations), registry)

        by_species: dict[int, set[int]] = {}
        for external_id in gene_ids:
            internal_id = registry.resolve_gene(external_id)
            if internal_id is None:
                raise ValueError(f"Unknown gene: {external_id}")
            by_species.setdefault(registry.species_of_gene(internal_id), set()).add(internal_id)

        condition_filters = ()
        if anat_entity_ids or dev_stage_ids:
            condition_filters = (ConditionFilter(
                anat_entity_ids=frozenset(anat_entity_ids),
                dev_stage_ids=frozenset(dev_stage_ids),
            ),)

        call_filter = CallFilter(
            gene_filters=tuple(
                GeneFilter(species_id=s, gene_ids=frozenset(ids))
                for s, ids in sorted(by_species.items())
            ),
            condition_filters=condition_filters,
            taxonomy_filter=TaxonomyFilter(taxon_id=taxon, species_ids=frozenset(species_ids)),
            force_homology=force_homology,
        )

        composer = MultiSpeciesCallFilterComposer(
            registry,
            index,
            resolver,
            max_workers=config.query.max_workers,
            lookup_timeout=config.query.lookup_timeout_seconds,
        )
        scope = composer.compose(call_filter)

        click.echo(click.style(
            f"Comparison taxon: {registry.taxon_name(scope.taxon_id)} ({scope.taxon_id})",
            bold=True
        ))
        for species_id, species_scope in scope.species.items():
            click.echo()
            click.echo(click.style(
                f"{registry.taxon_name(species_id)} ({species_id})", bold=True
            ))
            click.echo(f"  Genes: {len(species_scope.gene_ids)}")
            _echo_genes(store, species_scope.gene_ids, indent="    ")
            click.echo(f"  Anatomical entities: {', '.join(sorted(species_scope.anat_entity_ids)) or 'any'}")
            click.echo(f"  Developmental stages: {', '.join(sorted(species_scope.dev_stage_ids)) or 'any'}")
            for missing in species_scope.missing:
                click.echo(click.style(
                    f"  Incomplete: no counterpart for {missing.kind.value} {missing.requested_id}",
                    fg='yellow'
                ))

    except Exception as e:
        click.echo(click.style(f"Comparison failed: {e}", fg='red'), err=True)
        logger.exception("Compare command failed")
        sys.exit(1)
    finally:
        if 'store' in locals():
            store.close()
