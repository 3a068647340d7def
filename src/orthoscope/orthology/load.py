"""Persist ingested orthology data to DuckDB and query it back."""

from typing import Iterable, Optional

import polars as pl
import structlog

from orthoscope.orthology.index import NestedSetOrthologyIndex
from orthoscope.orthology.models import (
    ASSIGNMENT_TABLE_NAME,
    CONFLICT_TABLE_NAME,
    GENE_TABLE_NAME,
    GROUP_TABLE_NAME,
    UNRESOLVED_TABLE_NAME,
    GeneOrthologyAssignment,
    HierarchicalGroupRecord,
    IngestionResult,
)
from orthoscope.persistence import IndexStore, ProvenanceTracker
from orthoscope.taxonomy import Gene

logger = structlog.get_logger()

GROUP_SCHEMA = {
    "id": pl.Int64,
    "orthologous_group_id": pl.Utf8,
    "left_bound": pl.Int64,
    "right_bound": pl.Int64,
    "taxon_id": pl.Int64,
}
ASSIGNMENT_SCHEMA = {
    "internal_gene_id": pl.Int64,
    "hierarchical_group_record_id": pl.Int64,
    "orthologous_group_id": pl.Utf8,
}
CONFLICT_SCHEMA = {
    "internal_gene_id": pl.Int64,
    "existing_group_id": pl.Int64,
    "attempted_group_id": pl.Int64,
    "external_gene_id": pl.Utf8,
}
UNRESOLVED_SCHEMA = {
    "external_gene_id": pl.Utf8,
    "group_id": pl.Int64,
}
GENE_SCHEMA = {
    "internal_id": pl.Int64,
    "external_id": pl.Utf8,
    "species_id": pl.Int64,
}


def _to_frame(rows: Iterable, schema: dict) -> pl.DataFrame:
    rows = list(rows)
    columns = {name: [getattr(row, name) for row in rows] for name in schema}
    return pl.DataFrame(columns, schema=schema)


def result_to_frames(
    result: IngestionResult,
    genes: Iterable[Gene],
) -> dict[str, pl.DataFrame]:
    """Convert an ingestion result to one DataFrame per table.

    Args:
        result: IngestionResult from OrthologGroupIngester.ingest
        genes: Gene records of the installation, stored so that queries
            can resolve external IDs and species

    Returns:
        Mapping of table name to DataFrame
    """
    return {
        GROUP_TABLE_NAME: _to_frame(result.records, GROUP_SCHEMA),
        ASSIGNMENT_TABLE_NAME: _to_frame(result.assignments, ASSIGNMENT_SCHEMA),
        CONFLICT_TABLE_NAME: _to_frame(result.warnings, CONFLICT_SCHEMA),
        UNRESOLVED_TABLE_NAME: _to_frame(result.unresolved, UNRESOLVED_SCHEMA),
        GENE_TABLE_NAME: _to_frame(genes, GENE_SCHEMA),
    }


def load_to_duckdb(
    result: IngestionResult,
    store: IndexStore,
    provenance: ProvenanceTracker,
    genes: Iterable[Gene],
) -> None:
    """Save an ingestion result to DuckDB with provenance.

    All orthology tables are replaced in a single transaction, so a
    reader never sees records of one ingestion with assignments of
    another. Records are indexed on (orthologous_group_id, left_bound)
    for the range queries of query_orthologs.

    Args:
        result: IngestionResult to persist
        store: IndexStore instance for DuckDB persistence
        provenance: ProvenanceTracker instance for metadata recording
        genes: Gene records of the installation the result was resolved
            against; the gene table is replaced with the other tables
    """
    frames = result_to_frames(result, genes)
    logger.info(
        "orthology_load_start",
        records=frames[GROUP_TABLE_NAME].height,
        assignments=frames[ASSIGNMENT_TABLE_NAME].height,
    )

    group_count = frames[GROUP_TABLE_NAME]["orthologous_group_id"].n_unique()
    paralog_groups = frames[GROUP_TABLE_NAME].filter(pl.col("taxon_id").is_null()).height

    store.replace_tables(
        frames,
        descriptions={
            GROUP_TABLE_NAME: "Hierarchical orthologous groups with nested-set bounds",
            ASSIGNMENT_TABLE_NAME: "Gene to hierarchical group assignments",
            CONFLICT_TABLE_NAME: "Rejected conflicting gene assignments",
            UNRESOLVED_TABLE_NAME: "Member gene IDs unknown to the installation",
            GENE_TABLE_NAME: "Genes of the installation",
        },
        indexes={
            GROUP_TABLE_NAME: ["orthologous_group_id", "left_bound"],
            ASSIGNMENT_TABLE_NAME: ["internal_gene_id"],
        },
    )

    provenance.record_step(
        "load_orthology_index",
        record_count=len(result.records),
        orthologous_group_count=group_count,
        paralog_group_count=paralog_groups,
        assignment_count=len(result.assignments),
        conflict_count=len(result.warnings),
        unresolved_count=len(result.unresolved),
    )

    logger.info(
        "orthology_load_complete",
        records=len(result.records),
        groups=group_count,
        assignments=len(result.assignments),
        conflicts=len(result.warnings),
        unresolved=len(result.unresolved),
    )


def load_index(store: IndexStore) -> NestedSetOrthologyIndex:
    """Rebuild the in-memory orthology index from DuckDB.

    Raises:
        ValueError: If the orthology tables have not been written
    """
    records_df = store.load_dataframe(GROUP_TABLE_NAME)
    assignments_df = store.load_dataframe(ASSIGNMENT_TABLE_NAME)
    if records_df is None or assignments_df is None:
        raise ValueError(
            f"Orthology tables not found in {store.db_path}. Run ingestion first."
        )

    records = [HierarchicalGroupRecord(**row) for row in records_df.iter_rows(named=True)]
    assignments = [
        GeneOrthologyAssignment(**row) for row in assignments_df.iter_rows(named=True)
    ]

    gene_species = None
    genes_df = store.load_dataframe(GENE_TABLE_NAME)
    if genes_df is not None:
        gene_species = dict(zip(genes_df["internal_id"].to_list(), genes_df["species_id"].to_list()))

    logger.info("orthology_index_loaded", records=len(records), assignments=len(assignments))
    return NestedSetOrthologyIndex(records, assignments, gene_species)


def query_orthologs(store: IndexStore, gene_id: int, taxon_id: int) -> frozenset[int]:
    """Genes orthologous to a gene at a taxon, queried directly in DuckDB.

    Runs three range queries on the indexed tables: the group of the
    gene, its closest ancestor-or-self group at the taxon, and the genes
    of all groups within that ancestor's bounds.

    Returns:
        Internal gene IDs; empty if the gene has no group or no
        ancestor group exists at that taxon
    """
    group = store.execute_query(
        f"""
        SELECT h.orthologous_group_id, h.left_bound, h.right_bound
        FROM {ASSIGNMENT_TABLE_NAME} g
        JOIN {GROUP_TABLE_NAME} h ON h.id = g.hierarchical_group_record_id
        WHERE g.internal_gene_id = ?
        """,
        params=[gene_id],
    )
    if group.height == 0:
        return frozenset()
    og_id, left_bound, right_bound = group.row(0)

    ancestor = store.execute_query(
        f"""
        SELECT left_bound, right_bound
        FROM {GROUP_TABLE_NAME}
        WHERE orthologous_group_id = ?
          AND taxon_id = ?
          AND left_bound <= ?
          AND right_bound >= ?
        ORDER BY left_bound DESC
        LIMIT 1
        """,
        params=[og_id, taxon_id, left_bound, right_bound],
    )
    if ancestor.height == 0:
        return frozenset()
    ancestor_left, ancestor_right = ancestor.row(0)

    genes = store.execute_query(
        f"""
        SELECT g.internal_gene_id
        FROM {GROUP_TABLE_NAME} h
        JOIN {ASSIGNMENT_TABLE_NAME} g ON g.hierarchical_group_record_id = h.id
        WHERE h.orthologous_group_id = ?
          AND h.left_bound BETWEEN ? AND ?
        """,
        params=[og_id, ancestor_left, ancestor_right],
    )
    return frozenset(genes["internal_gene_id"].to_list())


def resolve_external_gene(store: IndexStore, external_id: str) -> Optional[int]:
    """Internal ID of a gene stored at ingestion, or None."""
    df = store.execute_query(
        f"SELECT internal_id FROM {GENE_TABLE_NAME} WHERE external_id = ?",
        params=[external_id],
    )
    return df["internal_id"][0] if df.height > 0 else None


def describe_genes(store: IndexStore, gene_ids: Iterable[int]) -> pl.DataFrame:
    """External IDs and species of internal gene IDs, sorted by species."""
    gene_ids = sorted(gene_ids)
    if not gene_ids:
        return pl.DataFrame(schema=GENE_SCHEMA)
    return store.execute_query(
        f"""
        SELECT internal_id, external_id, species_id
        FROM {GENE_TABLE_NAME}
        WHERE list_contains(?::BIGINT[], internal_id)
        ORDER BY species_id, external_id
        """,
        params=[gene_ids],
    )
