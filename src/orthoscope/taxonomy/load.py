"""Load taxonomy, genes and cross-references from TSV files."""

from pathlib import Path
from typing import Optional

import polars as pl
import structlog

from orthoscope.taxonomy.models import Gene, Species, Taxon
from orthoscope.taxonomy.registry import TaxonScopeRegistry

logger = structlog.get_logger()

# Expected headers of the input files
TAXA_COLUMNS = ["taxon_id", "name", "parent_id", "is_species"]
GENE_COLUMNS = ["gene_id", "species_id"]
XREF_GENE_COLUMN = "gene ID"
XREF_ID_COLUMN = "xref ID"
CONSTRAINT_COLUMNS = ["entity_id", "species_id"]

_TRUE_VALUES = ["1", "true", "yes", "t", "y"]


def _read_tsv(path: Path, required: list[str]) -> pl.DataFrame:
    """Read a TSV file as strings and check its header.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty or lacks a required column
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    try:
        df = pl.read_csv(
            path,
            separator="\t",
            infer_schema_length=0,
            null_values=[""],
            comment_prefix="#",
        )
    except pl.exceptions.NoDataError as e:
        raise ValueError(f"File is empty: {path}") from e

    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(
            f"File {path} is missing columns {missing}, found {df.columns}"
        )
    return df


def load_taxonomy(path: Path) -> tuple[list[Taxon], list[Species]]:
    """Load the species taxonomy.

    The file has one row per taxon with columns ``taxon_id``, ``name``,
    ``parent_id`` (empty for the root) and ``is_species``. Species rows
    must have a parent.

    Args:
        path: Path to the taxonomy TSV file

    Returns:
        Tuple of (taxa, species)
    """
    df = _read_tsv(path, TAXA_COLUMNS).with_columns(
        pl.col("taxon_id").cast(pl.Int64),
        pl.col("parent_id").cast(pl.Int64),
        pl.col("is_species").fill_null("0").str.to_lowercase().is_in(_TRUE_VALUES),
    )

    taxa = []
    species = []
    for row in df.iter_rows(named=True):
        if row["is_species"]:
            if row["parent_id"] is None:
                raise ValueError(f"Species {row['taxon_id']} has no parent taxon")
            species.append(Species(row["taxon_id"], row["name"], row["parent_id"]))
        else:
            taxa.append(Taxon(row["taxon_id"], row["name"], row["parent_id"]))

    logger.info("taxonomy_loaded", taxa=len(taxa), species=len(species))
    return taxa, species


def load_genes(path: Path) -> list[Gene]:
    """Load the genes of the installation.

    Columns ``gene_id`` and ``species_id`` are required. Internal IDs are
    read from an optional ``internal_id`` column, otherwise they are
    assigned from 1 in file order.
    """
    df = _read_tsv(path, GENE_COLUMNS)
    if "internal_id" not in df.columns:
        df = df.with_row_index("internal_id", offset=1)

    df = df.with_columns(
        pl.col("internal_id").cast(pl.Int64),
        pl.col("species_id").cast(pl.Int64),
    )

    duplicated = df.filter(pl.col("gene_id").is_duplicated())["gene_id"].unique().to_list()
    if duplicated:
        raise ValueError(f"Duplicate gene IDs in {path}: {sorted(duplicated)[:5]}")

    genes = [
        Gene(row["internal_id"], row["gene_id"], row["species_id"])
        for row in df.iter_rows(named=True)
    ]
    logger.info("genes_loaded", gene_count=len(genes))
    return genes


def load_xrefs(path: Path) -> dict[str, str]:
    """Load the cross-reference mapping (xref ID to gene ID).

    The file must have the headers "gene ID" and "xref ID".

    Raises:
        ValueError: If the headers are wrong or the mapping is empty
    """
    df = _read_tsv(path, [XREF_GENE_COLUMN, XREF_ID_COLUMN]).drop_nulls(
        [XREF_GENE_COLUMN, XREF_ID_COLUMN]
    )
    if df.height == 0:
        raise ValueError(f"The mapping file {path} is empty")

    mapping = dict(zip(df[XREF_ID_COLUMN].to_list(), df[XREF_GENE_COLUMN].to_list()))
    logger.info("xrefs_loaded", xref_count=len(mapping))
    return mapping


def load_taxon_constraints(path: Path) -> dict[str, frozenset[int]]:
    """Load the species where anatomical/developmental entities exist.

    One row per (``entity_id``, ``species_id``) pair.
    """
    df = _read_tsv(path, CONSTRAINT_COLUMNS).with_columns(
        pl.col("species_id").cast(pl.Int64)
    )
    grouped = df.group_by("entity_id").agg(pl.col("species_id"))
    constraints = {
        row["entity_id"]: frozenset(row["species_id"])
        for row in grouped.iter_rows(named=True)
    }
    logger.info("taxon_constraints_loaded", entity_count=len(constraints))
    return constraints


def build_registry(
    taxa_path: Path,
    genes_path: Path,
    xrefs_path: Optional[Path] = None,
    constraints_path: Optional[Path] = None,
) -> TaxonScopeRegistry:
    """Build a TaxonScopeRegistry from its TSV files."""
    taxa, species = load_taxonomy(taxa_path)
    genes = load_genes(genes_path)
    xrefs = load_xrefs(xrefs_path) if xrefs_path else None
    constraints = load_taxon_constraints(constraints_path) if constraints_path else None
    return TaxonScopeRegistry(taxa, species, genes, xrefs, constraints)
