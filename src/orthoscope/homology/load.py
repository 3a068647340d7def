"""Load curated evolutionary relations from TSV files."""

from pathlib import Path

import polars as pl
import structlog

from orthoscope.homology.models import EvoTransRelation, RelationType

logger = structlog.get_logger()

REQUIRED_COLUMNS = ["entity_ids", "relation_type", "taxon_id", "evidence_code", "confidence"]
LIST_SEPARATOR = "|"
NEGATED_QUALIFIER = "NOT"


def _split(value) -> frozenset[str]:
    if value is None:
        return frozenset()
    return frozenset(part.strip() for part in value.split(LIST_SEPARATOR) if part.strip())


def load_relations(path: Path) -> list[EvoTransRelation]:
    """Load relation values from a similarity annotation TSV file.

    Required columns: ``entity_ids`` ('|'-separated), ``relation_type``
    (HOMOLOGY or HOMOPLASY), ``taxon_id``, ``evidence_code`` and
    ``confidence``. Optional columns: ``supporting_text``, ``references``
    ('|'-separated) and ``qualifier``; rows qualified "NOT" assert the
    absence of a relation and are skipped.

    Args:
        path: Path to the TSV file

    Returns:
        One EvoTransRelation per annotation line, in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If a column is missing or a value is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Relation file not found: {path}")

    try:
        df = pl.read_csv(
            path,
            separator="\t",
            infer_schema_length=0,
            null_values=[""],
            comment_prefix="#",
        )
    except pl.exceptions.NoDataError as e:
        raise ValueError(f"Relation file is empty: {path}") from e

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Relation file {path} is missing columns {missing}")

    for optional in ("supporting_text", "references", "qualifier"):
        if optional not in df.columns:
            df = df.with_columns(pl.lit(None, dtype=pl.Utf8).alias(optional))

    negated = df.filter(pl.col("qualifier").str.to_uppercase() == NEGATED_QUALIFIER)
    df = df.filter(
        pl.col("qualifier").is_null()
        | (pl.col("qualifier").str.to_uppercase() != NEGATED_QUALIFIER)
    )

    relations = []
    for line, row in enumerate(df.iter_rows(named=True), start=1):
        entity_ids = _split(row["entity_ids"])
        if not entity_ids:
            raise ValueError(f"Relation on row {line} of {path} has no entity")
        try:
            relation_type = RelationType(row["relation_type"].strip().upper())
            taxon_scope = int(row["taxon_id"])
        except (AttributeError, ValueError, TypeError) as e:
            raise ValueError(f"Invalid relation on row {line} of {path}: {e}") from e

        relations.append(EvoTransRelation(
            relation_type=relation_type,
            entity_ids=entity_ids,
            taxon_scope=taxon_scope,
            evidence_code=row["evidence_code"],
            confidence=row["confidence"],
            supporting_text=row["supporting_text"] or "",
            references=_split(row["references"]),
        ))

    logger.info(
        "relations_loaded",
        path=str(path),
        relation_count=len(relations),
        homoplasy_count=sum(1 for r in relations if r.relation_type == RelationType.HOMOPLASY),
        negated_skipped=negated.height,
    )
    return relations
