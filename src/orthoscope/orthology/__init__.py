"""Hierarchical orthologous groups: ingestion, nested-set index and storage."""

from orthoscope.orthology.models import (
    GeneConflictWarning,
    GeneOrthologyAssignment,
    Group,
    HierarchicalGroupRecord,
    IngestionResult,
    UnresolvedGeneWarning,
)
from orthoscope.orthology.ingest import (
    IngestionContext,
    OrthologGroupIngester,
    count_groups,
)
from orthoscope.orthology.index import NestedSetOrthologyIndex, PublishedIndex
from orthoscope.orthology.orthoxml import OrthoXMLData, read_orthoxml
from orthoscope.orthology.load import (
    describe_genes,
    load_index,
    load_to_duckdb,
    query_orthologs,
    resolve_external_gene,
)

__all__ = [
    "GeneConflictWarning",
    "GeneOrthologyAssignment",
    "Group",
    "HierarchicalGroupRecord",
    "IngestionResult",
    "UnresolvedGeneWarning",
    "IngestionContext",
    "OrthologGroupIngester",
    "count_groups",
    "NestedSetOrthologyIndex",
    "PublishedIndex",
    "OrthoXMLData",
    "read_orthoxml",
    "describe_genes",
    "load_index",
    "load_to_duckdb",
    "query_orthologs",
    "resolve_external_gene",
]
