"""Data models for hierarchical orthologous groups."""

from dataclasses import dataclass, field
from typing import Optional


# Table names for DuckDB storage
GROUP_TABLE_NAME = "hierarchical_group"
ASSIGNMENT_TABLE_NAME = "gene_orthology"
CONFLICT_TABLE_NAME = "gene_conflict"
UNRESOLVED_TABLE_NAME = "unresolved_gene"
GENE_TABLE_NAME = "gene"


@dataclass(eq=False)
class Group:
    """Node of an input orthology tree.

    Nodes compare by identity: the same object reachable twice in a tree
    is one node seen twice, two equal-looking nodes are distinct.

    Attributes:
        id: Source-assigned group ID
        taxon_id: Taxon of the group, None for paralog groups
        children: Child groups, in source order
        member_gene_identifiers: External gene IDs directly in this group
        taxon_range: Source label of the taxon (e.g. "Mammalia")
    """
    id: str
    taxon_id: Optional[int] = None
    children: list["Group"] = field(default_factory=list)
    member_gene_identifiers: list[str] = field(default_factory=list)
    taxon_range: Optional[str] = None


@dataclass(frozen=True)
class HierarchicalGroupRecord:
    """Retained tree node with its nested-set bounds.

    Attributes:
        id: Surrogate ID assigned during ingestion
        orthologous_group_id: ID of the root group of the tree
        left_bound: Nested-set left bound
        right_bound: Nested-set right bound
        taxon_id: Taxon of the group, None for paralog groups
    """
    id: int
    orthologous_group_id: str
    left_bound: int
    right_bound: int
    taxon_id: Optional[int] = None

    def contains(self, other: "HierarchicalGroupRecord") -> bool:
        """Whether ``other`` is this record or one of its descendants."""
        return (
            self.orthologous_group_id == other.orthologous_group_id
            and self.left_bound <= other.left_bound
            and self.right_bound >= other.right_bound
        )


@dataclass(frozen=True)
class GeneOrthologyAssignment:
    internal_gene_id: int
    hierarchical_group_record_id: int
    orthologous_group_id: str


@dataclass(frozen=True)
class GeneConflictWarning:
    """A gene was found in a second group; the first assignment was kept.

    Attributes:
        internal_gene_id: Internal ID of the gene
        existing_group_id: Record ID of the retained assignment
        attempted_group_id: Record ID of the rejected assignment
        external_gene_id: Identifier that triggered the second assignment
    """
    internal_gene_id: int
    existing_group_id: int
    attempted_group_id: int
    external_gene_id: str


@dataclass(frozen=True)
class UnresolvedGeneWarning:
    """A member gene ID did not resolve to a gene of the installation."""
    external_gene_id: str
    group_id: int


@dataclass
class IngestionResult:
    """Output of one ingestion.

    Attributes:
        records: Hierarchical group records, in traversal order
        assignments: Gene assignments, in registration order
        warnings: Conflicting gene assignments that were rejected
        unresolved: Member gene IDs that could not be resolved
    """
    records: list[HierarchicalGroupRecord] = field(default_factory=list)
    assignments: list[GeneOrthologyAssignment] = field(default_factory=list)
    warnings: list[GeneConflictWarning] = field(default_factory=list)
    unresolved: list[UnresolvedGeneWarning] = field(default_factory=list)
