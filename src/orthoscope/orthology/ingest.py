"""Nested-set ingestion of hierarchical orthologous group trees.

Each input tree is walked once, depth first and left to right. Nodes whose
taxon is outside the installation scope are dropped together with their
subtree; retained nodes get a left bound on entry and a right bound on exit,
so that bound containment mirrors the ancestor/descendant relation. Member
genes are assigned to the first retained group they are found in.
"""

from operator import attrgetter
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Optional

import structlog

from orthoscope.exceptions import CyclicHierarchyError, MalformedHierarchyError
from orthoscope.orthology.models import (
    GeneConflictWarning,
    GeneOrthologyAssignment,
    Group,
    HierarchicalGroupRecord,
    IngestionResult,
    UnresolvedGeneWarning,
)

if TYPE_CHECKING:
    from orthoscope.taxonomy import TaxonScopeRegistry

logger = structlog.get_logger()

GeneIdResolver = Callable[[str], Optional[int]]


def is_retained(node: Group, scope_taxon_ids: frozenset[int]) -> bool:
    """Paralog groups are always kept, taxon groups only when in scope."""
    return node.taxon_id is None or node.taxon_id in scope_taxon_ids


def _traverse(root: Group, scope_taxon_ids: frozenset[int]) -> Iterator[tuple[Group, bool]]:
    """Walk the retained part of a tree.

    Yields ``(node, True)`` when entering a retained node and
    ``(node, False)`` when leaving it, in depth-first left-to-right order.
    Discarded nodes are neither yielded nor descended into.

    Nodes are numbered in an arena as they are first reached, and the walk
    uses an explicit stack of arena indices.

    Raises:
        CyclicHierarchyError: If a node is reached again from its own subtree
        MalformedHierarchyError: If a node is reached through two parents
    """
    if not is_retained(root, scope_taxon_ids):
        return

    arena: list[Group] = [root]
    index_of: dict[int, int] = {id(root): 0}
    visited: set[int] = set()
    on_path: set[int] = set()
    path: list[str] = []
    stack: list[tuple[int, bool]] = [(0, True)]

    while stack:
        idx, entering = stack.pop()
        node = arena[idx]

        if not entering:
            on_path.discard(idx)
            path.pop()
            yield node, False
            continue

        if idx in on_path:
            raise CyclicHierarchyError(node.id, path + [node.id])
        if idx in visited:
            raise MalformedHierarchyError(
                f"Group {node.id!r} is reachable through more than one parent"
            )
        visited.add(idx)
        on_path.add(idx)
        path.append(node.id)
        yield node, True

        stack.append((idx, False))
        for child in reversed(node.children):
            if not is_retained(child, scope_taxon_ids):
                continue
            child_idx = index_of.get(id(child))
            if child_idx is None:
                child_idx = len(arena)
                index_of[id(child)] = child_idx
                arena.append(child)
            stack.append((child_idx, True))


def count_groups(node: Group, scope_taxon_ids: Iterable[int]) -> int:
    """Number of groups retained from the tree rooted at ``node``.

    A discarded node counts 0 and its descendants are not visited. The
    count equals the number of records ingestion produces for the tree.
    """
    scope = frozenset(scope_taxon_ids)
    return sum(1 for _, entering in _traverse(node, scope) if entering)


class IngestionContext:
    """Mutable state of one ingestion call.

    Owns the record ID sequence, the gene to group map used to detect
    conflicting assignments, and the collected output.
    """

    def __init__(self):
        self._next_record_id = 1
        self._gene_records: dict[int, int] = {}
        self.records: list[HierarchicalGroupRecord] = []
        self.assignments: list[GeneOrthologyAssignment] = []
        self.warnings: list[GeneConflictWarning] = []
        self.unresolved: list[UnresolvedGeneWarning] = []

    def next_record_id(self) -> int:
        record_id = self._next_record_id
        self._next_record_id += 1
        return record_id

    def add_record(self, record: HierarchicalGroupRecord) -> None:
        self.records.append(record)

    def add_unresolved(self, external_gene_id: str, record_id: int) -> None:
        self.unresolved.append(UnresolvedGeneWarning(external_gene_id, record_id))

    def register(
        self,
        internal_gene_id: int,
        record_id: int,
        orthologous_group_id: str,
        external_gene_id: str,
    ) -> bool:
        """Assign a gene to a group record.

        The first assignment of a gene wins. Registering it again to the
        same record is a no-op; registering it to another record leaves
        the assignment unchanged and records a GeneConflictWarning.

        Returns:
            True if a new assignment was created
        """
        existing = self._gene_records.get(internal_gene_id)
        if existing is None:
            self._gene_records[internal_gene_id] = record_id
            self.assignments.append(
                GeneOrthologyAssignment(internal_gene_id, record_id, orthologous_group_id)
            )
            return True
        if existing != record_id:
            self.warnings.append(
                GeneConflictWarning(internal_gene_id, existing, record_id, external_gene_id)
            )
        return False

    def assigned_record(self, internal_gene_id: int) -> Optional[int]:
        return self._gene_records.get(internal_gene_id)

    def to_result(self) -> IngestionResult:
        return IngestionResult(
            records=sorted(self.records, key=attrgetter("id")),
            assignments=list(self.assignments),
            warnings=list(self.warnings),
            unresolved=list(self.unresolved),
        )


class OrthologGroupIngester:
    """Builds nested-set group records and gene assignments from group trees.

    Args:
        scope_taxon_ids: Taxa of the installation; groups of other taxa
            are discarded with their subtree
        gene_id_resolver: Maps an external gene ID to an internal gene ID,
            or None when the gene is not part of the installation
    """

    def __init__(self, scope_taxon_ids: Iterable[int], gene_id_resolver: GeneIdResolver):
        self.scope_taxon_ids = frozenset(scope_taxon_ids)
        self.gene_id_resolver = gene_id_resolver

    @classmethod
    def from_registry(cls, registry: "TaxonScopeRegistry") -> "OrthologGroupIngester":
        return cls(registry.scope_taxon_ids(), registry.resolve_gene)

    def ingest(self, root_groups: Iterable[Group]) -> IngestionResult:
        """Ingest a sequence of top-level orthology trees.

        Args:
            root_groups: Root group of each tree. The root ID becomes the
                orthologous group ID shared by all records of the tree.

        Returns:
            IngestionResult with records, assignments and warnings

        Raises:
            CyclicHierarchyError: If a tree contains a cycle
            MalformedHierarchyError: If a node has several parents or two
                trees share a root ID
        """
        context = IngestionContext()
        root_ids: set[str] = set()
        tree_count = 0
        discarded_trees = 0

        logger.info("ingest_start", scope_size=len(self.scope_taxon_ids))

        for root in root_groups:
            if not is_retained(root, self.scope_taxon_ids):
                discarded_trees += 1
                continue
            if root.id in root_ids:
                raise MalformedHierarchyError(
                    f"Duplicate orthologous group ID {root.id!r}"
                )
            root_ids.add(root.id)
            self._ingest_tree(root, context)
            tree_count += 1

        result = context.to_result()
        logger.info(
            "ingest_complete",
            trees=tree_count,
            discarded_trees=discarded_trees,
            records=len(result.records),
            assignments=len(result.assignments),
            conflicts=len(result.warnings),
            unresolved=len(result.unresolved),
        )
        return result

    def _ingest_tree(self, root: Group, context: IngestionContext) -> None:
        counter = 0
        open_groups: list[tuple[int, int]] = []

        for node, entering in _traverse(root, self.scope_taxon_ids):
            counter += 1
            if entering:
                record_id = context.next_record_id()
                open_groups.append((record_id, counter))
                for external_id in node.member_gene_identifiers:
                    internal_id = self.gene_id_resolver(external_id)
                    if internal_id is None:
                        context.add_unresolved(external_id, record_id)
                    else:
                        context.register(internal_id, record_id, root.id, external_id)
            else:
                record_id, left_bound = open_groups.pop()
                context.add_record(HierarchicalGroupRecord(
                    id=record_id,
                    orthologous_group_id=root.id,
                    left_bound=left_bound,
                    right_bound=counter,
                    taxon_id=node.taxon_id,
                ))
