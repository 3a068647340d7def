"""In-memory nested-set orthology index and its publication holder."""

import threading
from bisect import bisect_left, bisect_right
from collections import defaultdict
from operator import attrgetter
from typing import Iterable, Optional

import structlog

from orthoscope.orthology.models import GeneOrthologyAssignment, HierarchicalGroupRecord

logger = structlog.get_logger()


class NestedSetOrthologyIndex:
    """Immutable index answering "orthologs of gene G at taxon T".

    Records are kept sorted by ``(orthologous_group_id, left_bound)``, both
    for the whole tree and per taxon, so ancestors and descendants of a
    record are found by bisection on left bounds.

    Args:
        records: Hierarchical group records of one ingestion
        assignments: Gene assignments of the same ingestion
        gene_species: Optional mapping of internal gene ID to species ID,
            needed for species-restricted lookups
    """

    def __init__(
        self,
        records: Iterable[HierarchicalGroupRecord],
        assignments: Iterable[GeneOrthologyAssignment],
        gene_species: Optional[dict[int, int]] = None,
    ):
        self._records: dict[int, HierarchicalGroupRecord] = {}
        by_group: dict[str, list[HierarchicalGroupRecord]] = defaultdict(list)
        by_group_taxon: dict[tuple[str, int], list[HierarchicalGroupRecord]] = defaultdict(list)

        for record in records:
            if record.id in self._records:
                raise ValueError(f"Duplicate hierarchical group record ID {record.id}")
            self._records[record.id] = record
            by_group[record.orthologous_group_id].append(record)
            if record.taxon_id is not None:
                by_group_taxon[(record.orthologous_group_id, record.taxon_id)].append(record)

        by_left = attrgetter("left_bound")
        self._group_records = {k: sorted(v, key=by_left) for k, v in by_group.items()}
        self._group_lefts = {
            k: [r.left_bound for r in v] for k, v in self._group_records.items()
        }
        self._taxon_records = {k: sorted(v, key=by_left) for k, v in by_group_taxon.items()}
        self._taxon_lefts = {
            k: [r.left_bound for r in v] for k, v in self._taxon_records.items()
        }

        self._gene_record: dict[int, int] = {}
        self._record_genes: dict[int, list[int]] = defaultdict(list)
        for assignment in assignments:
            gene_id = assignment.internal_gene_id
            record_id = assignment.hierarchical_group_record_id
            if record_id not in self._records:
                raise ValueError(
                    f"Gene {gene_id} is assigned to unknown record {record_id}"
                )
            if gene_id in self._gene_record:
                raise ValueError(f"Gene {gene_id} has more than one assignment")
            self._gene_record[gene_id] = record_id
            self._record_genes[record_id].append(gene_id)

        self._gene_species = dict(gene_species or {})

        logger.debug(
            "orthology_index_built",
            records=len(self._records),
            groups=len(self._group_records),
            genes=len(self._gene_record),
        )

    @property
    def record_count(self) -> int:
        return len(self._records)

    @property
    def gene_count(self) -> int:
        return len(self._gene_record)

    def record_of_gene(self, gene_id: int) -> Optional[HierarchicalGroupRecord]:
        record_id = self._gene_record.get(gene_id)
        return self._records[record_id] if record_id is not None else None

    def species_of_gene(self, gene_id: int) -> Optional[int]:
        return self._gene_species.get(gene_id)

    def _ancestor_at(
        self, record: HierarchicalGroupRecord, taxon_id: int
    ) -> Optional[HierarchicalGroupRecord]:
        # closest containing record has the largest left bound not past ours
        key = (record.orthologous_group_id, taxon_id)
        candidates = self._taxon_records.get(key)
        if not candidates:
            return None
        pos = bisect_right(self._taxon_lefts[key], record.left_bound)
        for candidate in reversed(candidates[:pos]):
            if candidate.right_bound >= record.right_bound:
                return candidate
        return None

    def _ancestors(self, record: HierarchicalGroupRecord) -> list[HierarchicalGroupRecord]:
        """Ancestor-or-self records, closest first."""
        group = self._group_records[record.orthologous_group_id]
        pos = bisect_right(self._group_lefts[record.orthologous_group_id], record.left_bound)
        return [r for r in reversed(group[:pos]) if r.right_bound >= record.right_bound]

    def _genes_within(self, ancestor: HierarchicalGroupRecord) -> list[int]:
        og_id = ancestor.orthologous_group_id
        lefts = self._group_lefts[og_id]
        lo = bisect_left(lefts, ancestor.left_bound)
        hi = bisect_right(lefts, ancestor.right_bound)
        genes = []
        for record in self._group_records[og_id][lo:hi]:
            genes.extend(self._record_genes.get(record.id, ()))
        return genes

    def lookup_orthologs(self, query_gene_id: int, taxon_id: int) -> frozenset[int]:
        """Genes orthologous to a gene at a taxonomic level.

        Finds the group of the gene, then its closest ancestor-or-self
        group of the requested taxon, and returns every gene assigned to
        that group or one of its descendants (the query gene included).

        Returns:
            Internal gene IDs; empty if the gene has no group or no
            ancestor group exists at that taxon
        """
        record = self.record_of_gene(query_gene_id)
        if record is None:
            return frozenset()
        ancestor = self._ancestor_at(record, taxon_id)
        if ancestor is None:
            return frozenset()
        return frozenset(self._genes_within(ancestor))

    def lookup_orthologs_for_species(
        self,
        query_gene_id: int,
        taxon_id: int,
        species_ids: Iterable[int],
    ) -> frozenset[int]:
        """Same as lookup_orthologs, keeping only genes of the given species.

        Raises:
            ValueError: If the index was built without gene species
        """
        if not self._gene_species:
            raise ValueError("Species-restricted lookups need gene species information")
        wanted = frozenset(species_ids)
        return frozenset(
            gene_id for gene_id in self.lookup_orthologs(query_gene_id, taxon_id)
            if self._gene_species.get(gene_id) in wanted
        )

    def lookup_paralogs(
        self, query_gene_id: int, taxon_id: Optional[int] = None
    ) -> frozenset[int]:
        """Genes of the same species that split from a gene by duplication.

        Only duplications at or below the ancestor group of ``taxon_id``
        are considered, or anywhere in the orthologous group if no taxon
        is given. Two genes split at their closest common group; genes
        assigned to the same group count as paralogs too.

        Returns:
            Internal gene IDs, the query gene excluded; empty if the gene
            has no group or no ancestor group exists at that taxon

        Raises:
            ValueError: If the index was built without gene species
        """
        if not self._gene_species:
            raise ValueError("Paralog lookups need gene species information")
        record = self.record_of_gene(query_gene_id)
        if record is None:
            return frozenset()
        lineage = self._ancestors(record)
        bound = lineage[-1] if taxon_id is None else self._ancestor_at(record, taxon_id)
        if bound is None:
            return frozenset()

        species_id = self._gene_species.get(query_gene_id)
        paralogs = set()
        for gene_id in self._genes_within(bound):
            if gene_id == query_gene_id or self._gene_species.get(gene_id) != species_id:
                continue
            other = self._records[self._gene_record[gene_id]]
            split = next(
                r for r in lineage
                if r.left_bound <= other.left_bound and r.right_bound >= other.right_bound
            )
            if split.taxon_id is None or split.id == other.id == record.id:
                paralogs.add(gene_id)
        return frozenset(paralogs)

    def orthologs_by_taxon(self, query_gene_id: int) -> dict[int, frozenset[int]]:
        """Orthologs of a gene at every taxon of its group lineage.

        Keys are ordered from the closest to the farthest taxon. Paralog
        groups carry no taxon and do not appear.
        """
        record = self.record_of_gene(query_gene_id)
        if record is None:
            return {}
        by_taxon: dict[int, frozenset[int]] = {}
        for ancestor in self._ancestors(record):
            if ancestor.taxon_id is None or ancestor.taxon_id in by_taxon:
                continue
            by_taxon[ancestor.taxon_id] = frozenset(self._genes_within(ancestor))
        return by_taxon


class PublishedIndex:
    """Holder of the current orthology index.

    Publishing replaces the whole index at once. Readers take the current
    snapshot and keep using it for the rest of their work, unaffected by
    later publications.
    """

    def __init__(self, index: Optional[NestedSetOrthologyIndex] = None):
        self._lock = threading.Lock()
        self._index = index
        self._generation = 0 if index is None else 1

    @property
    def generation(self) -> int:
        return self._generation

    def publish(self, index: NestedSetOrthologyIndex) -> Optional[NestedSetOrthologyIndex]:
        """Swap in a new index and return the previous one."""
        with self._lock:
            previous = self._index
            self._index = index
            self._generation += 1
            generation = self._generation
        logger.info(
            "orthology_index_published",
            generation=generation,
            records=index.record_count,
        )
        return previous

    def current(self) -> NestedSetOrthologyIndex:
        """Current index snapshot.

        Raises:
            LookupError: If no index has been published yet
        """
        index = self._index
        if index is None:
            raise LookupError("No orthology index has been published")
        return index
