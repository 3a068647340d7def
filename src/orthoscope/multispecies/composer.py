"""Composition of multi-species call filters into a validated query scope."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

import structlog

from orthoscope.exceptions import UnknownTaxonError
from orthoscope.homology import AnatDevEntityRef, EntityKind, HomologyRelationResolver
from orthoscope.multispecies.filters import CallFilter, ConditionFilter, TaxonomyFilter
from orthoscope.orthology import NestedSetOrthologyIndex
from orthoscope.taxonomy import TaxonScopeRegistry

logger = structlog.get_logger()

_ENTITY_ATTRIBUTES = {
    EntityKind.ANAT_ENTITY: "anat_entity_ids",
    EntityKind.DEV_STAGE: "dev_stage_ids",
}


class CoverageKind(str, Enum):
    GENE = "GENE"
    ANAT_ENTITY = "ANAT_ENTITY"
    DEV_STAGE = "DEV_STAGE"


@dataclass(frozen=True)
class IncompleteHomologyCoverage:
    """No ortholog or homolog of a requested ID was found for a species."""
    species_id: int
    kind: CoverageKind
    requested_id: Union[int, str]


@dataclass(frozen=True)
class SpeciesQueryScope:
    """Concrete IDs to query for one species.

    Empty entity or stage sets mean no restriction on that parameter.
    """
    species_id: int
    gene_ids: frozenset[int] = frozenset()
    anat_entity_ids: frozenset[str] = frozenset()
    dev_stage_ids: frozenset[str] = frozenset()
    missing: tuple[IncompleteHomologyCoverage, ...] = ()

    @property
    def incomplete(self) -> bool:
        return bool(self.missing)


@dataclass(frozen=True)
class ResolvedQueryScope:
    """Outcome of composing a CallFilter.

    Attributes:
        taxon_id: Comparison taxon
        force_homology: Whether orthologs and homologs were added
        species: Query scope of each targeted species
    """
    taxon_id: int
    force_homology: bool
    species: dict[int, SpeciesQueryScope] = field(default_factory=dict)

    @property
    def species_ids(self) -> frozenset[int]:
        return frozenset(self.species)

    @property
    def incomplete_species(self) -> frozenset[int]:
        return frozenset(s for s, scope in self.species.items() if scope.incomplete)


@dataclass
class _SpeciesDraft:
    gene_ids: set = field(default_factory=set)
    anat_entity_ids: set = field(default_factory=set)
    dev_stage_ids: set = field(default_factory=set)
    missing: list = field(default_factory=list)


def _intersect(id_sets: list[frozenset[str]]) -> frozenset[str]:
    restricting = [ids for ids in id_sets if ids]
    if not restricting:
        return frozenset()
    result = restricting[0]
    for ids in restricting[1:]:
        result = result & ids
    return result


class MultiSpeciesCallFilterComposer:
    """Turns a CallFilter into the concrete IDs to query per species.

    Without forced homology the explicit IDs are used as given. With it,
    and more than one species, requested genes are expanded to their
    orthologs at the comparison taxon and requested entities to their
    homologous entities existing in each species. Species for which some
    requested ID has no counterpart are flagged incomplete.

    Args:
        registry: TaxonScopeRegistry of the installation
        index: Orthology index used for gene expansion
        resolver: Homology resolver used for entity expansion
        max_workers: Threads running independent lookups
        lookup_timeout: Seconds allowed for each batch of lookups, None
            to wait indefinitely
    """

    def __init__(
        self,
        registry: TaxonScopeRegistry,
        index: NestedSetOrthologyIndex,
        resolver: HomologyRelationResolver,
        max_workers: int = 4,
        lookup_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.index = index
        self.resolver = resolver
        self.max_workers = max_workers
        self.lookup_timeout = lookup_timeout

    def resolve_species(self, taxonomy_filter: TaxonomyFilter) -> tuple[int, frozenset[int]]:
        """Comparison taxon and targeted species of a taxonomy filter.

        Species alone are compared at their last common ancestor; a taxon
        alone targets all its species.

        Raises:
            UnknownTaxonError: If the filter resolves to no species
            ValueError: If a species does not descend from the taxon
        """
        taxon_id = taxonomy_filter.taxon_id
        species_ids = taxonomy_filter.species_ids

        if taxon_id is None and not species_ids:
            raise UnknownTaxonError("Taxonomy filter targets no species")

        for species_id in species_ids:
            self.registry.get_species(species_id)

        if taxon_id is None:
            return self.registry.last_common_ancestor(species_ids), species_ids

        descendants = self.registry.descendant_species(taxon_id)
        if not species_ids:
            if not descendants:
                raise UnknownTaxonError(f"Taxon {taxon_id} has no species in the installation")
            return taxon_id, descendants

        outside = sorted(species_ids - descendants)
        if outside:
            raise ValueError(f"Species {outside} are not members of taxon {taxon_id}")
        return taxon_id, species_ids

    def _explicit_conditions(
        self,
        condition_filters: tuple[ConditionFilter, ...],
        species_id: int,
    ) -> tuple[frozenset[str], frozenset[str]]:
        applicable = [f for f in condition_filters if f.species_id in (None, species_id)]
        return (
            _intersect([f.anat_entity_ids for f in applicable]),
            _intersect([f.dev_stage_ids for f in applicable]),
        )

    def _validate(self, call_filter: CallFilter, species_ids: frozenset[int]) -> None:
        for gene_filter in call_filter.gene_filters:
            if gene_filter.species_id not in species_ids:
                raise ValueError(
                    f"Gene filter for species {gene_filter.species_id} "
                    f"outside the targeted species {sorted(species_ids)}"
                )
            for gene_id in gene_filter.gene_ids:
                gene_species = self.registry.species_of_gene(gene_id)
                if gene_species != gene_filter.species_id:
                    raise ValueError(
                        f"Gene {gene_id} does not belong to species {gene_filter.species_id}"
                    )
        for condition_filter in call_filter.condition_filters:
            if condition_filter.species_id is not None and condition_filter.species_id not in species_ids:
                raise ValueError(
                    f"Condition filter for species {condition_filter.species_id} "
                    f"outside the targeted species {sorted(species_ids)}"
                )

    def compose(self, call_filter: CallFilter) -> ResolvedQueryScope:
        """Resolve a CallFilter into per-species query IDs.

        Raises:
            UnknownTaxonError: If the taxonomy filter resolves to no species
            ValueError: If filters are inconsistent with the targeted species
            concurrent.futures.TimeoutError: If a lookup batch exceeds the timeout
        """
        taxon_id, species_ids = self.resolve_species(call_filter.taxonomy_filter)
        self._validate(call_filter, species_ids)

        gene_requests = {f.species_id: f.gene_ids for f in call_filter.gene_filters}
        drafts: dict[int, _SpeciesDraft] = {}
        for species_id in species_ids:
            anat_ids, stage_ids = self._explicit_conditions(
                call_filter.condition_filters, species_id
            )
            drafts[species_id] = _SpeciesDraft(
                gene_ids=set(gene_requests.get(species_id, ())),
                anat_entity_ids=set(anat_ids),
                dev_stage_ids=set(stage_ids),
            )
        explicit = {
            species_id: SpeciesQueryScope(
                species_id=species_id,
                gene_ids=frozenset(draft.gene_ids),
                anat_entity_ids=frozenset(draft.anat_entity_ids),
                dev_stage_ids=frozenset(draft.dev_stage_ids),
            )
            for species_id, draft in drafts.items()
        }

        logger.info(
            "compose_start",
            taxon_id=taxon_id,
            species=len(species_ids),
            force_homology=call_filter.force_homology,
        )

        expand = call_filter.force_homology and len(species_ids) > 1
        if expand:
            self._expand_genes(taxon_id, species_ids, explicit, drafts)
            self._expand_entities(taxon_id, species_ids, explicit, drafts)

        scope = ResolvedQueryScope(
            taxon_id=taxon_id,
            force_homology=expand,
            species={
                species_id: SpeciesQueryScope(
                    species_id=species_id,
                    gene_ids=frozenset(draft.gene_ids),
                    anat_entity_ids=frozenset(draft.anat_entity_ids),
                    dev_stage_ids=frozenset(draft.dev_stage_ids),
                    missing=tuple(draft.missing),
                )
                for species_id, draft in sorted(drafts.items())
            },
        )
        logger.info(
            "compose_complete",
            taxon_id=taxon_id,
            genes=sum(len(s.gene_ids) for s in scope.species.values()),
            incomplete_species=len(scope.incomplete_species),
        )
        return scope

    def _run_batch(self, lookup, items: list) -> list:
        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            return list(executor.map(lookup, items, timeout=self.lookup_timeout))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _expand_genes(
        self,
        taxon_id: int,
        species_ids: frozenset[int],
        explicit: dict[int, SpeciesQueryScope],
        drafts: dict[int, _SpeciesDraft],
    ) -> None:
        requested = sorted({g for scope in explicit.values() for g in scope.gene_ids})
        # a gene already requested for every species needs no lookup
        to_lookup = [
            gene_id for gene_id in requested
            if not all(gene_id in explicit[s].gene_ids for s in species_ids)
        ]
        if not to_lookup:
            return

        results = self._run_batch(
            lambda gene_id: self.index.lookup_orthologs(gene_id, taxon_id),
            to_lookup,
        )

        for gene_id, orthologs in zip(to_lookup, results):
            found: dict[int, set[int]] = {s: set() for s in species_ids}
            for ortholog in orthologs:
                ortholog_species = self.registry.species_of_gene(ortholog)
                if ortholog_species in found:
                    found[ortholog_species].add(ortholog)
            for species_id in sorted(species_ids):
                drafts[species_id].gene_ids.update(found[species_id])
                if not found[species_id] and gene_id not in explicit[species_id].gene_ids:
                    drafts[species_id].missing.append(
                        IncompleteHomologyCoverage(species_id, CoverageKind.GENE, gene_id)
                    )

    def _expand_entities(
        self,
        taxon_id: int,
        species_ids: frozenset[int],
        explicit: dict[int, SpeciesQueryScope],
        drafts: dict[int, _SpeciesDraft],
    ) -> None:
        requests = []
        for kind, attribute in _ENTITY_ATTRIBUTES.items():
            ids = {e for scope in explicit.values() for e in getattr(scope, attribute)}
            requests.extend(AnatDevEntityRef(entity_id, kind) for entity_id in sorted(ids))
        if not requests:
            return

        results = self._run_batch(
            lambda ref: self.resolver.comparable_entities(ref, taxon_id),
            requests,
        )

        for ref, comparable in zip(requests, results):
            attribute = _ENTITY_ATTRIBUTES[ref.kind]
            homologs = [
                other.entity_id for other, comparability in comparable.items()
                if comparability.allows_homology_expansion
            ]
            for species_id in sorted(species_ids):
                found = {
                    entity_id for entity_id in homologs
                    if self.registry.entity_exists_in(entity_id, species_id)
                }
                draft = drafts[species_id]
                getattr(draft, attribute).update(found)
                # an explicit ID covers a species only where the entity exists
                covered = (
                    ref.entity_id in getattr(explicit[species_id], attribute)
                    and self.registry.entity_exists_in(ref.entity_id, species_id)
                )
                if not found and not covered:
                    draft.missing.append(
                        IncompleteHomologyCoverage(species_id, CoverageKind(ref.kind.value), ref.entity_id)
                    )
