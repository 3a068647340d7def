"""Taxon-scoped comparability of anatomical and developmental entities."""

from collections import defaultdict
from typing import TYPE_CHECKING, Iterable

import structlog

from orthoscope.homology.models import (
    AnatDevEntityRef,
    Comparability,
    ComparabilityStatus,
    EvoTransRelation,
    RelationType,
)

if TYPE_CHECKING:
    from orthoscope.taxonomy import TaxonScopeRegistry

logger = structlog.get_logger()

# (taxon distance, relation), distance 0 being the query taxon itself
ScopedRelation = tuple[int, EvoTransRelation]


def _rank(link: ScopedRelation) -> tuple:
    distance, relation = link
    return (
        distance,
        0 if relation.relation_type == RelationType.HOMOLOGY else 1,
        tuple(sorted(relation.entity_ids)),
        relation.evidence_code,
        relation.confidence,
        relation.supporting_text,
        tuple(sorted(relation.references)),
    )


class HomologyRelationResolver:
    """Answers whether two entities can be compared at a taxon.

    A relation applies at a taxon when its scope is that taxon or one of
    its ancestors. Two entities are linked directly when one applicable
    relation holds both, or indirectly when an applicable relation holding
    one shares an entity with another applicable relation of the same type
    holding the other. The closest scope wins; direct links take precedence
    over indirect ones.

    Args:
        relations: Curated relation values
        registry: TaxonScopeRegistry providing the taxonomy
    """

    def __init__(self, relations: Iterable[EvoTransRelation], registry: "TaxonScopeRegistry"):
        self.registry = registry
        self._relations = list(relations)
        self._by_entity: dict[str, list[EvoTransRelation]] = defaultdict(list)
        for relation in self._relations:
            for entity_id in relation.entity_ids:
                self._by_entity[entity_id].append(relation)

        logger.debug(
            "homology_resolver_built",
            relations=len(self._relations),
            entities=len(self._by_entity),
        )

    def _applicable(self, entity_id: str, distances: dict[int, int]) -> list[ScopedRelation]:
        return [
            (distances[relation.taxon_scope], relation)
            for relation in self._by_entity.get(entity_id, ())
            if relation.taxon_scope in distances
        ]

    def _links(self, entity_id: str, taxon_id: int) -> dict[str, list[ScopedRelation]]:
        """Relations linking an entity to each related entity.

        Raises:
            UnknownTaxonError: If the taxon is unknown
        """
        lineage = self.registry.ancestors(taxon_id, include_self=True)
        distances = {taxon: i for i, taxon in enumerate(lineage)}

        own = self._applicable(entity_id, distances)
        direct: dict[str, list[ScopedRelation]] = defaultdict(list)
        for link in own:
            for other_id in link[1].entity_ids:
                direct[other_id].append(link)

        indirect: dict[str, list[ScopedRelation]] = defaultdict(list)
        for own_distance, own_relation in own:
            for shared_id in own_relation.entity_ids:
                for distance, relation in self._applicable(shared_id, distances):
                    if relation is own_relation or relation.relation_type != own_relation.relation_type:
                        continue
                    # both relations support the link, limited by the broader scope
                    link_distance = max(distance, own_distance)
                    pair = ((link_distance, own_relation), (link_distance, relation))
                    for other_id in relation.entity_ids:
                        if other_id in direct:
                            continue
                        known = indirect[other_id]
                        for link in pair:
                            if not any(d == link[0] and r is link[1] for d, r in known):
                                known.append(link)

        links = dict(direct)
        links.update(indirect)
        return links

    @staticmethod
    def _decide(links: list[ScopedRelation]) -> Comparability:
        ranked = sorted(links, key=_rank)
        best_distance, best = ranked[0]
        supporting = tuple(
            relation for distance, relation in ranked
            if distance == best_distance and relation.relation_type == best.relation_type
        )
        return Comparability(ComparabilityStatus.COMPARABLE, best, supporting)

    def is_comparable(
        self,
        entity_a: AnatDevEntityRef,
        entity_b: AnatDevEntityRef,
        taxon_id: int,
    ) -> Comparability:
        """Whether two entities can be compared at a taxon.

        HOMOPLASY links are reported as comparable with their relation;
        callers check ``allows_homology_expansion`` before using them to
        expand a query.

        Raises:
            UnknownTaxonError: If the taxon is unknown
        """
        if entity_a.kind != entity_b.kind:
            return Comparability.not_comparable()
        links = self._links(entity_a.entity_id, taxon_id).get(entity_b.entity_id)
        if not links:
            return Comparability.not_comparable()
        return self._decide(links)

    def comparable_entities(
        self,
        entity: AnatDevEntityRef,
        taxon_id: int,
    ) -> dict[AnatDevEntityRef, Comparability]:
        """Every entity linked to ``entity`` at a taxon, with its comparability.

        Raises:
            UnknownTaxonError: If the taxon is unknown
        """
        return {
            AnatDevEntityRef(other_id, entity.kind): self._decide(links)
            for other_id, links in sorted(self._links(entity.entity_id, taxon_id).items())
        }
