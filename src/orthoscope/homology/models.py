"""Evolutionary relations between anatomical and developmental entities."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RelationType(str, Enum):
    """Kind of evolutionary relation.

    HOMOLOGY is similarity through shared ancestry. HOMOPLASY is
    convergent similarity, not inherited from a common ancestor.
    """
    HOMOLOGY = "HOMOLOGY"
    HOMOPLASY = "HOMOPLASY"


class EntityKind(str, Enum):
    ANAT_ENTITY = "ANAT_ENTITY"
    DEV_STAGE = "DEV_STAGE"


class ComparabilityStatus(str, Enum):
    COMPARABLE = "COMPARABLE"
    NOT_COMPARABLE = "NOT_COMPARABLE"


@dataclass(frozen=True)
class AnatDevEntityRef:
    entity_id: str
    kind: EntityKind = EntityKind.ANAT_ENTITY


@dataclass(frozen=True)
class EvoTransRelation:
    """One curated evolutionary relation, backed by one line of evidence.

    Attributes:
        relation_type: HOMOLOGY or HOMOPLASY
        entity_ids: Related entities. A single entity is related to itself
            across the taxon scope; several entities form a set of related
            structures with no single ancestral structure (e.g. lung and
            swim bladder).
        taxon_scope: Taxon under which the relation holds
        evidence_code: ECO term of the evidence
        confidence: CIO term of the confidence in the evidence
        supporting_text: Curator text supporting the relation
        references: Citations (e.g. "PMID:12345")
    """
    relation_type: RelationType
    entity_ids: frozenset[str]
    taxon_scope: int
    evidence_code: str
    confidence: str
    supporting_text: str = ""
    references: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Comparability:
    """Outcome of a comparability check between two entities.

    Attributes:
        status: COMPARABLE or NOT_COMPARABLE
        relation: Relation that decided the outcome, None if not comparable
        supporting_relations: Every relation value supporting the link at
            the winning taxon scope, including ``relation``
    """
    status: ComparabilityStatus
    relation: Optional[EvoTransRelation] = None
    supporting_relations: tuple[EvoTransRelation, ...] = ()

    @classmethod
    def not_comparable(cls) -> "Comparability":
        return cls(ComparabilityStatus.NOT_COMPARABLE)

    @property
    def is_comparable(self) -> bool:
        return self.status == ComparabilityStatus.COMPARABLE

    @property
    def allows_homology_expansion(self) -> bool:
        """Only homology, never homoplasy, can expand a query to other entities."""
        return (
            self.is_comparable
            and self.relation is not None
            and self.relation.relation_type == RelationType.HOMOLOGY
        )
