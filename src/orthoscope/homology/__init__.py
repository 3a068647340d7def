"""Homology and homoplasy relations between anatomical/developmental entities."""

from orthoscope.homology.models import (
    AnatDevEntityRef,
    Comparability,
    ComparabilityStatus,
    EntityKind,
    EvoTransRelation,
    RelationType,
)
from orthoscope.homology.resolver import HomologyRelationResolver
from orthoscope.homology.load import load_relations

__all__ = [
    "AnatDevEntityRef",
    "Comparability",
    "ComparabilityStatus",
    "EntityKind",
    "EvoTransRelation",
    "RelationType",
    "HomologyRelationResolver",
    "load_relations",
]
