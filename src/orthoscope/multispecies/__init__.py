"""Multi-species call filters and their composition into a query scope."""

from orthoscope.multispecies.filters import (
    CallFilter,
    ConditionFilter,
    GeneFilter,
    TaxonomyFilter,
)
from orthoscope.multispecies.composer import (
    CoverageKind,
    IncompleteHomologyCoverage,
    MultiSpeciesCallFilterComposer,
    ResolvedQueryScope,
    SpeciesQueryScope,
)

__all__ = [
    "CallFilter",
    "ConditionFilter",
    "GeneFilter",
    "TaxonomyFilter",
    "CoverageKind",
    "IncompleteHomologyCoverage",
    "MultiSpeciesCallFilterComposer",
    "ResolvedQueryScope",
    "SpeciesQueryScope",
]
