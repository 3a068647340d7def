"""Immutable query parameters for multi-species calls."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TaxonomyFilter(BaseModel):
    """Species targeted by a query.

    Either a taxon (all its species), explicit species, or both (the
    species must then descend from the taxon).
    """

    model_config = ConfigDict(frozen=True)

    taxon_id: Optional[int] = Field(
        default=None,
        description="NCBI taxon ID of the comparison taxon",
    )
    species_ids: frozenset[int] = Field(
        default_factory=frozenset,
        description="NCBI taxonomy IDs of the targeted species",
    )


class GeneFilter(BaseModel):
    """Genes requested for one species (internal gene IDs)."""

    model_config = ConfigDict(frozen=True)

    species_id: int
    gene_ids: frozenset[int] = Field(..., min_length=1)


class ConditionFilter(BaseModel):
    """Anatomical entities and developmental stages requested.

    A filter without ``species_id`` applies to every targeted species.
    An empty ID set does not restrict that condition parameter.
    """

    model_config = ConfigDict(frozen=True)

    species_id: Optional[int] = None
    anat_entity_ids: frozenset[str] = Field(default_factory=frozenset)
    dev_stage_ids: frozenset[str] = Field(default_factory=frozenset)


class CallFilter(BaseModel):
    """All parameters of a multi-species call query.

    Condition filters are combined with AND.
    """

    model_config = ConfigDict(frozen=True)

    gene_filters: tuple[GeneFilter, ...] = ()
    condition_filters: tuple[ConditionFilter, ...] = ()
    taxonomy_filter: TaxonomyFilter = Field(default_factory=TaxonomyFilter)
    force_homology: bool = Field(
        default=False,
        description="Expand requested genes and entities to their orthologs and homologs",
    )

    @model_validator(mode="after")
    def one_gene_filter_per_species(self) -> "CallFilter":
        species = [f.species_id for f in self.gene_filters]
        duplicated = sorted({s for s in species if species.count(s) > 1})
        if duplicated:
            raise ValueError(f"Several gene filters for species {duplicated}")
        return self
