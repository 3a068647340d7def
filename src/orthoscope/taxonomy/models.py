"""Records held by the taxon scope registry."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Taxon:
    """Node of the species taxonomy.

    Attributes:
        id: NCBI taxonomy ID
        name: Scientific name (e.g. "Mammalia")
        parent_id: Parent taxon ID, None for the taxonomy root
    """
    id: int
    name: str
    parent_id: Optional[int] = None


@dataclass(frozen=True)
class Species:
    """Species of the installation.

    Species IDs are NCBI taxonomy IDs, so a species is also a leaf of the
    taxonomy hanging under ``parent_taxon_id``.
    """
    id: int
    name: str
    parent_taxon_id: int


@dataclass(frozen=True)
class Gene:
    """Gene known to the installation.

    Attributes:
        internal_id: Surrogate gene ID used by the index
        external_id: Source gene ID (e.g. Ensembl ENSG...)
        species_id: NCBI taxonomy ID of the species
    """
    internal_id: int
    external_id: str
    species_id: int
