"""Taxon scope registry: taxonomy, species and genes of the installation."""

from orthoscope.taxonomy.models import Gene, Species, Taxon
from orthoscope.taxonomy.registry import TaxonScopeRegistry
from orthoscope.taxonomy.load import (
    build_registry,
    load_genes,
    load_taxon_constraints,
    load_taxonomy,
    load_xrefs,
)

__all__ = [
    "Gene",
    "Species",
    "Taxon",
    "TaxonScopeRegistry",
    "build_registry",
    "load_genes",
    "load_taxon_constraints",
    "load_taxonomy",
    "load_xrefs",
]
