"""Taxon scope registry: taxa, species and genes present in the installation."""

from typing import Iterable, Optional

import structlog

from orthoscope.exceptions import UnknownTaxonError
from orthoscope.taxonomy.models import Gene, Species, Taxon

logger = structlog.get_logger()


class TaxonScopeRegistry:
    """Lookup structure for the taxonomic scope of an installation.

    Holds the taxonomy (taxa and species, a species being a leaf taxon),
    the genes of the installation with their optional cross-references,
    and the taxon constraints of anatomical and developmental entities.
    Read-only once built.
    """

    def __init__(
        self,
        taxa: Iterable[Taxon],
        species: Iterable[Species],
        genes: Iterable[Gene] = (),
        xrefs: Optional[dict[str, str]] = None,
        entity_species: Optional[dict[str, frozenset[int]]] = None,
    ):
        """Build the registry.

        Args:
            taxa: Non-species taxa of the taxonomy
            species: Species of the installation
            genes: Genes of the installation
            xrefs: Mapping of cross-reference ID to external gene ID
            entity_species: Mapping of anatomical/developmental entity ID to
                the species where it exists. Entities without an entry exist
                in every species.

        Raises:
            ValueError: If a parent taxon is unknown or a gene belongs to an
                unknown species
        """
        self._taxa: dict[int, Taxon] = {t.id: t for t in taxa}
        self._species: dict[int, Species] = {s.id: s for s in species}

        for taxon in self._taxa.values():
            if taxon.parent_id is not None and taxon.parent_id not in self._taxa:
                raise ValueError(
                    f"Taxon {taxon.id} has unknown parent taxon {taxon.parent_id}"
                )
        for sp in self._species.values():
            if sp.parent_taxon_id not in self._taxa:
                raise ValueError(
                    f"Species {sp.id} has unknown parent taxon {sp.parent_taxon_id}"
                )

        self._genes_by_external: dict[str, Gene] = {}
        self._genes_by_internal: dict[int, Gene] = {}
        for gene in genes:
            if gene.species_id not in self._species:
                raise ValueError(
                    f"Gene {gene.external_id} belongs to unknown species {gene.species_id}"
                )
            self._genes_by_external[gene.external_id] = gene
            self._genes_by_internal[gene.internal_id] = gene

        self._xrefs = dict(xrefs or {})
        self._entity_species = dict(entity_species or {})

        logger.debug(
            "registry_built",
            taxa=len(self._taxa),
            species=len(self._species),
            genes=len(self._genes_by_internal),
            xrefs=len(self._xrefs),
        )

    @property
    def species_ids(self) -> frozenset[int]:
        return frozenset(self._species)

    @property
    def genes(self) -> list[Gene]:
        return list(self._genes_by_internal.values())

    def get_species(self, species_id: int) -> Species:
        try:
            return self._species[species_id]
        except KeyError:
            raise UnknownTaxonError(f"Unknown species: {species_id}") from None

    def get_gene(self, internal_id: int) -> Optional[Gene]:
        return self._genes_by_internal.get(internal_id)

    def has_taxon(self, taxon_id: int) -> bool:
        return taxon_id in self._taxa or taxon_id in self._species

    def taxon_name(self, taxon_id: int) -> str:
        if taxon_id in self._species:
            return self._species[taxon_id].name
        if taxon_id in self._taxa:
            return self._taxa[taxon_id].name
        raise UnknownTaxonError(f"Unknown taxon: {taxon_id}")

    def scope_taxon_ids(self) -> frozenset[int]:
        """Taxon IDs relevant to the installation.

        These are the taxa that are ancestors of at least one species,
        plus the species themselves. Used as the ingestion scope.
        """
        scope = set()
        for species_id in self._species:
            scope.update(self.ancestors(species_id, include_self=True))
        return frozenset(scope)

    def _parent_of(self, taxon_id: int) -> Optional[int]:
        if taxon_id in self._species:
            return self._species[taxon_id].parent_taxon_id
        if taxon_id in self._taxa:
            return self._taxa[taxon_id].parent_id
        raise UnknownTaxonError(f"Unknown taxon: {taxon_id}")

    def ancestors(self, taxon_id: int, include_self: bool = False) -> list[int]:
        """Ancestor taxon IDs of a taxon, closest first.

        Args:
            taxon_id: Taxon or species ID
            include_self: Put ``taxon_id`` itself first in the list

        Returns:
            List of taxon IDs from the closest ancestor to the root

        Raises:
            UnknownTaxonError: If the taxon is not in the registry
        """
        lineage = [taxon_id] if include_self else []
        seen = {taxon_id}
        parent = self._parent_of(taxon_id)
        while parent is not None:
            if parent in seen:
                raise ValueError(f"Cycle in taxonomy at taxon {parent}")
            seen.add(parent)
            lineage.append(parent)
            parent = self._parent_of(parent)
        return lineage

    def descendant_species(self, taxon_id: int) -> frozenset[int]:
        """Species of the installation descending from (or equal to) a taxon."""
        if not self.has_taxon(taxon_id):
            raise UnknownTaxonError(f"Unknown taxon: {taxon_id}")
        return frozenset(
            species_id for species_id in self._species
            if taxon_id in self.ancestors(species_id, include_self=True)
        )

    def last_common_ancestor(self, species_ids: Iterable[int]) -> int:
        """Closest taxon that is an ancestor of all the given species.

        For a single species, the species itself is returned.

        Raises:
            UnknownTaxonError: If no species is given or one is unknown
        """
        species_ids = sorted(set(species_ids))
        if not species_ids:
            raise UnknownTaxonError("Cannot compute common ancestor of no species")
        for species_id in species_ids:
            self.get_species(species_id)
        if len(species_ids) == 1:
            return species_ids[0]

        reference = self.ancestors(species_ids[0])
        common = set(reference)
        for species_id in species_ids[1:]:
            common &= set(self.ancestors(species_id))
        for taxon_id in reference:
            if taxon_id in common:
                return taxon_id
        raise UnknownTaxonError(
            f"Species {species_ids} share no common ancestor in the taxonomy"
        )

    def resolve_gene(self, external_id: str) -> Optional[int]:
        """Resolve an external gene ID to an internal gene ID.

        Tries the ID as a gene of the installation, then as a
        cross-reference to one.

        Returns:
            Internal gene ID, or None if the gene is unknown
        """
        gene = self._genes_by_external.get(external_id)
        if gene is None and external_id in self._xrefs:
            gene = self._genes_by_external.get(self._xrefs[external_id])
        return gene.internal_id if gene is not None else None

    def species_of_gene(self, internal_id: int) -> Optional[int]:
        gene = self._genes_by_internal.get(internal_id)
        return gene.species_id if gene is not None else None

    def gene_species_map(self) -> dict[int, int]:
        return {g.internal_id: g.species_id for g in self._genes_by_internal.values()}

    def entity_exists_in(self, entity_id: str, species_id: int) -> bool:
        """Whether an anatomical or developmental entity exists in a species."""
        constraint = self._entity_species.get(entity_id)
        return constraint is None or species_id in constraint
