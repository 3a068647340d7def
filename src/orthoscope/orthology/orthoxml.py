"""Read hierarchical orthologous groups from OrthoXML files.

Supports the OrthoXML 0.3 layout produced by OMA: ``species`` elements
listing their genes, and a ``groups`` element holding one top-level
``orthologGroup`` per gene family with nested ``orthologGroup`` and
``paralogGroup`` children. The taxon of an ortholog group is read from a
``property`` child (``taxid`` by default), its label from ``TaxRange``.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog

from orthoscope.orthology.models import Group

logger = structlog.get_logger()

ORTHOLOG_GROUP_TAG = "orthologGroup"
PARALOG_GROUP_TAG = "paralogGroup"


@dataclass
class OrthoXMLData:
    """Content of an OrthoXML file.

    Attributes:
        species_ids: NCBI taxonomy IDs of the species in the file
        groups: Top-level groups, one per gene family
        origin: Producer of the file (e.g. "OMA")
        origin_version: Release of the producer
    """
    species_ids: frozenset[int] = frozenset()
    groups: list[Group] = field(default_factory=list)
    origin: Optional[str] = None
    origin_version: Optional[str] = None


def _local_name(tag: str) -> str:
    """Strip the XML namespace from a tag."""
    return tag.rsplit("}", 1)[-1]


def _properties(element: ET.Element) -> dict[str, str]:
    return {
        child.get("name"): child.get("value")
        for child in element
        if _local_name(child.tag) == "property" and child.get("name") is not None
    }


def _read_genes(root: ET.Element, gene_id_separator: str) -> tuple[frozenset[int], dict[str, list[str]]]:
    species_ids = set()
    genes: dict[str, list[str]] = {}

    for species in root:
        if _local_name(species.tag) != "species":
            continue
        taxid = species.get("NCBITaxId")
        if taxid is None:
            raise ValueError(f"Species {species.get('name')!r} has no NCBITaxId")
        species_ids.add(int(taxid))

        for gene in species.iter():
            if _local_name(gene.tag) != "gene":
                continue
            identifier = gene.get("geneId") or gene.get("protId")
            if identifier is None:
                raise ValueError(f"Gene {gene.get('id')!r} has no geneId or protId")
            genes[gene.get("id")] = [
                part.strip() for part in identifier.split(gene_id_separator) if part.strip()
            ]

    return frozenset(species_ids), genes


def read_orthoxml(
    path: Path,
    taxon_id_property: str = "taxid",
    taxon_range_property: str = "TaxRange",
    gene_id_separator: str = "; ",
) -> OrthoXMLData:
    """Parse an OrthoXML file into group trees.

    Args:
        path: Path to the OrthoXML file
        taxon_id_property: Name of the property holding the group taxon ID
        taxon_range_property: Name of the property holding the taxon label
        gene_id_separator: Separator between gene IDs in ``geneId``

    Returns:
        OrthoXMLData with species IDs and top-level groups

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file references undeclared genes or an ortholog
            group has no taxon
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"OrthoXML file not found: {path}")

    logger.info("orthoxml_read_start", path=str(path))
    root = ET.parse(path).getroot()

    species_ids, genes = _read_genes(root, gene_id_separator)

    groups_element = next(
        (child for child in root if _local_name(child.tag) == "groups"), None
    )
    if groups_element is None:
        raise ValueError(f"OrthoXML file {path} has no groups element")

    data = OrthoXMLData(
        species_ids=species_ids,
        origin=root.get("origin"),
        origin_version=root.get("originVersion"),
    )

    # (element, parent group, default id)
    stack: list[tuple[ET.Element, Optional[Group], str]] = []
    for position, element in enumerate(groups_element, start=1):
        if _local_name(element.tag) in (ORTHOLOG_GROUP_TAG, PARALOG_GROUP_TAG):
            stack.append((element, None, f"group{position}"))
    stack.reverse()

    gene_ref_count = 0
    while stack:
        element, parent, default_id = stack.pop()
        group_id = element.get("id") or default_id
        kind = _local_name(element.tag)
        properties = _properties(element)

        taxon_id = None
        if kind == ORTHOLOG_GROUP_TAG:
            value = properties.get(taxon_id_property)
            if value is None:
                raise ValueError(
                    f"Ortholog group {group_id!r} has no {taxon_id_property!r} property"
                )
            taxon_id = int(value)

        group = Group(
            id=group_id,
            taxon_id=taxon_id,
            taxon_range=properties.get(taxon_range_property),
        )
        if parent is None:
            data.groups.append(group)
        else:
            parent.children.append(group)

        nested = []
        for position, child in enumerate(element, start=1):
            child_kind = _local_name(child.tag)
            if child_kind == "geneRef":
                ref = child.get("id")
                if ref not in genes:
                    raise ValueError(f"Group {group_id!r} references unknown gene {ref!r}")
                group.member_gene_identifiers.extend(genes[ref])
                gene_ref_count += 1
            elif child_kind in (ORTHOLOG_GROUP_TAG, PARALOG_GROUP_TAG):
                nested.append((child, group, f"{group_id}.{position}"))
        stack.extend(reversed(nested))

    logger.info(
        "orthoxml_read_complete",
        species=len(data.species_ids),
        genes=len(genes),
        top_level_groups=len(data.groups),
        gene_refs=gene_ref_count,
    )
    return data
