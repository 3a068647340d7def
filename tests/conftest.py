"""Shared fixtures: a small installation of taxa, genes and orthology files."""

from pathlib import Path

import pytest

TAXA_TSV = """taxon_id\tname\tparent_id\tis_species
32524\tAmniota\t\t0
40674\tMammalia\t32524\t0
8782\tAves\t32524\t0
9606\tHomo sapiens\t40674\t1
10090\tMus musculus\t40674\t1
9031\tGallus gallus\t8782\t1
"""

GENES_TSV = """gene_id\tspecies_id
ENSG00000139618\t9606
ENSG00000000001\t9606
ENSMUSG00000041147\t10090
ENSGALG00000017073\t9031
ENSMUSG00000000099\t10090
"""

XREFS_TSV = """gene ID\txref ID
ENSG00000139618\tBRCA2
ENSMUSG00000041147\tBrca2
"""

CONSTRAINTS_TSV = """entity_id\tspecies_id
UBERON:0002048\t9606
UBERON:0002048\t10090
UBERON:0002048\t9031
"""

RELATIONS_TSV = """entity_ids\trelation_type\ttaxon_id\tevidence_code\tconfidence
UBERON:0002048\tHOMOLOGY\t32524\tECO:0000205\tCIO:0000003
UBERON:0000023\tHOMOPLASY\t32524\tECO:0000205\tCIO:0000003
"""

# Gene 3 appears in two families; ENSG00000000002 is not in the installation
ORTHOXML = """<?xml version="1.0" encoding="UTF-8"?>
<orthoXML xmlns="http://orthoXML.org/2011/" version="0.3" origin="OMA" originVersion="Jul 2023">
  <species name="Homo sapiens" NCBITaxId="9606">
    <database name="Ensembl" version="110">
      <genes>
        <gene id="1" protId="ENSP00000380152" geneId="ENSG00000139618"/>
        <gene id="2" protId="ENSP00000000001" geneId="ENSG00000000001; ENSG00000000002"/>
      </genes>
    </database>
  </species>
  <species name="Mus musculus" NCBITaxId="10090">
    <database name="Ensembl" version="110">
      <genes>
        <gene id="3" protId="ENSMUSP00000038936" geneId="ENSMUSG00000041147"/>
      </genes>
    </database>
  </species>
  <species name="Gallus gallus" NCBITaxId="9031">
    <database name="Ensembl" version="110">
      <genes>
        <gene id="4" protId="ENSGALP00000027993" geneId="ENSGALG00000017073"/>
      </genes>
    </database>
  </species>
  <groups>
    <orthologGroup id="HOG:0000001">
      <property name="TaxRange" value="Amniota"/>
      <property name="taxid" value="32524"/>
      <orthologGroup>
        <property name="TaxRange" value="Mammalia"/>
        <property name="taxid" value="40674"/>
        <paralogGroup>
          <geneRef id="1"/>
          <geneRef id="2"/>
        </paralogGroup>
        <geneRef id="3"/>
      </orthologGroup>
      <geneRef id="4"/>
    </orthologGroup>
    <orthologGroup id="HOG:0000002">
      <property name="TaxRange" value="Mammalia"/>
      <property name="taxid" value="40674"/>
      <geneRef id="3"/>
    </orthologGroup>
  </groups>
</orthoXML>
"""


@pytest.fixture
def installation(tmp_path) -> dict[str, Path]:
    """Write the installation files and return their paths by kind."""
    directory = tmp_path / "installation"
    directory.mkdir()
    files = {
        "taxa": ("taxa.tsv", TAXA_TSV),
        "genes": ("genes.tsv", GENES_TSV),
        "xrefs": ("xrefs.tsv", XREFS_TSV),
        "constraints": ("constraints.tsv", CONSTRAINTS_TSV),
        "relations": ("relations.tsv", RELATIONS_TSV),
        "orthoxml": ("hogs.orthoxml", ORTHOXML),
    }
    paths = {}
    for kind, (name, content) in files.items():
        path = directory / name
        path.write_text(content)
        paths[kind] = path
    return paths
