"""Tests for the homology relation resolver and relation loading."""

import pytest

from orthoscope.exceptions import UnknownTaxonError
from orthoscope.homology import (
    AnatDevEntityRef,
    ComparabilityStatus,
    EntityKind,
    EvoTransRelation,
    HomologyRelationResolver,
    RelationType,
    load_relations,
)
from orthoscope.taxonomy import Species, Taxon, TaxonScopeRegistry

EUTELEOSTOMI, TETRAPODA, AMNIOTA, MAMMALIA, AVES = 117571, 32523, 32524, 40674, 8782
HUMAN, MOUSE, CHICKEN, DANIO = 9606, 10090, 9031, 7955

LUNG = "UBERON:0002048"
SWIM_BLADDER = "UBERON:0000006"
WING = "UBERON:0000023"


def anat(entity_id):
    return AnatDevEntityRef(entity_id, EntityKind.ANAT_ENTITY)


def relation(relation_type, entity_ids, scope, evidence="ECO:0000205", confidence="CIO:0000003"):
    return EvoTransRelation(
        relation_type=relation_type,
        entity_ids=frozenset(entity_ids),
        taxon_scope=scope,
        evidence_code=evidence,
        confidence=confidence,
        supporting_text="",
        references=frozenset({"PMID:12345"}),
    )


LUNG_SWIM_BLADDER = relation(RelationType.HOMOLOGY, [LUNG, SWIM_BLADDER], EUTELEOSTOMI)
LUNG_SWIM_BLADDER_2 = relation(
    RelationType.HOMOLOGY, [LUNG, SWIM_BLADDER], EUTELEOSTOMI, evidence="ECO:0000067"
)
LUNG_TETRAPODA = relation(RelationType.HOMOLOGY, [LUNG], TETRAPODA)
WING_HOMOPLASY = relation(RelationType.HOMOPLASY, [WING], AMNIOTA)
A_B = relation(RelationType.HOMOLOGY, ["UBERON:A", "UBERON:B"], TETRAPODA)
B_C = relation(RelationType.HOMOLOGY, ["UBERON:B", "UBERON:C"], MAMMALIA)
X_HOMOPLASY = relation(RelationType.HOMOPLASY, ["UBERON:X"], AMNIOTA)
X_HOMOLOGY = relation(RelationType.HOMOLOGY, ["UBERON:X"], AMNIOTA)


@pytest.fixture
def registry():
    taxa = [
        Taxon(EUTELEOSTOMI, "Euteleostomi"),
        Taxon(TETRAPODA, "Tetrapoda", EUTELEOSTOMI),
        Taxon(AMNIOTA, "Amniota", TETRAPODA),
        Taxon(MAMMALIA, "Mammalia", AMNIOTA),
        Taxon(AVES, "Aves", AMNIOTA),
    ]
    species = [
        Species(HUMAN, "Homo sapiens", MAMMALIA),
        Species(MOUSE, "Mus musculus", MAMMALIA),
        Species(CHICKEN, "Gallus gallus", AVES),
        Species(DANIO, "Danio rerio", EUTELEOSTOMI),
    ]
    return TaxonScopeRegistry(taxa, species)


@pytest.fixture
def resolver(registry):
    return HomologyRelationResolver(
        [
            LUNG_SWIM_BLADDER,
            LUNG_SWIM_BLADDER_2,
            LUNG_TETRAPODA,
            WING_HOMOPLASY,
            A_B,
            B_C,
            X_HOMOPLASY,
            X_HOMOLOGY,
        ],
        registry,
    )


# ============================================================================
# Direct links
# ============================================================================

def test_shared_entity_set_is_comparable(resolver):
    """Test lung and swim bladder are comparable at a fish."""
    result = resolver.is_comparable(anat(LUNG), anat(SWIM_BLADDER), DANIO)

    assert result.status == ComparabilityStatus.COMPARABLE
    assert result.relation.relation_type == RelationType.HOMOLOGY
    assert result.allows_homology_expansion


def test_all_evidence_lines_retained(resolver):
    """Test that every evidence line of the winning scope is exposed."""
    result = resolver.is_comparable(anat(LUNG), anat(SWIM_BLADDER), HUMAN)

    assert len(result.supporting_relations) == 2
    assert set(result.supporting_relations) == {LUNG_SWIM_BLADDER, LUNG_SWIM_BLADDER_2}
    assert result.relation in result.supporting_relations


def test_closest_scope_wins(resolver):
    """Test that the relation closest to the query taxon is chosen."""
    result = resolver.is_comparable(anat(LUNG), anat(LUNG), HUMAN)

    assert result.relation == LUNG_TETRAPODA
    assert result.supporting_relations == (LUNG_TETRAPODA,)


def test_scope_must_be_ancestor_of_taxon(resolver):
    """Test that relations of unrelated scopes do not apply."""
    fish = resolver.is_comparable(anat(LUNG), anat(LUNG), DANIO)
    assert fish.relation.taxon_scope == EUTELEOSTOMI

    # B_C holds in mammals only
    assert resolver.is_comparable(anat("UBERON:B"), anat("UBERON:C"), HUMAN).is_comparable
    chicken = resolver.is_comparable(anat("UBERON:B"), anat("UBERON:C"), CHICKEN)
    assert chicken.status == ComparabilityStatus.NOT_COMPARABLE
    assert chicken.relation is None


def test_unrelated_entities_not_comparable(resolver):
    result = resolver.is_comparable(anat(LUNG), anat(WING), HUMAN)

    assert result.status == ComparabilityStatus.NOT_COMPARABLE
    assert not result.allows_homology_expansion


def test_different_kinds_not_comparable(resolver):
    stage = AnatDevEntityRef(LUNG, EntityKind.DEV_STAGE)

    assert not resolver.is_comparable(anat(LUNG), stage, HUMAN).is_comparable


def test_unknown_taxon_raises(resolver):
    with pytest.raises(UnknownTaxonError):
        resolver.is_comparable(anat(LUNG), anat(LUNG), 123456)


# ============================================================================
# Homoplasy
# ============================================================================

def test_homoplasy_reported_but_not_expandable(resolver):
    """Test that homoplasy is comparable but never allows expansion."""
    result = resolver.is_comparable(anat(WING), anat(WING), CHICKEN)

    assert result.status == ComparabilityStatus.COMPARABLE
    assert result.relation.relation_type == RelationType.HOMOPLASY
    assert not result.allows_homology_expansion


def test_homology_preferred_over_homoplasy_at_same_scope(resolver):
    """Test that type breaks ties between relations of the same scope."""
    result = resolver.is_comparable(anat("UBERON:X"), anat("UBERON:X"), HUMAN)

    assert result.relation == X_HOMOLOGY
    assert result.supporting_relations == (X_HOMOLOGY,)


# ============================================================================
# Indirect links
# ============================================================================

def test_indirect_link_through_shared_entity(resolver):
    """Test entities linked by two relations sharing an entity."""
    result = resolver.is_comparable(anat("UBERON:A"), anat("UBERON:C"), HUMAN)

    assert result.is_comparable
    assert result.relation == A_B
    # both relations of the pair support the link
    assert set(result.supporting_relations) == {A_B, B_C}


def test_indirect_link_is_symmetric(resolver):
    """Test that the link found from the other entity carries the same relations."""
    links = resolver.comparable_entities(anat("UBERON:C"), HUMAN)

    result = links[anat("UBERON:A")]
    assert result.relation == A_B
    assert set(result.supporting_relations) == {A_B, B_C}


def test_direct_link_preferred_over_indirect(resolver):
    result = resolver.is_comparable(anat("UBERON:B"), anat("UBERON:A"), HUMAN)

    assert result.relation == A_B
    assert result.supporting_relations == (A_B,)


def test_indirect_link_needs_both_scopes(resolver):
    assert not resolver.is_comparable(anat("UBERON:A"), anat("UBERON:C"), CHICKEN).is_comparable


def test_comparable_entities(resolver):
    """Test listing every entity comparable to an entity."""
    result = resolver.comparable_entities(anat(LUNG), HUMAN)

    assert set(result) == {anat(LUNG), anat(SWIM_BLADDER)}
    assert result[anat(LUNG)].relation == LUNG_TETRAPODA
    assert result[anat(SWIM_BLADDER)].relation.taxon_scope == EUTELEOSTOMI


def test_comparable_entities_keeps_kind(resolver):
    stage = AnatDevEntityRef("UBERON:A", EntityKind.DEV_STAGE)

    result = resolver.comparable_entities(stage, MOUSE)

    assert set(result) == {
        AnatDevEntityRef("UBERON:A", EntityKind.DEV_STAGE),
        AnatDevEntityRef("UBERON:B", EntityKind.DEV_STAGE),
        AnatDevEntityRef("UBERON:C", EntityKind.DEV_STAGE),
    }


# ============================================================================
# Loading
# ============================================================================

def test_load_relations(tmp_path):
    """Test loading relations from TSV."""
    path = tmp_path / "relations.tsv"
    path.write_text(
        "entity_ids\trelation_type\ttaxon_id\tevidence_code\tconfidence\tsupporting_text\treferences\tqualifier\n"
        f"{LUNG}|{SWIM_BLADDER}\tHOMOLOGY\t{EUTELEOSTOMI}\tECO:0000205\tCIO:0000003\tshared origin\tPMID:1|PMID:2\t\n"
        f"{WING}\thomoplasy\t{AMNIOTA}\tECO:0000067\tCIO:0000004\t\t\t\n"
        f"{LUNG}\tHOMOLOGY\t{AVES}\tECO:0000067\tCIO:0000004\t\t\tNOT\n"
    )

    relations = load_relations(path)

    assert len(relations) == 2
    first, second = relations
    assert first.entity_ids == {LUNG, SWIM_BLADDER}
    assert first.references == {"PMID:1", "PMID:2"}
    assert first.supporting_text == "shared origin"
    assert second.relation_type == RelationType.HOMOPLASY
    assert second.taxon_scope == AMNIOTA
    assert second.references == frozenset()


def test_load_relations_without_optional_columns(tmp_path):
    path = tmp_path / "relations.tsv"
    path.write_text(
        "entity_ids\trelation_type\ttaxon_id\tevidence_code\tconfidence\n"
        f"{LUNG}\tHOMOLOGY\t{TETRAPODA}\tECO:0000205\tCIO:0000003\n"
    )

    relations = load_relations(path)

    assert relations[0].supporting_text == ""
    assert relations[0].entity_ids == {LUNG}


def test_load_relations_invalid_type(tmp_path):
    path = tmp_path / "relations.tsv"
    path.write_text(
        "entity_ids\trelation_type\ttaxon_id\tevidence_code\tconfidence\n"
        f"{LUNG}\tANALOGY\t{TETRAPODA}\tECO:0000205\tCIO:0000003\n"
    )

    with pytest.raises(ValueError, match="Invalid relation"):
        load_relations(path)


def test_load_relations_missing_column(tmp_path):
    path = tmp_path / "relations.tsv"
    path.write_text(f"entity_ids\ttaxon_id\n{LUNG}\t{TETRAPODA}\n")

    with pytest.raises(ValueError, match="missing columns"):
        load_relations(path)
