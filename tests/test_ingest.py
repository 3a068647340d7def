"""Tests for nested-set ingestion of hierarchical orthologous groups."""

import itertools

import pytest

from orthoscope.exceptions import CyclicHierarchyError, MalformedHierarchyError
from orthoscope.orthology import (
    Group,
    IngestionContext,
    OrthologGroupIngester,
    count_groups,
)

T1, T2, T3 = 32523, 40674, 8782  # Tetrapoda, Mammalia, Aves
T4 = 9347  # Eutheria, nested in Mammalia

GENE_IDS = {"G1": 1, "G2": 2, "G3": 3, "G4": 4, "G5": 5}


def resolve(external_id):
    return GENE_IDS.get(external_id)


def tetrapoda_tree():
    """Tetrapoda{ Mammalia{ G1 }, Aves{ G2 } }."""
    return Group("HOG:1", T1, children=[
        Group("HOG:1.1", T2, member_gene_identifiers=["G1"]),
        Group("HOG:1.2", T3, member_gene_identifiers=["G2"]),
    ])


def deep_tree():
    """Tree mixing nested taxa, a paralog group and several genes."""
    return Group("HOG:7", T1, children=[
        Group("HOG:7.1", T2, children=[
            Group("HOG:7.1.1", None, children=[
                Group("HOG:7.1.1.1", T4, member_gene_identifiers=["G1"]),
                Group("HOG:7.1.1.2", T4, member_gene_identifiers=["G3"]),
            ]),
            Group("HOG:7.1.2", T4, member_gene_identifiers=["G4", "unknown"]),
        ]),
        Group("HOG:7.2", T3, member_gene_identifiers=["G2"]),
    ], member_gene_identifiers=["G5"])


def assert_no_partial_overlap(records):
    for a, b in itertools.combinations(records, 2):
        if a.orthologous_group_id != b.orthologous_group_id:
            continue
        disjoint = a.right_bound < b.left_bound or b.right_bound < a.left_bound
        a_contains_b = a.left_bound < b.left_bound and a.right_bound > b.right_bound
        b_contains_a = b.left_bound < a.left_bound and b.right_bound > a.right_bound
        assert disjoint or a_contains_b or b_contains_a, (a, b)


# ============================================================================
# Nested-set bounds
# ============================================================================

def test_tetrapoda_full_scope():
    """Test that all three groups are retained with nested bounds."""
    ingester = OrthologGroupIngester({T1, T2, T3}, resolve)

    result = ingester.ingest([tetrapoda_tree()])

    assert [(r.taxon_id, r.left_bound, r.right_bound) for r in result.records] == [
        (T1, 1, 6),
        (T2, 2, 3),
        (T3, 4, 5),
    ]
    assert {r.orthologous_group_id for r in result.records} == {"HOG:1"}
    assert [r.id for r in result.records] == [1, 2, 3]
    assert result.warnings == []


def test_out_of_scope_subtree_discarded():
    """Test that a discarded node removes its whole subtree."""
    ingester = OrthologGroupIngester({T1, T3}, resolve)

    result = ingester.ingest([tetrapoda_tree()])

    assert [(r.taxon_id, r.left_bound, r.right_bound) for r in result.records] == [
        (T1, 1, 4),
        (T3, 2, 3),
    ]
    # G1 only lived in the discarded Mammalia group
    assert [a.internal_gene_id for a in result.assignments] == [2]


def test_discarded_node_hides_in_scope_descendants():
    """Test that in-scope descendants of a discarded node are not retained."""
    tree = Group("HOG:2", T1, children=[
        Group("HOG:2.1", T2, children=[
            Group("HOG:2.1.1", T4, member_gene_identifiers=["G1"]),
        ]),
    ])
    ingester = OrthologGroupIngester({T1, T4}, resolve)

    result = ingester.ingest([tree])

    assert [r.taxon_id for r in result.records] == [T1]
    assert result.assignments == []


def test_out_of_scope_root_discards_tree():
    """Test that a root outside the scope produces no record."""
    ingester = OrthologGroupIngester({T2, T3}, resolve)

    result = ingester.ingest([tetrapoda_tree()])

    assert result.records == []
    assert result.assignments == []


def test_paralog_groups_always_retained():
    """Test that groups without taxon are kept whatever the scope."""
    ingester = OrthologGroupIngester({T1, T2, T4}, resolve)

    result = ingester.ingest([deep_tree()])

    paralogs = [r for r in result.records if r.taxon_id is None]
    assert len(paralogs) == 1
    assert paralogs[0].left_bound == 3


def test_no_partial_overlap():
    """Test the nested-set invariant on a deeper tree with several trees."""
    ingester = OrthologGroupIngester({T1, T2, T3, T4}, resolve)
    other = Group("HOG:8", T2, children=[Group("HOG:8.1", T4)])

    result = ingester.ingest([deep_tree(), other])

    assert_no_partial_overlap(result.records)
    for record in result.records:
        assert record.left_bound < record.right_bound


def test_root_bounds_match_count():
    """Test that each root spans 1 to 2 * count_groups."""
    scope = {T1, T2, T4}
    ingester = OrthologGroupIngester(scope, resolve)
    tree = deep_tree()

    result = ingester.ingest([tree])

    root = result.records[0]
    assert root.left_bound == 1
    assert root.right_bound == 2 * count_groups(tree, scope)


def test_bounds_restart_per_tree_ids_do_not():
    """Test that bounds are per tree while record IDs run across trees."""
    ingester = OrthologGroupIngester({T1, T2, T3}, resolve)
    second = Group("HOG:9", T2, member_gene_identifiers=["G3"])

    result = ingester.ingest([tetrapoda_tree(), second])

    last = result.records[-1]
    assert last.orthologous_group_id == "HOG:9"
    assert (last.id, last.left_bound, last.right_bound) == (4, 1, 2)


# ============================================================================
# Group counting
# ============================================================================

@pytest.mark.parametrize("scope", [
    {T1, T2, T3, T4},
    {T1, T2, T3},
    {T1, T3},
    {T1},
    {T2},
])
def test_count_groups_equals_record_count(scope):
    """Test that count_groups matches the records produced."""
    tree = deep_tree()
    result = OrthologGroupIngester(scope, resolve).ingest([tree])

    assert count_groups(tree, scope) == len(result.records)


def test_count_groups_discarded_node_counts_zero():
    assert count_groups(Group("x", T3, children=[Group("y", T1)]), {T1}) == 0


# ============================================================================
# Gene registration
# ============================================================================

def test_gene_in_two_groups_keeps_first():
    """Test that the first assignment wins and the second is reported."""
    tree = Group("HOG:3", T1, children=[
        Group("HOG:3.1", T2, member_gene_identifiers=["G1"]),
        Group("HOG:3.2", T3, member_gene_identifiers=["G1"]),
    ])
    result = OrthologGroupIngester({T1, T2, T3}, resolve).ingest([tree])

    assert len(result.assignments) == 1
    assert result.assignments[0].hierarchical_group_record_id == 2
    assert len(result.warnings) == 1
    warning = result.warnings[0]
    assert (warning.internal_gene_id, warning.existing_group_id, warning.attempted_group_id) == (1, 2, 3)
    assert warning.external_gene_id == "G1"


def test_gene_listed_twice_in_same_group_is_noop():
    """Test that duplicate member IDs of one group create nothing extra."""
    tree = Group("HOG:4", T1, member_gene_identifiers=["G1", "G1"])

    result = OrthologGroupIngester({T1}, resolve).ingest([tree])

    assert len(result.assignments) == 1
    assert result.warnings == []


def test_gene_conflict_across_trees():
    """Test that conflicts are detected between different trees."""
    trees = [
        Group("HOG:5", T1, member_gene_identifiers=["G1"]),
        Group("HOG:6", T1, member_gene_identifiers=["G1"]),
    ]
    result = OrthologGroupIngester({T1}, resolve).ingest(trees)

    assert [a.orthologous_group_id for a in result.assignments] == ["HOG:5"]
    assert len(result.warnings) == 1


def test_xref_aliases_of_one_gene_conflict():
    """Test that two identifiers resolving to one gene conflict like one ID."""
    aliases = {"ENSG1": 1, "P12345": 1}
    trees = [
        Group("HOG:10", T1, member_gene_identifiers=["ENSG1"]),
        Group("HOG:11", T1, member_gene_identifiers=["P12345"]),
    ]
    result = OrthologGroupIngester({T1}, aliases.get).ingest(trees)

    assert len(result.assignments) == 1
    assert result.warnings[0].external_gene_id == "P12345"


def test_unresolved_genes_reported():
    """Test that unknown member genes are reported, not assigned."""
    result = OrthologGroupIngester({T1, T2, T3, T4}, resolve).ingest([deep_tree()])

    assert [(u.external_gene_id, u.group_id) for u in result.unresolved] == [("unknown", 6)]
    assert {a.internal_gene_id for a in result.assignments} == {1, 2, 3, 4, 5}


def test_ingestion_is_deterministic():
    """Test that ingesting the same input twice gives identical output."""
    ingester = OrthologGroupIngester({T1, T2, T3, T4}, resolve)

    first = ingester.ingest([deep_tree(), tetrapoda_tree()])
    second = ingester.ingest([deep_tree(), tetrapoda_tree()])

    assert first == second
    assert len(first.warnings) == 2


def test_context_register_semantics():
    """Test IngestionContext registration directly."""
    context = IngestionContext()

    assert context.register(1, 10, "HOG:1", "G1") is True
    assert context.register(1, 10, "HOG:1", "G1") is False
    assert context.warnings == []
    assert context.register(1, 11, "HOG:1", "G1") is False
    assert len(context.assignments) == 1
    assert len(context.warnings) == 1
    assert context.assigned_record(1) == 10


# ============================================================================
# Malformed hierarchies
# ============================================================================

def test_cycle_detected():
    """Test that a group reachable from itself is a fatal error."""
    root = Group("HOG:1", T1)
    child = Group("HOG:1.1", T2)
    root.children.append(child)
    child.children.append(root)

    with pytest.raises(CyclicHierarchyError) as exc_info:
        OrthologGroupIngester({T1, T2}, resolve).ingest([root])

    assert exc_info.value.group_id == "HOG:1"
    assert exc_info.value.path == ["HOG:1", "HOG:1.1", "HOG:1"]


def test_self_loop_detected():
    root = Group("HOG:1", T1)
    root.children.append(root)

    with pytest.raises(CyclicHierarchyError):
        count_groups(root, {T1})


def test_shared_child_rejected():
    """Test that a node with two parents is not a tree."""
    shared = Group("HOG:1.3", T4)
    root = Group("HOG:1", T1, children=[
        Group("HOG:1.1", T2, children=[shared]),
        Group("HOG:1.2", T2, children=[shared]),
    ])

    with pytest.raises(MalformedHierarchyError):
        OrthologGroupIngester({T1, T2, T4}, resolve).ingest([root])


def test_duplicate_root_ids_rejected():
    with pytest.raises(MalformedHierarchyError, match="Duplicate"):
        OrthologGroupIngester({T1}, resolve).ingest([Group("HOG:1", T1), Group("HOG:1", T1)])


def test_deep_tree_does_not_recurse():
    """Test that very deep trees are walked without recursion limits."""
    root = Group("HOG:deep", T1)
    node = root
    for depth in range(5000):
        child = Group(f"HOG:deep.{depth}", None)
        node.children.append(child)
        node = child
    node.member_gene_identifiers.append("G1")

    result = OrthologGroupIngester({T1}, resolve).ingest([root])

    assert len(result.records) == 5001
    assert result.records[0].right_bound == 2 * 5001
