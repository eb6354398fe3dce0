"""Test insertion, search and removal on the tree engine."""

import io
import random

import numpy as np
import pytest

from BSTree import (
    BSTree,
    InvalidArgumentError,
    NotFoundError,
    PoolAllocator,
    RecursionDepthError,
    ResourceExhaustedError,
    TreeConfig,
    build_tree,
    remove_values,
)
from BSTree.node import unpack


def root_value(tree):
    return unpack(tree._node(tree.root))[0]


# ---------- reference scenarios ----------
def test_insert_with_duplicates(make_tree):
    tree = make_tree(5, 3, 8, 3, 1)

    assert list(tree) == [1, 3, 5, 8]
    assert tree.total_elements_count == 5
    assert tree.node_count == 4
    assert tree.count(3) == 2
    assert tree.duplicate_elements_count == 1
    assert dict((v, m - 1) for v, m in tree.items())[3] == 1


def test_remove_duplicate_keeps_node(make_tree):
    tree = make_tree(5, 3, 8, 3, 1)
    tree.remove(3)

    assert list(tree) == [1, 3, 5, 8]
    assert tree.total_elements_count == 4
    assert tree.count(3) == 1
    assert tree.duplicate_elements_count == 0
    assert tree.search(3)


def test_remove_last_occurrence_drops_node(make_tree):
    tree = make_tree(5, 3, 8, 3, 1)
    tree.remove(3)
    tree.remove(3)

    assert list(tree) == [1, 5, 8]
    assert tree.total_elements_count == 3
    assert not tree.search(3)
    assert tree.node_count == 3


def test_remove_absent_value(make_tree):
    tree = make_tree(5, 3, 8, 3, 1)

    with pytest.raises(NotFoundError):
        tree.remove(42)

    with pytest.raises(KeyError):
        tree.remove(42)

    assert list(tree) == [1, 3, 5, 8]
    assert tree.total_elements_count == 5


def test_remove_from_empty_tree(make_tree):
    with pytest.raises(NotFoundError):
        make_tree().remove(1)


@pytest.mark.parametrize("value", [0, None])
def test_insert_sentinel_is_refused(make_tree, value):
    tree = make_tree(5, 3)

    with pytest.raises(InvalidArgumentError):
        tree.insert(value)

    assert list(tree) == [3, 5]
    assert len(tree) == 2


def test_sentinel_follows_value_type(make_tree):
    tree = make_tree(value_type=str)

    with pytest.raises(ValueError):
        tree.insert("")

    tree.insert("pear")
    tree.insert("apple")
    assert list(tree) == ["apple", "pear"]


def test_remove_two_children_uses_successor(make_tree):
    tree = make_tree(5, 2, 8, 6, 9)
    tree.remove(5)

    assert list(tree) == [2, 6, 8, 9]
    assert root_value(tree) == 6
    assert tree.total_elements_count == 4
    assert tree.node_count == 4


# ---------- removal shapes ----------
def test_remove_leaf(make_tree):
    tree = make_tree(5, 2, 8)
    tree.remove(2)

    assert list(tree) == [5, 8]
    assert tree.height == 2


def test_remove_root_with_single_child(make_tree):
    tree = make_tree(5, 8, 9)
    tree.remove(5)

    assert list(tree) == [8, 9]
    assert root_value(tree) == 8


def test_remove_only_node(make_tree):
    tree = make_tree(5)
    tree.remove(5)

    assert list(tree) == []
    assert not tree
    assert len(tree) == 0


def test_successor_deep_in_right_subtree(make_tree):
    tree = make_tree(5, 2, 10, 8, 7, 9, 12)
    tree.remove(5)

    assert list(tree) == [2, 7, 8, 9, 10, 12]
    assert root_value(tree) == 7


def test_successor_with_right_child(make_tree):
    tree = make_tree(5, 2, 10, 7, 8)
    tree.remove(5)

    assert list(tree) == [2, 7, 8, 10]
    assert tree.search(8)
    assert root_value(tree) == 7


def test_successor_carries_its_duplicates(make_tree):
    tree = make_tree(5, 2, 8, 6, 6, 9)
    tree.remove(5)

    assert list(tree) == [2, 6, 8, 9]
    assert tree.count(6) == 2
    assert tree.total_elements_count == 5
    assert tree.duplicate_elements_count == 1

    tree.remove(6)
    tree.remove(6)
    assert list(tree) == [2, 8, 9]
    assert tree.duplicate_elements_count == 0


# ---------- properties ----------
@pytest.mark.parametrize("seed", [1, 7, 2024])
def test_in_order_is_sorted_and_distinct(make_tree, seed):
    rng    = random.Random(seed)
    values = [rng.randint(1, 60) for _ in range(200)]
    tree   = make_tree(*values)

    assert list(tree) == sorted(set(values))
    assert list(reversed(tree)) == sorted(set(values), reverse=True)


@pytest.mark.parametrize("seed", [3, 11])
def test_count_invariant_under_random_operations(make_tree, seed):
    rng      = random.Random(seed)
    tree     = make_tree()
    expected = {}

    for _ in range(400):
        value = rng.randint(1, 30)
        if rng.random() < 0.55:
            tree.insert(value)
            expected[value] = expected.get(value, 0) + 1
        elif expected.get(value):
            tree.remove(value)
            expected[value] -= 1
        else:
            with pytest.raises(NotFoundError):
                tree.remove(value)

        assert tree.total_elements_count == sum(expected.values())

    present = {v: c for v, c in expected.items() if c}
    assert tree.items() == sorted(present.items())
    assert tree.node_count == len(present)
    assert tree.duplicate_elements_count == sum(c - 1 for c in present.values())


def test_k_inserts_then_k_removes(make_tree):
    tree = make_tree(4, 2, 6)
    for _ in range(5):
        tree.insert(9)

    for remaining in range(4, 0, -1):
        tree.remove(9)
        assert tree.search(9)
        assert tree.count(9) == remaining

    tree.remove(9)
    assert not tree.search(9)
    assert list(tree) == [2, 4, 6]


def test_search_is_presence_only(make_tree):
    tree = make_tree(5, 5, 5, 1)

    assert tree.search(5) is True
    assert tree.search(2) is False
    assert tree.search(None) is False
    assert 1 in tree
    assert 7 not in tree


# ---------- guards and failures ----------
def test_depth_guard(make_tree):
    tree = make_tree(1, 2, 3, 4, max_depth=3)

    with pytest.raises(RecursionDepthError):
        tree.insert(5)

    assert list(tree) == [1, 2, 3, 4]
    assert tree.total_elements_count == 4

    # duplicates and shallower positions are still accepted
    tree.insert(4)
    tree.insert(-1)
    assert tree.count(4) == 2


def test_depth_guard_is_a_recursion_error(make_tree):
    tree = make_tree(1, max_depth=0)
    with pytest.raises(RecursionError):
        tree.insert(2)


def test_exhausted_storage_leaves_tree_unchanged(make_tree, two_node_limit):
    tree = make_tree(1, 2, **two_node_limit)

    with pytest.raises(ResourceExhaustedError):
        tree.insert(3)

    assert list(tree) == [1, 2]
    assert len(tree) == 2
    assert tree.node_count == 2

    tree.insert(2)
    assert tree.count(2) == 2

    tree.remove(1)
    tree.insert(3)
    assert list(tree) == [2, 3]


def test_pool_reuse_bounds_growth():
    tree = BSTree(TreeConfig(block_count=8))
    pool = tree.allocator.pool
    rng  = random.Random(5)

    first = rng.sample(range(1, 1000), 16)
    for value in first:
        tree.insert(value)
    assert pool.blocks_allocated == 2

    for value in first:
        tree.remove(value)
    assert pool.in_use == 0

    for value in rng.sample(range(1000, 2000), 16):
        tree.insert(value)

    assert pool.blocks_allocated == 2
    assert pool.in_use == 16


def test_trees_can_share_a_pool():
    first  = BSTree(TreeConfig(block_count=4))
    second = BSTree(allocator=first.allocator)

    for value in (5, 3, 8):
        first.insert(value)
    for value in (10, 20):
        second.insert(value)

    pool = first.allocator.pool
    assert second.allocator.pool is pool
    assert pool.in_use == 5
    assert pool.blocks_allocated == 2


def test_allocator_layout_must_match():
    with pytest.raises(InvalidArgumentError):
        BSTree(allocator=PoolAllocator(np.dtype([("value", object)])))


def test_clear_returns_every_node():
    tree = build_tree([5, 3, 8, 1, 4, 7, 9, 3], TreeConfig(block_count=4))
    pool = tree.allocator.pool

    tree.clear()

    assert pool.in_use == 0
    assert list(tree) == []
    assert tree.total_elements_count == 0
    assert tree.duplicate_elements_count == 0

    tree.insert(2)
    assert list(tree) == [2]


# ---------- queries ----------
def test_min_max_and_neighbours(make_tree):
    tree = make_tree(50, 30, 70, 20, 40, 60, 80)

    assert tree.min() == 20
    assert tree.max() == 80
    assert tree.successor(40) == 50
    assert tree.successor(45) == 50
    assert tree.successor(80) is None
    assert tree.predecessor(60) == 50
    assert tree.predecessor(20) is None


def test_min_of_empty_tree(make_tree):
    with pytest.raises(NotFoundError):
        make_tree().min()

    with pytest.raises(NotFoundError):
        make_tree().max()


def test_height(make_tree):
    assert make_tree().height == 0
    assert make_tree(5).height == 1
    assert make_tree(1, 2, 3, 4, 5).height == 5
    assert make_tree(4, 2, 6, 1, 3, 5, 7).height == 3


def test_inorder_and_search_many(make_tree):
    tree = make_tree(5, 3, 8, 3, 1)

    assert tree.inorder().tolist() == [1, 3, 5, 8]
    assert tree.search_many([1, 2, 3]).tolist() == [True, False, True]


def test_print_in_order(make_tree):
    tree   = make_tree(5, 3, 8, 3, 1)
    stream = io.StringIO()

    tree.print_in_order(stream)

    assert stream.getvalue() == "1 3 5 8\n"
    assert stream.getvalue().split() == [str(v) for v in tree]


def test_print_in_order_defaults_to_stdout(make_tree, capsys):
    make_tree(2, 1).print_in_order()
    assert capsys.readouterr().out == "1 2\n"


def test_str(make_tree):
    assert str(make_tree(2, 1, 3, 3)) == "BSTree(size=4, nodes=3, height=2)"


def test_bulk_helpers():
    tree = build_tree([5, 3, 8, 3, 1])
    remove_values(tree, [3, 8])

    assert tree.items() == [(1, 1), (3, 1), (5, 1)]

    with pytest.raises(NotFoundError):
        remove_values(tree, [1, 99, 5])

    # values before the missing one stay removed
    assert list(tree) == [3, 5]
