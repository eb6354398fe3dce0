import pytest

from BSTree import AllocatorKind, BSTree, TreeConfig, fill_tree


@pytest.fixture(params=[AllocatorKind.POOL, AllocatorKind.HEAP], ids=["pool", "heap"])
def allocator_kind(request):
    return request.param


@pytest.fixture
def make_tree(allocator_kind):
    """Build a tree with the parametrized allocator, filled with ``values``."""

    def _make(*values, **options):
        tree = BSTree(TreeConfig(allocator=allocator_kind, **options))
        fill_tree(tree, values)
        return tree

    return _make


@pytest.fixture
def two_node_limit(allocator_kind):
    """Options leaving room for exactly two nodes."""
    if allocator_kind is AllocatorKind.POOL:
        return {"block_count": 2, "max_blocks": 1}
    return {"max_nodes": 2}
