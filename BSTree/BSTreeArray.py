import logging
import sys
from typing import Any, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from .Allocator import make_allocator
from .config import TreeConfig
from .errors import (
    BSTreeError,
    ConstructionError,
    InvalidArgumentError,
    NotFoundError,
    RecursionDepthError,
)
from .node import (
    NIL,
    NODE_DTYPE,
    get_count,
    get_left,
    get_right,
    get_value,
    set_count,
    set_left,
    set_right,
    set_value,
)
from .TreeIterator import InOrderIterator


logger = logging.getLogger(__name__)



# --------- BSTree API ---------
class BSTree:
    """
    Unbalanced binary search tree counting duplicates, over pooled node records.

    Nodes are records of ``NODE_DTYPE`` handed out by a node allocator
    (``PoolAllocator`` by default, ``HeapAllocator`` on request) and linked
    through integer handles; ``root`` is ``NIL`` (0) when the tree is empty.
    Every value in a node's left subtree is strictly smaller than the node's
    value, every value in its right subtree strictly greater. Re-inserting
    an equal value bumps the node's duplicate counter instead of adding a node.

    The tree never rebalances. Insertion refuses to go deeper than
    ``config.max_depth`` levels; every walk is iterative.

    Attributes:
        config (TreeConfig): Construction-time options.
        root (int): Handle of the root node, NIL if empty.
        total_elements_count (int): Logical insertions currently present.
        duplicate_elements_count (int): Sum of the duplicate counters of all nodes.
        node_count (int): Number of live nodes (distinct values).
    """

    def __init__(
        self,
        config:    Optional[TreeConfig] = None,
        allocator                       = None

    ) -> None:

        self.config = config if config is not None else TreeConfig()
        self._alloc = allocator if allocator is not None else make_allocator(self.config)

        if self._alloc.dtype != NODE_DTYPE:
            raise InvalidArgumentError(
                f"Allocator serves records of {self._alloc.dtype}, the tree needs {NODE_DTYPE}"
            )

        self.root                     = NIL
        self.total_elements_count     = 0
        self.duplicate_elements_count = 0
        self.node_count               = 0
        self._generation              = 0

    @property
    def allocator(self):
        """A handle on the allocator (shares its storage)."""
        return self._alloc.copy()

    # ---------- internals ----------
    def _node(
        self,
        handle: int

    ):

        return self._alloc.record(handle)

    def _touch(self) -> None:
        self._generation += 1

    def _check_value(
        self,
        value: Any

    ) -> None:

        if value is None:
            raise InvalidArgumentError("Value cannot be None.")

        if value == self.config.sentinel:
            raise InvalidArgumentError(
                f"Value cannot be empty ({value!r} is the default of {self.config.value_type.__name__})."
            )

    def _create_node(
        self,
        value: Any,
        count: int = 0

    ) -> int:

        handle = self._alloc.allocate(1)
        try:
            self._alloc.construct(handle, value, NIL, NIL, count)
        except ConstructionError:
            self._alloc.deallocate(handle, 1)
            raise

        return handle

    def _release(
        self,
        handle: int

    ) -> None:

        self._alloc.destroy(handle)
        self._alloc.deallocate(handle, 1)

    def _find(
        self,
        value: Any

    ) -> int:

        current = self.root
        while current != NIL:
            record     = self._node(current)
            node_value = get_value(record)

            if value < node_value:
                current = get_left(record)
            elif value > node_value:
                current = get_right(record)
            else:
                return current

        return NIL

    def _leftmost(
        self,
        handle: int

    ) -> int:

        if handle == NIL:
            return NIL

        while True:
            left = get_left(self._node(handle))
            if left == NIL:
                return handle
            handle = left

    def _rightmost(
        self,
        handle: int

    ) -> int:

        if handle == NIL:
            return NIL

        while True:
            right = get_right(self._node(handle))
            if right == NIL:
                return handle
            handle = right

    def _predecessor_handle(
        self,
        handle: int

    ) -> int:

        """
        In-order predecessor of a node of this tree, NIL for the first node.
        """

        record = self._node(handle)
        if get_left(record) != NIL:
            return self._rightmost(get_left(record))

        # No left subtree: the nearest ancestor we leave to the right
        value     = get_value(record)
        candidate = NIL
        current   = self.root
        while current != handle:
            node = self._node(current)
            if value > get_value(node):
                candidate = current
                current   = get_right(node)
            else:
                current = get_left(node)

        return candidate

    def _relink(
        self,
        parent:      int,
        is_left:     bool,
        replacement: int

    ) -> None:

        if parent == NIL:
            self.root = replacement
        elif is_left:
            set_left(self._node(parent), replacement)
        else:
            set_right(self._node(parent), replacement)

    def _copy_nodes(
        self,
        source: "BSTree"

    ) -> int:

        """
        Clone the node graph of ``source`` with this tree's allocator.

        Walks with an explicit stack of (source, clone) pairs. If any
        allocation or construction fails, every clone made so far is released
        before the error propagates.

        :return: Handle of the cloned root, NIL for an empty source
        :rtype: int
        """

        if source.root == NIL:
            return NIL

        allocated: List[int] = []

        def clone(handle: int) -> int:
            record = source._node(handle)
            copied = self._create_node(get_value(record), get_count(record))
            allocated.append(copied)
            return copied

        try:
            new_root = clone(source.root)
            stack: List[Tuple[int, int]] = [(source.root, new_root)]

            while stack:
                src_handle, dst_handle = stack.pop()
                src_record = source._node(src_handle)

                left = get_left(src_record)
                if left != NIL:
                    copied = clone(left)
                    set_left(self._node(dst_handle), copied)
                    stack.append((left, copied))

                right = get_right(src_record)
                if right != NIL:
                    copied = clone(right)
                    set_right(self._node(dst_handle), copied)
                    stack.append((right, copied))

        except BSTreeError:
            logger.debug("BSTree: copy failed after %d nodes, releasing them", len(allocated))
            for handle in reversed(allocated):
                self._release(handle)
            raise

        return new_root

    def _release_all(
        self,
        root: int

    ) -> None:

        # Pre-order collection, released in reverse: children before parents
        order: List[int] = []
        stack = [root] if root != NIL else []
        while stack:
            handle = stack.pop()
            order.append(handle)
            record = self._node(handle)

            left  = get_left(record)
            right = get_right(record)
            if left != NIL:
                stack.append(left)
            if right != NIL:
                stack.append(right)

        for handle in reversed(order):
            self._release(handle)

    def _take_counts(
        self,
        other: "BSTree"

    ) -> None:

        self.total_elements_count     = other.total_elements_count
        self.duplicate_elements_count = other.duplicate_elements_count
        self.node_count               = other.node_count

    def _reset_counts(self) -> None:
        self.total_elements_count     = 0
        self.duplicate_elements_count = 0
        self.node_count               = 0

    # ---------- mutation ----------
    def insert(
        self,
        value: Any

    ) -> None:

        """
        Insert a value, or count one more duplicate of it.

        The descent stops at the first equal node and increments its
        duplicate counter; otherwise a node is created at the NIL position
        reached. The tree is left untouched when any check or the allocation
        fails.

        :param value: Value to insert; None and the type's default are refused
        :raises InvalidArgumentError: On None or the sentinel value
        :raises RecursionDepthError: When the new node would sit deeper than ``max_depth``
        :raises ResourceExhaustedError: When no node storage can be obtained
        """

        self._check_value(value)

        max_depth = self.config.max_depth
        parent    = NIL
        is_left   = False
        current   = self.root
        depth     = 0

        while current != NIL:
            if depth > max_depth:
                break

            record     = self._node(current)
            node_value = get_value(record)

            if value < node_value:
                parent, is_left, current = current, True, get_left(record)
            elif value > node_value:
                parent, is_left, current = current, False, get_right(record)
            else:
                set_count(record, get_count(record) + 1)
                self.total_elements_count     += 1
                self.duplicate_elements_count += 1
                self._touch()
                return

            depth += 1

        if depth > max_depth:
            logger.warning("BSTree: insertion depth guard tripped at depth %d", depth)
            raise RecursionDepthError(
                f"Insertion exceeds the maximum depth of {max_depth}; the tree is too skewed."
            )

        handle = self._create_node(value)
        self._relink(parent, is_left, handle)

        self.total_elements_count += 1
        self.node_count           += 1
        self._touch()

    def remove(
        self,
        value: Any

    ) -> None:

        """
        Remove one occurrence of a value.

        A node holding duplicates only loses one from its counter. Otherwise
        the node is unlinked: with at most one child that child takes its
        place; with two children it takes over the value and duplicate
        counter of its in-order successor (leftmost node of the right
        subtree), whose original position is then unlinked instead.

        :raises NotFoundError: When the value is absent; nothing is modified
        """

        if not self.search(value):
            raise NotFoundError(f"Value {value!r} not found in the tree.")

        parent  = NIL
        is_left = False
        current = self.root
        while True:
            record     = self._node(current)
            node_value = get_value(record)

            if value < node_value:
                parent, is_left, current = current, True, get_left(record)
            elif value > node_value:
                parent, is_left, current = current, False, get_right(record)
            else:
                break

        self.total_elements_count -= 1
        self._touch()

        duplicates = get_count(record)
        if duplicates > 0:
            set_count(record, duplicates - 1)
            self.duplicate_elements_count -= 1
            return

        left  = get_left(record)
        right = get_right(record)

        if left != NIL and right != NIL:
            successor_parent = current
            successor        = right
            while get_left(self._node(successor)) != NIL:
                successor_parent = successor
                successor        = get_left(self._node(successor))

            successor_record = self._node(successor)
            set_value(record, get_value(successor_record))
            set_count(record, get_count(successor_record))

            # The successor has no left child
            if successor_parent == current:
                set_right(record, get_right(successor_record))
            else:
                set_left(self._node(successor_parent), get_right(successor_record))

            self._release(successor)

        else:
            self._relink(parent, is_left, left if left != NIL else right)
            self._release(current)

        self.node_count -= 1

    def clear(self) -> None:
        """Destroy and release every node; the tree stays usable."""

        if self.root != NIL:
            logger.debug("BSTree: clearing %d nodes", self.node_count)

        self._release_all(self.root)
        self.root = NIL
        self._reset_counts()
        self._touch()

    # ---------- copy / move ----------
    def copy(self) -> "BSTree":
        """
        Independent deep copy: new nodes, new allocator storage.
        """

        clone = type(self)(self.config, self._alloc.fresh())
        clone.root = clone._copy_nodes(self)
        clone._take_counts(self)

        logger.debug("BSTree: copied %d nodes", self.node_count)
        return clone

    __copy__ = copy

    def __deepcopy__(self, memo) -> "BSTree":
        return self.copy()

    def assign(
        self,
        other: "BSTree"

    ) -> "BSTree":

        """
        Copy-assignment: replace the content with a deep copy of ``other``.

        The copy is built before the old nodes are released, so a failed copy
        leaves this tree as it was.
        """

        if other is self:
            return self

        new_root = self._copy_nodes(other)
        self._release_all(self.root)

        self.root = new_root
        self._take_counts(other)
        self._touch()
        return self

    def move_from(
        self,
        other: "BSTree"

    ) -> "BSTree":

        """
        Move-assignment: take the nodes, counters and allocator of ``other``.

        The current content is cleared first. ``other`` is left as a valid,
        empty tree with a fresh allocator of the same kind.
        """

        if other is self:
            return self

        self.clear()

        self._alloc = other._alloc
        self.config = other.config
        self.root   = other.root
        self._take_counts(other)
        self._touch()

        other._alloc = other._alloc.fresh()
        other.root   = NIL
        other._reset_counts()
        other._touch()

        logger.debug("BSTree: moved %d nodes", self.node_count)
        return self

    @classmethod
    def moved(
        cls,
        other: "BSTree"

    ) -> "BSTree":

        """Move-construction from ``other``."""

        tree = cls(other.config, other._alloc.fresh())
        return tree.move_from(other)

    # ---------- queries ----------
    def search(
        self,
        value: Any

    ) -> bool:

        """Tell whether an equal value is present (presence, not count)."""

        if value is None:
            return False

        return self._find(value) != NIL

    def search_many(
        self,
        values: Iterable[Any]

    ) -> np.ndarray:

        """Presence of every value of ``values``, as a boolean array."""

        return np.fromiter((self.search(v) for v in values), dtype=np.bool_)

    def count(
        self,
        value: Any

    ) -> int:

        """Number of occurrences of ``value`` currently present."""

        if value is None:
            return 0

        handle = self._find(value)
        if handle == NIL:
            return 0

        return get_count(self._node(handle)) + 1

    def min(self) -> Any:
        if self.root == NIL:
            raise NotFoundError("min() of an empty tree.")
        return get_value(self._node(self._leftmost(self.root)))

    def max(self) -> Any:
        if self.root == NIL:
            raise NotFoundError("max() of an empty tree.")
        return get_value(self._node(self._rightmost(self.root)))

    def successor(
        self,
        value: Any

    ) -> Any:

        """
        Smallest stored value strictly greater than ``value``, None if there is none.
        """

        candidate = None
        current   = self.root
        while current != NIL:
            record     = self._node(current)
            node_value = get_value(record)

            if value < node_value:
                candidate = node_value
                current   = get_left(record)
            else:
                current = get_right(record)

        return candidate

    def predecessor(
        self,
        value: Any

    ) -> Any:

        """
        Largest stored value strictly smaller than ``value``, None if there is none.
        """

        candidate = None
        current   = self.root
        while current != NIL:
            record     = self._node(current)
            node_value = get_value(record)

            if value > node_value:
                candidate = node_value
                current   = get_right(record)
            else:
                current = get_left(record)

        return candidate

    @property
    def height(self) -> int:
        """Number of levels; 0 for an empty tree."""

        height = 0
        stack  = [(self.root, 1)] if self.root != NIL else []
        while stack:
            handle, level = stack.pop()
            height = max(height, level)

            record = self._node(handle)
            for child in (get_left(record), get_right(record)):
                if child != NIL:
                    stack.append((child, level + 1))

        return height

    # ---------- traversal ----------
    def begin(self) -> InOrderIterator:
        return InOrderIterator(self, self.root)

    def end(self) -> InOrderIterator:
        return InOrderIterator(self, NIL)

    # Read-only by construction: the const variants are the same cursor
    cbegin = begin
    cend   = end

    def __iter__(self) -> InOrderIterator:
        return self.begin()

    def __reversed__(self) -> Iterator[Any]:
        stack: List[int] = []
        handle = self.root
        while stack or handle != NIL:
            while handle != NIL:
                stack.append(handle)
                handle = get_right(self._node(handle))

            handle = stack.pop()
            record = self._node(handle)
            yield get_value(record)
            handle = get_left(record)

    def items(self) -> List[Tuple[Any, int]]:
        """``(value, multiplicity)`` pairs in ascending order."""

        pairs = []
        cursor = self.begin()
        while not cursor.exhausted:
            pairs.append((cursor.value, cursor.multiplicity))
            cursor.advance()

        return pairs

    def inorder(self) -> np.ndarray:
        """
        Distinct values in ascending order, as an object array.

        Intended for validation and debugging; it walks and copies the whole tree.
        """

        values = np.empty(self.node_count, dtype=object)
        for i, value in enumerate(self):
            values[i] = value

        return values

    def print_in_order(
        self,
        file = None,
        sep: str = " "

    ) -> None:

        """Write the ascending sequence of distinct values on one line."""

        stream = file if file is not None else sys.stdout
        stream.write(sep.join(str(value) for value in self) + "\n")

    # ---------- dunder ----------
    def __contains__(self, value: Any) -> bool:
        return self.search(value)

    def __len__(self) -> int:
        return self.total_elements_count

    def __bool__(self) -> bool:
        return self.root != NIL

    def __eq__(self, other) -> bool:
        if not isinstance(other, BSTree):
            return NotImplemented
        return self.items() == other.items()

    __hash__ = None

    def __str__(self) -> str:
        return (
            "BSTree(size=" + str(self.total_elements_count) + ", nodes=" + str(self.node_count)
            + ", height=" + str(self.height) + ")"
        )

    def __repr__(self) -> str:
        return f"BSTree({list(self.items())!r}, allocator={self._alloc!r})"



# --------- Utils ---------
def build_tree(
    values: Iterable[Any],
    config: Optional[TreeConfig] = None

) -> BSTree:

    """
    Build a tree holding every value of ``values``, in iteration order.
    """

    tree = BSTree(config)
    fill_tree(tree, values)
    return tree

def fill_tree(
    tree:   BSTree,
    values: Iterable[Any]

) -> None:

    """Insert every value of ``values`` into an existing tree."""

    for value in values:
        tree.insert(value)

def remove_values(
    tree:   BSTree,
    values: Iterable[Any]

) -> None:

    """
    Remove one occurrence of every value of ``values``.

    Removal is strict: the first absent value raises ``NotFoundError`` and
    the values before it stay removed.
    """

    for value in values:
        tree.remove(value)
