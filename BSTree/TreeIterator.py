from typing import TYPE_CHECKING, List

from .errors import IteratorInvalidatedError, IteratorOutOfRangeError
from .node import NIL, get_count, get_left, get_right, get_value

if TYPE_CHECKING:
    from .BSTreeArray import BSTree



class InOrderIterator:
    """
    Bidirectional in-order cursor over a ``BSTree``, driven by an explicit stack.

    The stack holds the nodes still to be visited whose left subtree contains
    the current node (nearest on top). A fresh iterator pushes the left spine
    of ``start`` and pops the first node. When ``current`` is NIL the iterator
    is exhausted (equal to ``tree.end()``).

    Each distinct value is visited once; duplicates are exposed through
    ``duplicates`` / ``multiplicity`` instead of being repeated.

    The iterator borrows the tree: it owns no node, and any mutation of the
    tree after its creation makes it raise ``IteratorInvalidatedError``.
    """

    __slots__ = ("_tree", "_generation", "_stack", "_current")

    def __init__(
        self,
        tree:  "BSTree",
        start: int = NIL

    ) -> None:

        self._tree       = tree
        self._generation = tree._generation
        self._stack: List[int] = []
        self._current    = NIL

        self._push_left(start)
        if self._stack:
            self._current = self._stack.pop()

    def _push_left(
        self,
        handle: int

    ) -> None:

        while handle != NIL:
            self._stack.append(handle)
            handle = get_left(self._tree._node(handle))

    def _check(self) -> None:
        if self._tree._generation != self._generation:
            raise IteratorInvalidatedError("The tree was modified after the iterator was created.")

    def _record(self):
        self._check()
        if self._current == NIL:
            raise IteratorOutOfRangeError("Iteration beyond the tree.")

        return self._tree._node(self._current)

    @property
    def exhausted(self) -> bool:
        return self._current == NIL

    @property
    def value(self):
        """Value of the current node."""
        return get_value(self._record())

    def deref(self):
        return self.value

    @property
    def duplicates(self) -> int:
        """Extra insertions recorded on the current node."""
        return get_count(self._record())

    @property
    def multiplicity(self) -> int:
        return self.duplicates + 1

    def advance(self) -> "InOrderIterator":

        """
        Step to the next node in ascending order.

        :raises IteratorOutOfRangeError: When already exhausted
        """

        right = get_right(self._record())
        if right != NIL:
            self._push_left(right)

        self._current = self._stack.pop() if self._stack else NIL
        return self

    def retreat(self) -> "InOrderIterator":

        """
        Step to the previous node in ascending order.

        From the exhausted state this moves to the largest value. The stack
        is rebuilt from the tree shape for the new position.

        :raises IteratorOutOfRangeError: From the first node or on an empty tree
        """

        self._check()
        tree = self._tree

        if self._current == NIL:
            target = tree._rightmost(tree.root)
        else:
            target = tree._predecessor_handle(self._current)

        if target == NIL:
            raise IteratorOutOfRangeError("Iteration before the beginning of the tree.")

        self._seek(target)
        return self

    def _seek(
        self,
        target: int

    ) -> None:

        # Descend from the root, keeping every node we leave to the left
        tree  = self._tree
        value = get_value(tree._node(target))

        self._stack.clear()
        handle = tree.root
        while handle != target:
            record = tree._node(handle)
            if value < get_value(record):
                self._stack.append(handle)
                handle = get_left(record)
            else:
                handle = get_right(record)

        self._current = target

    def copy(self) -> "InOrderIterator":

        clone = InOrderIterator.__new__(InOrderIterator)
        clone._tree       = self._tree
        clone._generation = self._generation
        clone._stack      = list(self._stack)
        clone._current    = self._current
        return clone

    __copy__ = copy

    def __iter__(self) -> "InOrderIterator":
        return self

    def __next__(self):
        self._check()
        if self._current == NIL:
            raise StopIteration

        value = self.value
        self.advance()
        return value

    def __eq__(self, other) -> bool:
        if not isinstance(other, InOrderIterator):
            return NotImplemented
        return self._tree is other._tree and self._current == other._current

    __hash__ = None

    def __repr__(self) -> str:
        if self._current == NIL:
            return "InOrderIterator(end)"
        return f"InOrderIterator(node={self._current}, pending={len(self._stack)})"
