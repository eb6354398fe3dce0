import logging
from typing import Dict, Optional

import numpy as np

from .config import AllocatorKind, TreeConfig
from .errors import (
    ConstructionError,
    InvalidAllocationSizeError,
    InvalidArgumentError,
    ResourceExhaustedError,
)
from .MemoryPool import MemoryPool
from .node import NIL, NODE_DTYPE


logger = logging.getLogger(__name__)



# ---------- Shared record construction ----------
def _construct(
    record,
    value,
    left:  int,
    right: int,
    count: int

) -> None:

    try:
        record["value"] = value
        record["left"]  = left
        record["right"] = right
        record["count"] = count
    except (TypeError, ValueError, OverflowError, KeyError, IndexError) as exc:
        raise ConstructionError(f"Allocator: failed to construct record: {exc}") from exc

def _destroy(record) -> None:

    # Zero the links and drop the reference held on the value
    record["value"] = None
    record["left"]  = NIL
    record["right"] = NIL
    record["count"] = 0



# --------- PoolAllocator API ---------
class PoolAllocator:
    """
    Node allocator backed by a shared ``MemoryPool``.

    A handle is cheap: copying it (``copy()``) gives another handle on the
    SAME pool, and the pool lives as long as any handle refers to it.
    Handles are interchangeable, and compare equal, only when they share a
    pool. Rebinding to another record layout never shares the pool: a pool
    sized for one dtype cannot serve another.

    Only single-node requests are served.
    """

    kind = AllocatorKind.POOL

    def __init__(
        self,
        dtype                    = NODE_DTYPE,
        block_count: int         = 64,
        max_blocks: Optional[int] = None,
        pool: Optional[MemoryPool] = None

    ) -> None:

        if pool is None:
            pool = MemoryPool(dtype, block_count=block_count, max_blocks=max_blocks)

        elif pool.dtype != np.dtype(dtype):
            raise InvalidArgumentError(
                f"Pool serves records of {pool.dtype}, not {np.dtype(dtype)}"
            )

        self._pool = pool

    @property
    def pool(self) -> MemoryPool:
        return self._pool

    @property
    def dtype(self) -> np.dtype:
        return self._pool.dtype

    def allocate(
        self,
        n: int = 1

    ) -> int:

        """
        Allocate storage for exactly one record.

        :param n: Number of records, must be 1
        :type n: int
        :return: Handle of the uninitialised slot
        :rtype: int
        :raises InvalidAllocationSizeError: When ``n != 1``
        :raises ResourceExhaustedError: When the pool cannot grow
        """

        if n != 1:
            raise InvalidAllocationSizeError(
                f"PoolAllocator serves single nodes only, {n} requested"
            )

        return self._pool.allocate()

    def deallocate(
        self,
        handle: int,
        n:      int = 1

    ) -> None:

        """Return a slot to the pool; ignored unless ``n == 1``."""

        if n == 1:
            self._pool.deallocate(handle)

    def construct(
        self,
        handle: int,
        value,
        left:  int = NIL,
        right: int = NIL,
        count: int = 0

    ) -> None:

        """
        Build a node record in place.

        On ``ConstructionError`` the slot stays allocated; releasing it with
        ``deallocate`` is the caller's job.
        """

        _construct(self._pool.record(handle), value, left, right, count)

    def destroy(
        self,
        handle: int

    ) -> None:

        _destroy(self._pool.record(handle))

    def record(
        self,
        handle: int

    ):

        return self._pool.record(handle)

    def max_size(self) -> int:
        """Most records this allocator can ever hold at once."""

        if self._pool.max_blocks is None:
            return np.iinfo(np.int64).max // self._pool.block_size

        return self._pool.max_blocks * self._pool.block_count

    def rebind(
        self,
        dtype

    ) -> "PoolAllocator":

        """
        Allocator for another record layout.

        Same layout: a handle sharing this pool. Different layout: an
        allocator with its own, correctly sized pool and the same growth
        settings.
        """

        if np.dtype(dtype) == self._pool.dtype:
            return self.copy()

        return PoolAllocator(
            dtype,
            block_count=self._pool.block_count,
            max_blocks=self._pool.max_blocks
        )

    def fresh(self) -> "PoolAllocator":
        """Allocator with a new, empty pool configured like this one."""

        return PoolAllocator(
            self._pool.dtype,
            block_count=self._pool.block_count,
            max_blocks=self._pool.max_blocks
        )

    def copy(self) -> "PoolAllocator":
        return PoolAllocator(self._pool.dtype, pool=self._pool)

    __copy__ = copy

    def __eq__(self, other) -> bool:
        if not isinstance(other, PoolAllocator):
            return NotImplemented
        return self._pool is other._pool

    def __hash__(self) -> int:
        return id(self._pool)

    def __repr__(self) -> str:
        return f"PoolAllocator({self._pool!r})"



# --------- HeapAllocator API ---------
class _Heap:
    """Registry of individually allocated records shared by heap handles."""

    def __init__(
        self,
        dtype,
        max_nodes: Optional[int] = None

    ) -> None:

        self.dtype     = np.dtype(dtype)
        self.max_nodes = max_nodes
        self.records: Dict[int, np.ndarray] = {}
        self.next_handle = 1


class HeapAllocator:
    """
    Node allocator without pooling: every node gets its own record array.

    Same contract as ``PoolAllocator``; ``allocate(0)`` yields ``NIL``.
    Handles sharing one registry (``copy()``) compare equal.
    """

    kind = AllocatorKind.HEAP

    def __init__(
        self,
        dtype                   = NODE_DTYPE,
        max_nodes: Optional[int] = None,
        heap: Optional[_Heap]   = None

    ) -> None:

        self._heap = heap if heap is not None else _Heap(dtype, max_nodes)

    @property
    def dtype(self) -> np.dtype:
        return self._heap.dtype

    @property
    def in_use(self) -> int:
        return len(self._heap.records)

    def allocate(
        self,
        n: int = 1

    ) -> int:

        if n == 0:
            return NIL

        if n != 1:
            raise InvalidAllocationSizeError(
                f"HeapAllocator serves single nodes only, {n} requested"
            )

        heap = self._heap
        if heap.max_nodes is not None and len(heap.records) >= heap.max_nodes:
            logger.warning("HeapAllocator: node limit reached (%d records)", heap.max_nodes)
            raise ResourceExhaustedError(
                f"HeapAllocator: failed to allocate node (limit of {heap.max_nodes} reached)"
            )

        try:
            storage = np.zeros(1, dtype=heap.dtype)
        except MemoryError as exc:
            raise ResourceExhaustedError("HeapAllocator: failed to allocate node.") from exc

        handle = heap.next_handle
        heap.next_handle += 1
        heap.records[handle] = storage

        return handle

    def deallocate(
        self,
        handle: int,
        n:      int = 1

    ) -> None:

        if n != 1:
            return

        if handle is None or handle == NIL:
            raise InvalidArgumentError("Cannot deallocate a null handle.")

        if self._heap.records.pop(int(handle), None) is None:
            raise InvalidArgumentError(f"Handle {handle!r} is not an allocated node")

    def record(
        self,
        handle: int

    ):

        storage = self._heap.records.get(int(handle)) if handle is not None else None
        if storage is None:
            raise InvalidArgumentError(f"Handle {handle!r} is not an allocated node")

        return storage[0]

    def construct(
        self,
        handle: int,
        value,
        left:  int = NIL,
        right: int = NIL,
        count: int = 0

    ) -> None:

        _construct(self.record(handle), value, left, right, count)

    def destroy(
        self,
        handle: int

    ) -> None:

        _destroy(self.record(handle))

    def max_size(self) -> int:

        if self._heap.max_nodes is None:
            return np.iinfo(np.int64).max // self._heap.dtype.itemsize

        return self._heap.max_nodes

    def rebind(
        self,
        dtype

    ) -> "HeapAllocator":

        if np.dtype(dtype) == self._heap.dtype:
            return self.copy()

        return HeapAllocator(dtype, max_nodes=self._heap.max_nodes)

    def fresh(self) -> "HeapAllocator":
        return HeapAllocator(self._heap.dtype, max_nodes=self._heap.max_nodes)

    def copy(self) -> "HeapAllocator":
        return HeapAllocator(heap=self._heap)

    __copy__ = copy

    def __eq__(self, other) -> bool:
        if not isinstance(other, HeapAllocator):
            return NotImplemented
        return self._heap is other._heap

    def __hash__(self) -> int:
        return id(self._heap)

    def __repr__(self) -> str:
        return f"HeapAllocator(dtype_size={self._heap.dtype.itemsize}, in_use={self.in_use})"



def make_allocator(config: Optional[TreeConfig] = None):
    """Build the node allocator selected by ``config``."""

    config = config or TreeConfig()

    if config.allocator is AllocatorKind.HEAP:
        return HeapAllocator(NODE_DTYPE, max_nodes=config.max_nodes)

    return PoolAllocator(
        NODE_DTYPE,
        block_count=config.block_count,
        max_blocks=config.max_blocks
    )
