import logging
from typing import List, Optional

import numpy as np
from numba import njit

from .errors import InvalidArgumentError, ResourceExhaustedError
from .node import NIL


logger = logging.getLogger(__name__)



# ---------- JIT-Compiled Free List Kernels ----------
@njit
def _thread_block(
    links: np.ndarray,
    base:  np.int64,
    tail:  np.int64

) -> np.int64:

    """
    Chain the slots of a fresh block into a free list segment.

    Slot ``i`` of the block gets handle ``base + i``; each link points at the
    next slot and the last one at ``tail`` (the previous free list head).

    :param links: Link column of the new block
    :type links: np.ndarray
    :param base: Handle of the first slot of the block
    :type base: np.int64
    :param tail: Free list head to chain behind the segment
    :type tail: np.int64
    :return: The new free list head (``base``)
    :rtype: np.int64
    """

    n = links.size
    for i in range(n - 1):
        links[i] = base + i + 1

    links[n - 1] = tail
    return base



# --------- MemoryPool API ---------
class MemoryPool:
    """
    Growable pool of fixed-size record slots with an O(1) free list.

    Storage is requested in blocks of ``block_count`` slots of ``dtype``
    (one slot is ``dtype.itemsize`` bytes). Unused slots are threaded into a
    singly-linked free list through a per-block link column. Slots are
    addressed by integer handles starting at 1, ``NIL`` (0) is never served.
    Blocks are never released individually; they live as long as the pool.

    The pool knows nothing about what is stored in the slots and is not
    thread safe: callers sharing it must serialise access.

    Attributes:
        dtype (np.dtype): Record layout of one slot.
        block_count (int): Slots added per growth step.
        max_blocks (Optional[int]): Growth cap, None for unbounded.
    """

    def __init__(
        self,
        dtype,
        block_count: int = 64,
        max_blocks:  Optional[int] = None

    ) -> None:

        if block_count is None or block_count <= 0:
            raise InvalidArgumentError(
                f"Block count must be greater than 0, not {block_count}"
            )

        self.dtype       = np.dtype(dtype)
        self.block_count = int(block_count)
        self.max_blocks  = max_blocks

        self._blocks: List[np.ndarray] = []
        self._links:  List[np.ndarray] = []
        self._in_use: List[np.ndarray] = []
        self._free    = NIL
        self._used    = 0

    @property
    def block_size(self) -> int:
        """Bytes of one slot."""
        return self.dtype.itemsize

    @property
    def blocks_allocated(self) -> int:
        return len(self._blocks)

    @property
    def capacity(self) -> int:
        return len(self._blocks) * self.block_count

    @property
    def in_use(self) -> int:
        return self._used

    @property
    def free_slots(self) -> int:
        return self.capacity - self._used

    def _locate(
        self,
        handle: int

    ):

        block, offset = divmod(int(handle) - 1, self.block_count)
        return block, offset

    def owns(
        self,
        handle

    ) -> bool:

        """
        Tell whether ``handle`` is a slot of this pool currently handed out.
        """

        if isinstance(handle, bool) or not isinstance(handle, (int, np.integer)):
            return False

        if not (1 <= handle <= self.capacity):
            return False

        block, offset = self._locate(handle)
        return bool(self._in_use[block][offset])

    def _allocate_block(self) -> None:

        """
        Grow the pool by one block and chain it in front of the free list.

        Nothing is committed until every array of the block exists, so a
        failed growth leaves the pool exactly as it was.
        """

        if self.max_blocks is not None and len(self._blocks) >= self.max_blocks:
            logger.warning(
                "MemoryPool: block limit reached (%d blocks of %d slots)",
                len(self._blocks), self.block_count
            )
            raise ResourceExhaustedError(
                f"MemoryPool: failed to allocate memory block (limit of {self.max_blocks} blocks reached)"
            )

        try:
            block  = np.zeros(self.block_count, dtype=self.dtype)
            links  = np.empty(self.block_count, dtype=np.int64)
            in_use = np.zeros(self.block_count, dtype=np.bool_)
        except MemoryError as exc:
            logger.warning("MemoryPool: out of memory while growing by %d slots", self.block_count)
            raise ResourceExhaustedError("MemoryPool: failed to allocate memory block.") from exc

        base = self.capacity + 1
        head = _thread_block(links, np.int64(base), np.int64(self._free))

        self._blocks.append(block)
        self._links.append(links)
        self._in_use.append(in_use)
        self._free = int(head)

        logger.debug(
            "MemoryPool: grew to %d blocks (%d slots of %d bytes)",
            len(self._blocks), self.capacity, self.block_size
        )

    def allocate(self) -> int:

        """
        Hand out one slot, growing the pool when the free list is empty.

        :return: Handle of a slot ready to be constructed into
        :rtype: int
        :raises ResourceExhaustedError: When a new block cannot be obtained
        """

        if self._free == NIL:
            self._allocate_block()

        handle        = self._free
        block, offset = self._locate(handle)

        self._free = int(self._links[block][offset])
        self._in_use[block][offset] = True
        self._used += 1

        return handle

    def deallocate(
        self,
        handle: int

    ) -> None:

        """
        Push a slot back on the head of the free list.

        :param handle: A handle previously returned by ``allocate``
        :type handle: int
        :raises InvalidArgumentError: On NIL, foreign or already freed handles
        """

        if handle is None or (not isinstance(handle, bool) and handle == NIL):
            raise InvalidArgumentError("Cannot deallocate a null handle.")

        if not self.owns(handle):
            raise InvalidArgumentError(
                f"Handle {handle!r} is not an allocated slot of this pool"
            )

        block, offset = self._locate(handle)
        self._links[block][offset]  = self._free
        self._in_use[block][offset] = False
        self._free = int(handle)
        self._used -= 1

    def record(
        self,
        handle: int

    ):

        """
        Mutable view on the record stored in an allocated slot.
        """

        if not self.owns(handle):
            raise InvalidArgumentError(
                f"Handle {handle!r} is not an allocated slot of this pool"
            )

        block, offset = self._locate(handle)
        return self._blocks[block][offset]

    def __len__(self) -> int:
        return self._used

    def __repr__(self) -> str:
        return (
            f"MemoryPool(dtype_size={self.block_size}, block_count={self.block_count}, "
            f"blocks={self.blocks_allocated}, in_use={self._used}, free={self.free_slots})"
        )
