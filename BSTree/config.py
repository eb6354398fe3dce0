"""Construction-time configuration for trees and their node allocators."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .errors import InvalidArgumentError


DEFAULT_BLOCK_COUNT = 64
DEFAULT_MAX_DEPTH   = 1000


class AllocatorKind(Enum):
    """Where node records come from."""
    POOL = "pool"   # fixed-size blocks recycled through a free list
    HEAP = "heap"   # one record per node, no pooling


@dataclass(frozen=True)
class TreeConfig:
    """Options fixed when a tree is built; not switchable afterwards.

    Attributes:
        allocator: Allocation strategy for node records.
        block_count: Slots per pool block (pool allocator only).
        max_blocks: Optional cap on pool growth, None for unbounded.
        max_nodes: Optional cap on live heap records, None for unbounded.
        max_depth: Deepest level an insertion may reach.
        value_type: Element type; its default value is the rejected sentinel.
    """

    allocator:   AllocatorKind = AllocatorKind.POOL
    block_count: int           = DEFAULT_BLOCK_COUNT
    max_blocks:  Optional[int] = None
    max_nodes:   Optional[int] = None
    max_depth:   int           = DEFAULT_MAX_DEPTH
    value_type:  type          = int

    def __post_init__(self):
        if not isinstance(self.allocator, AllocatorKind):
            # accept the plain string form as well ("pool" / "heap")
            try:
                object.__setattr__(self, "allocator", AllocatorKind(self.allocator))
            except ValueError as exc:
                raise InvalidArgumentError(
                    f"Unknown allocator kind: {self.allocator!r}"
                ) from exc

        if self.block_count <= 0:
            raise InvalidArgumentError(
                f"Block count must be greater than 0, not {self.block_count}"
            )
        if self.max_blocks is not None and self.max_blocks < 0:
            raise InvalidArgumentError(f"max_blocks must be >= 0, not {self.max_blocks}")
        if self.max_nodes is not None and self.max_nodes < 0:
            raise InvalidArgumentError(f"max_nodes must be >= 0, not {self.max_nodes}")
        if self.max_depth < 0:
            raise InvalidArgumentError(f"max_depth must be >= 0, not {self.max_depth}")

    @property
    def sentinel(self) -> Any:
        """The default value of ``value_type``, refused by ``insert``."""
        return self.value_type()
