"""
Duplicate-counting binary search tree over pooled node records.

Nodes live in numpy record slots served by a node allocator: a growable
fixed-block ``MemoryPool`` with a free list (default) or plain per-node
allocation. Traversal goes through a stack-driven, bidirectional
``InOrderIterator``.
"""

import logging

from .Allocator import HeapAllocator, PoolAllocator, make_allocator
from .BSTreeArray import BSTree, build_tree, fill_tree, remove_values
from .config import AllocatorKind, TreeConfig
from .errors import (
    BSTreeError,
    ConstructionError,
    InvalidAllocationSizeError,
    InvalidArgumentError,
    IteratorInvalidatedError,
    IteratorOutOfRangeError,
    NotFoundError,
    PreconditionError,
    RecursionDepthError,
    ResourceError,
    ResourceExhaustedError,
    UsageError,
)
from .MemoryPool import MemoryPool
from .node import NIL, NODE_DTYPE
from .TreeIterator import InOrderIterator

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "AllocatorKind",
    "BSTree",
    "BSTreeError",
    "ConstructionError",
    "HeapAllocator",
    "InOrderIterator",
    "InvalidAllocationSizeError",
    "InvalidArgumentError",
    "IteratorInvalidatedError",
    "IteratorOutOfRangeError",
    "MemoryPool",
    "NIL",
    "NODE_DTYPE",
    "NotFoundError",
    "PoolAllocator",
    "PreconditionError",
    "RecursionDepthError",
    "ResourceError",
    "ResourceExhaustedError",
    "TreeConfig",
    "UsageError",
    "build_tree",
    "fill_tree",
    "make_allocator",
    "remove_values",
]
