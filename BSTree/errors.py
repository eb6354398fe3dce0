"""
Exception hierarchy of the BSTree package.

Two families are kept apart so that callers can branch on them:

- ``PreconditionError``: the caller passed something the tree cannot accept
  (a sentinel value, a missing key, a bad handle). Fix the input and go on.
- ``ResourceError`` / ``UsageError``: storage could not be obtained, or the
  structure was driven outside of its contract (depth guard, exhausted or
  stale iterator). These are hard stops.

Each class also derives from the closest builtin so plain ``except ValueError``
or ``except KeyError`` code keeps working.
"""



class BSTreeError(Exception):
    """Base class for every error raised by the package."""



# ---------- Recoverable precondition failures ----------
class PreconditionError(BSTreeError):
    """The operation was refused before any state was touched."""


class InvalidArgumentError(PreconditionError, ValueError):
    """Sentinel value inserted, NIL handle released, zero block count..."""


class InvalidAllocationSizeError(InvalidArgumentError):
    """Node allocators only serve single-node requests."""


class NotFoundError(PreconditionError, KeyError):
    """The value is not present in the tree."""

    def __str__(self) -> str:
        # KeyError quotes its argument, keep the message readable
        return str(self.args[0]) if self.args else ""



# ---------- Faults ----------
class ResourceError(BSTreeError):
    """Storage could not be provided or initialised."""


class ResourceExhaustedError(ResourceError, MemoryError):
    """A pool block or a heap record could not be allocated."""


class ConstructionError(ResourceError):
    """In-place construction of a record failed; the slot is still allocated."""



# ---------- Structural / usage violations ----------
class UsageError(BSTreeError):
    """The structure was used outside of its contract."""


class RecursionDepthError(UsageError, RecursionError):
    """Insertion descended deeper than the configured maximum depth."""


class IteratorOutOfRangeError(UsageError, IndexError):
    """Dereference or move past either end of the traversal."""


class IteratorInvalidatedError(UsageError, RuntimeError):
    """The tree changed after the iterator was created."""
