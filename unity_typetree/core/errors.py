"""
Failure kinds raised by the type tree reader.

Each error also derives from the closest builtin so callers can catch either
the specific kind or the generic Python category (KeyError, IndexError, ...).
"""

from __future__ import annotations


class TypeTreeError(Exception):
    """Base class for every reader failure."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable for all kinds.
        return str(self.args[0]) if self.args else self.__class__.__name__


class FieldNotFound(TypeTreeError, KeyError):
    """A named field does not exist in the node's schema."""

    def __init__(self, name: str, owner: str = "") -> None:
        self.name = name
        self.owner = owner
        where = f" in '{owner}'" if owner else ""
        super().__init__(f"Field '{name}' not found{where}")


class IndexOutOfRange(TypeTreeError, IndexError):
    """An array index is outside [0, count)."""

    def __init__(self, index: int, count: int, owner: str = "") -> None:
        self.index = index
        self.count = count
        where = f" of '{owner}'" if owner else ""
        super().__init__(f"Index {index} out of range for array{where} with {count} elements")


class TypeMismatch(TypeTreeError, TypeError):
    """The requested primitive kind does not match the declared leaf type."""


class NotALeaf(TypeTreeError, TypeError):
    """A typed value was requested from a node that is not a primitive or string."""


class TruncatedData(TypeTreeError, EOFError):
    """A read or computed extent goes past the end of the byte source."""


class ReferenceNotFound(TypeTreeError, KeyError):
    """A managed reference id has no entry in the registry."""

    def __init__(self, rid: int) -> None:
        self.rid = rid
        super().__init__(f"Managed reference rid({rid}) not found in registry")


class TypeNotFound(TypeTreeError, LookupError):
    """A polymorphic payload type could not be resolved to a schema."""


class ObjectNotFound(TypeTreeError, KeyError):
    """An object id is not present in the serialized file's object table."""

    def __init__(self, object_id: int) -> None:
        self.object_id = object_id
        super().__init__(f"Object {object_id} not found in serialized file")


class ByteSourceIOError(TypeTreeError, OSError):
    """The underlying file or stream failed while reading."""
