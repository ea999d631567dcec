"""
Helpers shared by the typed projections.

Unity renames and adds fields between versions, so projections check for the
field names they know about and fail with FieldNotFound only once every known
variant is missing.
"""

from __future__ import annotations

from typing import Any

from ..errors import FieldNotFound
from ..reader import RandomAccessReader


def first_field(reader: RandomAccessReader, *names: str) -> RandomAccessReader:
    """Reader on the first of ``names`` present in ``reader``."""
    for name in names:
        if reader.has_field(name):
            return reader.field(name)
    raise FieldNotFound(" | ".join(names), reader.name)


def optional_value(reader: RandomAccessReader, name: str, default: Any) -> Any:
    """Value of ``name`` or ``default`` when the field does not exist in this schema."""
    if reader.has_field(name):
        return reader.field(name).value()
    return default


def optional_count(reader: RandomAccessReader, *path: str) -> int:
    """Element count of the array at ``path``; 0 when any step is absent from the schema."""
    current = reader
    for name in path:
        if not current.has_field(name):
            return 0
        current = current.field(name)
    return current.count()
