"""
Immutable in-memory type tree model.

A TypeTreeNode describes the binary layout of one field of a serialized Unity
object. The tree is built once from collaborator data and shared read-only by
every reader created over it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntFlag
from functools import cached_property
from typing import Any, Dict, Iterator, Optional, Tuple

from .errors import FieldNotFound
from .primitives import PRIMITIVE_TYPES, align4

ROOT_NAME = "Base"
UNKNOWN_SIZE = -1
REGISTRY_TYPE = "ManagedReferencesRegistry"


class TypeTreeFlags(IntFlag):
    NONE = 0
    IS_ARRAY = 0x1
    IS_MANAGED_REFERENCE = 0x2
    IS_MANAGED_REFERENCE_REGISTRY = 0x4
    IS_ARRAY_OF_REFS = 0x8


class MetaFlags(IntFlag):
    NONE = 0
    ALIGN_BYTES = 0x4000
    ANY_CHILD_USES_ALIGN_BYTES = 0x8000


@dataclass(frozen=True, eq=False)
class TypeTreeNode:
    type: str
    name: str
    byte_size: int = UNKNOWN_SIZE
    index: int = 0
    type_flags: int = 0
    meta_flags: int = 0
    children: Tuple["TypeTreeNode", ...] = field(default_factory=tuple)
    offset: int = -1
    version: int = 1
    level: int = 0

    def __repr__(self) -> str:
        return (
            f"TypeTreeNode(type={self.type!r}, name={self.name!r}, "
            f"byte_size={self.byte_size}, children={len(self.children)})"
        )

    # Structure

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def __len__(self) -> int:
        return len(self.children)

    def __getitem__(self, index: int) -> "TypeTreeNode":
        return self.children[index]

    def __iter__(self) -> Iterator["TypeTreeNode"]:
        return iter(self.children)

    @cached_property
    def _child_indices(self) -> Dict[str, int]:
        indices: Dict[str, int] = {}
        for i, child in enumerate(self.children):
            indices.setdefault(child.name, i)
        return indices

    def has_child(self, name: str) -> bool:
        return name in self._child_indices

    def child_index(self, name: str) -> int:
        try:
            return self._child_indices[name]
        except KeyError:
            raise FieldNotFound(name, self.name) from None

    def child_named(self, name: str) -> "TypeTreeNode":
        return self.children[self.child_index(name)]

    def walk(self) -> Iterator["TypeTreeNode"]:
        """Depth-first, pre-order iteration over this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()

    def renamed(self, name: str) -> "TypeTreeNode":
        return replace(self, name=name)

    # Layout predicates

    @property
    def align_bytes(self) -> bool:
        return bool(self.meta_flags & MetaFlags.ALIGN_BYTES)

    @property
    def any_child_uses_align_bytes(self) -> bool:
        return bool(self.meta_flags & MetaFlags.ANY_CHILD_USES_ALIGN_BYTES)

    def next_offset(self, end: int) -> int:
        """Where the following sibling starts once this field ends at ``end``."""
        if self.align_bytes or self.is_string:
            return align4(end)
        return end

    @property
    def is_string(self) -> bool:
        return self.type == "string"

    @property
    def is_array(self) -> bool:
        return (
            self.type in ("Array", "TypelessData")
            or bool(self.type_flags & TypeTreeFlags.IS_ARRAY)
        ) and len(self.children) == 2

    @property
    def is_managed_reference_registry(self) -> bool:
        return self.type == REGISTRY_TYPE or bool(
            self.type_flags & TypeTreeFlags.IS_MANAGED_REFERENCE_REGISTRY
        )

    @property
    def is_basic_type(self) -> bool:
        return self.is_string or (self.is_leaf and self.type in PRIMITIVE_TYPES)

    @cached_property
    def array_node(self) -> Optional["TypeTreeNode"]:
        """The node holding size/data: self for arrays, the child of a vector-like wrapper."""
        if self.is_array:
            return self
        if len(self.children) == 1 and self.children[0].is_array:
            return self.children[0]
        return None

    @cached_property
    def fixed_layout(self) -> bool:
        """True when no array, string or registry occurs at or below this node."""
        if self.is_string or self.is_array or self.is_managed_reference_registry:
            return False
        if self.is_leaf:
            return self.byte_size >= 0
        return all(child.fixed_layout for child in self.children)

    @cached_property
    def constant_size(self) -> Optional[int]:
        """
        Encoded size that does not depend on where the node starts, or None.

        Alignment inside a struct makes its size depend on the start offset, so
        any aligned descendant disqualifies the node; the node's own trailing
        alignment is applied by its parent and does not count here.
        """
        if not self.fixed_layout:
            return None
        if self.is_leaf:
            return self.byte_size
        total = 0
        for child in self.children:
            if child.align_bytes or child.constant_size is None:
                return None
            total += child.constant_size
        return total

    # Conversion

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "byte_size": self.byte_size,
            "index": self.index,
            "type_flags": self.type_flags,
            "meta_flags": self.meta_flags,
            "offset": self.offset,
            "version": self.version,
            "level": self.level,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], level: int = 0) -> "TypeTreeNode":
        children = tuple(
            cls.from_dict(child, level + 1) for child in data.get("children", ())
        )
        return cls(
            type=data["type"],
            name=data["name"],
            byte_size=data.get("byte_size", UNKNOWN_SIZE),
            index=data.get("index", 0),
            type_flags=data.get("type_flags", 0),
            meta_flags=data.get("meta_flags", 0),
            children=children,
            offset=data.get("offset", -1),
            version=data.get("version", 1),
            level=data.get("level", level),
        )
