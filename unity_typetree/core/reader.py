"""
Random access over serialized object data driven by a type tree.

A reader is a lightweight (node, absolute offset) pair bound to a byte source.
Child readers are created on demand; nothing is decoded until a value, count
or offset is actually needed.

Offsets follow the on-disk rule: a field starts where its left sibling ended,
rounded up to a multiple of 4 when that sibling is alignment-flagged (strings
always are). Sibling offsets form a prefix-sum chain, so each reader caches
the offsets it has computed. Arrays whose element layout depends on content
(strings, nested arrays) have no constant stride: reaching element k decodes
elements 0..k-1 once, and later accesses reuse the cached element offsets, so
forward iteration is O(n) overall while isolated random access is O(k).
"""

from __future__ import annotations

import struct
from typing import Any, Dict, Iterator, List, Optional, Union

from .byte_source import ByteSource
from .errors import IndexOutOfRange, NotALeaf, TruncatedData, TypeMismatch
from .primitives import (
    PRIMITIVE_TYPES,
    UINT8,
    PrimitiveKind,
    align4,
    check_kind,
    decode_primitive,
    decode_string,
    kind_of,
    unpack_array,
)
from .references import ManagedReferenceRegistry, SchemaProvider, parse_reference_key
from .typetree import TypeTreeNode

Kind = Union[str, PrimitiveKind, None]


class RandomAccessReader:
    def __init__(
        self,
        node: TypeTreeNode,
        source: ByteSource,
        offset: int,
        *,
        schemas: Optional[SchemaProvider] = None,
    ) -> None:
        self.node = node
        self.source = source
        self.offset = offset
        self.schemas = schemas
        self._child_offsets: List[int] = [offset]
        self._children: Dict[int, "RandomAccessReader"] = {}
        self._count: Optional[int] = None
        self._stride: Optional[int] = None
        self._stride_known = False
        self._element_offsets: List[int] = []
        self._end: Optional[int] = None
        self._registry: Optional[ManagedReferenceRegistry] = None

    def __repr__(self) -> str:
        return f"<RandomAccessReader {self.node.type} {self.node.name} @ {self.offset}>"

    def bind(self, node: TypeTreeNode, offset: int) -> "RandomAccessReader":
        """New reader for ``node`` at ``offset`` sharing this reader's source and schemas."""
        return RandomAccessReader(node, self.source, offset, schemas=self.schemas)

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def type(self) -> str:
        return self.node.type

    # Fields

    def has_field(self, name: str) -> bool:
        """
        True when ``name`` is a child field, or a ``rid(N)`` key present in a
        registry. Looking up a registry key parses entries up to the match, so a
        payload that cannot be decoded still raises (TypeNotFound, TruncatedData).
        """
        if self.node.is_managed_reference_registry:
            rid = parse_reference_key(name)
            if rid is not None:
                return self.registry.contains(rid)
        return self.node.has_child(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has_field(name)

    def field(self, name: str) -> "RandomAccessReader":
        if self.node.is_managed_reference_registry:
            rid = parse_reference_key(name)
            if rid is not None:
                return self.registry.find(rid)
        return self._child(self.node.child_index(name))

    def keys(self) -> List[str]:
        return [child.name for child in self.node.children]

    def fields(self) -> Iterator["RandomAccessReader"]:
        for i in range(len(self.node.children)):
            yield self._child(i)

    def _child(self, index: int) -> "RandomAccessReader":
        reader = self._children.get(index)
        if reader is None:
            reader = self.bind(self.node.children[index], self._child_offset(index))
            self._children[index] = reader
        return reader

    def _child_offset(self, index: int) -> int:
        offsets = self._child_offsets
        children = self.node.children
        while len(offsets) <= index:
            prev = len(offsets) - 1
            child = children[prev]
            if child.is_managed_reference_registry:
                # reuse the child's registry view and its parsed entries
                end = self._child(prev).end
            else:
                end = self._measure(child, offsets[prev])
            offsets.append(child.next_offset(end))
        return offsets[index]

    # Arrays

    @property
    def is_array(self) -> bool:
        return self.node.array_node is not None and not self.node.is_string

    def _array(self) -> TypeTreeNode:
        array = self.node.array_node
        if array is None or self.node.is_string:
            raise TypeMismatch(f"'{self.node.name}' ({self.node.type}) is not an array")
        return array

    def count(self) -> int:
        if self._count is None:
            self._array()
            count = self._read_int32(self.offset)
            if count < 0:
                raise TruncatedData(
                    f"Negative element count {count} for '{self.node.name}' at {self.offset}"
                )
            self._count = count
        return self._count

    def __len__(self) -> int:
        return self.count()

    def at(self, index: int) -> "RandomAccessReader":
        template = self._array().children[1]
        count = self.count()
        if not 0 <= index < count:
            raise IndexOutOfRange(index, count, self.node.name)
        return self.bind(template, self._element_offset(template, index))

    def _element_offset(self, template: TypeTreeNode, index: int) -> int:
        start = self.offset + 4
        if not self._stride_known:
            self._stride = self._stride_for(template, start)
            self._stride_known = True
        if self._stride is not None:
            return start + index * self._stride
        offsets = self._element_offsets
        if not offsets:
            offsets.append(start)
        while len(offsets) <= index:
            offsets.append(template.next_offset(self._measure(template, offsets[-1])))
        return offsets[index]

    def _stride_for(self, template: TypeTreeNode, start: int) -> Optional[int]:
        """Constant distance between elements, or None when each must be decoded."""
        size = template.constant_size
        if size is not None:
            if not template.align_bytes:
                return size
            return align4(size) if start % 4 == 0 else None
        if template.fixed_layout and start % 4 == 0:
            first = template.next_offset(self._measure(template, start)) - start
            if first % 4 == 0:
                return first
        return None

    def __getitem__(self, key: Union[str, int]) -> "RandomAccessReader":
        if isinstance(key, str):
            return self.field(key)
        if isinstance(key, int) and not isinstance(key, bool):
            return self.at(key)
        raise TypeError(f"Reader keys must be str or int, not {type(key).__name__}")

    def __iter__(self) -> Iterator["RandomAccessReader"]:
        if self.is_array:
            for i in range(self.count()):
                yield self.at(i)
        else:
            yield from self.fields()

    # Values

    def value(self, kind: Kind = None) -> Any:
        """
        Decode this node as a primitive or string.

        ``kind`` optionally names the expected primitive ("int32", "uint8",
        "bool", "string", ...) and raises TypeMismatch when it is incompatible
        with the declared leaf type.
        """
        node = self.node
        if node.is_string:
            if kind is not None:
                check_kind("string", kind)
            length = self._read_int32(self.offset)
            if length < 0:
                raise TruncatedData(f"Negative string length {length} at {self.offset}")
            return decode_string(self.source.read(self.offset + 4, length))
        if not node.is_leaf:
            raise NotALeaf(f"'{node.name}' ({node.type}) is not a primitive field")
        resolved = check_kind(node.type, kind) if kind is not None else kind_of(node.type)
        if node.byte_size not in (-1, resolved.width):
            raise TypeMismatch(
                f"'{node.name}' declares {node.byte_size} bytes, {resolved.name} needs {resolved.width}"
            )
        return decode_primitive(resolved, self.source.read(self.offset, resolved.width))

    def values(self, kind: Kind = None) -> Union[bytes, list]:
        """
        Decode an array of primitives in one read.

        Arrays of UInt8/char come back as ``bytes``; everything else as a list.
        """
        template = self._array().children[1]
        if template.is_string or template.align_bytes:
            return [element.value(kind) for element in self]
        if not template.is_leaf:
            raise NotALeaf(f"Elements of '{self.node.name}' are {template.type}, not primitives")
        resolved = check_kind(template.type, kind) if kind is not None else kind_of(template.type)
        count = self.count()
        raw = self.source.read(self.offset + 4, count * resolved.width)
        if resolved is UINT8:
            return raw
        return unpack_array(resolved, raw, count)

    def to_python(self) -> Any:
        """Materialize the whole subtree into plain dicts, lists and scalars."""
        node = self.node
        if node.is_basic_type:
            return self.value()
        if node.is_managed_reference_registry:
            registry = self.registry
            return {
                "version": registry.version,
                "references": {
                    entry.key: entry.reader.to_python() for entry in registry.entries()
                },
            }
        if self.is_array:
            template = self._array().children[1]
            if template.is_leaf and template.type in PRIMITIVE_TYPES:
                return self.values()
            return [element.to_python() for element in self]
        if node.is_leaf:
            return self.value()
        return {child.name: child.to_python() for child in self.fields()}

    # Extent

    @property
    def end(self) -> int:
        """Offset just past this field's data, before its own trailing alignment."""
        if self._end is None:
            node = self.node
            if node.is_managed_reference_registry:
                self._end = self.registry.end
            elif node.constant_size is None and not (node.is_string or node.is_array):
                self._end = self._child_offset(len(node.children))
            else:
                self._end = self._measure(node, self.offset)
        return self._end

    @property
    def size(self) -> int:
        return self.end - self.offset

    def _measure(self, node: TypeTreeNode, offset: int) -> int:
        size = node.constant_size
        if size is not None:
            return self._checked_end(offset, size)
        if node.is_string:
            length = self._read_int32(offset)
            if length < 0:
                raise TruncatedData(f"Negative string length {length} at {offset}")
            return self._checked_end(offset, 4 + length)
        if node.is_managed_reference_registry:
            if node is self.node and offset == self.offset:
                return self.registry.end
            return self.bind(node, offset).registry.end
        if node.is_array:
            return self._skip_elements(node.children[1], offset)
        pos = offset
        for child in node.children:
            pos = child.next_offset(self._measure(child, pos))
        return pos

    def _skip_elements(self, template: TypeTreeNode, offset: int) -> int:
        count = self._read_int32(offset)
        start = offset + 4
        if count < 0:
            raise TruncatedData(f"Negative element count {count} at {offset}")
        if count == 0:
            return start
        if template.constant_size != 0 and count > self.source.size - start:
            raise TruncatedData(
                f"{count} elements at {offset} cannot fit in source of {self.source.size} bytes"
            )
        stride = self._stride_for(template, start)
        if stride is not None:
            return self._checked_end(start, stride * count)
        pos = start
        for _ in range(count):
            pos = template.next_offset(self._measure(template, pos))
        return pos

    def _checked_end(self, offset: int, length: int) -> int:
        end = offset + length
        if end > self.source.size:
            raise TruncatedData(
                f"Field at {offset} with {length} bytes exceeds source size {self.source.size}"
            )
        return end

    def _read_int32(self, offset: int) -> int:
        return struct.unpack("<i", self.source.read(offset, 4))[0]

    # Managed references

    @property
    def registry(self) -> ManagedReferenceRegistry:
        if not self.node.is_managed_reference_registry:
            raise TypeMismatch(f"'{self.node.name}' is not a managed reference registry")
        if self._registry is None:
            self._registry = ManagedReferenceRegistry(self)
        return self._registry
