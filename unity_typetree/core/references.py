"""
Managed reference (SerializeReference) registry support.

Polymorphic fields do not store their payload inline. The owning field holds
an id (``id`` in registry version 1, ``rid`` in version 2) and the payload
lives in the object's ``references`` registry, whose entries are written in
append order, each tagged with the concrete managed type. The payload schema
is resolved per entry from that type through the schema provider.

Entries are exposed under the synthetic key ``rid(<N>)``. Lookups are a
linear scan over entries parsed on demand; parsed entries are cached on the
registry view so repeated lookups do not re-read the data.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Protocol

from .errors import FieldNotFound, ReferenceNotFound, TypeMismatch, TypeNotFound
from .logger import get_logger
from .typetree import TypeTreeNode

if TYPE_CHECKING:
    from .reader import RandomAccessReader

log = get_logger(__name__)

REF_ID_UNKNOWN = -1
REF_ID_NULL = -2

_KEY_RE = re.compile(r"^rid\((-?\d+)\)$")


class SchemaProvider(Protocol):
    def get_ref_type_typetree_root(
        self, class_name: str, namespace: str, assembly: str
    ) -> TypeTreeNode: ...


def reference_key(rid: int) -> str:
    return f"rid({rid})"


def parse_reference_key(key: str) -> Optional[int]:
    match = _KEY_RE.match(key)
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class ManagedReferenceType:
    class_name: str
    namespace: str
    assembly: str

    @property
    def is_terminus(self) -> bool:
        return (self.class_name, self.namespace, self.assembly) == (
            "Terminus",
            "UnityEngine.DMAT",
            "FAKE_ASM",
        )

    @property
    def is_null(self) -> bool:
        return self.class_name == ""

    @property
    def full_name(self) -> str:
        name = f"{self.namespace}.{self.class_name}" if self.namespace else self.class_name
        return f"{name}, {self.assembly}"


@dataclass
class RegistryEntry:
    rid: int
    type: ManagedReferenceType
    reader: "RandomAccessReader"
    end: int

    @property
    def key(self) -> str:
        return reference_key(self.rid)

    @property
    def data(self) -> "RandomAccessReader":
        return self.reader.field("data")


class ManagedReferenceRegistry:
    """Lazy view over a ManagedReferencesRegistry node."""

    def __init__(self, reader: "RandomAccessReader") -> None:
        self._reader = reader
        node = reader.node
        self.version: int = reader.field("version").value("int32")
        self._entries: List[RegistryEntry] = []
        self._payloads: Dict[ManagedReferenceType, TypeTreeNode] = {}
        self._done = False
        self._end: Optional[int] = None

        if self.version == 1:
            holder = next(
                (c for c in node.children if c.type == "ReferencedObject"), None
            )
            if holder is None:
                raise FieldNotFound("ReferencedObject", node.name)
            self._holder = holder
            self._template = holder
            self._limit: Optional[int] = None
            self._cursor = reader.field(holder.name).offset
        elif self.version >= 2:
            ref_ids = reader.field("RefIds")
            array = ref_ids.node.array_node
            if array is None:
                raise TypeMismatch(f"RefIds in '{node.name}' is not an array")
            self._holder = ref_ids.node
            self._template = array.children[1]
            self._limit = ref_ids.count()
            self._cursor = ref_ids.offset + 4
        else:
            raise TypeMismatch(f"Unsupported managed reference registry version {self.version}")

    def __len__(self) -> int:
        self._parse_all()
        return len(self._entries)

    def entries(self) -> Iterator[RegistryEntry]:
        i = 0
        while True:
            if i < len(self._entries):
                yield self._entries[i]
                i += 1
            elif not self._parse_next():
                return

    def ids(self) -> List[int]:
        return [entry.rid for entry in self.entries()]

    def contains(self, rid: int) -> bool:
        try:
            self.find(rid)
        except ReferenceNotFound:
            return False
        return True

    def find(self, rid: int) -> "RandomAccessReader":
        """Reader on the entry whose own id equals ``rid``; scans in append order."""
        if rid in (REF_ID_NULL, REF_ID_UNKNOWN):
            raise ReferenceNotFound(rid)
        for entry in self.entries():
            if entry.rid == rid:
                return entry.reader
        raise ReferenceNotFound(rid)

    @property
    def end(self) -> int:
        """Offset just past the registry, used for sibling offsets."""
        self._parse_all()
        return self._end  # type: ignore[return-value]

    def _parse_all(self) -> None:
        while self._parse_next():
            pass

    def _parse_next(self) -> bool:
        if self._done:
            return False
        if self._limit is not None and len(self._entries) >= self._limit:
            self._finish(self._cursor)
            return False

        reader = self._reader
        start = self._cursor
        pos = start
        rid = len(self._entries)
        ref_type: Optional[ManagedReferenceType] = None
        children: List[TypeTreeNode] = []

        for child in self._template.children:
            if child.name == "data":
                if ref_type is None:
                    raise FieldNotFound("type", self._template.name)
                child = self._payload_schema(ref_type)
            sub = reader.bind(child, pos)
            if child.name == "rid":
                rid = sub.value()
            elif child.name == "type":
                ref_type = ManagedReferenceType(
                    sub.field("class").value(),
                    sub.field("ns").value(),
                    sub.field("asm").value(),
                )
                if self.version == 1 and ref_type.is_terminus:
                    self._finish(self._template.next_offset(child.next_offset(sub.end)))
                    return False
            children.append(child)
            pos = child.next_offset(sub.end)

        if ref_type is None:
            raise FieldNotFound("type", self._template.name)
        entry_node = replace(
            self._template, name=reference_key(rid), children=tuple(children)
        )
        end = self._template.next_offset(pos)
        self._entries.append(
            RegistryEntry(rid=rid, type=ref_type, reader=reader.bind(entry_node, start), end=end)
        )
        self._cursor = end
        return True

    def _finish(self, pos: int) -> None:
        reader = self._reader
        node = reader.node
        if self.version >= 2:
            array = self._holder.array_node
            pos = array.next_offset(pos)
            if array is not self._holder:
                pos = self._holder.next_offset(pos)
        index = node.child_index(self._holder.name)
        for child in node.children[index + 1 :]:
            pos = child.next_offset(reader.bind(child, pos).end)
        self._end = pos
        self._done = True
        log.debug(
            f"Registry '{node.name}' v{self.version}: {len(self._entries)} entries, ends at {pos}"
        )

    def _payload_schema(self, ref_type: ManagedReferenceType) -> TypeTreeNode:
        cached = self._payloads.get(ref_type)
        if cached is not None:
            return cached
        if ref_type.is_null:
            schema = TypeTreeNode(type="ReferencedObjectData", name="data", byte_size=0)
        else:
            provider = self._reader.schemas
            if provider is None:
                raise TypeNotFound(
                    f"No schema provider to resolve managed type {ref_type.full_name}"
                )
            schema = provider.get_ref_type_typetree_root(
                ref_type.class_name, ref_type.namespace, ref_type.assembly
            ).renamed("data")
        self._payloads[ref_type] = schema
        return schema


def reference_id(owner: "RandomAccessReader") -> int:
    """Id stored in an owning field: ``rid`` (registry v2) or ``id`` (v1)."""
    if owner.has_field("rid"):
        return owner.field("rid").value()
    if owner.has_field("id"):
        return owner.field("id").value()
    raise FieldNotFound("rid", owner.name)


def resolve_reference(
    owner: "RandomAccessReader", registry: "RandomAccessReader"
) -> "RandomAccessReader":
    """Registry entry referenced by ``owner``; raises ReferenceNotFound when absent."""
    return registry.field(reference_key(reference_id(owner)))
