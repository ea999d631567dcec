from __future__ import annotations

import gc
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

import UnityPy

from .byte_source import UnityPyByteSource
from .errors import ByteSourceIOError, ObjectNotFound, TypeNotFound
from .logger import get_logger
from .reader import RandomAccessReader
from .typetree import TypeTreeNode

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ObjectInfo:
    """One row of a serialized file's object table; offset is absolute in the file."""

    id: int
    offset: int
    size: int
    type_id: int
    type_name: str = ""


@dataclass(frozen=True)
class ExternalReference:
    path: str
    guid: str
    type: int


def convert_node(node: Any, level: int = 0) -> TypeTreeNode:
    """Convert a UnityPy TypeTreeNode (and its children) into the reader's model."""
    children = tuple(convert_node(child, level + 1) for child in (node.m_Children or ()))
    return TypeTreeNode(
        type=node.m_Type,
        name=node.m_Name,
        byte_size=node.m_ByteSize,
        index=node.m_Index or 0,
        type_flags=node.m_TypeFlags or 0,
        meta_flags=node.m_MetaFlag or 0,
        children=children,
        offset=-1,
        version=node.m_Version or 0,
        level=level,
    )


def _guid_str(guid: Any) -> str:
    if isinstance(guid, (bytes, bytearray)):
        return bytes(guid).hex()
    return str(guid)


class SerializedFileContext:
    """
    Owns the UnityPy environment for one serialized file.

    UnityPy plays the role of the native collaborator: it mounts bundles and
    parses the serialized file header, object table and type trees. This class
    converts that data into TypeTreeNode schemas and hands out readers over the
    file's bytes.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        file_name: Optional[str] = None,
        loader: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.path = Path(path)
        self.file_name = file_name
        self._loader = loader or UnityPy.load
        self._env: Optional[Any] = None
        self._file: Optional[Any] = None
        self._source: Optional[UnityPyByteSource] = None
        self._schemas: Dict[int, TypeTreeNode] = {}
        self._objects: Optional[List[ObjectInfo]] = None

    def __enter__(self) -> "SerializedFileContext":
        self.load()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def load(self) -> None:
        if self._file is not None:
            return
        log.info(f"Loading serialized file from {self.path}")
        try:
            self._env = self._loader(str(self.path))
        except OSError as exc:
            raise ByteSourceIOError(f"Cannot load {self.path}: {exc}") from exc
        self._file = self._select_file(self._env)
        self._source = UnityPyByteSource(self._file.reader)

    def _select_file(self, env: Any) -> Any:
        files: List[Any] = []
        for obj in env.objects:
            if all(f is not obj.assets_file for f in files):
                files.append(obj.assets_file)
        if self.file_name is not None:
            files = [f for f in files if getattr(f, "name", None) == self.file_name]
        if not files:
            target = self.file_name or "any serialized file"
            raise ValueError(f"Could not find {target} in {self.path}")
        if len(files) > 1:
            log.debug(f"{self.path} holds {len(files)} serialized files, using the first")
        return files[0]

    def dispose(self) -> None:
        self._file = None
        self._source = None
        self._schemas.clear()
        self._objects = None
        if self._env is not None:
            self._env = None
            gc.collect()

    @property
    def serialized_file(self) -> Any:
        if self._file is None:
            self.load()
        return self._file

    @property
    def byte_source(self) -> UnityPyByteSource:
        if self._source is None:
            self.load()
        return self._source  # type: ignore[return-value]

    # Object table

    @property
    def objects(self) -> List[ObjectInfo]:
        if self._objects is None:
            self._objects = [
                ObjectInfo(
                    id=obj.path_id,
                    offset=obj.byte_start,
                    size=obj.byte_size,
                    type_id=obj.class_id,
                    type_name=obj.type.name,
                )
                for obj in self.serialized_file.objects.values()
            ]
        return self._objects

    @property
    def external_references(self) -> List[ExternalReference]:
        return [
            ExternalReference(path=ext.path, guid=_guid_str(ext.guid), type=int(ext.type or 0))
            for ext in (self.serialized_file.externals or [])
        ]

    def get_object(self, object_id: int) -> ObjectInfo:
        for info in self.objects:
            if info.id == object_id:
                return info
        raise ObjectNotFound(object_id)

    def find_objects(self, type_name: str) -> List[ObjectInfo]:
        return [info for info in self.objects if info.type_name == type_name]

    # Schemas

    def _convert(self, node: Any) -> TypeTreeNode:
        key = id(node)
        schema = self._schemas.get(key)
        if schema is None:
            schema = convert_node(node)
            self._schemas[key] = schema
            log.debug(f"Converted type tree '{schema.type}' ({sum(1 for _ in schema.walk())} nodes)")
        return schema

    def get_typetree_root(self, object_id: int) -> TypeTreeNode:
        obj = self.serialized_file.objects.get(object_id)
        if obj is None:
            raise ObjectNotFound(object_id)
        return self._convert(obj._get_typetree_node())

    def get_ref_type_typetree_root(
        self, class_name: str, namespace: str, assembly: str
    ) -> TypeTreeNode:
        for ref_type in self.serialized_file.ref_types or []:
            if (
                ref_type.m_ClassName == class_name
                and ref_type.m_NameSpace == namespace
                and ref_type.m_AssemblyName == assembly
                and ref_type.node is not None
            ):
                return self._convert(ref_type.node)
        raise TypeNotFound(f"Managed type '{class_name}' ('{namespace}', '{assembly}') not found")

    # Readers

    def reader(self, object_id: int) -> RandomAccessReader:
        info = self.get_object(object_id)
        root = self.get_typetree_root(object_id)
        return RandomAccessReader(root, self.byte_source, info.offset, schemas=self)

    def read(self, object_id: int, projection: Callable[[RandomAccessReader], T]) -> T:
        return projection(self.reader(object_id))
