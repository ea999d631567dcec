"""
Byte rules for primitive leaves.

All numbers are little-endian with a width equal to the node's byte size.
Strings are a 4-byte length prefix followed by UTF-8 bytes (no terminator),
always padded to the next 4-byte boundary.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Dict, Union

from .errors import TypeMismatch

Primitive = Union[int, float, bool, str]


@dataclass(frozen=True)
class PrimitiveKind:
    name: str
    family: str  # "int", "float" or "string"
    width: int
    fmt: str


INT8 = PrimitiveKind("int8", "int", 1, "<b")
UINT8 = PrimitiveKind("uint8", "int", 1, "<B")
INT16 = PrimitiveKind("int16", "int", 2, "<h")
UINT16 = PrimitiveKind("uint16", "int", 2, "<H")
INT32 = PrimitiveKind("int32", "int", 4, "<i")
UINT32 = PrimitiveKind("uint32", "int", 4, "<I")
INT64 = PrimitiveKind("int64", "int", 8, "<q")
UINT64 = PrimitiveKind("uint64", "int", 8, "<Q")
FLOAT = PrimitiveKind("float", "float", 4, "<f")
DOUBLE = PrimitiveKind("double", "float", 8, "<d")
BOOL = PrimitiveKind("bool", "int", 1, "<?")
STRING = PrimitiveKind("string", "string", -1, "")

KINDS: Dict[str, PrimitiveKind] = {
    k.name: k
    for k in (INT8, UINT8, INT16, UINT16, INT32, UINT32, INT64, UINT64, FLOAT, DOUBLE, BOOL, STRING)
}

# Unity type tree leaf type names.
PRIMITIVE_TYPES: Dict[str, PrimitiveKind] = {
    "SInt8": INT8,
    "UInt8": UINT8,
    "char": UINT8,
    "SInt16": INT16,
    "short": INT16,
    "UInt16": UINT16,
    "unsigned short": UINT16,
    "SInt32": INT32,
    "int": INT32,
    "UInt32": UINT32,
    "unsigned int": UINT32,
    "Type*": UINT32,
    "SInt64": INT64,
    "long long": INT64,
    "UInt64": UINT64,
    "unsigned long long": UINT64,
    "FileSize": UINT64,
    "float": FLOAT,
    "double": DOUBLE,
    "bool": BOOL,
    "string": STRING,
}

STRING_LENGTH_SIZE = 4


def align4(offset: int) -> int:
    return (offset + 3) & ~3


def kind_of(type_name: str) -> PrimitiveKind:
    try:
        return PRIMITIVE_TYPES[type_name]
    except KeyError:
        raise TypeMismatch(f"'{type_name}' is not a primitive type") from None


def resolve_kind(kind: Union[str, PrimitiveKind]) -> PrimitiveKind:
    if isinstance(kind, PrimitiveKind):
        return kind
    try:
        return KINDS[kind]
    except KeyError:
        raise TypeMismatch(f"Unknown primitive kind '{kind}'") from None


def check_kind(type_name: str, requested: Union[str, PrimitiveKind]) -> PrimitiveKind:
    """
    Validate a requested kind against a declared leaf type.

    The request is compatible when it belongs to the same family (bool counts
    as a 1-byte integer) and has the same width. Signedness may differ: the
    bytes are reinterpreted with the requested kind.
    """
    declared = kind_of(type_name)
    wanted = resolve_kind(requested)
    if declared.family != wanted.family or declared.width != wanted.width:
        raise TypeMismatch(
            f"Cannot read '{type_name}' ({declared.name}) as {wanted.name}"
        )
    return wanted


def decode_primitive(kind: PrimitiveKind, raw: bytes) -> Primitive:
    if kind.family == "string":
        return decode_string(raw)
    if len(raw) != kind.width:
        raise TypeMismatch(f"{kind.name} needs {kind.width} bytes, got {len(raw)}")
    if kind is BOOL:
        return raw != b"\x00"
    return struct.unpack(kind.fmt, raw)[0]


def encode_primitive(kind: PrimitiveKind, value: Primitive) -> bytes:
    if kind.family == "string":
        return encode_string(value)  # type: ignore[arg-type]
    if kind is BOOL:
        return b"\x01" if value else b"\x00"
    return struct.pack(kind.fmt, value)


def decode_string(raw: bytes) -> str:
    return bytes(raw).decode("utf-8", errors="replace")


def encode_string(value: str) -> bytes:
    payload = value.encode("utf-8")
    data = struct.pack("<i", len(payload)) + payload
    return data + b"\x00" * (align4(len(data)) - len(data))


def unpack_array(kind: PrimitiveKind, raw: bytes, count: int) -> list:
    if kind is BOOL:
        return [b != 0 for b in raw[:count]]
    return list(struct.unpack(f"<{count}{kind.fmt[1:]}", raw))
