"""
Shader projection.

Only the parsed form (m_ParsedForm, Unity 5.5+) is supported; older shaders
that store source text fail with FieldNotFound.

Each pass holds up to six program stages (progVertex, progFragment, ...), each
with a flat list of sub-programs compiled for different graphics APIs. The
projection groups those sub-programs by API, keeping the order in which APIs
first appear and the serialized order of programs within each API.

Keyword names come from the shader-wide m_KeywordNames table (2021.2+) or,
for older data, from the pass m_NameIndices map (name -> index).
"""

from __future__ import annotations

from enum import IntEnum
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..errors import FieldNotFound, IndexOutOfRange
from ..reader import RandomAccessReader

PROGRAM_STAGES = (
    ("vertex", "progVertex"),
    ("fragment", "progFragment"),
    ("geometry", "progGeometry"),
    ("hull", "progHull"),
    ("domain", "progDomain"),
    ("raytracing", "progRayTracing"),
)

KeywordLookup = Callable[[int], str]


class GpuProgramType(IntEnum):
    Unknown = 0
    GLLegacy = 1
    GLES31AEP = 2
    GLES31 = 3
    GLES3 = 4
    GLES = 5
    GLCore32 = 6
    GLCore41 = 7
    GLCore43 = 8
    DX9VertexSM20 = 9
    DX9VertexSM30 = 10
    DX9PixelSM20 = 11
    DX9PixelSM30 = 12
    DX10Level9Vertex = 13
    DX10Level9Pixel = 14
    DX11VertexSM40 = 15
    DX11VertexSM50 = 16
    DX11PixelSM40 = 17
    DX11PixelSM50 = 18
    DX11GeometrySM40 = 19
    DX11GeometrySM50 = 20
    DX11HullSM50 = 21
    DX11DomainSM50 = 22
    MetalVS = 23
    MetalFS = 24
    SPIRV = 25
    ConsoleVS = 26
    ConsoleFS = 27
    ConsoleHS = 28
    ConsoleDS = 29
    ConsoleGS = 30
    RayTracing = 31
    PS5NGGC = 32


class Program(BaseModel):
    api: int = Field(..., description="m_GpuProgramType")
    blob_index: int
    hw_tier: Optional[int] = Field(
        None, description="m_ShaderHardwareTier; None for player sub-programs, which have no tier"
    )
    keywords: List[str] = Field(default_factory=list)
    program_type: str = Field(..., description="Stage: vertex, fragment, geometry, ...")

    @property
    def api_name(self) -> str:
        try:
            return GpuProgramType(self.api).name
        except ValueError:
            return f"Unknown({self.api})"


class Pass(BaseModel):
    name: str
    programs: Dict[int, List[Program]] = Field(default_factory=dict)


class SubShader(BaseModel):
    passes: List[Pass] = Field(default_factory=list)


class Shader(BaseModel):
    name: str
    decompressed_size: int
    keywords: List[str] = Field(default_factory=list)
    sub_shaders: List[SubShader] = Field(default_factory=list)

    @classmethod
    def read(cls, reader: RandomAccessReader) -> "Shader":
        parsed = reader["m_ParsedForm"]
        table: Optional[List[str]] = None
        if parsed.has_field("m_KeywordNames"):
            table = [k.value() for k in parsed["m_KeywordNames"]]

        used: Dict[str, None] = {}
        sub_shaders = []
        for sub_shader in parsed["m_SubShaders"]:
            passes = [_read_pass(p, table, used) for p in sub_shader["m_Passes"]]
            sub_shaders.append(SubShader(passes=passes))

        return cls(
            name=parsed["m_Name"].value(),
            decompressed_size=_decompressed_size(reader),
            keywords=list(table) if table is not None else list(used),
            sub_shaders=sub_shaders,
        )


def group_by_api(programs: Sequence[Program]) -> Dict[int, List[Program]]:
    grouped: Dict[int, List[Program]] = {}
    for program in programs:
        grouped.setdefault(program.api, []).append(program)
    return grouped


def _decompressed_size(reader: RandomAccessReader) -> int:
    if reader.has_field("decompressedLengths"):
        return _sum_lengths(reader["decompressedLengths"])
    if reader.has_field("decompressedSize"):
        return reader["decompressedSize"].value()
    raise FieldNotFound("decompressedLengths", reader.name)


def _sum_lengths(lengths: RandomAccessReader) -> int:
    # Flat per-platform list in older versions, per-platform list of per-tier lists later.
    template = lengths.node.array_node.children[1]
    if template.is_leaf:
        return sum(lengths.values())
    return sum(_sum_lengths(inner) for inner in lengths)


def _keyword_lookup(pass_reader: RandomAccessReader, table: Optional[List[str]]) -> KeywordLookup:
    if table is not None:

        def from_table(index: int) -> str:
            if not 0 <= index < len(table):
                raise IndexOutOfRange(index, len(table), "m_KeywordNames")
            return table[index]

        return from_table

    names: Dict[int, str] = {}
    for pair in pass_reader["m_NameIndices"]:
        names.setdefault(pair["second"].value(), pair["first"].value())

    def from_name_indices(index: int) -> str:
        try:
            return names[index]
        except KeyError:
            raise IndexOutOfRange(index, len(names), "m_NameIndices") from None

    return from_name_indices


def _read_pass(
    pass_reader: RandomAccessReader, table: Optional[List[str]], used: Dict[str, None]
) -> Pass:
    lookup = _keyword_lookup(pass_reader, table)
    programs: List[Program] = []
    for stage, field_name in PROGRAM_STAGES:
        if not pass_reader.has_field(field_name):
            continue
        stage_reader = pass_reader[field_name]
        for sub_program in stage_reader["m_SubPrograms"]:
            programs.append(_read_program(sub_program, stage, lookup, tiered=True))
        if stage_reader.has_field("m_PlayerSubPrograms"):
            for per_platform in stage_reader["m_PlayerSubPrograms"]:
                for sub_program in per_platform:
                    programs.append(_read_program(sub_program, stage, lookup, tiered=False))

    for program in programs:
        for keyword in program.keywords:
            used.setdefault(keyword, None)

    return Pass(name=pass_reader["m_State"]["m_Name"].value(), programs=group_by_api(programs))


def _read_program(
    reader: RandomAccessReader, stage: str, lookup: KeywordLookup, *, tiered: bool
) -> Program:
    indices: List[int] = []
    if reader.has_field("m_KeywordIndices"):
        indices.extend(reader["m_KeywordIndices"].values())
    else:
        indices.extend(reader["m_GlobalKeywordIndices"].values())
        if reader.has_field("m_LocalKeywordIndices"):
            indices.extend(reader["m_LocalKeywordIndices"].values())

    return Program(
        api=reader["m_GpuProgramType"].value(),
        blob_index=reader["m_BlobIndex"].value(),
        hw_tier=reader["m_ShaderHardwareTier"].value() if tiered else None,
        keywords=[lookup(i) for i in indices],
        program_type=stage,
    )
