from __future__ import annotations

from enum import IntEnum
from typing import List, Optional

from pydantic import BaseModel, Field

from ..reader import RandomAccessReader
from .base import optional_count, optional_value


class VertexFormat(IntEnum):
    Float = 0
    Float16 = 1
    UNorm8 = 2
    SNorm8 = 3
    UNorm16 = 4
    SNorm16 = 5
    UInt8 = 6
    SInt8 = 7
    UInt16 = 8
    SInt16 = 9
    UInt32 = 10
    SInt32 = 11


class ChannelUsage(IntEnum):
    Vertex = 0
    Normal = 1
    Tangent = 2
    Color = 3
    TexCoord0 = 4
    TexCoord1 = 5
    TexCoord2 = 6
    TexCoord3 = 7
    TexCoord4 = 8
    TexCoord5 = 9
    TexCoord6 = 10
    TexCoord7 = 11
    BlendWeights = 12
    BlendIndices = 13


class Channel(BaseModel):
    dimension: int
    type: int = Field(..., description="Raw vertex format value")
    usage: int = Field(..., description="Channel slot in m_VertexData.m_Channels")

    @property
    def vertex_format(self) -> Optional[VertexFormat]:
        try:
            return VertexFormat(self.type)
        except ValueError:
            return None

    @property
    def channel_usage(self) -> Optional[ChannelUsage]:
        try:
            return ChannelUsage(self.usage)
        except ValueError:
            return None


class Mesh(BaseModel):
    name: str
    vertices: int
    indices: int
    channels: List[Channel] = Field(default_factory=list)
    blend_shapes: int = 0
    bones: int = 0
    compression: int = 0
    rw_enabled: bool
    stream_data_size: int = 0

    @classmethod
    def read(cls, reader: RandomAccessReader) -> "Mesh":
        """
        Uncompressed meshes count vertices from m_VertexData.m_VertexCount and
        indices from the m_IndexBuffer byte size (16-bit unless m_IndexFormat
        says 32-bit; meshes older than m_IndexFormat are 16-bit). Compressed
        meshes use m_CompressedMesh item counts.

        Defaults when the schema lacks the field: compression 0, blend shapes 0,
        bones 0 (m_BoneNameHashes, then m_BindPose), stream data size 0.
        """
        compression = optional_value(reader, "m_MeshCompression", 0)

        if compression == 0:
            vertices = reader["m_VertexData"]["m_VertexCount"].value()
            index_format = optional_value(reader, "m_IndexFormat", 0)
            indices = reader["m_IndexBuffer"].count() // (2 if index_format == 0 else 4)
        else:
            compressed = reader["m_CompressedMesh"]
            vertices = compressed["m_Vertices"]["m_NumItems"].value() // 3
            indices = compressed["m_Triangles"]["m_NumItems"].value()

        channels: List[Channel] = []
        if reader.has_field("m_VertexData") and reader["m_VertexData"].has_field("m_Channels"):
            for usage, channel in enumerate(reader["m_VertexData"]["m_Channels"]):
                dimension = channel["dimension"].value() & 0xF
                if dimension == 0:
                    continue
                channels.append(
                    Channel(dimension=dimension, type=channel["format"].value(), usage=usage)
                )

        if reader.has_field("m_BoneNameHashes"):
            bones = reader["m_BoneNameHashes"].count()
        else:
            bones = optional_count(reader, "m_BindPose")

        stream_data_size = 0
        if reader.has_field("m_StreamData"):
            stream_data_size = reader["m_StreamData"]["size"].value()

        return cls(
            name=reader["m_Name"].value(),
            vertices=vertices,
            indices=indices,
            channels=channels,
            blend_shapes=optional_count(reader, "m_Shapes", "shapes"),
            bones=bones,
            compression=compression,
            rw_enabled=bool(reader["m_IsReadable"].value()),
            stream_data_size=stream_data_size,
        )
