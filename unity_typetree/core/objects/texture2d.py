from __future__ import annotations

from pydantic import BaseModel, Field

from ..errors import FieldNotFound
from ..reader import RandomAccessReader


def full_mip_chain(width: int, height: int) -> int:
    size = max(width, height, 1)
    return size.bit_length()


class Texture2D(BaseModel):
    name: str
    width: int
    height: int
    format: int = Field(..., description="Unity TextureFormat value")
    mip_count: int
    stream_data_size: int = Field(
        0, description="Bytes stored in the streamed resource file, 0 when inline"
    )
    rw_enabled: bool

    @classmethod
    def read(cls, reader: RandomAccessReader) -> "Texture2D":
        """
        Fields: m_Name, m_Width, m_Height, m_TextureFormat, m_IsReadable,
        m_MipCount (or legacy m_MipMap, expanded to a full chain when set),
        m_StreamData.size (absent before streaming support: 0).
        """
        width = reader["m_Width"].value()
        height = reader["m_Height"].value()

        if reader.has_field("m_MipCount"):
            mip_count = reader["m_MipCount"].value()
        elif reader.has_field("m_MipMap"):
            mip_count = full_mip_chain(width, height) if reader["m_MipMap"].value() else 1
        else:
            raise FieldNotFound("m_MipCount", reader.name)

        stream_data_size = 0
        if reader.has_field("m_StreamData"):
            stream_data_size = reader["m_StreamData"]["size"].value()

        return cls(
            name=reader["m_Name"].value(),
            width=width,
            height=height,
            format=reader["m_TextureFormat"].value(),
            mip_count=mip_count,
            stream_data_size=stream_data_size,
            rw_enabled=bool(reader["m_IsReadable"].value()),
        )
