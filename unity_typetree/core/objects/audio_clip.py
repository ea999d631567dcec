from __future__ import annotations

from pydantic import BaseModel

from ..reader import RandomAccessReader
from .base import first_field


class AudioClip(BaseModel):
    name: str
    channels: int
    format: int
    frequency: int
    load_type: int
    bits_per_sample: int
    stream_data_size: int

    @classmethod
    def read(cls, reader: RandomAccessReader) -> "AudioClip":
        # Unity 5+ stores samples in m_Resource; older clips keep them inline in m_AudioData.
        if reader.has_field("m_Resource"):
            stream_data_size = reader["m_Resource"]["m_Size"].value()
        else:
            stream_data_size = reader["m_AudioData"].count()

        return cls(
            name=reader["m_Name"].value(),
            channels=reader["m_Channels"].value(),
            format=first_field(reader, "m_CompressionFormat", "m_Format").value(),
            frequency=reader["m_Frequency"].value(),
            load_type=reader["m_LoadType"].value(),
            bits_per_sample=reader["m_BitsPerSample"].value(),
            stream_data_size=stream_data_size,
        )
