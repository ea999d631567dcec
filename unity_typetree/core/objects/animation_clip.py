from __future__ import annotations

from pydantic import BaseModel

from ..errors import FieldNotFound
from ..reader import RandomAccessReader

LEGACY_ANIMATION_TYPE = 1


class AnimationClip(BaseModel):
    name: str
    events: int
    legacy: bool

    @classmethod
    def read(cls, reader: RandomAccessReader) -> "AnimationClip":
        if reader.has_field("m_Legacy"):
            legacy = bool(reader["m_Legacy"].value())
        elif reader.has_field("m_AnimationType"):
            legacy = reader["m_AnimationType"].value() == LEGACY_ANIMATION_TYPE
        else:
            raise FieldNotFound("m_Legacy", reader.name)

        return cls(
            name=reader["m_Name"].value(),
            events=reader["m_Events"].count(),
            legacy=legacy,
        )
