from __future__ import annotations

from pydantic import BaseModel, Field

from ..reader import RandomAccessReader


class PPtr(BaseModel):
    """Cross-object pointer: external file index plus object id."""

    file_id: int = Field(..., description="0 = same file, N = external reference N-1")
    path_id: int

    @property
    def is_null(self) -> bool:
        return self.file_id == 0 and self.path_id == 0

    @classmethod
    def read(cls, reader: RandomAccessReader) -> "PPtr":
        return cls(
            file_id=reader["m_FileID"].value(),
            path_id=reader["m_PathID"].value(),
        )
