from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from ..reader import RandomAccessReader
from .pptr import PPtr


class BundleAsset(BaseModel):
    name: str = Field(..., description="Container path, e.g. 'assets/textures/foo.png'")
    pptr: PPtr


class AssetBundle(BaseModel):
    name: str
    assets: List[BundleAsset] = Field(default_factory=list)

    @classmethod
    def read(cls, reader: RandomAccessReader) -> "AssetBundle":
        """Assets come from m_Container, a map of container path -> AssetInfo."""
        assets = [
            BundleAsset(
                name=pair["first"].value(),
                pptr=PPtr.read(pair["second"]["asset"]),
            )
            for pair in reader["m_Container"]
        ]
        return cls(name=reader["m_Name"].value(), assets=assets)
