"""
Typed Projections

Pydantic records built from a RandomAccessReader positioned on an object root.
"""

from typing import Callable, Dict

from pydantic import BaseModel

from ..errors import TypeNotFound
from ..reader import RandomAccessReader
from .animation_clip import AnimationClip
from .asset_bundle import AssetBundle, BundleAsset
from .audio_clip import AudioClip
from .mesh import Channel, ChannelUsage, Mesh, VertexFormat
from .pptr import PPtr
from .shader import GpuProgramType, Pass, Program, Shader, SubShader
from .texture2d import Texture2D

PROJECTIONS: Dict[str, Callable[[RandomAccessReader], BaseModel]] = {
    "Texture2D": Texture2D.read,
    "Mesh": Mesh.read,
    "Shader": Shader.read,
    "AudioClip": AudioClip.read,
    "AnimationClip": AnimationClip.read,
    "AssetBundle": AssetBundle.read,
}


def read_object(reader: RandomAccessReader, class_name: str) -> BaseModel:
    """Project ``reader`` with the record registered for ``class_name``."""
    try:
        projection = PROJECTIONS[class_name]
    except KeyError:
        raise TypeNotFound(f"No projection for Unity class '{class_name}'") from None
    return projection(reader)


__all__ = [
    "AnimationClip",
    "AssetBundle",
    "AudioClip",
    "BundleAsset",
    "Channel",
    "ChannelUsage",
    "GpuProgramType",
    "Mesh",
    "Pass",
    "PPtr",
    "PROJECTIONS",
    "Program",
    "Shader",
    "SubShader",
    "Texture2D",
    "VertexFormat",
    "read_object",
]
