from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .logger import get_logger, set_level

log = get_logger(__name__)

DEFAULT_BUFFER_SIZE = 1024 * 1024


class ReaderConfig(BaseModel):
    """Tunables for byte sources and logging."""

    buffer_size: int = Field(
        DEFAULT_BUFFER_SIZE,
        ge=0,
        description="Read-ahead buffer for FileByteSource in bytes (0 disables buffering)",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


def load_config(path: Optional[Path] = None) -> ReaderConfig:
    """
    Load reader configuration.

    Values come from the optional JSON file first, then environment overrides
    (UNITY_TYPETREE_BUFFER_SIZE, UNITY_TYPETREE_LOG_LEVEL) win.
    """
    data: dict = {}
    if path is not None:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        log.debug(f"Loaded reader config from {path}")

    env_buffer = os.environ.get("UNITY_TYPETREE_BUFFER_SIZE")
    if env_buffer:
        data["buffer_size"] = env_buffer
    env_level = os.environ.get("UNITY_TYPETREE_LOG_LEVEL")
    if env_level:
        data["log_level"] = env_level.upper()

    config = ReaderConfig.model_validate(data)
    set_level(config.log_level)
    return config
