from __future__ import annotations

import logging
import os

_ROOT = "unity_typetree"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    root = logging.getLogger(_ROOT)
    level = os.environ.get("UNITY_TYPETREE_LOG_LEVEL", "WARNING").upper()
    root.setLevel(getattr(logging, level, logging.WARNING))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
    _configured = True


def set_level(level: str) -> None:
    """Override the package log level (e.g. from a loaded ReaderConfig)."""
    _configure_root()
    logging.getLogger(_ROOT).setLevel(getattr(logging, level.upper(), logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package root, configuring the root on first use."""
    _configure_root()
    if not name.startswith(_ROOT):
        name = f"{_ROOT}.{name}"
    return logging.getLogger(name)
