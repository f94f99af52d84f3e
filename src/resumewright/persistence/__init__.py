"""Persistence module for ResumeWright.

Provides key-value blob backends, the progress map codec and the
background writer used by the store.
"""

from .backends import (
    KeyValueBackend,
    MemoryBackend,
    FileBackend,
    SQLiteBackend,
    create_backend,
)
from .codec import (
    encode_progress,
    decode_progress,
    decode_legacy_progress,
)
from .writer import BackgroundWriter

__all__ = [
    "KeyValueBackend",
    "MemoryBackend",
    "FileBackend",
    "SQLiteBackend",
    "create_backend",
    "encode_progress",
    "decode_progress",
    "decode_legacy_progress",
    "BackgroundWriter",
]
