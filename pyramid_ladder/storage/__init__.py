"""
Storage implementations.

Provides implementations of the Storage interface for persisting pairs,
settings and movement history.

Available implementations:
- MemoryStorage: Keeps everything in process memory
- JSONLStorage: Persists pairs and settings to JSON and movements to JSONL
"""

from .jsonl_storage import JSONLStorage
from .memory_storage import MemoryStorage

__all__ = ["JSONLStorage", "MemoryStorage"]
