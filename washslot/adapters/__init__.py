"""
Adapters layer - Concrete store implementations.
"""

from .json_store import JsonFileStore
from .memory_store import InMemoryStore

__all__ = ["InMemoryStore", "JsonFileStore"]
