"""
Section stores for arrvault.

Stores are the collaborators that hold application state. The backup
subsystem only ever reads snapshots from them and applies snapshots to them.
"""

from arrvault.stores.base import MemoryStore, SectionStore, StoreError
from arrvault.stores.json_store import JsonFileStore, build_file_stores

__all__ = [
    "SectionStore",
    "MemoryStore",
    "JsonFileStore",
    "StoreError",
    "build_file_stores",
]
