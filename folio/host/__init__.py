"""Host storage adapters.

A capability adapter wraps a host handle API (local disk, in-memory tree) behind
a small async operation set. Handles are caches; paths are the durable identity.
"""

from .base import CapabilityAdapter, DirectoryHandle, DirEntry, EntryKind, FileHandle, Handle
from .capability import CapabilityStore, LocalCapabilityStore, PermissionState
from .local import LocalAdapter, LocalDirectoryHandle, LocalFileHandle
from .memory import MemoryAdapter, MemoryCapabilityStore

__all__ = [
    "CapabilityAdapter",
    "CapabilityStore",
    "DirEntry",
    "DirectoryHandle",
    "EntryKind",
    "FileHandle",
    "Handle",
    "LocalAdapter",
    "LocalCapabilityStore",
    "LocalDirectoryHandle",
    "LocalFileHandle",
    "MemoryAdapter",
    "MemoryCapabilityStore",
    "PermissionState",
]
