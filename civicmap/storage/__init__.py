"""Document store backends."""

from .base import DocumentStore, WritableDocumentStore
from .memory import MemoryDocumentStore
from .sqlite import SQLiteDocumentStore

__all__ = ["DocumentStore", "WritableDocumentStore", "MemoryDocumentStore", "SQLiteDocumentStore"]
