"""Sessions - Document database access for DMStore.

- **DocumentSession**: Protocol every backend adapter implements.
- **DocumentFactory**: Optional capability to create store documents.
- **opened**: Context manager guaranteeing a handle is closed.
- **MemoryDocumentSession**: lxml-backed in-process documents.
- **ExistRestSession**: eXist-db over its REST API (httpx).
"""

from dmstore.core.sessions.exist_rest import ExistHandle, ExistRestSession
from dmstore.core.sessions.memory import MemoryDocumentSession, MemoryHandle
from dmstore.core.sessions.session import DocumentFactory, DocumentSession, opened

__all__ = [
    "DocumentSession",
    "DocumentFactory",
    "opened",
    "MemoryDocumentSession",
    "MemoryHandle",
    "ExistRestSession",
    "ExistHandle",
]
