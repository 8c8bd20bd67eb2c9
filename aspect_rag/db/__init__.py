"""Aspect stores: Milvus and in-memory."""

from .aspect_store import AspectStore, InMemoryAspectStore
from .filters import SearchFilter

__all__ = [
    "AspectStore",
    "InMemoryAspectStore",
    "SearchFilter",
]
