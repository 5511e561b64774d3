"""Collaborator interfaces and store backends."""

from duecycle.store.base import Clock, FixedClock, ObligationStore, SystemClock, TagCatalog
from duecycle.store.memory import InMemoryObligationStore, InMemoryTagCatalog
from duecycle.store.registry import create_store

__all__ = [
    "Clock",
    "FixedClock",
    "InMemoryObligationStore",
    "InMemoryTagCatalog",
    "ObligationStore",
    "SystemClock",
    "TagCatalog",
    "create_store",
]
