"""Persistence sinks."""

from .sink import InMemoryPersistenceSink, NullPersistenceSink, PersistenceSink, TaskRecord

__all__ = ["InMemoryPersistenceSink", "NullPersistenceSink", "PersistenceSink", "TaskRecord"]
