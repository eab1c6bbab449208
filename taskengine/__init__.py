"""Top-level package exports for taskengine."""

from .runtime import EngineContext, ProgressEvent, TaskEngine, TaskResult, build_engine

__all__ = ["EngineContext", "ProgressEvent", "TaskEngine", "TaskResult", "build_engine"]
