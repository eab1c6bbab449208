"""Runtime assembly and task execution."""

from .context import EngineContext
from .events import EventEmitter, ProgressEvent
from .engine import TaskEngine, TaskResult
from .app import build_engine

__all__ = ["EngineContext", "EventEmitter", "ProgressEvent", "TaskEngine", "TaskResult", "build_engine"]
