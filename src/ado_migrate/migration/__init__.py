"""Migration planning, script generation and runtime primitives."""

from .emitter import ScriptEmitter
from .engine import ScriptGenerationEngine, ScriptGenerationResult
from .logs import HttpDownloader, MigrationLogDownloader
from .planner import MigrationPlanner
from .waiter import MigrationWaiter

__all__ = [
    'ScriptEmitter',
    'ScriptGenerationEngine',
    'ScriptGenerationResult',
    'HttpDownloader',
    'MigrationLogDownloader',
    'MigrationPlanner',
    'MigrationWaiter',
]
