from ._command_queue import CommandQueue
from ._execution_context import ExecutionContext
from ._factory import create_backend
from ._reference_backend import ReferenceBackend
from ._tiled_backend import DEFAULT_TILE_CONSTANTS, TiledBackend

__all__ = [
    CommandQueue.__name__,
    ExecutionContext.__name__,
    create_backend.__name__,
    ReferenceBackend.__name__,
    TiledBackend.__name__,
    "DEFAULT_TILE_CONSTANTS",
]
