from ._backend_tag import BackendKind, BackendTag
from ._compute_backend import ComputeBackend

__all__ = [
    BackendKind.__name__,
    BackendTag.__name__,
    ComputeBackend.__name__,
]
