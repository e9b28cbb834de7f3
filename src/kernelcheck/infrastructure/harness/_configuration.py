"""
Benchmark configurations.

A configuration names one way of running an operation: which backend runs it
and, for the native backend, which tile constants its kernels use. Applying
a configuration is scoped: `applied` selects the backend and installs the
tile constants, and restores both on exit.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional

from ...domain._element_kind import ElementKind
from ...domain.backend._backend_tag import BackendKind
from ..backends._tiled_backend import DEFAULT_TILE_CONSTANTS

TileConstantsFn = Callable[[ElementKind], Dict[str, int]]


@dataclass(frozen=True)
class BenchmarkConfiguration:
    """
    One benchmarked variant.

    Attributes
    ----------
    name : str
        Label used in progress lines and report titles.
    backend_kind : BackendKind
        Backend selected while the configuration is applied.
    style : str
        Plot style hint carried into `Extraction.style`.
    tile_constants_fn : Optional[Callable[[ElementKind], dict[str, int]]]
        Tile constants to install for an element kind; None leaves the
        backend untouched.
    """

    name: str
    backend_kind: BackendKind
    style: str
    tile_constants_fn: Optional[TileConstantsFn] = None

    @property
    def is_reference(self) -> bool:
        return self.backend_kind is BackendKind.REFERENCE

    def tile_constants(self, element_kind: ElementKind) -> Optional[Dict[str, int]]:
        if self.tile_constants_fn is None:
            return None
        return dict(self.tile_constants_fn(element_kind))

    @contextmanager
    def applied(self, context, element_kind: ElementKind) -> Iterator[object]:
        """
        Select this configuration's backend and tile constants.

        Yields the selected backend. On exit (normal or exceptional) the
        previously selected backend and the previous tile constants are
        restored.
        """
        with context.using_backend(self.backend_kind) as backend:
            constants = self.tile_constants(element_kind)
            previous = None
            if constants is not None:
                previous = dict(backend.function_constants)
                backend.set_function_constants(constants)
            try:
                yield backend
            finally:
                if previous is not None:
                    backend.set_function_constants(previous)


def _tiles_48x48(element_kind: ElementKind) -> Dict[str, int]:
    k_simd = 24 if element_kind is ElementKind.F32 else 32
    return {"M_simd": 24, "N_simd": 24, "K_simd": k_simd}


def _tiles_32x32(element_kind: ElementKind) -> Dict[str, int]:
    return dict(DEFAULT_TILE_CONSTANTS)


NATIVE_48X48 = BenchmarkConfiguration(
    "Native 48x48", BackendKind.NATIVE, "-g", _tiles_48x48
)
NATIVE_32X32 = BenchmarkConfiguration(
    "Native 32x32", BackendKind.NATIVE, "-b", _tiles_32x32
)
REFERENCE = BenchmarkConfiguration("Reference", BackendKind.REFERENCE, "-r")

# ordered from fastest to slowest at large sizes
FAST_CONFIGS = (NATIVE_48X48, NATIVE_32X32, REFERENCE)
