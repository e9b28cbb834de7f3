"""
Backend factory: the single place where `BackendKind` maps to a class.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Type, Union

from ...domain.backend._backend_tag import BackendKind, BackendTag
from ._reference_backend import ReferenceBackend
from ._tiled_backend import TiledBackend

_BACKEND_TYPES: Dict[BackendKind, Type[Any]] = {
    BackendKind.NATIVE: TiledBackend,
    BackendKind.REFERENCE: ReferenceBackend,
}


def create_backend(
    kind: Union[BackendKind, BackendTag, str],
    index: Optional[int] = None,
    **kwargs: Any,
):
    """
    Instantiate the backend for `kind`.

    Parameters
    ----------
    kind : BackendKind | BackendTag | str
        Backend to create. Strings are parsed as backend tags ("native",
        "reference:1"); a tag's index is used unless `index` is given.
    index : Optional[int]
        Instance index recorded in the backend's tag.
    **kwargs
        Forwarded to the backend constructor (e.g., `capacity_bytes`).

    Raises
    ------
    ValueError
        If `kind` does not name a known backend.
    """
    if isinstance(kind, str):
        kind = BackendTag(kind)
    if isinstance(kind, BackendTag):
        index = kind.index if index is None else index
        kind = kind.kind
    try:
        cls = _BACKEND_TYPES[kind]
    except KeyError:
        raise ValueError(f"Unsupported backend kind: {kind!r}") from None
    return cls(index, **kwargs)
