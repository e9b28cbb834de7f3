"""
Explicit execution context.

`ExecutionContext` replaces process-wide "current backend" state. It owns one
backend instance per `BackendKind` (created lazily through the factory), the
random stream used for tensor initialization and mask synthesis, and the
notion of which backend new tensors are allocated on.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Mapping, Optional

import numpy as np

from ...domain.backend._backend_tag import BackendKind
from ..config._settings import HarnessSettings
from ._factory import create_backend


class ExecutionContext:
    """
    Scoped backend selection plus shared random state.

    Parameters
    ----------
    default_backend : BackendKind, optional
        Backend selected when the context is created. Defaults to NATIVE.
    seed : Optional[int], optional
        Seed for `rng`. None draws fresh entropy.
    backends : Optional[Mapping[BackendKind, object]], optional
        Pre-built backends to use instead of factory defaults (for example a
        backend created with a `capacity_bytes` limit).
    """

    def __init__(
        self,
        default_backend: BackendKind = BackendKind.NATIVE,
        *,
        seed: Optional[int] = 0,
        backends: Optional[Mapping[BackendKind, object]] = None,
    ) -> None:
        self._backends: Dict[BackendKind, object] = dict(backends or {})
        self._current = BackendKind(default_backend)
        self.rng = np.random.default_rng(seed)

    def __repr__(self) -> str:
        return f"ExecutionContext(current={self._current.value})"

    @property
    def current_kind(self) -> BackendKind:
        return self._current

    @property
    def backend(self):
        """The currently selected backend instance."""
        return self.backend_for(self._current)

    def backend_for(self, kind: BackendKind):
        """Return (creating on first use) the backend instance for `kind`."""
        kind = BackendKind(kind)
        backend = self._backends.get(kind)
        if backend is None:
            backend = create_backend(kind)
            self._backends[kind] = backend
        return backend

    @contextmanager
    def using_backend(self, kind: BackendKind) -> Iterator[object]:
        """
        Select `kind` for the duration of the block.

        The previous selection is restored on every exit path, including
        exceptions.
        """
        previous = self._current
        self._current = BackendKind(kind)
        try:
            yield self.backend
        finally:
            self._current = previous

    def profile_commands(self, body: Callable[[], None]) -> float:
        """
        Time the commands `body` enqueues on the current backend.

        `body` must dispatch at least one command. The queue is drained
        before returning. If `body` raises, or dispatches nothing, the
        commands it enqueued are discarded unrun and the exception propagates.

        Returns
        -------
        float
            Wall time in seconds of the bracketed commands.
        """
        backend = self.backend
        backend.mark_first_command()
        try:
            body()
            backend.mark_last_command()
        except BaseException:
            backend.discard_commands()
            raise
        return backend.synchronize()

    @classmethod
    def from_settings(
        cls,
        settings: HarnessSettings,
        default_backend: BackendKind = BackendKind.NATIVE,
        *,
        backends: Optional[Mapping[BackendKind, object]] = None,
    ) -> ExecutionContext:
        """Build a context whose random stream is seeded by `settings.seed`."""
        return cls(default_backend, seed=settings.seed, backends=backends)
