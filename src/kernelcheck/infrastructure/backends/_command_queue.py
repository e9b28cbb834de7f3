"""
Deferred command queue shared by the host backends.

A backend composes one `CommandQueue`. `dispatch` only enqueues a closure;
nothing runs until `drain()` is called from the backend's `synchronize()`.
Two marks bracket the measured window: the first command enqueued after
`mark_first()` starts the clock and the last command enqueued before
`mark_last()` stops it.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional


_CLOCK_RESOLUTION = time.get_clock_info("perf_counter").resolution


class CommandQueue:
    """
    FIFO of pending commands with an optional timing bracket.

    Parameters
    ----------
    label : str
        Name used in error messages (usually the owning backend's tag).
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self._commands: List[Callable[[], None]] = []
        self._first: Optional[int] = None
        self._last: Optional[int] = None

    def __len__(self) -> int:
        return len(self._commands)

    def enqueue(self, command: Callable[[], None]) -> None:
        self._commands.append(command)

    def mark_first(self) -> None:
        """Start the bracket at the next enqueued command."""
        self._first = len(self._commands)
        self._last = None

    def mark_last(self) -> None:
        """
        End the bracket at the most recently enqueued command.

        Raises
        ------
        RuntimeError
            If `mark_first` was not called or no command was enqueued since.
        """
        if self._first is None:
            raise RuntimeError(f"[{self.label}] mark_last called before mark_first")
        if len(self._commands) <= self._first:
            raise RuntimeError(f"[{self.label}] empty timing bracket")
        self._last = len(self._commands) - 1

    def drain(self) -> float:
        """
        Run every pending command in order and clear the queue.

        Returns
        -------
        float
            Seconds spent in the bracketed window, never less than the clock
            resolution. Without a complete bracket, the time of the whole
            drain is returned.
        """
        commands, self._commands = self._commands, []
        first, last = self._first, self._last
        self._first = self._last = None
        if first is None or last is None:
            first, last = 0, len(commands) - 1

        start = end = None
        for i, command in enumerate(commands):
            if i == first:
                start = time.perf_counter()
            command()
            if i == last:
                end = time.perf_counter()

        if start is None or end is None:
            return _CLOCK_RESOLUTION
        return max(end - start, _CLOCK_RESOLUTION)

    def discard(self) -> int:
        """
        Drop the commands of an abandoned bracket without running them.

        Commands enqueued before `mark_first()` stay queued. Without an open
        bracket the whole queue is dropped. Both marks are cleared.

        Returns
        -------
        int
            Number of commands dropped.
        """
        start = 0 if self._first is None else self._first
        dropped = len(self._commands) - start
        del self._commands[start:]
        self._first = self._last = None
        return dropped
