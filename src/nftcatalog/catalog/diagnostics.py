"""Last-error diagnostic surface shared by the sync pipelines."""

from __future__ import annotations

from threading import Lock
from typing import Protocol


class DiagnosticSink(Protocol):
    """Anything the pipelines can report a failure message to."""

    def record(self, message: str) -> None: ...


class Diagnostics:
    """Last-write-wins error message. Each record() replaces the previous message.

    Writes tagged with a generation older than the last clear() are ignored, so a
    superseded sync pass cannot overwrite the diagnostics of the pass that replaced it.
    """

    def __init__(self) -> None:
        self._last_error: str | None = None
        self._generation = 0
        self._lock = Lock()

    def record(self, message: str, generation: int | None = None) -> None:
        with self._lock:
            if generation is not None and generation < self._generation:
                return
            self._last_error = message

    def clear(self, generation: int | None = None) -> None:
        with self._lock:
            if generation is not None:
                self._generation = max(self._generation, generation)
            self._last_error = None

    def for_generation(self, generation: int) -> PassDiagnostics:
        return PassDiagnostics(self, generation)

    @property
    def last_error(self) -> str | None:
        with self._lock:
            return self._last_error


class PassDiagnostics:
    """Diagnostics view bound to one sync pass generation."""

    def __init__(self, parent: Diagnostics, generation: int) -> None:
        self.parent = parent
        self.generation = generation

    def record(self, message: str) -> None:
        self.parent.record(message, self.generation)
