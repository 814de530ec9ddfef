"""Single-use compile session owning one embedded surface and one listener."""

from __future__ import annotations

import logging
import time
from typing import Callable

from mindbridge.config import CompilerSettings
from mindbridge.deadline import Deadline
from mindbridge.errors import CompileTimeout, LoadFailure
from mindbridge.surface import CompilerSurface, MessageHandler

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Compilation timeout - process took too long"


class CompilationSession:
    def __init__(
        self,
        *,
        settings: CompilerSettings,
        surface_factory: Callable[[CompilerSettings], CompilerSurface],
        on_progress: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.clock = clock
        self._surface_factory = surface_factory
        self._on_progress = on_progress
        self._surface: CompilerSurface | None = None
        self._listener: MessageHandler | None = None
        self._deadline: Deadline | None = None
        self._closed = False

    @property
    def active(self) -> bool:
        return not self._closed

    @property
    def surface(self) -> CompilerSurface:
        if self._surface is None or self._closed:
            raise LoadFailure("Compiler surface is not available")
        return self._surface

    @property
    def deadline(self) -> Deadline | None:
        return self._deadline

    def acquire(self, url: str) -> CompilerSurface:
        if self._closed:
            raise LoadFailure("Compile session already closed")
        if self._surface is not None:
            raise LoadFailure("Compile session already owns a surface")
        self._surface = self._surface_factory(self.settings)
        self._surface.open(url)
        return self._surface

    def listen(self, handler: MessageHandler) -> None:
        if self._listener is not None:
            raise LoadFailure("Compile session already has a message listener")
        surface = self.surface

        def guarded(origin: str, data: object) -> None:
            if self._closed or self._listener is not guarded:
                return
            handler(origin, data)

        self._listener = guarded
        surface.add_message_listener(guarded)

    def start_deadline(self, seconds: float) -> Deadline:
        self._deadline = Deadline(seconds, clock=self.clock)
        return self._deadline

    def stage_deadline(self, seconds: float) -> Deadline:
        if self._deadline is None:
            return Deadline(seconds, clock=self.clock)
        return self._deadline.narrowed(seconds)

    def wait(self, ms: int) -> None:
        surface = self.surface
        if self._deadline is None:
            surface.wait(ms)
            return
        remaining = self._deadline.remaining_ms()
        if remaining <= 0:
            raise CompileTimeout(TIMEOUT_MESSAGE)
        surface.wait(min(max(0, int(ms)), remaining))
        self._deadline.check(TIMEOUT_MESSAGE)

    def emit(self, text: str) -> None:
        if self._closed:
            return
        logger.info("progress: %s", text)
        if self._on_progress is not None:
            self._on_progress(text)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        surface, self._surface = self._surface, None
        listener, self._listener = self._listener, None
        if surface is None:
            return
        try:
            if listener is not None:
                surface.remove_message_listener()
        finally:
            surface.remove()
        logger.info("compile session torn down")
