"""MindAR compile controller: load the tool, drive it, capture the .mind file."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from mindbridge.config import CompilerSettings
from mindbridge.constants import DEFAULT_FILENAME
from mindbridge.detector import CompletionDetector, build_detector
from mindbridge.models import (
    CompilationRequest,
    CompiledArtifact,
    DownloadLink,
    create_download_link,
    validate_request,
)
from mindbridge.session import CompilationSession
from mindbridge.surface import CompilerSurface, PlaywrightSurface

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
CompleteCallback = Callable[[CompiledArtifact], None]
ErrorCallback = Callable[[str], None]


class MindARCompiler:
    """Compiles an image into a MindAR `.mind` target through the hosted compiler.

    One `compile` call runs at a time per instance. Every call creates a fresh
    `CompilationSession` and tears it down before returning or raising.
    """

    def __init__(
        self,
        settings: CompilerSettings | None = None,
        *,
        detector: CompletionDetector | None = None,
        surface_factory: Callable[[CompilerSettings], CompilerSurface] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or CompilerSettings.from_env()
        self.detector = detector or build_detector(self.settings.strategy, self.settings)
        self._surface_factory = surface_factory or PlaywrightSurface
        self._clock = clock
        self.on_progress: ProgressCallback | None = None
        self.on_complete: CompleteCallback | None = None
        self.on_error: ErrorCallback | None = None
        self.last_artifact: CompiledArtifact | None = None

    def set_callbacks(
        self,
        on_progress: ProgressCallback | None = None,
        on_complete: CompleteCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.on_progress = on_progress
        self.on_complete = on_complete
        self.on_error = on_error

    def compile(self, request: Any) -> CompiledArtifact:
        session = CompilationSession(
            settings=self.settings,
            surface_factory=self._surface_factory,
            on_progress=self.on_progress,
            clock=self._clock,
        )
        try:
            try:
                artifact = self._run(session, request)
            finally:
                # Also runs on KeyboardInterrupt so the browser never outlives the call.
                session.close()
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("compile failed (%s): %s", getattr(exc, "reason", "unexpected"), message)
            if self.on_error is not None:
                self.on_error(message)
            raise
        self.last_artifact = artifact
        logger.info("compiled %s (%d bytes)", artifact.filename, artifact.size)
        if self.on_complete is not None:
            self.on_complete(artifact)
        return artifact

    def get_compiled_file(self) -> CompiledArtifact | None:
        return self.last_artifact

    def create_download_link(self, filename: str = DEFAULT_FILENAME) -> DownloadLink:
        return create_download_link(self.last_artifact, filename)

    def _run(self, session: CompilationSession, request: Any) -> CompiledArtifact:
        checked: CompilationRequest = validate_request(request)
        logger.info(
            "compiling %s (%s, %d bytes) via %s",
            checked.name,
            checked.mime_type,
            checked.size,
            self.detector.name,
        )

        session.emit("Loading MindAR compiler...")
        session.acquire(self.settings.compiler_url)
        session.emit("Compiler loaded successfully")
        # The compiler initialises asynchronously after its load event.
        session.wait(self.settings.ready_settle_ms)

        session.start_deadline(self.settings.global_timeout_seconds)
        self.detector.submit(session, checked)
        self.detector.await_completion(session)
        return self.detector.retrieve(session)


def compile_mindar_image(
    source: Any,
    *,
    on_progress: ProgressCallback | None = None,
    on_complete: CompleteCallback | None = None,
    on_error: ErrorCallback | None = None,
    settings: CompilerSettings | None = None,
) -> CompiledArtifact:
    compiler = MindARCompiler(settings)
    compiler.set_callbacks(
        on_progress or (lambda text: logger.info("Progress: %s", text)),
        on_complete or (lambda artifact: logger.info("Complete: %s", artifact.filename)),
        on_error or (lambda message: logger.error("Error: %s", message)),
    )
    return compiler.compile(source)
