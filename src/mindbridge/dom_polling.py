"""Completion detection by scraping the compiler page's rendered DOM."""

from __future__ import annotations

import logging
import re
from typing import Any

from mindbridge.constants import (
    ACCENT_CLASSES,
    ACCENT_COLORS,
    BUTTON_SELECTOR,
    DEFAULT_FILENAME,
    DOWNLOAD_CLASS_SELECTOR,
    ERROR_SELECTOR,
    FILE_INPUT_SELECTOR,
    PROGRESS_PATTERN,
    START_LABELS,
    START_SELECTOR,
    STRATEGY_DOM,
    UPLOAD_ZONE_SELECTOR,
)
from mindbridge.detector import CompletionDetector
from mindbridge.errors import (
    CompileTimeout,
    CompilerError,
    DownloadFailure,
    ExternalError,
    InteractionFailure,
)
from mindbridge.models import CompilationRequest, CompiledArtifact
from mindbridge.session import TIMEOUT_MESSAGE, CompilationSession
from mindbridge.web_scripts import (
    CLICK_DOWNLOAD_JS,
    CLICK_START_JS,
    DROP_FILE_JS,
    LOCATE_DOWNLOAD_JS,
    LOCATE_UPLOAD_JS,
    SNAPSHOT_JS,
)

logger = logging.getLogger(__name__)

_PROGRESS_RE = re.compile(PROGRESS_PATTERN, flags=re.IGNORECASE)


def parse_progress(text: str) -> float | None:
    match = _PROGRESS_RE.search(str(text or ""))
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


class DomPollingDetector(CompletionDetector):
    name = STRATEGY_DOM

    def submit(self, session: CompilationSession, request: CompilationRequest) -> None:
        session.wait(self.settings.pre_upload_delay_ms)
        self._upload(session, request)
        session.wait(self.settings.upload_settle_ms)
        self._trigger_start(session)

    def await_completion(self, session: CompilationSession) -> None:
        last_progress = 0.0
        max_checks = self.settings.max_polls
        last_error = ""
        for _check in range(max_checks):
            session.wait(self.settings.poll_interval_ms)
            surface = session.surface
            try:
                snapshot = surface.evaluate(
                    SNAPSHOT_JS,
                    {
                        "buttonSelector": BUTTON_SELECTOR,
                        "downloadSelector": DOWNLOAD_CLASS_SELECTOR,
                        "errorSelector": ERROR_SELECTOR,
                    },
                )
            except CompilerError:
                raise
            except Exception as exc:
                # Frame may be mid-navigation or refuse access; retry next tick.
                last_error = str(exc) or exc.__class__.__name__
                logger.debug("compiler snapshot failed: %s", last_error)
                continue
            if not isinstance(snapshot, dict):
                continue

            progress = parse_progress(str(snapshot.get("text") or ""))
            if progress is not None and progress != last_progress:
                last_progress = progress
                session.emit(f"Compiling... {progress:.1f}%")

            if snapshot.get("download"):
                session.emit("Compilation complete! Ready to download.")
                return

            error_text = str(snapshot.get("error") or "").strip()
            if error_text:
                raise ExternalError(f"Compilation failed: {error_text}")

        if last_error:
            raise CompileTimeout(f"{TIMEOUT_MESSAGE} (last error: {last_error})")
        raise CompileTimeout(TIMEOUT_MESSAGE)

    def retrieve(self, session: CompilationSession) -> CompiledArtifact:
        surface = session.surface
        args = {"buttonSelector": BUTTON_SELECTOR}
        try:
            found = bool(surface.evaluate(LOCATE_DOWNLOAD_JS, args))
        except CompilerError:
            raise
        except Exception as exc:
            raise DownloadFailure(f"Download button not found: {exc}") from exc
        if not found:
            raise DownloadFailure("Download button not found")

        stage = session.stage_deadline(self.settings.retrieval_timeout_seconds)
        stage.check("Download timeout")
        session.emit("Initiating download...")
        with surface.watch_download(stage.remaining_ms()) as watch:
            try:
                clicked = bool(surface.evaluate(CLICK_DOWNLOAD_JS, args))
            except Exception as exc:
                raise DownloadFailure(f"Download button click failed: {exc}") from exc
            if not clicked:
                raise DownloadFailure("Download button not found")
        captured = watch.captured
        if captured is None:
            raise DownloadFailure("Download was not captured")
        # Reading the file blocks until the browser finishes writing it.
        stage.check("Download timeout")
        return CompiledArtifact(data=captured.data, filename=captured.filename or DEFAULT_FILENAME)

    def _upload(self, session: CompilationSession, request: CompilationRequest) -> None:
        surface = session.surface
        try:
            method = surface.evaluate(
                LOCATE_UPLOAD_JS,
                {"zoneSelector": UPLOAD_ZONE_SELECTOR, "inputSelector": FILE_INPUT_SELECTOR},
            )
        except CompilerError:
            raise
        except Exception as exc:
            raise InteractionFailure(f"Could not inspect compiler page: {exc}") from exc

        if method == "drop":
            session.emit("Uploading image to drop zone...")
            dropped = self._evaluate_interaction(
                session,
                DROP_FILE_JS,
                {"zoneSelector": UPLOAD_ZONE_SELECTOR, "file": request.to_payload()},
            )
            if not dropped:
                raise InteractionFailure("Drop zone disappeared before upload")
            return
        if method == "input":
            session.emit("Uploading via file input...")
            try:
                surface.set_input_files(FILE_INPUT_SELECTOR, request)
            except CompilerError:
                raise
            except Exception as exc:
                raise InteractionFailure(f"File input upload failed: {exc}") from exc
            return
        raise InteractionFailure("Could not find upload interface in compiler")

    def _trigger_start(self, session: CompilationSession) -> None:
        # Best-effort: the compiler may start on its own after upload.
        try:
            clicked = session.surface.evaluate(
                CLICK_START_JS,
                {
                    "startSelector": START_SELECTOR,
                    "buttonSelector": BUTTON_SELECTOR,
                    "labels": list(START_LABELS),
                    "accentColors": list(ACCENT_COLORS),
                    "accentClasses": list(ACCENT_CLASSES),
                },
            )
        except CompilerError:
            raise
        except Exception as exc:
            logger.debug("start control lookup failed: %s", exc)
            clicked = ""
        if clicked:
            session.emit("Starting compilation...")
            return
        logger.info("no start control matched; relying on compiler auto-start")

    def _evaluate_interaction(self, session: CompilationSession, script: str, arg: Any) -> Any:
        try:
            return session.surface.evaluate(script, arg)
        except CompilerError:
            raise
        except Exception as exc:
            raise InteractionFailure(f"Upload interaction failed: {exc}") from exc
