"""Completion detection through the compiler frame's postMessage protocol."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from mindbridge.config import CompilerSettings
from mindbridge.constants import (
    DEFAULT_FILENAME,
    MESSAGE_COMPILE,
    MESSAGE_COMPLETE,
    MESSAGE_ERROR,
    MESSAGE_PROGRESS,
    STRATEGY_MESSAGE,
)
from mindbridge.detector import CompletionDetector
from mindbridge.errors import DownloadFailure, ExternalError
from mindbridge.models import CompilationRequest, CompiledArtifact
from mindbridge.session import CompilationSession

logger = logging.getLogger(__name__)


@dataclass
class ChannelState:
    terminal: str = ""
    result_url: str = ""
    filename: str = ""
    error: str = ""


class MessageChannelDetector(CompletionDetector):
    """Listens for `{type, data}` messages posted by the trusted compiler origin.

    Messages from any other origin are dropped before inspection.
    """

    name = STRATEGY_MESSAGE

    def __init__(self, settings: CompilerSettings) -> None:
        super().__init__(settings)
        self._channel: ChannelState | None = None

    @property
    def channel(self) -> ChannelState | None:
        return self._channel

    def submit(self, session: CompilationSession, request: CompilationRequest) -> None:
        channel = ChannelState()
        self._channel = channel
        session.listen(lambda origin, data: self.handle_message(session, channel, origin, data))
        session.emit("Sending image to compiler...")
        session.surface.post_file(request, self.settings.trusted_origin, MESSAGE_COMPILE)

    def handle_message(
        self,
        session: CompilationSession,
        channel: ChannelState,
        origin: str,
        data: Any,
    ) -> None:
        if origin != self.settings.trusted_origin:
            return
        if channel.terminal or not isinstance(data, dict):
            return
        kind = data.get("type")
        payload = data.get("data")
        if not isinstance(payload, dict):
            payload = {}
        if kind == MESSAGE_PROGRESS:
            message = str(payload.get("message") or "").strip()
            if message:
                session.emit(message)
            return
        if kind == MESSAGE_COMPLETE:
            channel.terminal = MESSAGE_COMPLETE
            channel.result_url = str(payload.get("downloadUrl") or "")
            channel.filename = str(payload.get("filename") or "")
            return
        if kind == MESSAGE_ERROR:
            channel.terminal = MESSAGE_ERROR
            channel.error = str(payload.get("message") or "Compilation failed")
            return
        logger.debug("ignoring compiler message type %r", kind)

    def await_completion(self, session: CompilationSession) -> None:
        channel = self._require_channel()
        while not channel.terminal:
            session.wait(self.settings.message_poll_ms)
        if channel.terminal == MESSAGE_ERROR:
            raise ExternalError(channel.error)
        if not channel.result_url:
            raise DownloadFailure("Compiler reported completion without a result reference")
        session.emit("Compilation complete! Fetching result...")

    def retrieve(self, session: CompilationSession) -> CompiledArtifact:
        channel = self._require_channel()
        stage = session.stage_deadline(self.settings.retrieval_timeout_seconds)
        stage.check("Download timeout")
        data = session.surface.fetch_bytes(channel.result_url, stage.remaining_ms())
        stage.check("Download timeout")
        return CompiledArtifact(data=data, filename=channel.filename or DEFAULT_FILENAME)

    def _require_channel(self) -> ChannelState:
        if self._channel is None:
            raise DownloadFailure("Message channel was never opened")
        return self._channel
