"""Completion detector interface and strategy selection."""

from __future__ import annotations

from mindbridge.config import CompilerSettings
from mindbridge.constants import STRATEGY_DOM, STRATEGY_MESSAGE
from mindbridge.models import CompilationRequest, CompiledArtifact
from mindbridge.session import CompilationSession


class CompletionDetector:
    """Drives one compile run inside an acquired session.

    Implementations upload the image and trigger compilation (`submit`),
    block until the external tool signals completion or failure
    (`await_completion`), then recover the produced file (`retrieve`).
    """

    name = ""

    def __init__(self, settings: CompilerSettings) -> None:
        self.settings = settings

    def submit(self, session: CompilationSession, request: CompilationRequest) -> None:
        raise NotImplementedError

    def await_completion(self, session: CompilationSession) -> None:
        raise NotImplementedError

    def retrieve(self, session: CompilationSession) -> CompiledArtifact:
        raise NotImplementedError


def build_detector(name: str, settings: CompilerSettings) -> CompletionDetector:
    from mindbridge.dom_polling import DomPollingDetector
    from mindbridge.message_channel import MessageChannelDetector

    key = str(name or "").strip().lower()
    if key == STRATEGY_DOM:
        return DomPollingDetector(settings)
    if key == STRATEGY_MESSAGE:
        return MessageChannelDetector(settings)
    raise ValueError(f"Unknown strategy '{name}'")
