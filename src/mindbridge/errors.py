"""Failure taxonomy for compile sessions."""

from __future__ import annotations


class CompilerError(RuntimeError):
    reason = "compiler_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.reason)


class InvalidInput(CompilerError):
    reason = "invalid_input"


class LoadFailure(CompilerError):
    reason = "load_failure"


class InteractionFailure(CompilerError):
    reason = "interaction_failure"


class ExternalError(CompilerError):
    reason = "external_error"


class CompileTimeout(CompilerError, TimeoutError):
    reason = "timeout"


class DownloadFailure(CompilerError):
    reason = "download_failure"


FAILURE_REASONS = (
    InvalidInput.reason,
    LoadFailure.reason,
    InteractionFailure.reason,
    ExternalError.reason,
    CompileTimeout.reason,
    DownloadFailure.reason,
)
