"""Compile request/artifact models and input validation."""

from __future__ import annotations

import base64
import html
import mimetypes
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mindbridge.constants import ARTIFACT_CONTENT_TYPE, DEFAULT_FILENAME, LINK_ACCENT_COLOR
from mindbridge.errors import DownloadFailure, InvalidInput


@dataclass(frozen=True)
class CompilationRequest:
    name: str
    mime_type: str
    data: bytes = field(repr=False)

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "CompilationRequest":
        source = Path(path)
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise InvalidInput(f"Cannot read image file {source}: {exc}") from exc
        mime_type, _ = mimetypes.guess_type(source.name)
        return cls(name=source.name, mime_type=mime_type or "", data=data)

    @classmethod
    def from_bytes(cls, data: bytes, name: str, mime_type: str) -> "CompilationRequest":
        return cls(name=name, mime_type=mime_type, data=bytes(data))

    @property
    def size(self) -> int:
        return len(self.data)

    def to_payload(self) -> dict[str, str]:
        return {
            "name": self.name,
            "mimeType": self.mime_type,
            "data": base64.b64encode(self.data).decode("ascii"),
        }


def validate_request(candidate: Any) -> CompilationRequest:
    if isinstance(candidate, (str, os.PathLike)):
        candidate = CompilationRequest.from_path(candidate)
    if not isinstance(candidate, CompilationRequest):
        raise InvalidInput("Please provide a valid image file")
    if not isinstance(candidate.data, (bytes, bytearray)) or not candidate.data:
        raise InvalidInput("Please provide a valid image file")
    if not candidate.name:
        raise InvalidInput("Please provide a valid image file")
    if not str(candidate.mime_type or "").lower().startswith("image/"):
        raise InvalidInput("File must be an image")
    return candidate


@dataclass(frozen=True)
class CompiledArtifact:
    data: bytes = field(repr=False)
    filename: str = DEFAULT_FILENAME
    content_type: str = ARTIFACT_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.data)

    def save(self, path: str | os.PathLike[str]) -> Path:
        target = Path(path)
        if target.is_dir():
            target = target / self.filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.data)
        return target

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "content_type": self.content_type,
            "size": self.size,
        }


@dataclass(frozen=True)
class DownloadLink:
    href: str
    filename: str
    label: str

    def to_html(self) -> str:
        style = (
            "display: inline-block; padding: 10px 20px; "
            f"background-color: {LINK_ACCENT_COLOR}; color: white; "
            "text-decoration: none; border-radius: 5px; margin: 10px 0;"
        )
        return (
            f'<a class="download-link" href="{html.escape(self.href, quote=True)}" '
            f'download="{html.escape(self.filename, quote=True)}" style="{style}">'
            f"{html.escape(self.label)}</a>"
        )


def create_download_link(
    artifact: CompiledArtifact | None,
    filename: str = DEFAULT_FILENAME,
) -> DownloadLink:
    if artifact is None:
        raise DownloadFailure("No compiled file available")
    encoded = base64.b64encode(artifact.data).decode("ascii")
    name = filename or artifact.filename
    return DownloadLink(
        href=f"data:{artifact.content_type};base64,{encoded}",
        filename=name,
        label=f"Download {name}",
    )
