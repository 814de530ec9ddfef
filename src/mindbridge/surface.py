"""Embedded browsing surface hosting the external compiler page."""

from __future__ import annotations

import base64
import html
import importlib.util
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator

from mindbridge.config import CompilerSettings
from mindbridge.constants import IFRAME_HEIGHT, IFRAME_ID, IFRAME_SANDBOX, IFRAME_WIDTH
from mindbridge.errors import CompileTimeout, DownloadFailure, LoadFailure
from mindbridge.models import CompilationRequest
from mindbridge.web_scripts import (
    ADD_MESSAGE_LISTENER_JS,
    FETCH_BYTES_JS,
    FRAME_STATE_JS,
    HOST_TEMPLATE,
    MESSAGE_BINDING,
    POST_FILE_JS,
    READ_FRAME_STATE_JS,
    REMOVE_MESSAGE_LISTENER_JS,
)

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, Any], None]


@dataclass
class CapturedDownload:
    url: str
    filename: str
    data: bytes


class DownloadWatch:
    """Holds the first downloadable reference created while the watch is open."""

    def __init__(self) -> None:
        self._captured: CapturedDownload | None = None

    @property
    def captured(self) -> CapturedDownload | None:
        return self._captured

    def capture(self, url: str, filename: str, data: bytes) -> None:
        if self._captured is None:
            self._captured = CapturedDownload(url=url, filename=filename, data=data)


class CompilerSurface:
    """Capabilities a compile session needs from its embedded browsing context.

    `evaluate` runs inside the embedded compiler document. `wait` is the only
    suspension point; message handlers and download watches are serviced while
    it blocks.
    """

    def open(self, url: str) -> None:
        raise NotImplementedError

    def wait(self, ms: int) -> None:
        raise NotImplementedError

    def evaluate(self, script: str, arg: Any = None) -> Any:
        raise NotImplementedError

    def set_input_files(self, selector: str, request: CompilationRequest) -> None:
        raise NotImplementedError

    def watch_download(self, timeout_ms: int) -> Any:
        raise NotImplementedError

    def add_message_listener(self, handler: MessageHandler) -> None:
        raise NotImplementedError

    def remove_message_listener(self) -> None:
        raise NotImplementedError

    def post_file(self, request: CompilationRequest, target_origin: str, kind: str) -> None:
        raise NotImplementedError

    def fetch_bytes(self, url: str, timeout_ms: int) -> bytes:
        raise NotImplementedError

    def remove(self) -> None:
        raise NotImplementedError


def playwright_available() -> bool:
    return importlib.util.find_spec("playwright.sync_api") is not None


def build_host_html(url: str) -> str:
    return HOST_TEMPLATE.format(
        frame_id=IFRAME_ID,
        src=html.escape(url, quote=True),
        sandbox=IFRAME_SANDBOX,
        width=IFRAME_WIDTH,
        height=IFRAME_HEIGHT,
    )


class PlaywrightSurface(CompilerSurface):
    def __init__(self, settings: CompilerSettings) -> None:
        self._settings = settings
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._frame: Any = None
        self._handler: MessageHandler | None = None
        self._removed = False

    def open(self, url: str) -> None:
        if not playwright_available():
            raise LoadFailure(
                "Playwright Python package is not installed. "
                "Install it (and run `playwright install chromium`) to compile images."
            )
        from playwright.sync_api import sync_playwright

        timeout_ms = int(self._settings.load_timeout_seconds * 1000)
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self._settings.headless)
            self._context = self._browser.new_context(
                accept_downloads=True,
                service_workers="block",
                viewport={"width": IFRAME_WIDTH, "height": IFRAME_HEIGHT},
            )
            self._page = self._context.new_page()
            self._page.set_default_timeout(timeout_ms)
            self._page.expose_binding(MESSAGE_BINDING, self._on_binding)
            self._page.set_content(build_host_html(url), wait_until="domcontentloaded")
            self._page.wait_for_function(FRAME_STATE_JS, timeout=timeout_ms)
            state = str(self._page.evaluate(READ_FRAME_STATE_JS) or "")
            if state != "loaded":
                raise LoadFailure("Failed to load MindAR compiler")
            element = self._page.query_selector(f"#{IFRAME_ID}")
            self._frame = element.content_frame() if element is not None else None
        except LoadFailure:
            raise
        except Exception as exc:
            raise LoadFailure(f"Failed to load MindAR compiler: {exc}") from exc
        if self._frame is None:
            raise LoadFailure("Failed to load MindAR compiler: frame is not attached")
        logger.info("compiler frame loaded: %s", url)

    def wait(self, ms: int) -> None:
        self._require_page().wait_for_timeout(max(0, int(ms)))

    def evaluate(self, script: str, arg: Any = None) -> Any:
        frame = self._require_frame()
        if arg is None:
            return frame.evaluate(script)
        return frame.evaluate(script, arg)

    def set_input_files(self, selector: str, request: CompilationRequest) -> None:
        self._require_frame().set_input_files(
            selector,
            files=[{"name": request.name, "mimeType": request.mime_type, "buffer": request.data}],
        )

    @contextmanager
    def watch_download(self, timeout_ms: int) -> Iterator[DownloadWatch]:
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        watch = DownloadWatch()
        try:
            with self._require_page().expect_download(timeout=max(1, timeout_ms)) as info:
                yield watch
            download = info.value
        except PlaywrightTimeoutError as exc:
            raise CompileTimeout("Download timeout") from exc
        failure = download.failure()
        if failure:
            raise DownloadFailure(f"Download failed: {failure}")
        try:
            data = Path(download.path()).read_bytes()
        except Exception as exc:
            raise DownloadFailure(f"Could not read downloaded file: {exc}") from exc
        watch.capture(download.url, download.suggested_filename, data)

    def add_message_listener(self, handler: MessageHandler) -> None:
        self._handler = handler
        self._require_page().evaluate(ADD_MESSAGE_LISTENER_JS)

    def remove_message_listener(self) -> None:
        self._handler = None
        if self._page is None or self._page.is_closed():
            return
        try:
            self._page.evaluate(REMOVE_MESSAGE_LISTENER_JS)
        except Exception as exc:
            logger.debug("message listener removal failed: %s", exc)

    def post_file(self, request: CompilationRequest, target_origin: str, kind: str) -> None:
        posted = self._require_page().evaluate(
            POST_FILE_JS,
            {
                "frameId": IFRAME_ID,
                "targetOrigin": target_origin,
                "kind": kind,
                "file": request.to_payload(),
            },
        )
        if not posted:
            raise LoadFailure("Compiler frame is not available for messaging")

    def fetch_bytes(self, url: str, timeout_ms: int) -> bytes:
        try:
            payload = self._require_frame().evaluate(
                FETCH_BYTES_JS, {"url": url, "timeoutMs": max(1, timeout_ms)}
            )
            return base64.b64decode(str((payload or {}).get("data") or ""))
        except Exception as exc:
            raise DownloadFailure(f"Could not fetch compiled file: {exc}") from exc

    def remove(self) -> None:
        if self._removed:
            return
        self._removed = True
        self._handler = None
        self._frame = None
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                closer.close()
            except Exception as exc:
                logger.debug("surface close failed: %s", exc)
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as exc:
                logger.debug("playwright stop failed: %s", exc)
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    def _on_binding(self, _source: Any, payload: Any) -> None:
        handler = self._handler
        if handler is None or not isinstance(payload, dict):
            return
        handler(str(payload.get("origin") or ""), payload.get("data"))

    def _require_page(self) -> Any:
        if self._page is None:
            raise LoadFailure("Compiler surface is not open")
        return self._page

    def _require_frame(self) -> Any:
        if self._frame is None:
            raise LoadFailure("Compiler surface is not open")
        return self._frame
