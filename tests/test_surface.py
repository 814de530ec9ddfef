import unittest
from unittest.mock import MagicMock, patch

from mindbridge.config import CompilerSettings
from mindbridge.errors import DownloadFailure, LoadFailure
from mindbridge.models import CompilationRequest
from mindbridge.surface import DownloadWatch, PlaywrightSurface, build_host_html
from mindbridge.web_scripts import FETCH_BYTES_JS, POST_FILE_JS, REMOVE_MESSAGE_LISTENER_JS


def _open_surface() -> tuple[PlaywrightSurface, MagicMock, MagicMock, MagicMock, MagicMock]:
    surface = PlaywrightSurface(CompilerSettings())
    playwright, browser, context, page, frame = (MagicMock() for _ in range(5))
    page.is_closed.return_value = False
    surface._playwright = playwright
    surface._browser = browser
    surface._context = context
    surface._page = page
    surface._frame = frame
    return surface, playwright, context, page, frame


class HostDocumentTests(unittest.TestCase):
    def test_frame_is_sandboxed_and_hidden(self) -> None:
        markup = build_host_html("https://hiukim.github.io/mind-ar-js-doc/tools/compile")
        self.assertIn('sandbox="allow-scripts allow-forms allow-same-origin allow-downloads"', markup)
        self.assertIn("top:-9999px", markup)
        self.assertIn('src="https://hiukim.github.io/mind-ar-js-doc/tools/compile"', markup)
        self.assertNotIn("allow-top-navigation", markup)
        self.assertNotIn("allow-popups", markup)

    def test_url_is_escaped(self) -> None:
        markup = build_host_html('https://x.test/?a="b"&c=<d>')
        self.assertIn("&quot;b&quot;&amp;c=&lt;d&gt;", markup)


class PlaywrightSurfaceTests(unittest.TestCase):
    def test_open_without_playwright_is_load_failure(self) -> None:
        surface = PlaywrightSurface(CompilerSettings())
        with patch("mindbridge.surface.playwright_available", return_value=False):
            with self.assertRaises(LoadFailure):
                surface.open("https://hiukim.github.io/x")

    def test_operations_before_open_are_load_failures(self) -> None:
        surface = PlaywrightSurface(CompilerSettings())
        with self.assertRaises(LoadFailure):
            surface.evaluate("() => 1")
        with self.assertRaises(LoadFailure):
            surface.wait(10)

    def test_remove_closes_everything_once(self) -> None:
        surface, playwright, context, _page, _frame = _open_surface()
        browser = surface._browser
        surface.remove()
        surface.remove()
        context.close.assert_called_once()
        browser.close.assert_called_once()
        playwright.stop.assert_called_once()

    def test_binding_forwards_to_registered_handler_only(self) -> None:
        surface, _playwright, _context, page, _frame = _open_surface()
        received: list[tuple[str, object]] = []
        surface.add_message_listener(lambda origin, data: received.append((origin, data)))
        surface._on_binding(None, {"origin": "https://hiukim.github.io", "data": {"type": "progress"}})
        surface.remove_message_listener()
        surface._on_binding(None, {"origin": "https://hiukim.github.io", "data": {"type": "late"}})
        self.assertEqual(received, [("https://hiukim.github.io", {"type": "progress"})])
        page.evaluate.assert_any_call(REMOVE_MESSAGE_LISTENER_JS)

    def test_post_file_targets_trusted_origin(self) -> None:
        surface, _playwright, _context, page, _frame = _open_surface()
        page.evaluate.return_value = True
        request = CompilationRequest.from_bytes(b"abc", "a.png", "image/png")
        surface.post_file(request, "https://hiukim.github.io", "compile")
        script, arg = page.evaluate.call_args.args
        self.assertEqual(script, POST_FILE_JS)
        self.assertEqual(arg["targetOrigin"], "https://hiukim.github.io")
        self.assertEqual(arg["file"]["data"], "YWJj")

    def test_fetch_bytes_decodes_frame_payload(self) -> None:
        surface, _playwright, _context, _page, frame = _open_surface()
        frame.evaluate.return_value = {"data": "bWluZA==", "type": "application/octet-stream"}
        self.assertEqual(surface.fetch_bytes("blob:x", 1000), b"mind")
        script, arg = frame.evaluate.call_args.args
        self.assertEqual(script, FETCH_BYTES_JS)
        self.assertEqual(arg, {"url": "blob:x", "timeoutMs": 1000})

    def test_fetch_errors_become_download_failures(self) -> None:
        surface, _playwright, _context, _page, frame = _open_surface()
        frame.evaluate.side_effect = RuntimeError("TypeError: Failed to fetch")
        with self.assertRaises(DownloadFailure):
            surface.fetch_bytes("blob:x", 1000)


class DownloadWatchTests(unittest.TestCase):
    def test_first_capture_wins(self) -> None:
        watch = DownloadWatch()
        self.assertIsNone(watch.captured)
        watch.capture("blob:a", "a.mind", b"a")
        watch.capture("blob:b", "b.mind", b"b")
        assert watch.captured is not None
        self.assertEqual(watch.captured.filename, "a.mind")


if __name__ == "__main__":
    unittest.main()
