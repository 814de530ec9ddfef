import unittest

from fakes import FakeClock, FakeCompilerPage, FakeSurfaceFactory

from mindbridge.config import CompilerSettings
from mindbridge.controller import MindARCompiler
from mindbridge.errors import CompileTimeout, DownloadFailure, ExternalError
from mindbridge.message_channel import MessageChannelDetector
from mindbridge.models import CompilationRequest

TRUSTED = "https://hiukim.github.io"
ROGUE = "https://evil.example"
PNG = CompilationRequest.from_bytes(b"\x89PNG\r\n\x1a\nfake", "target.png", "image/png")


def _message(kind: str, **data: object) -> dict:
    return {"type": kind, "data": data}


def _setup(page: FakeCompilerPage, **overrides):
    clock = FakeClock()
    factory = FakeSurfaceFactory(page, clock)
    settings = CompilerSettings(strategy="message", **overrides)
    compiler = MindARCompiler(settings, surface_factory=factory, clock=clock)
    events: list[tuple[str, object]] = []
    compiler.set_callbacks(
        lambda text: events.append(("progress", text)),
        lambda artifact: events.append(("complete", artifact)),
        lambda message: events.append(("error", message)),
    )
    return compiler, factory, clock, events


class MessageChannelCompileTests(unittest.TestCase):
    def test_detector_is_selected_from_settings(self) -> None:
        compiler, _factory, _clock, _events = _setup(FakeCompilerPage())
        self.assertIsInstance(compiler.detector, MessageChannelDetector)
        self.assertEqual(compiler.settings.trusted_origin, TRUSTED)

    def test_trusted_complete_message_resolves_with_fetched_artifact(self) -> None:
        page = FakeCompilerPage()
        page.resources["blob:https://hiukim.github.io/abc"] = b"mind-bytes"
        page.messages = [
            (3000, TRUSTED, _message("progress", message="Extracting features")),
            (6000, TRUSTED, _message("complete", downloadUrl="blob:https://hiukim.github.io/abc")),
        ]
        compiler, factory, _clock, events = _setup(page)

        artifact = compiler.compile(PNG)

        self.assertEqual(artifact.data, b"mind-bytes")
        self.assertEqual(artifact.filename, "compiled.mind")
        surface = factory.surface
        self.assertEqual(surface.posted, [("target.png", TRUSTED, "compile")])
        self.assertEqual(surface.listeners_added, 1)
        self.assertEqual(surface.listeners_removed, 1)
        self.assertEqual(surface.removed, 1)
        progress = [value for kind, value in events if kind == "progress"]
        self.assertIn("Extracting features", progress)
        self.assertEqual(events[-1], ("complete", artifact))

    def test_complete_message_filename_is_used(self) -> None:
        page = FakeCompilerPage()
        page.resources["https://hiukim.github.io/out.mind"] = b"x"
        page.messages = [
            (
                1000,
                TRUSTED,
                _message("complete", downloadUrl="https://hiukim.github.io/out.mind", filename="out.mind"),
            )
        ]
        compiler, _factory, _clock, _events = _setup(page)
        self.assertEqual(compiler.compile(PNG).filename, "out.mind")

    def test_untrusted_origin_is_ignored_and_call_keeps_waiting(self) -> None:
        page = FakeCompilerPage()
        page.resources["blob:rogue"] = b"forged"
        page.resources["blob:trusted"] = b"genuine"
        page.messages = [
            (1000, ROGUE, _message("progress", message="forged progress")),
            (1000, ROGUE, _message("error", message="forged error")),
            (2000, ROGUE, _message("complete", downloadUrl="blob:rogue")),
            (10000, TRUSTED, _message("complete", downloadUrl="blob:trusted")),
        ]
        compiler, _factory, clock, events = _setup(page)

        artifact = compiler.compile(PNG)

        self.assertEqual(artifact.data, b"genuine")
        self.assertGreaterEqual(clock.ms, 10000)
        self.assertNotIn(("progress", "forged progress"), events)
        self.assertEqual([kind for kind, _value in events if kind == "error"], [])

    def test_only_untrusted_messages_time_out(self) -> None:
        page = FakeCompilerPage()
        page.resources["blob:rogue"] = b"forged"
        page.messages = [(1000, ROGUE, _message("complete", downloadUrl="blob:rogue"))]
        compiler, factory, clock, _events = _setup(page, global_timeout_seconds=30.0)

        with self.assertRaises(CompileTimeout):
            compiler.compile(PNG)

        self.assertEqual(clock.ms, 32000)
        self.assertEqual(factory.surface.listeners_removed, 1)
        self.assertEqual(factory.surface.removed, 1)

    def test_error_message_rejects_with_detail(self) -> None:
        page = FakeCompilerPage()
        page.messages = [(2000, TRUSTED, _message("error", message="Bad image"))]
        compiler, factory, _clock, events = _setup(page)

        with self.assertRaises(ExternalError) as ctx:
            compiler.compile(PNG)

        self.assertEqual(str(ctx.exception), "Bad image")
        self.assertEqual(events[-1], ("error", "Bad image"))
        self.assertEqual(factory.surface.listeners_removed, 1)

    def test_only_first_terminal_message_counts(self) -> None:
        page = FakeCompilerPage()
        page.resources["blob:first"] = b"first"
        page.messages = [
            (1000, TRUSTED, _message("complete", downloadUrl="blob:first")),
            (1000, TRUSTED, _message("error", message="late error")),
        ]
        compiler, _factory, _clock, events = _setup(page)
        artifact = compiler.compile(PNG)
        self.assertEqual(artifact.data, b"first")
        self.assertEqual([kind for kind, _value in events if kind == "error"], [])

    def test_malformed_messages_are_ignored(self) -> None:
        page = FakeCompilerPage()
        page.resources["blob:ok"] = b"ok"
        page.messages = [
            (500, TRUSTED, "complete"),
            (500, TRUSTED, {"data": {"downloadUrl": "blob:nope"}}),
            (500, TRUSTED, {"type": "telemetry", "data": {}}),
            (1500, TRUSTED, _message("complete", downloadUrl="blob:ok")),
        ]
        compiler, _factory, _clock, _events = _setup(page)
        self.assertEqual(compiler.compile(PNG).data, b"ok")

    def test_complete_without_reference_fails_download(self) -> None:
        page = FakeCompilerPage()
        page.messages = [(500, TRUSTED, _message("complete"))]
        compiler, _factory, _clock, _events = _setup(page)
        with self.assertRaises(DownloadFailure):
            compiler.compile(PNG)

    def test_unfetchable_reference_fails_download(self) -> None:
        page = FakeCompilerPage()
        page.messages = [(500, TRUSTED, _message("complete", downloadUrl="blob:gone"))]
        compiler, factory, _clock, events = _setup(page)
        with self.assertRaises(DownloadFailure):
            compiler.compile(PNG)
        self.assertEqual(factory.surface.removed, 1)
        self.assertEqual(events[-1][0], "error")

    def test_messages_after_teardown_are_no_ops(self) -> None:
        page = FakeCompilerPage()
        page.resources["blob:ok"] = b"ok"
        page.messages = [(500, TRUSTED, _message("complete", downloadUrl="blob:ok"))]
        compiler, factory, _clock, events = _setup(page)
        compiler.compile(PNG)
        count = len(events)

        factory.surface.last_handler(TRUSTED, _message("progress", message="late"))
        factory.surface.last_handler(TRUSTED, _message("error", message="late"))

        self.assertEqual(len(events), count)


if __name__ == "__main__":
    unittest.main()
