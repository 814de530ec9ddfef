"""CLI entrypoint for mindbridge."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from mindbridge.config import CompilerSettings
from mindbridge.constants import STRATEGIES
from mindbridge.controller import MindARCompiler
from mindbridge.errors import CompilerError
from mindbridge.storage import (
    create_run_context,
    latest_log_tail,
    latest_status,
    log_event,
    write_report,
    write_status,
)


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "compile":
        _configure_logging(args.verbose)
        compile_command(
            args.image,
            out=args.out,
            strategy=args.strategy,
            headed=args.headed,
            timeout_seconds=args.timeout,
        )
        return
    if args.command == "status":
        print(json.dumps(latest_status(), indent=2, ensure_ascii=False))
        return
    if args.command == "logs":
        logs_command(args.tail)
        return

    parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mindbridge",
        description="Compile images into MindAR .mind targets through the hosted compiler.",
    )
    subparsers = parser.add_subparsers(dest="command")

    compile_parser = subparsers.add_parser(
        "compile", help="Compile an image: mindbridge compile <image>"
    )
    compile_parser.add_argument("image", type=str)
    compile_parser.add_argument(
        "--out",
        type=str,
        default="",
        help="Output file or directory for the .mind file (default: run directory).",
    )
    compile_parser.add_argument(
        "--strategy",
        choices=STRATEGIES,
        default=None,
        help="Completion detection strategy. dom (default) or message.",
    )
    compile_parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window while compiling.",
    )
    compile_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Global compile ceiling in seconds (default 300).",
    )
    compile_parser.add_argument("--verbose", action="store_true")

    subparsers.add_parser("status", help="Show latest compile status")

    logs_parser = subparsers.add_parser("logs", help="Tail logs for latest compile")
    logs_parser.add_argument("--tail", type=int, default=200)
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def compile_command(
    image: str,
    *,
    out: str = "",
    strategy: str | None = None,
    headed: bool = False,
    timeout_seconds: float | None = None,
) -> Path:
    try:
        settings = CompilerSettings.from_env().with_overrides(
            strategy=strategy,
            headless=False if headed else None,
            global_timeout_seconds=timeout_seconds,
        )
    except ValueError as exc:
        raise SystemExit(f"Invalid compile settings: {exc}")
    ctx = create_run_context(image)
    log_event(ctx, "run_id", ctx.run_id)
    log_event(ctx, "source", image)
    log_event(ctx, "strategy", settings.strategy)
    log_event(ctx, "compiler_url", settings.compiler_url)
    write_status(ctx, result="pending", state="running", progress="starting")

    def on_progress(text: str) -> None:
        log_event(ctx, "progress", text)
        print(text)

    compiler = MindARCompiler(settings)
    compiler.set_callbacks(
        on_progress=on_progress,
        on_error=lambda message: log_event(ctx, "error", message),
    )
    try:
        artifact = compiler.compile(image)
    except CompilerError as exc:
        write_report(ctx, "failed", reason=exc.reason, message=str(exc))
        write_status(ctx, result="failed", progress=exc.reason)
        raise SystemExit(f"Compilation failed ({exc.reason}): {exc}")

    target = artifact.save(Path(out) if out else ctx.run_dir / artifact.filename)
    log_event(ctx, "artifact", target)
    write_report(ctx, "success", artifact_path=str(target), **artifact.to_dict())
    write_status(ctx, result="success", progress="compiled")
    print(f"Saved {artifact.filename} ({artifact.size} bytes) to {target}")
    return target


def logs_command(tail_count: int) -> None:
    lines = latest_log_tail(tail_count)
    if lines is None:
        raise SystemExit("No runs available yet.")
    print("\n".join(lines))


if __name__ == "__main__":
    main()
