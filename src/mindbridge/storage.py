"""Run records for CLI compiles: per-run log, report and the latest status."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


RUNS_DIR = Path("runs")
STATUS_PATH = RUNS_DIR / "status.json"
LOG_NAME = "bridge.log"
REPORT_NAME = "report.json"

_SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class RunContext:
    run_id: str
    run_dir: Path
    source: str

    @property
    def bridge_log(self) -> Path:
        return self.run_dir / LOG_NAME

    @property
    def report_path(self) -> Path:
        return self.run_dir / REPORT_NAME


def _slug(source: str) -> str:
    stem = Path(str(source or "")).stem.lower()
    return _SLUG_RE.sub("-", stem).strip("-")[:40] or "image"


def create_run_context(source: str) -> RunContext:
    """Allocate `runs/<utc timestamp>-<image slug>[-NN]` for one compile."""
    RUNS_DIR.mkdir(parents=True, exist_ok=True)
    base = f"{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}-{_slug(source)}"
    for attempt in range(100):
        run_id = f"{base}-{attempt:02d}" if attempt else base
        run_dir = RUNS_DIR / run_id
        try:
            run_dir.mkdir(parents=True, exist_ok=False)
        except FileExistsError:
            continue
        return RunContext(run_id=run_id, run_dir=run_dir, source=str(source))
    raise RuntimeError(f"Could not allocate a run directory for {source}")


def log_event(ctx: RunContext, key: str, value: object) -> None:
    text = str(value).replace("\n", " ").strip()
    with ctx.bridge_log.open("a", encoding="utf-8") as fh:
        fh.write(f"{key}={text}\n")


def _dump(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def write_report(ctx: RunContext, result: str, **fields: Any) -> Path:
    payload: dict[str, Any] = {"run_id": ctx.run_id, "source": ctx.source, "result": result}
    payload.update(fields)
    _dump(ctx.report_path, payload)
    return ctx.report_path


def write_status(ctx: RunContext, *, result: str, state: str = "completed", progress: str = "") -> None:
    payload: dict[str, Any] = {
        "run_id": ctx.run_id,
        "run_dir": str(ctx.run_dir),
        "source": ctx.source,
        "result": result,
        "state": state,
        "report_path": str(ctx.report_path),
        "updated_at_utc": datetime.now(timezone.utc).isoformat(),
    }
    if progress:
        payload["progress"] = progress
    _dump(STATUS_PATH, payload)


def latest_status() -> dict[str, Any]:
    if not STATUS_PATH.exists():
        return {"status": "no-runs"}
    with STATUS_PATH.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def latest_log_tail(line_count: int) -> list[str] | None:
    """Last lines of the most recent run's log, or None when nothing ran yet."""
    status = latest_status()
    if "run_dir" not in status:
        return None
    log_path = Path(status["run_dir"]) / LOG_NAME
    if not log_path.exists():
        return []
    lines = log_path.read_text(encoding="utf-8").splitlines()
    return lines[-max(0, line_count):] if line_count > 0 else []
