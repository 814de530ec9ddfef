"""Environment-driven settings for compile sessions."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, replace
from urllib.parse import urlparse

from mindbridge.constants import COMPILER_URL, STRATEGIES, STRATEGY_DOM


@dataclass(frozen=True)
class CompilerSettings:
    compiler_url: str = COMPILER_URL
    trusted_origin: str = ""
    strategy: str = STRATEGY_DOM
    headless: bool = True
    load_timeout_seconds: float = 60.0
    ready_settle_ms: int = 2000
    pre_upload_delay_ms: int = 3000
    upload_settle_ms: int = 2000
    poll_interval_ms: int = 2000
    message_poll_ms: int = 250
    global_timeout_seconds: float = 300.0
    retrieval_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.strategy not in STRATEGIES:
            raise ValueError(
                f"Unknown strategy '{self.strategy}'. Must be one of {sorted(STRATEGIES)}"
            )
        for name in ("load_timeout_seconds", "global_timeout_seconds", "retrieval_timeout_seconds"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive finite number of seconds, got {value!r}")
        if not self.trusted_origin:
            object.__setattr__(self, "trusted_origin", origin_of(self.compiler_url))

    @property
    def max_polls(self) -> int:
        interval = max(1, self.poll_interval_ms)
        return max(1, -(-int(self.global_timeout_seconds * 1000) // interval))

    def with_overrides(self, **changes: object) -> "CompilerSettings":
        clean = {key: value for key, value in changes.items() if value is not None}
        if "compiler_url" in clean and "trusted_origin" not in clean:
            clean["trusted_origin"] = ""
        return replace(self, **clean)

    @classmethod
    def from_env(cls) -> "CompilerSettings":
        defaults = cls()
        compiler_url = os.getenv("MINDBRIDGE_COMPILER_URL", "").strip() or defaults.compiler_url
        return cls(
            compiler_url=compiler_url,
            trusted_origin=os.getenv("MINDBRIDGE_TRUSTED_ORIGIN", "").strip(),
            strategy=(os.getenv("MINDBRIDGE_STRATEGY", "").strip().lower() or defaults.strategy),
            headless=_env_flag("MINDBRIDGE_HEADLESS", defaults.headless),
            load_timeout_seconds=_env_seconds(
                "MINDBRIDGE_LOAD_TIMEOUT_SECONDS", defaults.load_timeout_seconds
            ),
            ready_settle_ms=_env_ms("MINDBRIDGE_READY_SETTLE_MS", defaults.ready_settle_ms),
            pre_upload_delay_ms=_env_ms(
                "MINDBRIDGE_PRE_UPLOAD_DELAY_MS", defaults.pre_upload_delay_ms
            ),
            upload_settle_ms=_env_ms("MINDBRIDGE_UPLOAD_SETTLE_MS", defaults.upload_settle_ms),
            poll_interval_ms=max(
                50, _env_ms("MINDBRIDGE_POLL_INTERVAL_MS", defaults.poll_interval_ms)
            ),
            message_poll_ms=max(
                10, _env_ms("MINDBRIDGE_MESSAGE_POLL_MS", defaults.message_poll_ms)
            ),
            global_timeout_seconds=_env_seconds(
                "MINDBRIDGE_GLOBAL_TIMEOUT_SECONDS", defaults.global_timeout_seconds
            ),
            retrieval_timeout_seconds=_env_seconds(
                "MINDBRIDGE_RETRIEVAL_TIMEOUT_SECONDS", defaults.retrieval_timeout_seconds
            ),
        )


def origin_of(url: str) -> str:
    try:
        parsed = urlparse(url)
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_seconds(name: str, default: float) -> float:
    try:
        value = float(os.getenv(name, "") or default)
    except ValueError:
        return default
    if not math.isfinite(value):
        return default
    return max(0.1, value)


def _env_ms(name: str, default: int) -> int:
    try:
        value = int(float(os.getenv(name, "") or default))
    except (ValueError, OverflowError):
        return default
    return max(0, value)
