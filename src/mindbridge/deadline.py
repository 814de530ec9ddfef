"""Wall-clock ceilings for compile stages."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from mindbridge.errors import CompileTimeout


@dataclass
class Deadline:
    seconds: float
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(default=0.0)
    ends_at: float = field(default=0.0)

    def __post_init__(self) -> None:
        self.started_at = self.clock()
        self.ends_at = self.started_at + max(0.0, float(self.seconds))

    def remaining_ms(self) -> int:
        return remaining_ms(self.ends_at, now_ts=self.clock())

    def expired(self) -> bool:
        return self.clock() >= self.ends_at

    def check(self, message: str) -> None:
        if self.expired():
            raise CompileTimeout(message)

    def narrowed(self, seconds: float) -> "Deadline":
        stage = Deadline(seconds, clock=self.clock)
        if stage.ends_at > self.ends_at:
            stage.ends_at = self.ends_at
        return stage


def remaining_ms(deadline_ts: float, *, now_ts: float) -> int:
    return int(max(0.0, deadline_ts - now_ts) * 1000)
