from __future__ import annotations

import math
from collections import deque
from typing import Deque

from .models import Tick


class TickBuffer:
    """Bounded, strictly time-ordered store of recent ticks.

    Ticks whose epoch is not newer than the last stored one are dropped
    without touching the buffer, as are prices that are not finite and
    positive (log-returns are taken over the stored prices).
    """

    def __init__(self, max_size: int) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self.max_size = max_size
        self._ticks: Deque[Tick] = deque(maxlen=max_size)

    def append(self, epoch: int, price: float) -> bool:
        if not math.isfinite(price) or price <= 0:
            return False
        if self._ticks and epoch <= self._ticks[-1].epoch:
            return False
        self._ticks.append(Tick(epoch=int(epoch), price=float(price)))
        return True

    def all(self) -> list[Tick]:
        return list(self._ticks)

    def last_n(self, count: int) -> list[Tick]:
        if count <= 0:
            return []
        if count >= len(self._ticks):
            return list(self._ticks)
        return list(self._ticks)[-count:]

    def latest(self) -> Tick | None:
        if not self._ticks:
            return None
        return self._ticks[-1]

    def clear(self) -> None:
        self._ticks.clear()

    def __len__(self) -> int:
        return len(self._ticks)
