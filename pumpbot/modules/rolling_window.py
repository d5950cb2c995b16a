"""
rolling_window.py
-----------------
Bounded, insertion-ordered window of ``PriceSample`` objects.

Once the window holds ``capacity`` samples every push evicts the oldest one.
Statistics are computed over the current contents; asking for a statistic
the window cannot answer raises ``InsufficientDataError`` instead of
returning an approximation, so strategies wait for a full sub-window.
"""
from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, List, Optional

from pumpbot.exceptions import InsufficientDataError
from pumpbot.models.price import PriceSample


class RollingWindow:
    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._samples: Deque[PriceSample] = deque(maxlen=capacity)

    def push(self, sample: PriceSample) -> Optional[PriceSample]:
        """Append ``sample``; return the evicted sample, if any."""
        evicted = self._samples[0] if len(self._samples) == self.capacity else None
        self._samples.append(sample)
        return evicted

    def clear(self) -> None:
        self._samples.clear()

    # ------------------------------------------------------------------ #
    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[PriceSample]:
        return iter(self._samples)

    @property
    def prices(self) -> List[float]:
        return [s.price for s in self._samples]

    @property
    def latest(self) -> Optional[PriceSample]:
        return self._samples[-1] if self._samples else None

    @property
    def previous(self) -> Optional[PriceSample]:
        return self._samples[-2] if len(self._samples) >= 2 else None

    def has(self, k: int) -> bool:
        return len(self._samples) >= k

    # ------------------------------------------------------------------ #
    def _require(self, k: int = 1) -> None:
        if len(self._samples) < k:
            raise InsufficientDataError(
                f"need {k} samples, window holds {len(self._samples)}"
            )

    def high(self) -> float:
        self._require()
        return max(s.price for s in self._samples)

    def low(self) -> float:
        self._require()
        return min(s.price for s in self._samples)

    def mean(self) -> float:
        self._require()
        return sum(s.price for s in self._samples) / len(self._samples)

    def moving_average(self, k: int) -> float:
        """Mean of the most recent ``k`` samples."""
        if k < 1:
            raise ValueError("k must be >= 1")
        self._require(k)
        recent = list(self._samples)[-k:]
        return sum(s.price for s in recent) / k

    def drop_from_high(self, price: float) -> float:
        """Percent drop of ``price`` below the window high."""
        high = self.high()
        return (high - price) / high * 100

    def rise_from_low(self, price: float) -> float:
        """Percent rise of ``price`` above the window low."""
        low = self.low()
        return (price - low) / low * 100
