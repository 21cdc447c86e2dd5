from __future__ import annotations

import asyncio
import logging
import math
import sqlite3
from dataclasses import dataclass

from .models import Direction
from .samples import SampleRepository
from .volatility import VolatilityEngine

logger = logging.getLogger(__name__)

THEORETICAL_WEIGHT = 0.6
MIN_EMPIRICAL_SAMPLES = 100


def normal_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def reflection_touch_probability(barrier_fraction: float, sigma: float, horizon: int) -> float | None:
    """P(touch) = 2 * Phi(-B / (sigma * sqrt(T))) for a driftless walk."""
    sigma_total = sigma * math.sqrt(horizon)
    if sigma_total == 0:
        return None
    return 2.0 * normal_cdf(-barrier_fraction / sigma_total)


@dataclass(frozen=True)
class EmpiricalEstimate:
    probability: float
    sample_size: int


@dataclass(frozen=True)
class ProbabilityEstimate:
    theoretical: float | None
    empirical: float | None
    combined: float | None
    sample_size: int

    def to_payload(self) -> dict:
        return {
            "theoretical": self.theoretical,
            "empirical": self.empirical,
            "combined": self.combined,
            "sample_size": self.sample_size,
        }


def combine_estimates(
    theoretical: float | None,
    empirical: EmpiricalEstimate | None,
    theoretical_weight: float = THEORETICAL_WEIGHT,
) -> ProbabilityEstimate:
    if theoretical is not None and empirical is not None:
        combined: float | None = (
            theoretical_weight * theoretical
            + (1.0 - theoretical_weight) * empirical.probability
        )
        sample_size = empirical.sample_size
    elif theoretical is not None:
        combined = theoretical
        sample_size = 0
    elif empirical is not None:
        combined = empirical.probability
        sample_size = empirical.sample_size
    else:
        combined = None
        sample_size = 0

    return ProbabilityEstimate(
        theoretical=theoretical,
        empirical=empirical.probability if empirical is not None else None,
        combined=combined,
        sample_size=sample_size,
    )


class ProbabilityEngine:
    """Touch probability from the live sigma blended with historical hit rates.

    The empirical source is optional. When the sample store is missing,
    too small or fails a query, the engine logs once and stays
    theoretical-only for the rest of its life.
    """

    def __init__(
        self,
        symbol: str,
        volatility_engine: VolatilityEngine,
        repository: SampleRepository | None = None,
        *,
        horizon_ticks: int = 120,
        short_window: int = 30,
        theoretical_weight: float = THEORETICAL_WEIGHT,
        min_samples: int = MIN_EMPIRICAL_SAMPLES,
    ) -> None:
        if horizon_ticks <= 0:
            raise ValueError("horizon_ticks must be > 0")
        if not 0.0 <= theoretical_weight <= 1.0:
            raise ValueError("theoretical_weight must be within [0, 1]")

        self.symbol = symbol
        self.volatility_engine = volatility_engine
        self.horizon_ticks = horizon_ticks
        self.short_window = short_window
        self.theoretical_weight = theoretical_weight
        self.min_samples = min_samples
        self._repository: SampleRepository | None = None
        self._degraded = False

        if repository is None:
            self._degrade("no sample store configured")
            return

        try:
            total = repository.count(symbol)
        except sqlite3.Error as exc:
            self._degrade(f"sample store unavailable ({exc})")
            return

        if total < min_samples:
            self._degrade(f"only {total} samples for {symbol}")
            return

        self._repository = repository
        logger.info("[ProbEngine] Loaded empirical data for %s: %s samples", symbol, total)

    @property
    def has_empirical(self) -> bool:
        return self._repository is not None

    def _degrade(self, reason: str) -> None:
        self._repository = None
        if self._degraded:
            return
        self._degraded = True
        logger.warning("[ProbEngine] Empirical data disabled: %s. Using theoretical only.", reason)

    def theoretical(self, barrier_distance: float, current_price: float) -> float | None:
        sigma = self.volatility_engine.get_sigma(self.short_window)
        if sigma is None or sigma == 0:
            return None
        if not current_price or not math.isfinite(current_price):
            return None
        return reflection_touch_probability(
            barrier_distance / current_price,
            sigma,
            self.horizon_ticks,
        )

    def empirical(self, barrier_distance: float, direction: Direction) -> EmpiricalEstimate | None:
        repository = self._repository
        if repository is None or direction not in ("up", "down"):
            return None

        try:
            total, hits = repository.touch_counts(self.symbol, barrier_distance, direction)
        except sqlite3.Error as exc:
            self._degrade(f"query failed ({exc})")
            return None

        if total < max(1, self.min_samples):
            return None
        return EmpiricalEstimate(probability=hits / total, sample_size=total)

    def estimate(
        self,
        barrier_distance: float,
        current_price: float,
        direction: Direction,
    ) -> ProbabilityEstimate:
        return combine_estimates(
            self.theoretical(barrier_distance, current_price),
            self.empirical(barrier_distance, direction),
            self.theoretical_weight,
        )

    async def estimate_async(
        self,
        barrier_distance: float,
        current_price: float,
        direction: Direction,
    ) -> ProbabilityEstimate:
        empirical = await asyncio.to_thread(self.empirical, barrier_distance, direction)
        return combine_estimates(
            self.theoretical(barrier_distance, current_price),
            empirical,
            self.theoretical_weight,
        )
