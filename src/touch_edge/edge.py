from __future__ import annotations

from dataclasses import dataclass, field

from .probability import ProbabilityEstimate
from .volatility import VolatilityEngine, VolatilitySnapshot

QUIET_VOL_RATIO = 0.7
BELOW_AVERAGE_VOL_RATIO = 0.9
LOW_SAMPLE_WARNING = 500


def implied_probability(payout_pct: float) -> float:
    return 1.0 / (1.0 + payout_pct / 100.0)


@dataclass(frozen=True)
class EdgeReport:
    implied_probability: float
    probability: float
    theoretical: float | None
    empirical: float | None
    edge: float
    sample_size: int
    warnings: list[str] = field(default_factory=list)

    def to_payload(self) -> dict:
        return {
            "implied_probability": self.implied_probability,
            "probability": self.probability,
            "theoretical": self.theoretical,
            "empirical": self.empirical,
            "edge": self.edge,
            "sample_size": self.sample_size,
            "warnings": list(self.warnings),
        }


def evaluate_edge(
    estimate: ProbabilityEstimate,
    payout_pct: float,
    tick_count: int,
    volatility: VolatilitySnapshot,
    *,
    warmup_ticks: int = 300,
    low_sample_threshold: int = LOW_SAMPLE_WARNING,
) -> EdgeReport:
    """Describe the estimate against the quoted payout.

    The report carries context only: no signal, no directive. A missing
    probability is reported as 0 with a warning so the payload shape never
    changes.
    """
    implied = implied_probability(payout_pct)
    combined = estimate.combined

    warnings: list[str] = []
    if tick_count < warmup_ticks:
        warnings.append(f"Warmup: {tick_count}/{warmup_ticks} ticks")

    ratio = volatility.vol_ratio
    if ratio is not None and ratio < QUIET_VOL_RATIO:
        warnings.append(f"Vol ratio below {QUIET_VOL_RATIO}, market quiet")
    if volatility.vol_trend == "CONTRACTING" and ratio is not None and ratio < BELOW_AVERAGE_VOL_RATIO:
        warnings.append("Vol contracting and below average")
    if combined is None:
        warnings.append("Probability unavailable, insufficient data")
    if estimate.sample_size < low_sample_threshold:
        warnings.append(f"Low sample size: {estimate.sample_size}")

    return EdgeReport(
        implied_probability=implied,
        probability=combined if combined is not None else 0.0,
        theoretical=estimate.theoretical,
        empirical=estimate.empirical,
        edge=combined - implied if combined is not None else 0.0,
        sample_size=estimate.sample_size,
        warnings=warnings,
    )


class EdgeEvaluator:
    def __init__(
        self,
        volatility_engine: VolatilityEngine,
        *,
        warmup_ticks: int = 300,
        low_sample_threshold: int = LOW_SAMPLE_WARNING,
    ) -> None:
        self.volatility_engine = volatility_engine
        self.warmup_ticks = warmup_ticks
        self.low_sample_threshold = low_sample_threshold

    def analyze(self, estimate: ProbabilityEstimate, payout_pct: float, tick_count: int) -> EdgeReport:
        return evaluate_edge(
            estimate,
            payout_pct,
            tick_count,
            self.volatility_engine.get_snapshot(),
            warmup_ticks=self.warmup_ticks,
            low_sample_threshold=self.low_sample_threshold,
        )
