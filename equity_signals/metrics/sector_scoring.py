"""Sector-relative and data-quality scores over metric governance states."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

import numpy as np

from equity_signals.metrics.governance import (
    MetricCategory,
    MetricGovernance,
    is_dash_like,
)

logger = logging.getLogger(__name__)

# Metrics where a value below the sector benchmark is favourable.
LOWER_IS_BETTER = frozenset({"pe", "ps", "peg", "debt_to_ebitda", "debt_equity", "beta"})

# Points per unit of relative ratio; volatile multiples move the score
# less than stable margins.
CATEGORY_SENSITIVITY: dict[MetricCategory, float] = {
    MetricCategory.MULTIPLES: 40.0,
    MetricCategory.CAPITAL_STRUCTURE: 45.0,
    MetricCategory.GROWTH: 50.0,
    MetricCategory.PROFITABILITY: 55.0,
    MetricCategory.RETURN_ON_CAPITAL: 55.0,
    MetricCategory.RISK: 35.0,
}
DEFAULT_SENSITIVITY = 50.0

NEUTRAL_SCORE = 50.0

_SECTOR_LABELS = ((85, "Excelente"), (70, "Forte"), (55, "Solido"), (40, "Neutro"))
_QUALITY_LABELS = ((85, "Robusta"), (70, "Boa"), (50, "Moderada"))

_LEADING_FLOAT = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


@dataclass(frozen=True)
class RelativeScore:
    score: float
    comparable_core: int
    favorable_core: int


@dataclass(frozen=True)
class SectorContextScore:
    """Company score blended with its position against sector benchmarks.

    Attributes:
        score: Final 0-100 score after the confidence penalty.
        label: Excelente, Forte, Solido, Neutro or Fragil.
        sector: Sector label as supplied by the caller.
        confidence: 0-100 confidence from core coverage and
            comparability.
        core_coverage: Percent of core metrics in a ready state.
        benchmark_comparable_core: Core metrics compared to a benchmark.
        favorable_vs_benchmark_core: Comparable core metrics at or
            better than their benchmark.
    """

    score: int
    label: str
    sector: str
    confidence: int
    core_coverage: int
    benchmark_comparable_core: int
    favorable_vs_benchmark_core: int


@dataclass(frozen=True)
class DataQualityScore:
    """Completeness and reliability of the metric payload."""

    score: int
    label: str
    core_coverage: int
    direct_rate: float
    calculated_rate: float
    missing_rate: float


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def _clip(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return float(np.clip(value, low, high))


def parse_metric_numeric(value: object) -> float | None:
    """Parse a display string such as ``"12.5%"`` or ``"$1,234"``.

    Percent signs, commas, dollar signs and whitespace are stripped and
    the leading number is read. Placeholders parse to None.
    """
    if is_dash_like(value):
        return None
    cleaned = re.sub(r"\s+", "", re.sub(r"[%,$]", "", str(value)))
    match = _LEADING_FLOAT.match(cleaned)
    if match is None:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def compute_relative_core_score(governance: MetricGovernance) -> RelativeScore:
    """Average benchmark-relative score over comparable core metrics.

    A core metric is comparable when it is ready and both its value and
    benchmark parse. Lower-is-better metrics need both numbers positive;
    higher-is-better metrics need a non-zero benchmark.

    Returns:
        RelativeScore, neutral (50) when nothing is comparable.
    """
    categories = {metric.key: metric.category for metric in governance.catalog}
    metric_scores: list[float] = []
    favorable = 0

    for key, state in governance.states.items():
        if not state.required_for_sector or not state.status.is_ready:
            continue
        current = parse_metric_numeric(state.value)
        benchmark = parse_metric_numeric(state.benchmark_value)
        if current is None or benchmark is None:
            continue

        lower_better = key in LOWER_IS_BETTER
        if lower_better and (current <= 0 or benchmark <= 0):
            continue
        if not lower_better and benchmark == 0:
            continue

        ratio = benchmark / current if lower_better else current / benchmark
        sensitivity = CATEGORY_SENSITIVITY.get(categories.get(key), DEFAULT_SENSITIVITY)
        metric_scores.append(_clip(50 + (ratio - 1) * sensitivity))

        if (lower_better and current <= benchmark) or (
            not lower_better and current >= benchmark
        ):
            favorable += 1

    if not metric_scores:
        return RelativeScore(NEUTRAL_SCORE, 0, 0)
    return RelativeScore(
        score=_round1(float(np.mean(metric_scores))),
        comparable_core=len(metric_scores),
        favorable_core=favorable,
    )


def sector_score_label(score: float) -> str:
    for threshold, label in _SECTOR_LABELS:
        if score >= threshold:
            return label
    return "Fragil"


def data_quality_label(score: float) -> str:
    for threshold, label in _QUALITY_LABELS:
        if score >= threshold:
            return label
    return "Fraca"


def confidence_penalty(confidence: float) -> float:
    """Score multiplier applied when comparable data is thin."""
    if confidence < 50:
        return 0.85
    if confidence < 65:
        return 0.93
    return 1.0


def compute_sector_context_score(
    composite_score: float, governance: MetricGovernance, sector: str
) -> SectorContextScore:
    """Blend a composite company score with its sector-relative position.

    With at least one comparable core metric the two are weighted
    equally; otherwise the composite score carries 85% against a neutral
    50. The blend is then scaled down when confidence is low.

    Args:
        composite_score: Company score on a 0-100 scale.
        governance: Metric governance for the company.
        sector: Sector label echoed in the result.

    Returns:
        SectorContextScore.
    """
    summary = governance.summary
    core_total = summary.core_total
    core_coverage = summary.core_ready / core_total * 100 if core_total > 0 else 0.0

    relative = compute_relative_core_score(governance)
    comparable_ratio = relative.comparable_core / core_total if core_total > 0 else 0.0
    confidence = _round_half_up(_clip(core_coverage * 0.65 + comparable_ratio * 35))

    if relative.comparable_core > 0:
        raw = composite_score * 0.50 + relative.score * 0.50
    else:
        raw = composite_score * 0.85 + NEUTRAL_SCORE * 0.15
    score = _round_half_up(_clip(raw * confidence_penalty(confidence)))

    logger.debug(
        "sector context %s: raw=%.2f relative=%.1f confidence=%d score=%d",
        sector, raw, relative.score, confidence, score,
    )
    return SectorContextScore(
        score=score,
        label=sector_score_label(score),
        sector=sector,
        confidence=confidence,
        core_coverage=_round_half_up(core_coverage),
        benchmark_comparable_core=relative.comparable_core,
        favorable_vs_benchmark_core=relative.favorable_core,
    )


def compute_data_quality_score(governance: MetricGovernance) -> DataQualityScore:
    """Score payload completeness from the governance summary.

    Not-applicable metrics are excluded from the denominator.
    """
    summary = governance.summary
    effective_total = max(1, summary.total - summary.nao_aplicavel)

    direct_rate = summary.ok / effective_total
    calculated_rate = summary.calculated / effective_total
    missing_rate = (summary.sem_dado_atual + summary.erro_fonte) / effective_total
    core_coverage = (
        summary.core_ready / summary.core_total if summary.core_total > 0 else 0.0
    )

    score = _round_half_up(
        _clip(
            core_coverage * 100 * 0.55
            + direct_rate * 100 * 0.25
            + calculated_rate * 100 * 0.10
            - missing_rate * 100 * 0.25
        )
    )
    return DataQualityScore(
        score=score,
        label=data_quality_label(score),
        core_coverage=_round_half_up(core_coverage * 100),
        direct_rate=_round1(direct_rate * 100),
        calculated_rate=_round1(calculated_rate * 100),
        missing_rate=_round1(missing_rate * 100),
    )
