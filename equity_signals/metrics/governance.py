"""Quick-analysis metric catalog and per-sector readiness states.

Each of the seventeen quick-analysis metrics is classified per sector as
core, optional or not applicable, then matched against the indicator
values and sector benchmarks available for a company to produce a
readiness state. The sector scorers in
``equity_signals.metrics.sector_scoring`` consume those states.
"""

from __future__ import annotations

import datetime
import logging
import re
import unicodedata
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

CONTRACT_VERSION = "p3.0"


class MetricStatus(Enum):
    """Readiness of one metric for one company."""

    OK = "ok"
    CALCULATED = "calculated"
    NOT_APPLICABLE = "nao_aplicavel"
    NO_CURRENT_DATA = "sem_dado_atual"
    SOURCE_ERROR = "erro_fonte"

    @property
    def is_ready(self) -> bool:
        return self in (MetricStatus.OK, MetricStatus.CALCULATED)

    @property
    def is_missing(self) -> bool:
        return self in (MetricStatus.NO_CURRENT_DATA, MetricStatus.SOURCE_ERROR)


class MetricPriority(Enum):
    CORE = "core"
    OPTIONAL = "optional"
    NOT_APPLICABLE = "nao_aplicavel"


class MetricCategory(Enum):
    GROWTH = "crescimento"
    PROFITABILITY = "rentabilidade"
    RETURN_ON_CAPITAL = "retorno_capital"
    MULTIPLES = "multiplos"
    CAPITAL_STRUCTURE = "estrutura_capital"
    RISK = "risco"


SECTORS: tuple[str, ...] = (
    "Technology",
    "Communication Services",
    "Healthcare",
    "Financial Services",
    "Real Estate",
    "Industrials",
    "Energy",
    "Consumer Defensive",
    "Consumer Cyclical",
    "Basic Materials",
    "Utilities",
)

_ALL_SECTORS = SECTORS
_NON_FINANCIAL = tuple(s for s in SECTORS if s != "Financial Services")
_MARGIN_STANDARD = tuple(
    s for s in SECTORS if s not in ("Financial Services", "Real Estate", "Utilities")
)

# First match wins; checked only when the label is not a sector name.
_SECTOR_ALIASES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("consumer staples", "consumer defensive"), "Consumer Defensive"),
    (("consumer discretionary", "consumer cyclical"), "Consumer Cyclical"),
    (("health care", "healthcare"), "Healthcare"),
    (("materials", "basic materials"), "Basic Materials"),
    (("utility", "utilities"), "Utilities"),
    (("financial", "financial services"), "Financial Services"),
    (("industrial", "industrials"), "Industrials"),
    (("communication services", "telecom", "media"), "Communication Services"),
    (("energy",), "Energy"),
    (("technology",), "Technology"),
    (("real estate", "reit"), "Real Estate"),
)

_DASH_VALUES = frozenset({"", "-", "--", "---", "N/A", "n/a", "—"})

_BENCHMARK_PERIODS = {
    "peer_median": "TTM",
    "google_finance": "TTM",
    "yahoo_finance": "TTM",
    "industry_snapshot": "FY",
    "sector_snapshot": "FY",
    "fallback": "MIXED",
}

DERIVED_SOURCE = "indicadores.derived"


@dataclass(frozen=True)
class MetricDefinition:
    """Catalog entry for one quick-analysis metric.

    Attributes:
        key: Stable metric key (e.g. ``"pe"``).
        label: Display label used to look up indicator values.
        category: Metric family, drives scoring sensitivity.
        unit: ``ratio``, ``percent``, ``currency`` or ``score``.
        data_period: ``TTM``, ``FY``, ``Q`` or ``MIXED``.
        primary_sources: Upstream sources tried first.
        fallback_sources: Sources used when the primary is empty.
        formula: Derivation formula for computed metrics.
        aliases: Alternative display labels.
        core_sectors: Sectors where the metric is required.
        not_applicable_sectors: Sectors where the metric is meaningless.
    """

    key: str
    label: str
    category: MetricCategory
    unit: str
    data_period: str
    primary_sources: tuple[str, ...]
    fallback_sources: tuple[str, ...]
    formula: str | None = None
    aliases: tuple[str, ...] = ()
    core_sectors: tuple[str, ...] = ()
    not_applicable_sectors: tuple[str, ...] = ()

    def priority(self, sector: str | None) -> MetricPriority:
        """Priority of this metric in a resolved sector."""
        if not sector:
            return MetricPriority.OPTIONAL
        if sector in self.not_applicable_sectors:
            return MetricPriority.NOT_APPLICABLE
        if sector in self.core_sectors:
            return MetricPriority.CORE
        return MetricPriority.OPTIONAL

    def sector_policy(self) -> dict[str, MetricPriority]:
        return {sector: self.priority(sector) for sector in SECTORS}


_RATIOS_TTM = "fmp.ratios-ttm"
_KEY_METRICS_TTM = "fmp.key-metrics-ttm"
_PEER_MEDIAN = "benchmark.peer_median"
_SECTOR_FALLBACK = "sector.fallback"

METRIC_CATALOG: tuple[MetricDefinition, ...] = (
    MetricDefinition(
        key="revenue_growth",
        label="Crescimento Receita",
        aliases=("Crescimento da Receita",),
        category=MetricCategory.GROWTH,
        unit="percent",
        data_period="TTM",
        primary_sources=("fmp.financial-growth",),
        fallback_sources=(_PEER_MEDIAN, _SECTOR_FALLBACK),
        core_sectors=_ALL_SECTORS,
    ),
    MetricDefinition(
        key="cagr_eps",
        label="CAGR EPS",
        category=MetricCategory.GROWTH,
        unit="percent",
        data_period="MIXED",
        primary_sources=("fmp.earnings-calendar", "fmp.income-statement"),
        fallback_sources=(_PEER_MEDIAN, _SECTOR_FALLBACK),
        core_sectors=_NON_FINANCIAL,
    ),
    MetricDefinition(
        key="eps",
        label="EPS",
        category=MetricCategory.GROWTH,
        unit="currency",
        data_period="TTM",
        primary_sources=(_KEY_METRICS_TTM,),
        fallback_sources=(_PEER_MEDIAN,),
        core_sectors=_ALL_SECTORS,
    ),
    MetricDefinition(
        key="gross_margin",
        label="Margem Bruta",
        category=MetricCategory.PROFITABILITY,
        unit="percent",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM,),
        fallback_sources=(_PEER_MEDIAN, _SECTOR_FALLBACK),
        core_sectors=_MARGIN_STANDARD,
    ),
    MetricDefinition(
        key="ebitda_margin",
        label="Margem EBITDA",
        category=MetricCategory.PROFITABILITY,
        unit="percent",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM,),
        fallback_sources=(_PEER_MEDIAN, _SECTOR_FALLBACK),
        core_sectors=_NON_FINANCIAL,
    ),
    MetricDefinition(
        key="net_margin",
        label="Margem Liquida",
        aliases=("Margem Líquida",),
        category=MetricCategory.PROFITABILITY,
        unit="percent",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM,),
        fallback_sources=(_PEER_MEDIAN, _SECTOR_FALLBACK),
        core_sectors=_ALL_SECTORS,
    ),
    MetricDefinition(
        key="operating_margin",
        label="Margem Operacional",
        category=MetricCategory.PROFITABILITY,
        unit="percent",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM,),
        fallback_sources=(_PEER_MEDIAN, _SECTOR_FALLBACK),
        core_sectors=_ALL_SECTORS,
    ),
    MetricDefinition(
        key="roic",
        label="ROIC",
        category=MetricCategory.RETURN_ON_CAPITAL,
        unit="percent",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM, _KEY_METRICS_TTM),
        fallback_sources=(_PEER_MEDIAN,),
        formula="(NOPAT) / investedCapital",
        core_sectors=tuple(s for s in _NON_FINANCIAL if s != "Real Estate"),
        not_applicable_sectors=("Financial Services",),
    ),
    MetricDefinition(
        key="roe",
        label="ROE",
        category=MetricCategory.RETURN_ON_CAPITAL,
        unit="percent",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM, _KEY_METRICS_TTM),
        fallback_sources=(_PEER_MEDIAN, _SECTOR_FALLBACK),
        formula="netIncome / avgShareholderEquity",
        core_sectors=_ALL_SECTORS,
    ),
    MetricDefinition(
        key="pe",
        label="P/L",
        category=MetricCategory.MULTIPLES,
        unit="ratio",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM,),
        fallback_sources=(
            "benchmark.industry_snapshot",
            "google_finance",
            "yahoo_finance",
            _SECTOR_FALLBACK,
        ),
        core_sectors=_ALL_SECTORS,
    ),
    MetricDefinition(
        key="ps",
        label="P/S",
        category=MetricCategory.MULTIPLES,
        unit="ratio",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM,),
        fallback_sources=(_PEER_MEDIAN, _SECTOR_FALLBACK),
        core_sectors=_ALL_SECTORS,
    ),
    MetricDefinition(
        key="peg",
        label="PEG",
        category=MetricCategory.MULTIPLES,
        unit="ratio",
        data_period="MIXED",
        primary_sources=(_RATIOS_TTM,),
        fallback_sources=(_PEER_MEDIAN, _SECTOR_FALLBACK),
        formula="(P/L) / growthRate",
        core_sectors=(
            "Technology",
            "Communication Services",
            "Healthcare",
            "Consumer Cyclical",
            "Consumer Defensive",
            "Industrials",
            "Basic Materials",
        ),
    ),
    MetricDefinition(
        key="debt_to_ebitda",
        label="Divida/EBITDA",
        aliases=("Dívida/EBITDA", "Endividamento"),
        category=MetricCategory.CAPITAL_STRUCTURE,
        unit="ratio",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM,),
        fallback_sources=(_PEER_MEDIAN,),
        core_sectors=_NON_FINANCIAL,
        not_applicable_sectors=("Financial Services",),
    ),
    MetricDefinition(
        key="current_ratio",
        label="Liquidez Corrente",
        category=MetricCategory.CAPITAL_STRUCTURE,
        unit="ratio",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM, _KEY_METRICS_TTM),
        fallback_sources=(_PEER_MEDIAN,),
        core_sectors=_NON_FINANCIAL,
    ),
    MetricDefinition(
        key="debt_equity",
        label="Divida / Capitais Proprios",
        aliases=(
            "Dívida / Capitais Próprios",
            "Divida/Patrimonio",
            "Dívida/Patrimônio",
            "Debt/Equity",
        ),
        category=MetricCategory.CAPITAL_STRUCTURE,
        unit="ratio",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM, _KEY_METRICS_TTM),
        fallback_sources=(_PEER_MEDIAN,),
        core_sectors=_ALL_SECTORS,
    ),
    MetricDefinition(
        key="cash_ratio",
        label="Cash Ratio",
        category=MetricCategory.CAPITAL_STRUCTURE,
        unit="ratio",
        data_period="TTM",
        primary_sources=(_RATIOS_TTM, _KEY_METRICS_TTM),
        fallback_sources=(_PEER_MEDIAN,),
        core_sectors=_NON_FINANCIAL,
    ),
    MetricDefinition(
        key="beta",
        label="Beta",
        category=MetricCategory.RISK,
        unit="ratio",
        data_period="TTM",
        primary_sources=("fmp.profile",),
        fallback_sources=(_PEER_MEDIAN,),
        core_sectors=_ALL_SECTORS,
    ),
)

CATALOG_BY_KEY: dict[str, MetricDefinition] = {m.key: m for m in METRIC_CATALOG}


@dataclass(frozen=True)
class MetricState:
    """Readiness of one metric for one company.

    ``value`` and ``benchmark_value`` are display strings exactly as
    received; scorers parse them on demand.
    """

    key: str
    status: MetricStatus
    value: str | None
    source: str | None
    data_period: str | None
    as_of: str
    priority: MetricPriority
    reason: str | None = None
    benchmark_value: str | None = None
    benchmark_source: str | None = None
    benchmark_data_period: str | None = None

    @property
    def required_for_sector(self) -> bool:
        return self.priority is MetricPriority.CORE


@dataclass(frozen=True)
class GovernanceSummary:
    """Status counts across all metric states."""

    total: int = 0
    ok: int = 0
    calculated: int = 0
    nao_aplicavel: int = 0
    sem_dado_atual: int = 0
    erro_fonte: int = 0
    core_total: int = 0
    core_ready: int = 0
    core_missing: int = 0
    optional_total: int = 0
    optional_ready: int = 0
    optional_missing: int = 0


@dataclass(frozen=True)
class IngestionInfo:
    current_data_period_raw: str | None
    current_data_period_normalized: str | None
    benchmark_as_of: str | None
    sources_observed: dict[str, int]
    resolved_sector: str | None


@dataclass(frozen=True)
class MetricGovernance:
    """Catalog, per-metric states and summary for one company."""

    catalog: tuple[MetricDefinition, ...]
    states: dict[str, MetricState]
    ingestion: IngestionInfo
    summary: GovernanceSummary
    contract_version: str = CONTRACT_VERSION


def normalize_label(value: str) -> str:
    """Fold a display label for comparison.

    Accents are stripped, any remaining non-ASCII is dropped, runs of
    non-alphanumerics become one space, and the result is lower-cased.
    """
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    ascii_only = re.sub(r"[^\x20-\x7E]", "", stripped)
    return re.sub(r"[^a-zA-Z0-9]+", " ", ascii_only).strip().lower()


def is_dash_like(value: object) -> bool:
    """True for None and placeholders such as ``"-"`` or ``"N/A"``.

    Non-string values (JSON numbers) are compared by their text form.
    """
    if value is None:
        return True
    return str(value).strip() in _DASH_VALUES


def resolve_sector(label: str | None) -> str | None:
    """Map a free-text sector label onto one of ``SECTORS``.

    Args:
        label: Sector label (e.g. ``"Health Care"``, ``"REIT - Office"``).

    Returns:
        Canonical sector name, or None when nothing matches.
    """
    if not label:
        return None
    normalized = normalize_label(label)
    for sector in SECTORS:
        if normalize_label(sector) == normalized:
            return sector
    for aliases, target in _SECTOR_ALIASES:
        if any(alias in normalized for alias in aliases):
            return target
    logger.debug("sector label %r not recognised", label)
    return None


def normalize_period_tag(period: str | None) -> str | None:
    """Normalise a free-text data period to ``TTM``, ``Q`` or ``FY``."""
    if not period:
        return None
    normalized = normalize_label(period)
    if "ttm" in normalized:
        return "TTM"
    if re.search(r"\bq[1-4]\b", normalized) or "quarter" in normalized:
        return "Q"
    if (
        normalized.startswith("fy")
        or " fiscal" in normalized
        or "annual" in normalized
    ):
        return "FY"
    return None


def benchmark_period(source: str | None) -> str | None:
    """Data period implied by a benchmark source name."""
    if not source:
        return None
    return _BENCHMARK_PERIODS.get(source)


def find_label_key(labels: tuple[str, ...], values: Mapping[str, object]) -> str | None:
    """Find the mapping key for the first matching label.

    Exact labels are tried first, then accent- and case-insensitive
    matches.
    """
    for candidate in labels:
        if values.get(candidate) is not None:
            return candidate
    normalized = {normalize_label(c) for c in labels}
    for key in values:
        if normalize_label(key) in normalized:
            return key
    return None


def _find_value(labels: tuple[str, ...], values: Mapping[str, object]) -> str | None:
    # Values are kept as display text; JSON numbers arrive as int/float.
    key = find_label_key(labels, values)
    if key is None or values[key] is None:
        return None
    return str(values[key])


def summarize(states: Mapping[str, MetricState]) -> GovernanceSummary:
    """Count metric states by status and priority."""
    counts: Counter[str] = Counter()
    for state in states.values():
        counts["total"] += 1
        counts[state.status.value] += 1
        if state.priority is MetricPriority.CORE:
            prefix = "core"
        elif state.priority is MetricPriority.OPTIONAL:
            prefix = "optional"
        else:
            continue
        counts[f"{prefix}_total"] += 1
        if state.status.is_ready:
            counts[f"{prefix}_ready"] += 1
        if state.status.is_missing:
            counts[f"{prefix}_missing"] += 1
    return GovernanceSummary(**counts)


def _sources_observed(states: Mapping[str, MetricState]) -> dict[str, int]:
    observed: Counter[str] = Counter()
    for state in states.values():
        if state.source:
            observed[state.source] += 1
        if state.benchmark_source:
            observed[f"benchmark.{state.benchmark_source}"] += 1
    return dict(observed)


def _metric_state(
    metric: MetricDefinition,
    priority: MetricPriority,
    sector_label: str,
    indicators: Mapping[str, str],
    calculated_by_label: Mapping[str, Mapping[str, str]],
    benchmark_comparisons: Mapping[str, str],
    benchmark_metadata: Mapping[str, Mapping[str, object]],
    current_period: str | None,
    as_of: str,
) -> MetricState:
    if metric.data_period == "MIXED":
        data_period = current_period or "MIXED"
    else:
        data_period = metric.data_period

    if priority is MetricPriority.NOT_APPLICABLE:
        sector_slug = re.sub(r"\s+", "_", normalize_label(sector_label))
        return MetricState(
            key=metric.key,
            status=MetricStatus.NOT_APPLICABLE,
            value=None,
            source=None,
            data_period=data_period,
            as_of=as_of,
            priority=priority,
            reason=f"metrica_nao_aplicavel_para_{sector_slug}",
        )

    labels = (metric.label, *metric.aliases)
    raw_value = _find_value(labels, indicators)
    calculated_key = find_label_key(labels, calculated_by_label)
    calculated = (
        calculated_by_label[calculated_key] if calculated_key is not None else None
    )
    benchmark_value = _find_value(labels, benchmark_comparisons)
    if is_dash_like(benchmark_value):
        benchmark_value = None
    metadata_key = find_label_key(labels, benchmark_metadata)
    benchmark_source = None
    if metadata_key is not None:
        raw_source = benchmark_metadata[metadata_key].get("source")
        benchmark_source = str(raw_source) if raw_source else None

    common = dict(
        key=metric.key,
        data_period=data_period,
        as_of=as_of,
        priority=priority,
        benchmark_value=benchmark_value,
        benchmark_source=benchmark_source,
        benchmark_data_period=benchmark_period(benchmark_source),
    )

    if not is_dash_like(raw_value):
        if metric.formula:
            default_source = DERIVED_SOURCE
        else:
            default_source = metric.primary_sources[0] if metric.primary_sources else "api"
        reason = None
        if calculated is not None and calculated.get("formula"):
            reason = f"formula:{calculated['formula']}"
        return MetricState(
            status=(
                MetricStatus.CALCULATED if calculated is not None else MetricStatus.OK
            ),
            value=raw_value,
            source=(
                calculated.get("source") if calculated is not None else None
            ) or default_source,
            reason=reason,
            **common,
        )

    if priority is MetricPriority.CORE:
        reason = "core_metric_sem_dado_atual"
    elif benchmark_value is None:
        reason = "optional_metric_sem_dado_atual"
    else:
        reason = "optional_metric_com_benchmark_sem_valor_atual"
    return MetricState(
        status=MetricStatus.NO_CURRENT_DATA,
        value=None,
        source=metric.primary_sources[0] if metric.primary_sources else None,
        reason=reason,
        **common,
    )


def build_governance(
    sector: str,
    indicators: Mapping[str, str],
    calculated_by_label: Mapping[str, Mapping[str, str]] | None = None,
    benchmark_comparisons: Mapping[str, str] | None = None,
    benchmark_metadata: Mapping[str, Mapping[str, object]] | None = None,
    current_data_period: str | None = None,
    benchmark_as_of: str | None = None,
    as_of: str | None = None,
) -> MetricGovernance:
    """Classify every catalog metric for one company.

    Args:
        sector: Free-text sector label of the company.
        indicators: Display label -> current value string.
        calculated_by_label: Display label -> {"source", "formula"} for
            metrics derived locally rather than read upstream.
        benchmark_comparisons: Display label -> sector benchmark string.
        benchmark_metadata: Display label -> {"source", "sampleSize"}.
        current_data_period: Period tag of the indicator values.
        benchmark_as_of: Timestamp of the benchmark snapshot.
        as_of: Timestamp stamped on every state (defaults to now, UTC).

    Returns:
        MetricGovernance with one state per catalog metric.
    """
    as_of = as_of or datetime.datetime.now(datetime.timezone.utc).isoformat()
    calculated_by_label = calculated_by_label or {}
    benchmark_comparisons = benchmark_comparisons or {}
    benchmark_metadata = benchmark_metadata or {}
    current_period = normalize_period_tag(current_data_period)
    resolved = resolve_sector(sector)

    states: dict[str, MetricState] = {}
    for metric in METRIC_CATALOG:
        states[metric.key] = _metric_state(
            metric,
            metric.priority(resolved),
            sector,
            indicators,
            calculated_by_label,
            benchmark_comparisons,
            benchmark_metadata,
            current_period,
            as_of,
        )

    summary = summarize(states)
    logger.debug(
        "governance for sector %r (%s): %d/%d core metrics ready",
        sector, resolved, summary.core_ready, summary.core_total,
    )
    return MetricGovernance(
        catalog=METRIC_CATALOG,
        states=states,
        ingestion=IngestionInfo(
            current_data_period_raw=current_data_period,
            current_data_period_normalized=current_period,
            benchmark_as_of=benchmark_as_of,
            sources_observed=_sources_observed(states),
            resolved_sector=resolved,
        ),
        summary=summary,
    )
