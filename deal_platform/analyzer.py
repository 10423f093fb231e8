"""
deal_platform/analyzer.py
=========================
Core valuation stages shared by every variant.

Covers:
  - Currency normalisation against the FX reference series
  - Financial aggregation: 3-year EUR averages, EBIT margin, CAGR, volatility
  - Balance-sheet ratios: leverage (debt / EBIT) and current ratio
  - Sector base multiple and the three bounded multiple adjustments
    (country risk, revenue size, customer concentration)
  - Enterprise value estimation: normalised earnings and a ±15 % EV band

Every function here is pure. Reference misses are logged and appended to
the caller's `warnings` list; they never raise.
"""
from __future__ import annotations
import logging
import math
from typing import List, Optional, Sequence, Tuple

from .numeric import or_zero, round_half_up, round_to, safe_div
from .reference import ReferenceSnapshot
from .types import (
    EnterpriseValueRange, FinancialAggregates, MultipleFactors, MultipleMode,
    SectorMetrics, ThresholdLookup, VolatilityBasis,
)

logger = logging.getLogger(__name__)

DEFAULT_FX_RATE = 1.0
MULTIPLE_FLOOR = 0.5
MULTIPLE_CAP_SPREAD = 2.0
EV_BAND = 0.15
NORMALIZED_EBIT_WEIGHTS: Tuple[float, float] = (0.6, 0.4)


def record_miss(warnings: List[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)


# ─── Currency Normaliser ──────────────────────────────────────────────────────

def resolve_fx_rate(
    currency_code: Optional[str], snapshot: ReferenceSnapshot, warnings: List[str]
) -> float:
    """EUR conversion rate for a currency; absent or unknown codes fall back to 1.0."""
    if currency_code is None or not currency_code.strip():
        return DEFAULT_FX_RATE
    rate = snapshot.fx_rates.get(currency_code)
    if rate is None:
        record_miss(warnings, f"FX rate not found for currency: {currency_code}, defaulting to 1.0")
        return DEFAULT_FX_RATE
    return float(rate)


def to_eur(amount: Optional[float], fx_rate: float) -> Optional[int]:
    if amount is None:
        return None
    return round_half_up(amount * fx_rate)


# ─── Financial Aggregator ─────────────────────────────────────────────────────

def average_eur(values: Sequence[Optional[float]], fx_rate: float) -> int:
    """Mean of the yearly figures (absent → 0) converted to whole EUR."""
    local = sum(or_zero(v) for v in values) / len(values)
    return round_half_up(local * fx_rate)


def ebit_margin_pct(rev_avg_eur: Optional[float], ebit_avg_eur: Optional[float]) -> Optional[float]:
    if not rev_avg_eur or not ebit_avg_eur:
        return None
    return round_to(ebit_avg_eur / rev_avg_eur * 100, 2)


def cagr_pct(first: Optional[float], last: Optional[float], years: int = 2) -> float:
    """
    Compound growth from `first` to `last` in percent, 2 dp.
    A zero/absent start or end, or a sign flip (negative ratio), yields 0.0.
    """
    if not first or not last:
        return 0.0
    ratio = last / first
    if ratio < 0:
        return 0.0
    return round_to((ratio ** (1 / years) - 1) * 100, 2)


def volatility_pct(values: Sequence[Optional[float]]) -> float:
    """Sample standard deviation over the mean, in percent; 0.0 when the mean is 0."""
    series = [or_zero(v) for v in values]
    mean = sum(series) / len(series)
    if mean == 0:
        return 0.0
    variance = sum((x - mean) ** 2 for x in series) / (len(series) - 1)
    return round_to(math.sqrt(variance) / mean * 100, 2)


def aggregate_financials(
    revenue: Sequence[Optional[float]],
    ebit: Sequence[Optional[float]],
    fx_rate: float,
    volatility_basis: VolatilityBasis = "revenue",
) -> FinancialAggregates:
    rev_avg = average_eur(revenue, fx_rate)
    ebit_avg = average_eur(ebit, fx_rate)
    basis = revenue if volatility_basis == "revenue" else ebit
    return FinancialAggregates(
        fx_rate=fx_rate,
        rev_avg_eur=rev_avg,
        ebit_avg_eur=ebit_avg,
        ebit_margin_pct=ebit_margin_pct(rev_avg, ebit_avg),
        ebit_cagr_pct=cagr_pct(ebit[0], ebit[-1]),
        rev_cagr_pct=cagr_pct(revenue[0], revenue[-1]),
        volatility_pct=volatility_pct(basis),
    )


def leverage_ratio(total_debt: Optional[float], ebit_avg_eur: Optional[float], fx_rate: float) -> Optional[float]:
    """Debt (converted to EUR) over average EBIT; None without an EBIT base."""
    if not ebit_avg_eur:
        return None
    debt_eur = or_zero(total_debt) * fx_rate
    return round_to(debt_eur / ebit_avg_eur, 2)


def current_ratio(current_assets: Optional[float], current_liabilities: Optional[float]) -> Optional[float]:
    ratio = safe_div(or_zero(current_assets), current_liabilities)
    return None if ratio is None else round_to(ratio, 2)


# ─── Multiple & Adjustment Engine ─────────────────────────────────────────────

def resolve_sector(
    sector: Optional[str], snapshot: ReferenceSnapshot, warnings: List[str]
) -> Optional[SectorMetrics]:
    if sector is None or not sector.strip():
        return None
    metrics = snapshot.sector_metrics.get(sector)
    if metrics is None:
        record_miss(warnings, f"Sector metrics not found for sector: {sector}")
    return metrics


def country_risk_delta(
    country_code: Optional[str], snapshot: ReferenceSnapshot, warnings: List[str]
) -> float:
    if country_code is None or not country_code.strip():
        return 0.0
    delta = snapshot.country_adjustments.get(country_code)
    if delta is None:
        record_miss(warnings, f"Country risk not found for country: {country_code}, defaulting to 0.0")
        return 0.0
    return float(delta)


def size_adjustment(rev_eur: Optional[float], snapshot: ReferenceSnapshot) -> float:
    if rev_eur is None:
        return 0.0
    delta = snapshot.size_adjustments.ceiling(rev_eur)
    return 0.0 if delta is None else delta


def concentration_adjustment(
    top3_pct: Optional[float], snapshot: ReferenceSnapshot, lookup: ThresholdLookup = "ceiling"
) -> float:
    if top3_pct is None:
        return 0.0
    series = snapshot.concentration_adjustments
    delta = series.preceding(top3_pct) if lookup == "preceding" else series.ceiling(top3_pct)
    return 0.0 if delta is None else delta


def bound_multiple(
    base: float, candidate: float,
    floor: float = MULTIPLE_FLOOR, cap_spread: float = MULTIPLE_CAP_SPREAD,
) -> float:
    """Cap at base + spread, then floor; the floor wins if the two cross."""
    return round_to(max(floor, min(candidate, base + cap_spread)), 2)


def adjusted_multiple(
    base: Optional[float],
    size_adj: float,
    country_risk: float,
    conc_adj: float,
    mode: MultipleMode = "additive",
    floor: float = MULTIPLE_FLOOR,
    cap_spread: float = MULTIPLE_CAP_SPREAD,
) -> Optional[float]:
    if base is None:
        return None
    deltas = size_adj + country_risk + conc_adj
    if mode == "multiplicative":
        candidate = base * (1 + deltas)
    else:
        candidate = base + deltas
    return bound_multiple(base, candidate, floor, cap_spread)


def resolve_multiple_factors(
    sector: Optional[str],
    country_code: Optional[str],
    rev_eur: Optional[float],
    top3_pct: Optional[float],
    snapshot: ReferenceSnapshot,
    warnings: List[str],
    mode: MultipleMode = "additive",
    concentration_lookup: ThresholdLookup = "ceiling",
    floor: float = MULTIPLE_FLOOR,
    cap_spread: float = MULTIPLE_CAP_SPREAD,
) -> MultipleFactors:
    metrics = resolve_sector(sector, snapshot, warnings)
    base = metrics.base_ebit_multiple if metrics is not None else None
    country = country_risk_delta(country_code, snapshot, warnings)
    size = size_adjustment(rev_eur, snapshot)
    conc = concentration_adjustment(top3_pct, snapshot, concentration_lookup)
    return MultipleFactors(
        base_multiple=base,
        country_risk=country,
        size_adj=size,
        conc_adj=conc,
        adj_multiple=adjusted_multiple(base, size, country, conc, mode, floor, cap_spread),
        sector=metrics,
    )


# ─── Enterprise Value Estimator ───────────────────────────────────────────────

def normalized_earnings(
    latest_ebit: Optional[float],
    forecast_ebit: Optional[float],
    weights: Tuple[float, float] = NORMALIZED_EBIT_WEIGHTS,
) -> Optional[float]:
    if latest_ebit is None or forecast_ebit is None:
        return None
    return weights[0] * latest_ebit + weights[1] * forecast_ebit


def estimate_enterprise_value(
    norm_ebit: Optional[float],
    adj_multiple: Optional[float],
    fx_rate: float,
    band: float = EV_BAND,
) -> EnterpriseValueRange:
    """EV mid = earnings × multiple × FX, in thousands of EUR, with a fixed ±band."""
    if norm_ebit is None or adj_multiple is None:
        return EnterpriseValueRange(norm_ebit=norm_ebit)
    mid_eur = norm_ebit * adj_multiple * fx_rate
    mid_k = mid_eur / 1000
    return EnterpriseValueRange(
        norm_ebit=norm_ebit,
        ev_low_k=round_half_up(mid_k * (1 - band)),
        ev_mid_k=round_half_up(mid_k),
        ev_high_k=round_half_up(mid_k * (1 + band)),
        ev_mid_eur_raw=mid_eur,
    )


def estimate_spot_enterprise_value(
    ebit_eur: Optional[float], adj_multiple: Optional[float], band: float = EV_BAND
) -> Tuple[Optional[int], Optional[int], Optional[int]]:
    """Single-year EV (low, mid, high) in whole EUR from already-converted EBIT."""
    if ebit_eur is None or adj_multiple is None:
        return None, None, None
    mid = round_half_up(ebit_eur * adj_multiple)
    return round_half_up(mid * (1 - band)), mid, round_half_up(mid * (1 + band))
