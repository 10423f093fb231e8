"""
deal_platform/formatting.py
===========================
EUR display strings ("1,200k EUR", "€1.25 bn"), percent, ratio
and score-tier helpers for valuation results.
"""
from __future__ import annotations
from typing import Dict, Optional, Union

from .numeric import round_half_up
from .types import EnterpriseValuationResult, FreeValuationResult, StandardValuationResult

ValuationResult = Union[FreeValuationResult, StandardValuationResult, EnterpriseValuationResult]


def format_thousands_eur(value_k: Optional[float]) -> Optional[str]:
    """Render a figure already in thousands: 1200 → "1,200k EUR"."""
    if value_k is None:
        return None
    return f"{round_half_up(value_k):,}k EUR"


def format_eur_k(value_eur: Optional[float]) -> Optional[str]:
    """Render a full-EUR figure in thousands: 1_200_400 → "1,200k EUR"."""
    if value_eur is None:
        return None
    return format_thousands_eur(value_eur / 1000)


def format_eur_compact(value: Optional[float], decimals: int = 2) -> str:
    """
    Abbreviated EUR: bn / m / k.
    e.g. 1_250_000_000 → €1.25 bn, 4_500_000 → €4.50 m
    """
    if value is None:
        return "—"
    if value == 0:
        return "€0"

    abs_val = abs(value)
    sign = "-" if value < 0 else ""

    if abs_val >= 1_000_000_000:
        return f"{sign}€{abs_val / 1_000_000_000:,.{decimals}f} bn"
    elif abs_val >= 1_000_000:
        return f"{sign}€{abs_val / 1_000_000:,.{decimals}f} m"
    elif abs_val >= 1_000:
        return f"{sign}€{abs_val / 1_000:,.{decimals}f}k"
    else:
        return f"{sign}€{abs_val:,.{decimals}f}"


def format_percent(value: Optional[float], decimals: int = 2) -> str:
    if value is None:
        return "—"
    return f"{value:+.{decimals}f}%" if abs(value) < 1000 else f"{value:,.{decimals}f}%"


def format_ratio(value: Optional[float], decimals: int = 2) -> str:
    if value is None:
        return "—"
    return f"{value:.{decimals}f}x"


def score_tier(score: int) -> str:
    if score >= 70:
        return "Strong"
    elif score >= 40:
        return "Moderate"
    return "Weak"


def summarize_result(result: ValuationResult) -> Dict[str, str]:
    """Display-ready key figures for any variant's result."""
    summary: Dict[str, str] = {
        "Company": result.input.company_name,
        "Variant": result.variant.title(),
    }
    if isinstance(result, FreeValuationResult):
        summary["Adjusted Multiple"] = format_ratio(result.val_calc_adj_multiple)
        summary["EV Range"] = _ev_range(result.val_ev_low_eur_k, result.val_ev_high_eur_k)
        summary["EV Mid"] = result.val_ev_mid_eur_k or "—"
        summary["Plausibility"] = result.plausibility_check
        summary["Acquisition Score"] = f"{result.acquisition_score} ({score_tier(result.acquisition_score)})"
        summary["Risks"] = result.risk_comment
        return summary

    summary["Avg Revenue"] = format_eur_compact(result.calc_rev_avg_eur)
    summary["EBIT Margin"] = format_percent(result.calc_ebit_margin_pct)
    summary["Revenue CAGR"] = format_percent(result.calc_rev_cagr_pct)
    summary["Adjusted Multiple"] = format_ratio(result.factor_adj_multiple)
    summary["EV Range"] = _ev_range(
        format_thousands_eur(result.val_ev_low_eur), format_thousands_eur(result.val_ev_high_eur))
    summary["EV Mid"] = format_thousands_eur(result.val_ev_mid_eur) or "—"

    if isinstance(result, StandardValuationResult):
        score = result.tapway_score
    else:
        summary["Debt / EBIT"] = format_ratio(result.calc_debt_ebitda_ratio)
        summary["Current Ratio"] = format_ratio(result.calc_current_ratio)
        summary["Peer Gap"] = format_percent(result.peer_gap_pct, 1)
        score = result.tapway_institutional_score
        if result.age_warning:
            summary["Age Warning"] = result.age_warning
    summary["Tapway Score"] = f"{score} ({score_tier(score)})"
    summary["Risks"] = result.risk_flags
    return summary


def _ev_range(low: Optional[str], high: Optional[str]) -> str:
    if low is None or high is None:
        return "—"
    return f"{low} – {high}"
