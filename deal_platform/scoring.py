"""
deal_platform/scoring.py
========================
Composite Scoring Engine.

Every sub-score is on a 0–100 scale and is computed independently from the
stage outputs in `analyzer`. Absent inputs degrade to 0 (or the documented
neutral value); nothing here raises. Rounded scores are clamped to [0, 100]
unless the variant configuration disables clamping.

Sections:
  - Shared: dealability subscores, flag joining, weighted blends
  - Free: risk comment, plausibility verdict, acquisition score
  - Standard: margin strength, dependency risk, completeness, sector context
  - Enterprise: weighted strength, balance-sheet risk, market context,
    reliability, FX confidence, peer gap, age warning, institutional bonus
"""
from __future__ import annotations
import logging
from datetime import date, timedelta
from typing import List, Mapping, Optional, Sequence

from .analyzer import record_miss
from .numeric import clamp_score, or_zero, round_half_up, round_to
from .reference import ReferenceSnapshot, normalize_key
from .types import (
    CompanyFinancialInput, DealabilityBreakdown, EnterpriseScores,
    EnterpriseValueRange, FinancialAggregates, FreeCompanyInput, FreeScores,
    MultipleFactors, PlausibilityVerdict, SectorMetrics, StandardScores,
)
from .variants import ENTERPRISE, FREE, STANDARD, VariantConfig

logger = logging.getLogger(__name__)


def finish_score(value: float, config: VariantConfig) -> int:
    rounded = round_half_up(value)
    return clamp_score(rounded) if config.clamp_scores else rounded


def weighted_blend(parts: Mapping[str, float], weights: Mapping[str, float]) -> float:
    return sum(weights[k] * or_zero(parts.get(k)) for k in weights)


def join_flags(flags: Sequence[str], default: str) -> str:
    return " | ".join(flags) if flags else default


def _ratio_or_zero(num: Optional[float], den: Optional[float]) -> float:
    if num is None or not den:
        return 0.0
    return num / den


# ─── Dealability ──────────────────────────────────────────────────────────────

def documentation_subscore(readiness: Optional[str]) -> int:
    token = normalize_key(readiness) if readiness else ""
    return {"full": 100, "partial": 50}.get(token, 0)


def flexibility_subscore(flexibility: Optional[str]) -> int:
    token = normalize_key(flexibility) if flexibility else ""
    return {"high": 100, "medium": 50}.get(token, 0)


def timeline_subscore(months: Optional[float]) -> int:
    """≤3 months → 0, ≤6 → 50, longer → 100; absent → 0."""
    if months is None:
        return 0
    if months <= 3:
        return 0
    if months <= 6:
        return 50
    return 100


def revenue_band_size_subscore(
    rev_avg_eur: Optional[float], snapshot: ReferenceSnapshot, config: VariantConfig = STANDARD
) -> int:
    """First size band whose `rev_min_eur` ≥ revenue, scaled ×100; no band → default."""
    if rev_avg_eur is not None:
        series = snapshot.size_adjustments
        for limit, delta in zip(series.breakpoints, series.values):
            if rev_avg_eur <= limit:
                return finish_score(delta * 100, config)
    return config.deal_size_default


def ev_band_size_subscore(ev_mid_eur: float, snapshot: ReferenceSnapshot) -> int:
    """Highest deal-size band whose `ev_min_eur` ≤ EV mid; 0 when EV is not positive."""
    if ev_mid_eur <= 0:
        return 0
    score = snapshot.deal_size_scores.floor(ev_mid_eur)
    return 0 if score is None else int(score)


def dealability(
    size: int,
    readiness: Optional[str],
    flexibility: Optional[str],
    timeline_months: Optional[float],
    config: VariantConfig,
) -> DealabilityBreakdown:
    doc = documentation_subscore(readiness)
    flex = flexibility_subscore(flexibility)
    timeline = timeline_subscore(timeline_months)
    return DealabilityBreakdown(
        size=size,
        documentation=doc,
        flexibility=flex,
        timeline=timeline,
        score=finish_score((size + doc + flex + timeline) / 4, config),
    )


# ─── Free Variant ─────────────────────────────────────────────────────────────

def free_risk_comment(
    top3_pct: Optional[float],
    revenue: Optional[float],
    ebit: Optional[float],
    country_risk: float,
    config: VariantConfig = FREE,
) -> str:
    flags: List[str] = []
    if top3_pct is not None:
        if top3_pct >= 60:
            flags.append("Very high customer concentration")
        elif top3_pct >= 45:
            flags.append("High customer concentration")
    if revenue and ebit and ebit / revenue < 0.05:
        flags.append("Very low profitability")
    if country_risk <= -0.4:
        flags.append("Elevated country risk")
    return join_flags(flags, config.no_risk_text)


def plausibility_check(
    revenue: Optional[float],
    ebit: Optional[float],
    top3_pct: Optional[float],
    employees: Optional[float],
) -> PlausibilityVerdict:
    """FAIL on impossible figures, REVIEW on unusual margin or productivity, else PASS."""
    top3 = or_zero(top3_pct)
    if revenue is None or ebit is None or revenue <= 0 or ebit < 0 or not 0 <= top3 <= 100:
        return "FAIL"
    margin = ebit / revenue
    if margin < 0.03 or margin > 0.45:
        return "REVIEW"
    if employees and employees > 0:
        rev_per_employee = revenue / employees
        if rev_per_employee < 50_000 or rev_per_employee > 2_500_000:
            return "REVIEW"
    return "PASS"


def profitability_term(margin: float) -> float:
    if margin <= 0:
        return 0.0
    if margin <= 0.05:
        return 0.2 * (margin / 0.05)
    if margin <= 0.15:
        return 0.2 + 0.4 * ((margin - 0.05) / 0.1)
    if margin <= 0.25:
        return 0.6 + 0.3 * ((margin - 0.15) / 0.1)
    if margin >= 0.3:
        return 1.0
    return 0.9 + 0.1 * ((margin - 0.25) / 0.05)


def concentration_term(top3_pct: Optional[float]) -> float:
    t3 = or_zero(top3_pct)
    if t3 >= 60:
        return 0.0
    if t3 >= 45:
        return 0.3 - 0.3 * ((t3 - 45) / 15)
    if t3 >= 30:
        return 0.7 - 0.4 * ((t3 - 30) / 15)
    return 1.0


def size_term(rev_eur: Optional[float]) -> float:
    rev = or_zero(rev_eur)
    if rev < 5_000_000:
        return 0.2
    if rev < 15_000_000:
        return 0.5
    if rev < 50_000_000:
        return 0.7
    if rev < 100_000_000:
        return 0.9
    return 1.0


def multiple_term(base_multiple: Optional[float]) -> float:
    m = or_zero(base_multiple)
    if m <= -0.3:
        return 0.2
    if m < 0:
        return 0.2 + 0.4 * ((m + 0.3) / 0.3)
    if m < 0.2:
        return 0.6 + 0.2 * (m / 0.2)
    if m >= 0.4:
        return 1.0
    return 0.8 + 0.2 * ((m - 0.2) / 0.2)


def acquisition_score(
    revenue: Optional[float],
    ebit: Optional[float],
    top3_pct: Optional[float],
    rev_eur: Optional[float],
    base_multiple: Optional[float],
    config: VariantConfig = FREE,
) -> int:
    rev = or_zero(revenue)
    margin_term = profitability_term(or_zero(ebit) / rev) if rev > 0 else 0.0
    parts = {
        "profitability": margin_term,
        "concentration": concentration_term(top3_pct),
        "size": size_term(rev_eur),
        "multiple": multiple_term(base_multiple),
    }
    return finish_score(100 * weighted_blend(parts, config.acquisition_weights), config)


def score_free(
    inp: FreeCompanyInput,
    rev_eur: Optional[int],
    factors: MultipleFactors,
    config: VariantConfig = FREE,
) -> FreeScores:
    return FreeScores(
        risk_comment=free_risk_comment(
            inp.top3_customers_pct, inp.annual_revenue, inp.ebit, factors.country_risk, config),
        plausibility_check=plausibility_check(
            inp.annual_revenue, inp.ebit, inp.top3_customers_pct, inp.employees),
        acquisition_score=acquisition_score(
            inp.annual_revenue, inp.ebit, inp.top3_customers_pct, rev_eur,
            factors.base_multiple, config),
    )


# ─── Standard Variant ─────────────────────────────────────────────────────────

def margin_strength(margin_pct: Optional[float], config: VariantConfig = STANDARD) -> int:
    """Piecewise margin score: 0→20 up to 5 %, 20→60 up to 15 %, 60→90 up to 25 %, then 90."""
    if margin_pct is None:
        return 0
    m = margin_pct / 100
    if m < 0.05:
        score = 20 * m / 0.05
    elif m < 0.15:
        score = 20 + 40 * (m - 0.05) / 0.1
    elif m < 0.25:
        score = 60 + 30 * (m - 0.15) / 0.1
    else:
        score = 90
    return finish_score(min(100, score), config)


def dependency_risk_management(inp: CompanyFinancialInput, config: VariantConfig = STANDARD) -> int:
    founder = 0 if inp.founder_dependency_high else 100
    supplier = 0 if inp.supplier_dependency_high else 100
    concentration = 50 if or_zero(inp.top3_concentration_pct) > 50 else 100
    retention = 100 if inp.key_staff_retention_plan else 0
    return finish_score((founder + supplier + concentration + retention) / 4, config)


COMPLETENESS_FIELDS = (
    "sector", "country_code", "currency_code", "employees",
    "revenue_y1", "revenue_y2", "revenue_y3",
    "ebit_y1", "ebit_y2", "ebit_y3",
    "revenue_f1", "revenue_f2", "revenue_f3",
    "ebit_f1", "ebit_f2", "ebit_f3",
    "top3_concentration_pct", "founder_dependency_high", "supplier_dependency_high",
    "key_staff_retention_plan", "documentation_readiness", "seller_flexibility",
    "target_timeline_months",
)


def data_completeness(inp: CompanyFinancialInput, config: VariantConfig = STANDARD) -> int:
    filled = sum(1 for name in COMPLETENESS_FIELDS if getattr(inp, name) is not None)
    return finish_score(100 * filled / len(COMPLETENESS_FIELDS), config)


def sector_context(
    margin_pct: Optional[float],
    rev_cagr_pct: Optional[float],
    sector: Optional[SectorMetrics],
    config: VariantConfig = STANDARD,
) -> int:
    """10 × (margin / target margin + CAGR / target CAGR), negative ratios floored at 0."""
    if sector is None:
        return 0
    margin_ratio = max(0.0, _ratio_or_zero(margin_pct, sector.target_ebit_margin_pct))
    cagr_ratio = max(0.0, _ratio_or_zero(rev_cagr_pct, sector.target_cagr_pct))
    return finish_score(10 * (margin_ratio + cagr_ratio), config)


def standard_risk_flags(
    rev_cagr_pct: float, margin_pct: Optional[float], config: VariantConfig = STANDARD
) -> str:
    flags: List[str] = []
    if rev_cagr_pct < 0:
        flags.append("Negative revenue CAGR")
    if margin_pct is not None and margin_pct < 5.0:
        flags.append("Low margin (<5%)")
    return join_flags(flags, config.no_risk_text)


def score_standard(
    inp: CompanyFinancialInput,
    agg: FinancialAggregates,
    factors: MultipleFactors,
    snapshot: ReferenceSnapshot,
    config: VariantConfig = STANDARD,
) -> StandardScores:
    growth = 0
    if factors.sector is not None and factors.sector.growth_score is not None:
        # sector scores are whole numbers; fractions truncate
        growth = int(factors.sector.growth_score)
        if config.clamp_scores:
            growth = clamp_score(growth)

    parts = {
        "financial_strength": margin_strength(agg.ebit_margin_pct, config),
        "growth_score": growth,
        "risk_management": dependency_risk_management(inp, config),
        "sector_context": sector_context(
            agg.ebit_margin_pct, agg.rev_cagr_pct, factors.sector, config),
        "data_completeness": data_completeness(inp, config),
    }
    attractiveness = finish_score(weighted_blend(parts, config.composite_weights), config)

    if config.deal_size_basis == "revenue_band":
        size = revenue_band_size_subscore(agg.rev_avg_eur, snapshot, config)
    else:
        size = config.deal_size_default
    deal = dealability(
        size, inp.documentation_readiness, inp.seller_flexibility,
        inp.target_timeline_months, config)

    return StandardScores(
        financial_strength=parts["financial_strength"],
        risk_management=parts["risk_management"],
        data_completeness=parts["data_completeness"],
        growth_score=growth,
        sector_context=parts["sector_context"],
        investment_attractiveness=attractiveness,
        dealability=deal,
        risk_flags=standard_risk_flags(agg.rev_cagr_pct, agg.ebit_margin_pct, config),
        tapway_score=finish_score(0.6 * attractiveness + 0.4 * deal.score, config),
    )


# ─── Enterprise Variant ───────────────────────────────────────────────────────

def weighted_financial_strength(agg: FinancialAggregates, config: VariantConfig = ENTERPRISE) -> int:
    parts = {
        "margin": or_zero(agg.ebit_margin_pct),
        "revenue_cagr": agg.rev_cagr_pct,
        "stability": 100 - agg.volatility_pct,
    }
    return finish_score(weighted_blend(parts, config.financial_strength_weights), config)


def credit_score(
    rating: Optional[str], snapshot: ReferenceSnapshot, warnings: List[str]
) -> float:
    if rating is None or not rating.strip():
        return 0.0
    score = snapshot.credit_ratings.get(rating)
    if score is None:
        record_miss(warnings, f"Credit rating not found: {rating}, defaulting to 0")
        return 0.0
    return float(int(score))


def balance_sheet_risk_management(
    credit: float,
    leverage: Optional[float],
    current_ratio: Optional[float],
    ownership_pct: Optional[float],
    mgmt_turnover_pct: Optional[float],
    litigation_active: Optional[bool],
    country_risk: float,
    config: VariantConfig = ENTERPRISE,
) -> int:
    parts = {
        "credit": credit,
        "leverage": max(0.0, 100 - or_zero(leverage) * 20),
        "liquidity": min(100.0, or_zero(current_ratio) * 50),
        "ownership": max(0.0, 100 - or_zero(ownership_pct)),
        "management": max(0.0, 100 - or_zero(mgmt_turnover_pct)),
        "litigation": 50 if litigation_active else 100,
        "country": max(0.0, 100 - country_risk * 100),
    }
    return finish_score(weighted_blend(parts, config.risk_weights), config)


def market_context(
    factors: MultipleFactors,
    agg: FinancialAggregates,
    config: VariantConfig = ENTERPRISE,
) -> int:
    """Valuation, growth and profitability versus sector targets, capped at 100."""
    if factors.adj_multiple is None:
        return 0
    sector = factors.sector
    target_cagr = sector.target_cagr_pct if sector else None
    target_margin = sector.target_ebit_margin_pct if sector else None
    total = (
        50 * _ratio_or_zero(factors.adj_multiple, factors.base_multiple)
        + 25 * _ratio_or_zero(agg.rev_cagr_pct, target_cagr)
        + 25 * _ratio_or_zero(agg.ebit_margin_pct, target_margin)
    )
    return finish_score(min(100.0, total), config)


def _older_than(valuation_date: Optional[date], as_of: date, days: int) -> bool:
    return valuation_date is not None and valuation_date < as_of - timedelta(days=days)


def valuation_reliability(
    volatility_pct: float,
    audited: Optional[bool],
    valuation_date: Optional[date],
    as_of: date,
    config: VariantConfig = ENTERPRISE,
) -> int:
    parts = {
        "volatility": max(0.0, 100 - volatility_pct),
        "audited": 100 if audited is True else 70,
        "recency": 70 if _older_than(valuation_date, as_of, config.recency_days) else 100,
    }
    return finish_score(weighted_blend(parts, config.reliability_weights), config)


def fx_confidence(currency_code: Optional[str], config: VariantConfig = ENTERPRISE) -> int:
    if currency_code:
        for code, score in config.fx_confidence.items():
            if normalize_key(code) == normalize_key(currency_code):
                return score
    return config.fx_confidence_default


def peer_gap_pct(
    adj_multiple: Optional[float], sector: Optional[str], config: VariantConfig = ENTERPRISE
) -> Optional[float]:
    """Adjusted multiple versus a peer reference multiple, in percent (1 dp)."""
    if adj_multiple is None or not sector:
        return None
    reference = config.peer_reference_default
    for name, multiple in config.peer_reference_multiples.items():
        if normalize_key(name) == normalize_key(sector):
            reference = multiple
            break
    return round_to((adj_multiple / reference - 1) * 100, 1)


def age_warning(valuation_date: Optional[date], as_of: date, config: VariantConfig = ENTERPRISE) -> str:
    if _older_than(valuation_date, as_of, config.age_warning_days):
        return config.age_warning_text
    return ""


def institutional_bonus(ev_mid_eur: float, audited: Optional[bool], config: VariantConfig = ENTERPRISE) -> int:
    if ev_mid_eur > config.institutional_ev_threshold_eur and audited is True:
        return config.institutional_bonus
    return 0


def enterprise_risk_flags(
    leverage: Optional[float],
    current_ratio: Optional[float],
    ownership_pct: Optional[float],
    litigation_active: Optional[bool],
    config: VariantConfig = ENTERPRISE,
) -> str:
    flags: List[str] = []
    if leverage is not None and leverage > 3:
        flags.append("High Leverage")
    if current_ratio is not None and current_ratio < 1:
        flags.append("Low Liquidity")
    if ownership_pct is not None and ownership_pct > 50:
        flags.append("High Conc")
    if litigation_active is True:
        flags.append("Litigation")
    return join_flags(flags, config.no_risk_text)


def score_enterprise(
    inp: CompanyFinancialInput,
    agg: FinancialAggregates,
    factors: MultipleFactors,
    ev: EnterpriseValueRange,
    leverage: Optional[float],
    current: Optional[float],
    snapshot: ReferenceSnapshot,
    as_of: date,
    warnings: List[str],
    config: VariantConfig = ENTERPRISE,
) -> EnterpriseScores:
    credit = credit_score(inp.credit_rating, snapshot, warnings)
    deal = dealability(
        ev_band_size_subscore(ev.ev_mid_eur_raw, snapshot),
        inp.documentation_readiness, inp.seller_flexibility,
        inp.target_timeline_months, config)
    bonus = institutional_bonus(ev.ev_mid_eur_raw, inp.financials_audited, config)

    parts = {
        "financial_strength": weighted_financial_strength(agg, config),
        "risk_management": balance_sheet_risk_management(
            credit, leverage, current, inp.ownership_pct, inp.mgmt_turnover_pct,
            inp.litigation_active, factors.country_risk, config),
        "market_context": market_context(factors, agg, config),
        "dealability": deal.score,
        "valuation_reliability": valuation_reliability(
            agg.volatility_pct, inp.financials_audited, inp.valuation_date, as_of, config),
    }
    composite = weighted_blend(parts, config.composite_weights) + bonus

    return EnterpriseScores(
        financial_strength=parts["financial_strength"],
        risk_management=parts["risk_management"],
        market_context=parts["market_context"],
        dealability=deal,
        valuation_reliability=parts["valuation_reliability"],
        fx_confidence=fx_confidence(inp.currency_code, config),
        peer_gap_pct=peer_gap_pct(factors.adj_multiple, inp.sector, config),
        age_warning=age_warning(inp.valuation_date, as_of, config),
        inst_bonus=bonus,
        risk_flags=enterprise_risk_flags(
            leverage, current, inp.ownership_pct, inp.litigation_active, config),
        tapway_institutional_score=finish_score(composite, config),
    )
