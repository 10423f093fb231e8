"""
deal_platform/pipeline.py
=========================
The valuation pipeline: one fixed-order chain of pure stages, shared by
the three variants.

    record → parse/validate → FX → aggregates → multiple → EV → scores → result

Validation is the only stage that may raise (`ValidationError`). Reference
misses become neutral values plus an entry in `result.warnings`. The
valuation "now" is the injected `as_of` date, so identical inputs against an
identical snapshot always produce identical results.
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Any, List, Mapping, Optional, Union

from .analyzer import (
    aggregate_financials, current_ratio, estimate_enterprise_value,
    estimate_spot_enterprise_value, leverage_ratio, normalized_earnings,
    resolve_fx_rate, resolve_multiple_factors, to_eur,
)
from .formatting import format_eur_k, format_thousands_eur
from .parser import parse_company_input, parse_free_input
from .reference import ReferenceSnapshot
from .scoring import score_enterprise, score_free, score_standard
from .types import (
    CompanyFinancialInput, EnterpriseValuationResult, FinancialAggregates,
    FreeCompanyInput, FreeValuationResult, MultipleFactors, StandardValuationResult,
)
from .variants import ENTERPRISE, FREE, STANDARD, VariantConfig, get_variant_config

logger = logging.getLogger(__name__)

ValuationResult = Union[FreeValuationResult, StandardValuationResult, EnterpriseValuationResult]


def run_valuation(
    record: Mapping[str, Any],
    snapshot: ReferenceSnapshot,
    variant: str = "enterprise",
    *,
    as_of: Optional[date] = None,
    config: Optional[VariantConfig] = None,
) -> ValuationResult:
    """
    Value one company record with the named variant.

    `config` overrides the registered configuration for `variant`; its
    `name` then selects the scoring path.
    """
    cfg = config or get_variant_config(variant)
    if cfg.name == "free":
        return value_free(record, snapshot, config=cfg)
    if cfg.name == "standard":
        return value_standard(record, snapshot, config=cfg)
    return value_enterprise(record, snapshot, as_of=as_of, config=cfg)


# ─── Shared Stages ────────────────────────────────────────────────────────────

def _company_stages(
    inp: CompanyFinancialInput,
    snapshot: ReferenceSnapshot,
    config: VariantConfig,
    warnings: List[str],
):
    fx = resolve_fx_rate(inp.currency_code, snapshot, warnings)
    agg = aggregate_financials(inp.revenue_history, inp.ebit_history, fx, config.volatility_basis)
    factors = resolve_multiple_factors(
        inp.sector, inp.country_code, agg.rev_avg_eur, inp.top3_concentration_pct,
        snapshot, warnings,
        mode=config.multiple_mode,
        concentration_lookup=config.concentration_lookup,
        floor=config.multiple_floor,
        cap_spread=config.multiple_cap_spread,
    )
    norm = normalized_earnings(inp.ebit_y3, inp.ebit_f1, config.normalized_weights)
    ev = estimate_enterprise_value(norm, factors.adj_multiple, fx, config.ev_band_pct)
    return agg, factors, ev


def _aggregate_columns(agg: FinancialAggregates, factors: MultipleFactors) -> dict:
    return dict(
        calc_fx_rate=agg.fx_rate,
        calc_rev_avg_eur=agg.rev_avg_eur,
        calc_ebit_avg_eur=agg.ebit_avg_eur,
        calc_ebit_margin_pct=agg.ebit_margin_pct,
        calc_ebit_cagr_pct=agg.ebit_cagr_pct,
        calc_volatility_pct=agg.volatility_pct,
        calc_rev_cagr_pct=agg.rev_cagr_pct,
        factor_base_multiple=factors.base_multiple,
        factor_country_risk=factors.country_risk,
        factor_size_adj=factors.size_adj,
        factor_conc_adj=factors.conc_adj,
        factor_adj_multiple=factors.adj_multiple,
    )


# ─── Variants ─────────────────────────────────────────────────────────────────

def value_free(
    record: Union[Mapping[str, Any], FreeCompanyInput],
    snapshot: ReferenceSnapshot,
    *,
    config: VariantConfig = FREE,
) -> FreeValuationResult:
    inp = record if isinstance(record, FreeCompanyInput) else parse_free_input(record)
    logger.debug("Running %s valuation for %s", config.name, inp.company_name)
    warnings: List[str] = []

    fx = resolve_fx_rate(inp.currency, snapshot, warnings)
    rev_eur = to_eur(inp.annual_revenue, fx)
    ebit_eur = to_eur(inp.ebit, fx)
    factors = resolve_multiple_factors(
        inp.sector, inp.country, rev_eur, inp.top3_customers_pct, snapshot, warnings,
        mode=config.multiple_mode,
        concentration_lookup=config.concentration_lookup,
        floor=config.multiple_floor,
        cap_spread=config.multiple_cap_spread,
    )
    low, mid, high = estimate_spot_enterprise_value(ebit_eur, factors.adj_multiple, config.ev_band_pct)
    scores = score_free(inp, rev_eur, factors, config)

    result = FreeValuationResult(
        input=inp,
        calc_fx_rate_to_eur=fx,
        calc_rev_eur=rev_eur,
        calc_ebit_eur=ebit_eur,
        factor_base_ebit_multiple=factors.base_multiple,
        factor_country_risk=factors.country_risk,
        factor_size_adj=factors.size_adj,
        factor_conc_adj=factors.conc_adj,
        val_calc_adj_multiple=factors.adj_multiple,
        val_ev_mid=mid,
        val_ev_mid_eur_k=format_eur_k(mid),
        val_ev_low=low,
        val_ev_low_eur_k=format_eur_k(low),
        val_ev_high=high,
        val_ev_high_eur_k=format_eur_k(high),
        risk_comment=scores.risk_comment,
        plausibility_check=scores.plausibility_check,
        acquisition_score=scores.acquisition_score,
        reference_version=snapshot.version,
        warnings=tuple(warnings),
    )
    logger.debug("Finished %s valuation for %s", config.name, inp.company_name)
    return result


def value_standard(
    record: Union[Mapping[str, Any], CompanyFinancialInput],
    snapshot: ReferenceSnapshot,
    *,
    config: VariantConfig = STANDARD,
) -> StandardValuationResult:
    inp = record if isinstance(record, CompanyFinancialInput) else parse_company_input(record)
    logger.debug("Running %s valuation for %s", config.name, inp.company_name)
    warnings: List[str] = []

    agg, factors, ev = _company_stages(inp, snapshot, config, warnings)
    scores = score_standard(inp, agg, factors, snapshot, config)
    deal = scores.dealability
    strings = config.format_ev_strings

    result = StandardValuationResult(
        input=inp,
        **_aggregate_columns(agg, factors),
        val_norm_ebit_eur=ev.norm_ebit,
        val_ev_low_eur=ev.ev_low_k,
        val_ev_mid_eur=ev.ev_mid_k,
        val_ev_high_eur=ev.ev_high_k,
        val_ev_low_eur_k=format_thousands_eur(ev.ev_low_k) if strings else None,
        val_ev_mid_eur_k=format_thousands_eur(ev.ev_mid_k) if strings else None,
        val_ev_high_eur_k=format_thousands_eur(ev.ev_high_k) if strings else None,
        financial_strength=scores.financial_strength,
        risk_management=scores.risk_management,
        data_completeness=scores.data_completeness,
        growth_score=scores.growth_score,
        sector_context=scores.sector_context,
        investment_attractiveness=scores.investment_attractiveness,
        dealability_size_subscore=deal.size,
        dealability_documentation_subscore=deal.documentation,
        dealability_timeline_subscore=deal.timeline,
        dealability_flexibility_subscore=deal.flexibility,
        dealability_score=deal.score,
        risk_flags=scores.risk_flags,
        tapway_score=scores.tapway_score,
        reference_version=snapshot.version,
        warnings=tuple(warnings),
    )
    logger.debug("Finished %s valuation for %s", config.name, inp.company_name)
    return result


def value_enterprise(
    record: Union[Mapping[str, Any], CompanyFinancialInput],
    snapshot: ReferenceSnapshot,
    *,
    as_of: Optional[date] = None,
    config: VariantConfig = ENTERPRISE,
) -> EnterpriseValuationResult:
    inp = record if isinstance(record, CompanyFinancialInput) else parse_company_input(record)
    as_of = as_of or date.today()
    logger.debug("Running %s valuation for %s as of %s", config.name, inp.company_name, as_of)
    warnings: List[str] = []

    agg, factors, ev = _company_stages(inp, snapshot, config, warnings)
    leverage = leverage_ratio(inp.total_debt, agg.ebit_avg_eur, agg.fx_rate)
    current = current_ratio(inp.current_assets, inp.current_liabilities)
    scores = score_enterprise(
        inp, agg, factors, ev, leverage, current, snapshot, as_of, warnings, config)
    deal = scores.dealability

    result = EnterpriseValuationResult(
        input=inp,
        **_aggregate_columns(agg, factors),
        calc_debt_ebitda_ratio=leverage,
        calc_current_ratio=current,
        val_norm_ebit_eur=ev.norm_ebit,
        val_ev_low_eur=ev.ev_low_k,
        val_ev_mid_eur=ev.ev_mid_k,
        val_ev_high_eur=ev.ev_high_k,
        financial_strength=scores.financial_strength,
        risk_management=scores.risk_management,
        market_context=scores.market_context,
        dealability_size_subscore=deal.size,
        dealability_documentation_subscore=deal.documentation,
        dealability_flexibility_subscore=deal.flexibility,
        dealability_timeline_subscore=deal.timeline,
        dealability_score=deal.score,
        valuation_reliability=scores.valuation_reliability,
        fx_confidence=scores.fx_confidence,
        peer_gap_pct=scores.peer_gap_pct,
        age_warning=scores.age_warning,
        inst_bonus=scores.inst_bonus,
        risk_flags=scores.risk_flags,
        tapway_institutional_score=scores.tapway_institutional_score,
        reference_version=snapshot.version,
        warnings=tuple(warnings),
    )
    logger.debug("Finished %s valuation for %s", config.name, inp.company_name)
    return result
