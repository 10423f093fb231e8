"""
deal_platform/types.py
======================
Dataclasses for the valuation pipeline.
Input records, per-stage derived metrics and the flat per-variant results
handed back to callers. `None` is the single "absent" marker throughout;
a zero is always a real reported value.
"""
from __future__ import annotations
from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Dict, Literal, Optional, Tuple

# ─── Core Aliases ─────────────────────────────────────────────────────────────

# Flat record as exchanged with callers: {column_name: value}
Record = Dict[str, Any]

VariantName = Literal["free", "standard", "enterprise"]
VolatilityBasis = Literal["revenue", "ebit"]
MultipleMode = Literal["additive", "multiplicative"]
ThresholdLookup = Literal["ceiling", "preceding", "floor"]
PlausibilityVerdict = Literal["PASS", "REVIEW", "FAIL"]


def _record_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, tuple):
        return list(value)
    return value


# ─── Inputs ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CompanyFinancialInput:
    """
    Standard / enterprise submission.

    Year 1 is the earliest historical year and year 3 the latest; forecast
    year 1 is the year after year 3. Revenue figures are denominators, so a
    zero revenue average disables the margin. EBIT figures may legitimately
    be zero or negative.
    """
    company_name: str
    sector: Optional[str] = None
    country_code: Optional[str] = None
    currency_code: Optional[str] = None
    valuation_date: Optional[date] = None
    valuation_date_text: Optional[str] = None
    employees: Optional[float] = None

    revenue_y1: Optional[float] = None
    revenue_y2: Optional[float] = None
    revenue_y3: Optional[float] = None
    ebit_y1: Optional[float] = None
    ebit_y2: Optional[float] = None
    ebit_y3: Optional[float] = None

    revenue_f1: Optional[float] = None
    revenue_f2: Optional[float] = None
    revenue_f3: Optional[float] = None
    ebit_f1: Optional[float] = None
    ebit_f2: Optional[float] = None
    ebit_f3: Optional[float] = None

    total_debt: Optional[float] = None
    current_assets: Optional[float] = None
    current_liabilities: Optional[float] = None
    credit_rating: Optional[str] = None
    ownership_pct: Optional[float] = None
    mgmt_turnover_pct: Optional[float] = None
    litigation_active: Optional[bool] = None

    top3_concentration_pct: Optional[float] = None
    founder_dependency_high: Optional[bool] = None
    supplier_dependency_high: Optional[bool] = None
    key_staff_retention_plan: Optional[bool] = None
    financials_audited: Optional[bool] = None
    documentation_readiness: Optional[str] = None
    seller_flexibility: Optional[str] = None
    target_timeline_months: Optional[float] = None

    @property
    def revenue_history(self) -> Tuple[Optional[float], Optional[float], Optional[float]]:
        return (self.revenue_y1, self.revenue_y2, self.revenue_y3)

    @property
    def ebit_history(self) -> Tuple[Optional[float], Optional[float], Optional[float]]:
        return (self.ebit_y1, self.ebit_y2, self.ebit_y3)

    def to_record(self) -> Record:
        record: Record = {}
        for f in fields(self):
            if f.name in ("valuation_date", "valuation_date_text"):
                continue
            record[f.name] = _record_value(getattr(self, f.name))
        record["valuation_date"] = (
            self.valuation_date.isoformat() if self.valuation_date else self.valuation_date_text
        )
        return record


@dataclass(frozen=True)
class FreeCompanyInput:
    """Single-year quick-look submission used by the free variant."""
    company_name: str
    sector: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[str] = None
    annual_revenue: Optional[float] = None
    ebit: Optional[float] = None
    employees: Optional[float] = None
    top3_customers_pct: Optional[float] = None

    def to_record(self) -> Record:
        return {f.name: _record_value(getattr(self, f.name)) for f in fields(self)}


# ─── Reference Rows ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SectorMetrics:
    base_ebit_multiple: float
    target_ebit_margin_pct: Optional[float] = None
    target_cagr_pct: Optional[float] = None
    growth_score: Optional[float] = None


# ─── Stage Outputs ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FinancialAggregates:
    fx_rate: float
    rev_avg_eur: int
    ebit_avg_eur: int
    ebit_margin_pct: Optional[float]
    ebit_cagr_pct: float
    rev_cagr_pct: float
    volatility_pct: float


@dataclass(frozen=True)
class MultipleFactors:
    base_multiple: Optional[float]
    country_risk: float
    size_adj: float
    conc_adj: float
    adj_multiple: Optional[float]
    sector: Optional[SectorMetrics] = None


@dataclass(frozen=True)
class EnterpriseValueRange:
    """EV band in thousands of EUR; `ev_mid_eur_raw` is the unrounded EUR mid-point."""
    norm_ebit: Optional[float] = None
    ev_low_k: Optional[int] = None
    ev_mid_k: Optional[int] = None
    ev_high_k: Optional[int] = None
    ev_mid_eur_raw: float = 0.0


@dataclass(frozen=True)
class DealabilityBreakdown:
    size: int
    documentation: int
    flexibility: int
    timeline: int
    score: int


@dataclass(frozen=True)
class FreeScores:
    risk_comment: str
    plausibility_check: PlausibilityVerdict
    acquisition_score: int


@dataclass(frozen=True)
class StandardScores:
    financial_strength: int
    risk_management: int
    data_completeness: int
    growth_score: int
    sector_context: int
    investment_attractiveness: int
    dealability: DealabilityBreakdown
    risk_flags: str
    tapway_score: int


@dataclass(frozen=True)
class EnterpriseScores:
    financial_strength: int
    risk_management: int
    market_context: int
    dealability: DealabilityBreakdown
    valuation_reliability: int
    fx_confidence: int
    peer_gap_pct: Optional[float]
    age_warning: str
    inst_bonus: int
    risk_flags: str
    tapway_institutional_score: int


# ─── Results ──────────────────────────────────────────────────────────────────

class _FlatRecordMixin:
    """Flattens `input` plus every derived column into one caller-facing record."""

    def to_record(self) -> Record:
        record = self.input.to_record()  # type: ignore[attr-defined]
        for f in fields(self):  # type: ignore[arg-type]
            if f.name == "input":
                continue
            record[f.name] = _record_value(getattr(self, f.name))
        return record


@dataclass(frozen=True)
class FreeValuationResult(_FlatRecordMixin):
    input: FreeCompanyInput
    calc_fx_rate_to_eur: float
    calc_rev_eur: Optional[int]
    calc_ebit_eur: Optional[int]
    factor_base_ebit_multiple: Optional[float]
    factor_country_risk: float
    factor_size_adj: float
    factor_conc_adj: float
    val_calc_adj_multiple: Optional[float]
    val_ev_mid: Optional[int]
    val_ev_mid_eur_k: Optional[str]
    val_ev_low: Optional[int]
    val_ev_low_eur_k: Optional[str]
    val_ev_high: Optional[int]
    val_ev_high_eur_k: Optional[str]
    risk_comment: str
    plausibility_check: PlausibilityVerdict
    acquisition_score: int
    variant: VariantName = "free"
    reference_version: str = "unversioned"
    warnings: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StandardValuationResult(_FlatRecordMixin):
    input: CompanyFinancialInput
    calc_fx_rate: float
    calc_rev_avg_eur: int
    calc_ebit_avg_eur: int
    calc_ebit_margin_pct: Optional[float]
    calc_ebit_cagr_pct: float
    calc_volatility_pct: float
    calc_rev_cagr_pct: float
    factor_base_multiple: Optional[float]
    factor_country_risk: float
    factor_size_adj: float
    factor_conc_adj: float
    factor_adj_multiple: Optional[float]
    val_norm_ebit_eur: Optional[float]
    val_ev_low_eur: Optional[int]
    val_ev_mid_eur: Optional[int]
    val_ev_high_eur: Optional[int]
    val_ev_low_eur_k: Optional[str]
    val_ev_mid_eur_k: Optional[str]
    val_ev_high_eur_k: Optional[str]
    financial_strength: int
    risk_management: int
    data_completeness: int
    growth_score: int
    sector_context: int
    investment_attractiveness: int
    dealability_size_subscore: int
    dealability_documentation_subscore: int
    dealability_timeline_subscore: int
    dealability_flexibility_subscore: int
    dealability_score: int
    risk_flags: str
    tapway_score: int
    variant: VariantName = "standard"
    reference_version: str = "unversioned"
    warnings: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class EnterpriseValuationResult(_FlatRecordMixin):
    input: CompanyFinancialInput
    calc_fx_rate: float
    calc_rev_avg_eur: int
    calc_ebit_avg_eur: int
    calc_ebit_margin_pct: Optional[float]
    calc_ebit_cagr_pct: float
    calc_volatility_pct: float
    calc_rev_cagr_pct: float
    calc_debt_ebitda_ratio: Optional[float]
    calc_current_ratio: Optional[float]
    factor_base_multiple: Optional[float]
    factor_country_risk: float
    factor_size_adj: float
    factor_conc_adj: float
    factor_adj_multiple: Optional[float]
    val_norm_ebit_eur: Optional[float]
    val_ev_low_eur: Optional[int]
    val_ev_mid_eur: Optional[int]
    val_ev_high_eur: Optional[int]
    financial_strength: int
    risk_management: int
    market_context: int
    dealability_size_subscore: int
    dealability_documentation_subscore: int
    dealability_flexibility_subscore: int
    dealability_timeline_subscore: int
    dealability_score: int
    valuation_reliability: int
    fx_confidence: int
    peer_gap_pct: Optional[float]
    age_warning: str
    inst_bonus: int
    risk_flags: str
    tapway_institutional_score: int
    variant: VariantName = "enterprise"
    reference_version: str = "unversioned"
    warnings: Tuple[str, ...] = field(default_factory=tuple)
