"""
deal_platform/variants.py
=========================
Per-variant configuration (Free / Standard / Enterprise).

One pipeline skeleton runs every variant; a `VariantConfig` carries the
constants that differ between them: weights, breakpoints, caps, day
windows and flag wording. Override any of them with `dataclasses.replace`:

    cfg = replace(ENTERPRISE, recency_days=365)
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from .types import MultipleMode, ThresholdLookup, VariantName, VolatilityBasis


# ─── Variant Configuration ────────────────────────────────────────────────────

@dataclass(frozen=True)
class VariantConfig:
    name: VariantName

    # Aggregation & multiple
    volatility_basis: VolatilityBasis = "revenue"
    multiple_mode: MultipleMode = "additive"
    concentration_lookup: ThresholdLookup = "ceiling"
    multiple_floor: float = 0.5
    multiple_cap_spread: float = 2.0

    # Enterprise value
    ev_band_pct: float = 0.15
    normalized_weights: Tuple[float, float] = (0.6, 0.4)
    format_ev_strings: bool = False

    # Composite weights, keyed by sub-score name
    composite_weights: Mapping[str, float] = field(default_factory=dict)
    financial_strength_weights: Mapping[str, float] = field(default_factory=dict)
    risk_weights: Mapping[str, float] = field(default_factory=dict)
    reliability_weights: Mapping[str, float] = field(default_factory=dict)
    acquisition_weights: Mapping[str, float] = field(default_factory=dict)

    # Institutional bonus
    institutional_bonus: int = 3
    institutional_ev_threshold_eur: float = 50_000_000

    # Date windows (days before as_of)
    recency_days: int = 540
    age_warning_days: int = 730
    age_warning_text: str = "⚠ Data older than 2 years"

    # Dealability size subscore: "revenue_band" (size bands × 100) or "ev_band"
    deal_size_basis: str = "ev_band"
    deal_size_default: int = 60

    # Enterprise extras
    fx_confidence: Mapping[str, int] = field(default_factory=dict)
    fx_confidence_default: int = 80
    peer_reference_multiples: Mapping[str, float] = field(default_factory=dict)
    peer_reference_default: float = 9.0

    # Risk flag wording
    no_risk_text: str = "No major risks"

    clamp_scores: bool = True


FREE = VariantConfig(
    name="free",
    multiple_mode="multiplicative",
    concentration_lookup="preceding",
    format_ev_strings=True,
    acquisition_weights={
        "profitability": 0.30, "concentration": 0.25, "size": 0.25, "multiple": 0.20,
    },
    no_risk_text="No major concentration risk",
)

STANDARD = VariantConfig(
    name="standard",
    volatility_basis="ebit",
    format_ev_strings=True,
    composite_weights={
        "financial_strength": 0.30,
        "growth_score": 0.25,
        "risk_management": 0.20,
        "sector_context": 0.15,
        "data_completeness": 0.10,
    },
    deal_size_basis="revenue_band",
    no_risk_text="No major risk flags",
)

ENTERPRISE = VariantConfig(
    name="enterprise",
    composite_weights={
        "financial_strength": 0.25,
        "risk_management": 0.20,
        "market_context": 0.15,
        "dealability": 0.15,
        "valuation_reliability": 0.15,
    },
    financial_strength_weights={"margin": 0.4, "revenue_cagr": 0.3, "stability": 0.3},
    risk_weights={
        "credit": 0.25,
        "leverage": 0.15,
        "liquidity": 0.15,
        "ownership": 0.15,
        "management": 0.10,
        "litigation": 0.10,
        "country": 0.10,
    },
    reliability_weights={"volatility": 0.4, "audited": 0.4, "recency": 0.2},
    fx_confidence={"EUR": 100, "USD": 95, "GBP": 90},
    peer_reference_multiples={"Manufacturing": 7.0, "SaaS": 12.0},
)

VARIANTS: Dict[str, VariantConfig] = {
    cfg.name: cfg for cfg in (FREE, STANDARD, ENTERPRISE)
}


def get_variant_config(name: Optional[str]) -> VariantConfig:
    """Resolve a variant by (case-insensitive) name."""
    key = (name or "").strip().lower()
    try:
        return VARIANTS[key]
    except KeyError:
        raise ValueError(
            f"Unknown variant {name!r}; expected one of {', '.join(VARIANTS)}"
        ) from None
