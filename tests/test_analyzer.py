"""
tests/test_analyzer.py
======================
Unit tests for the shared valuation stages.
Tests cover: FX normalisation, 3-year aggregation, CAGR and volatility
guards, balance-sheet ratios, multiple adjustments and bounds,
normalised earnings and the EV band.

Run:  pytest tests/ -v
"""
import itertools

import pytest

from deal_platform.analyzer import (
    adjusted_multiple,
    aggregate_financials,
    average_eur,
    bound_multiple,
    cagr_pct,
    concentration_adjustment,
    current_ratio,
    ebit_margin_pct,
    estimate_enterprise_value,
    estimate_spot_enterprise_value,
    leverage_ratio,
    normalized_earnings,
    resolve_fx_rate,
    resolve_multiple_factors,
    size_adjustment,
    to_eur,
    volatility_pct,
)


# ─── Currency Normaliser ──────────────────────────────────────────────────────

class TestResolveFxRate:
    def test_absent_currency_is_one_without_warning(self, snapshot):
        warnings = []
        assert resolve_fx_rate(None, snapshot, warnings) == 1.0
        assert resolve_fx_rate("  ", snapshot, warnings) == 1.0
        assert warnings == []

    def test_unmatched_currency_is_one_with_warning(self, snapshot):
        warnings = []
        assert resolve_fx_rate("JPY", snapshot, warnings) == 1.0
        assert len(warnings) == 1
        assert "JPY" in warnings[0]

    def test_case_insensitive_match(self, snapshot):
        warnings = []
        assert resolve_fx_rate(" gbp ", snapshot, warnings) == pytest.approx(1.15)
        assert warnings == []

    def test_to_eur_multiplies_and_rounds(self):
        assert to_eur(1000, 1.15) == 1150
        assert to_eur(None, 1.15) is None
        assert to_eur(0.5, 1.0) == 1


# ─── Financial Aggregator ─────────────────────────────────────────────────────

class TestAggregation:
    def test_average_treats_absent_as_zero(self):
        assert average_eur([100, None, 200], 1.0) == 100

    def test_average_converts(self):
        assert average_eur([100, 100, 100], 1.15) == 115

    def test_margin(self):
        assert ebit_margin_pct(1000, 250) == 25.0

    def test_margin_absent_without_both_averages(self):
        assert ebit_margin_pct(0, 10) is None
        assert ebit_margin_pct(1000, 0) is None
        assert ebit_margin_pct(0, 0) is None

    def test_end_to_end_example(self):
        agg = aggregate_financials(
            (394_328_000_000, 365_817_000_000, 274_515_000_000),
            (114_301_000_000, 108_949_000_000, 66_288_000_000),
            1.0,
        )
        assert agg.rev_avg_eur == 344_886_666_667
        assert agg.ebit_avg_eur == 96_512_666_667
        assert agg.ebit_margin_pct == 27.98
        assert agg.rev_cagr_pct == pytest.approx(-16.56, abs=0.01)

    def test_volatility_basis_selects_series(self):
        rev = (100.0, 110.0, 121.0)
        ebit = (10.0, 12.0, 14.4)
        by_rev = aggregate_financials(rev, ebit, 1.0, "revenue")
        by_ebit = aggregate_financials(rev, ebit, 1.0, "ebit")
        assert by_rev.volatility_pct == pytest.approx(9.52, abs=0.01)
        assert by_ebit.volatility_pct == pytest.approx(18.16, abs=0.01)


class TestCagr:
    def test_growth(self):
        assert cagr_pct(100, 121) == 10.0

    def test_zero_or_absent_start(self):
        assert cagr_pct(0, 100) == 0.0
        assert cagr_pct(None, 100) == 0.0

    def test_absent_end(self):
        assert cagr_pct(100, None) == 0.0

    def test_sign_flip_is_zero(self):
        assert cagr_pct(100, -50) == 0.0
        assert cagr_pct(-100, 50) == 0.0

    def test_zero_end_is_zero(self):
        assert cagr_pct(100, 0) == 0.0


class TestVolatility:
    def test_equal_values(self):
        assert volatility_pct([250, 250, 250]) == 0.0

    def test_zero_mean(self):
        assert volatility_pct([0, 0, 0]) == 0.0
        assert volatility_pct([-10, 0, 10]) == 0.0

    def test_sample_deviation_over_mean(self):
        assert volatility_pct([90, 100, 110]) == 10.0

    def test_absent_values_count_as_zero(self):
        assert volatility_pct([None, 100, 200]) == 100.0


class TestBalanceSheetRatios:
    def test_leverage(self):
        assert leverage_ratio(300, 100, 1.0) == 3.0

    def test_leverage_converts_debt(self):
        assert leverage_ratio(100, 115, 1.15) == 1.0

    def test_leverage_absent_without_ebit(self):
        assert leverage_ratio(100, 0, 1.0) is None

    def test_absent_debt_is_zero_leverage(self):
        assert leverage_ratio(None, 100, 1.0) == 0.0

    def test_current_ratio(self):
        assert current_ratio(150, 100) == 1.5
        assert current_ratio(150, 0) is None
        assert current_ratio(150, None) is None


# ─── Multiple & Adjustment Engine ─────────────────────────────────────────────

class TestAdjustments:
    def test_size_bands(self, snapshot):
        assert size_adjustment(5_000_000, snapshot) == -0.5
        assert size_adjustment(10_000_000, snapshot) == -0.5
        assert size_adjustment(10_000_001, snapshot) == -0.2
        assert size_adjustment(2_000_000_000, snapshot) == 0.5
        assert size_adjustment(None, snapshot) == 0.0

    def test_concentration_ceiling(self, snapshot):
        assert concentration_adjustment(15, snapshot) == 0.0
        assert concentration_adjustment(45, snapshot) == -0.6
        assert concentration_adjustment(None, snapshot) == 0.0

    def test_concentration_preceding(self, snapshot):
        assert concentration_adjustment(15, snapshot, "preceding") == 0.0
        assert concentration_adjustment(45, snapshot, "preceding") == -0.3

    def test_unknown_sector_nulls_multiple(self, snapshot):
        warnings = []
        factors = resolve_multiple_factors("Widgets", "DE", 1e8, 10, snapshot, warnings)
        assert factors.base_multiple is None
        assert factors.adj_multiple is None
        assert factors.sector is None
        assert any("Widgets" in w for w in warnings)

    def test_absent_sector_has_no_warning(self, snapshot):
        warnings = []
        factors = resolve_multiple_factors(None, None, None, None, snapshot, warnings)
        assert factors.adj_multiple is None
        assert warnings == []

    def test_unknown_country_defaults_to_zero(self, snapshot):
        warnings = []
        factors = resolve_multiple_factors("saas", "ZZ", 1e8, 10, snapshot, warnings)
        assert factors.country_risk == 0.0
        assert factors.base_multiple == 10.0
        assert len(warnings) == 1


class TestAdjustedMultiple:
    def test_additive(self):
        assert adjusted_multiple(6.0, 0.5, 0.2, 0.0) == 6.7

    def test_cap(self):
        assert adjusted_multiple(6.0, 3.0, 0.0, 0.0) == 8.0

    def test_floor(self):
        assert adjusted_multiple(1.0, -5.0, 0.0, 0.0) == 0.5

    def test_absent_base(self):
        assert adjusted_multiple(None, 0.5, 0.2, 0.0) is None

    def test_multiplicative(self):
        assert adjusted_multiple(10.0, 0.1, 0.0, 0.0, mode="multiplicative") == 11.0
        assert adjusted_multiple(10.0, 0.5, 0.0, 0.0, mode="multiplicative") == 12.0

    @pytest.mark.parametrize("mode", ["additive", "multiplicative"])
    def test_always_within_bounds(self, mode):
        deltas = (-5.0, -1.0, -0.3, 0.0, 0.4, 1.0, 5.0)
        for base in (0.2, 1.0, 6.0, 14.5):
            for size, country, conc in itertools.product(deltas, repeat=3):
                m = adjusted_multiple(base, size, country, conc, mode=mode)
                assert 0.5 <= m <= max(0.5, base + 2)

    def test_bound_floor_wins_over_cap(self):
        assert bound_multiple(-2.0, 5.0) == 0.5


# ─── Enterprise Value Estimator ───────────────────────────────────────────────

class TestEnterpriseValue:
    def test_normalized_earnings(self):
        assert normalized_earnings(100, 200) == pytest.approx(140.0)

    def test_normalized_earnings_zero_is_valid(self):
        assert normalized_earnings(0, 0) == 0

    def test_normalized_earnings_needs_both(self):
        assert normalized_earnings(None, 200) is None
        assert normalized_earnings(100, None) is None

    def test_band(self):
        ev = estimate_enterprise_value(1_000_000, 6.0, 1.0)
        assert ev.ev_mid_k == 6000
        assert ev.ev_low_k == 5100
        assert ev.ev_high_k == 6900
        assert ev.ev_mid_eur_raw == pytest.approx(6_000_000)

    def test_band_uses_unrounded_mid(self):
        ev = estimate_enterprise_value(1_000, 1.4, 1.0)
        # mid 1.4k → 1; low 1.19k → 1; high 1.61k → 2
        assert (ev.ev_low_k, ev.ev_mid_k, ev.ev_high_k) == (1, 1, 2)

    def test_missing_inputs_leave_ev_null(self):
        ev = estimate_enterprise_value(None, 6.0, 1.0)
        assert ev.ev_mid_k is None and ev.ev_low_k is None and ev.ev_high_k is None
        ev = estimate_enterprise_value(1_000_000, None, 1.0)
        assert ev.norm_ebit == 1_000_000
        assert ev.ev_mid_k is None
        assert ev.ev_mid_eur_raw == 0.0

    def test_spot_value_in_whole_eur(self):
        assert estimate_spot_enterprise_value(3_000_000, 5.0) == (12_750_000, 15_000_000, 17_250_000)
        assert estimate_spot_enterprise_value(None, 5.0) == (None, None, None)
