"""
tests/conftest.py
=================
Shared pytest fixtures for the Deal Platform test suite.
The reference snapshot is built from in-memory DataFrames; no test reads
files it did not write or the system clock.
"""
import sys
import os
from datetime import date

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd
import pytest

from deal_platform.reference import ReferenceSnapshot


AS_OF = date(2026, 1, 1)


def reference_frames():
    return {
        "sector_metrics": pd.DataFrame({
            "subsector_name_updated": ["Manufacturing", "SaaS", "Consumer Electronics"],
            "base_ebit_multiple": [6.0, 10.0, 8.5],
            "target_ebit_margin_pct": [12.0, 20.0, 16.0],
            "target_cagr_pct": [5.0, 15.0, 7.0],
            "score": [60, 80, 70],
        }),
        "country_adjustments": pd.DataFrame({
            "country_code": ["DE", "US", "IT", "AR"],
            "delta_multiple": [0.0, 0.2, -0.3, -0.5],
        }),
        "fx_rates": pd.DataFrame({
            "currency_code": ["EUR", "USD", "GBP"],
            "rate_to_eur": [1.0, 1.0, 1.15],
        }),
        "credit_ratings": pd.DataFrame({
            "rating": ["AAA", "AA+", "A", "BBB"],
            "score": [100, 95, 80, 65],
        }),
        "size_adjustments": pd.DataFrame({
            "rev_min_eur": [250_000_000, 10_000_000, 1_000_000_000, 50_000_000],
            "delta_multiple": [0.0, -0.5, 0.5, -0.2],
        }),
        "concentration_adjustments": pd.DataFrame({
            "top3_min_pct": [20, 40, 60, 100],
            "delta_multiple": [0.0, -0.3, -0.6, -1.0],
        }),
        "deal_size_scores": pd.DataFrame({
            "ev_min_eur": [0, 5_000_000, 25_000_000, 100_000_000],
            "size_score": [20, 50, 80, 100],
        }),
    }


@pytest.fixture
def frames():
    return reference_frames()


@pytest.fixture
def snapshot():
    return ReferenceSnapshot.from_frames(reference_frames(), version="test-2026.01")


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def enterprise_record():
    """Large audited USD filer; figures in units of currency."""
    return {
        "company_name": "Orchard Devices Inc.",
        "sector": "Consumer Electronics",
        "country_code": "US",
        "currency_code": "USD",
        "valuation_date": "30-Sep-24",
        "employees": 161000,
        "revenue_y1": 394_328_000_000,
        "revenue_y2": 365_817_000_000,
        "revenue_y3": 274_515_000_000,
        "ebit_y1": 114_301_000_000,
        "ebit_y2": 108_949_000_000,
        "ebit_y3": 66_288_000_000,
        "ebit_f1": 70_000_000_000,
        "total_debt": 120_000_000_000,
        "current_assets": 135_000_000_000,
        "current_liabilities": 150_000_000_000,
        "credit_rating": "AA+",
        "ownership_pct": 10,
        "mgmt_turnover_pct": 5,
        "litigation_active": "No",
        "financials_audited": "Yes",
        "documentation_readiness": "Full",
        "seller_flexibility": "High",
        "target_timeline_months": 4,
    }


@pytest.fixture
def standard_record():
    """Mid-sized German manufacturer reporting in EUR."""
    return {
        "company_name": "Rheinwerk GmbH",
        "sector": "Manufacturing",
        "country_code": "DE",
        "currency_code": "EUR",
        "employees": 420,
        "revenue_y1": 100_000_000,
        "revenue_y2": 110_000_000,
        "revenue_y3": 121_000_000,
        "ebit_y1": 10_000_000,
        "ebit_y2": 12_000_000,
        "ebit_y3": 14_400_000,
        "ebit_f1": 16_000_000,
        "top3_concentration_pct": 30,
        "founder_dependency_high": "No",
        "supplier_dependency_high": "Yes",
        "key_staff_retention_plan": "Yes",
        "documentation_readiness": "Full",
        "seller_flexibility": "Medium",
        "target_timeline_months": 9,
    }


@pytest.fixture
def free_record():
    return {
        "company_name": "Nuvola Software S.r.l.",
        "sector": "SaaS",
        "country": "IT",
        "currency": "EUR",
        "annual_revenue": 20_000_000,
        "ebit": 3_000_000,
        "employees": 100,
        "top3_customers_pct": 35,
    }
