"""
deal_platform/parser.py
=======================
Input coercion for submitted company records. Handles:
  - numbers given as ints, floats or text ("1,200", "€ 3.5", "(250)")
  - Yes/No style flags given as booleans or text
  - heterogeneous date text ("30-Sep-24", "9/30/2024", ISO, Excel serials)

Records are validated here, before any valuation stage runs.
"""
from __future__ import annotations
import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional

import pandas as pd

from .exceptions import ValidationError
from .types import CompanyFinancialInput, FreeCompanyInput

logger = logging.getLogger(__name__)


# ─── Numeric Normalisation ────────────────────────────────────────────────────

_BLANKS = ('', '-', '--', 'N/A', 'NA', 'n/a', 'nan', 'None', 'null')


def to_numeric(val: Any) -> Optional[float]:
    """Convert diverse number formats to float; blanks and junk become None."""
    if val is None or val == "" or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return float(val) if math.isfinite(val) else None
    s = str(val).strip()
    # Parenthetical negatives: (1234) → -1234
    if s.startswith('(') and s.endswith(')'):
        s = '-' + s[1:-1]
    # Strip currency & separators
    s = (s.replace(',', '').replace('€', '').replace('$', '').replace('£', '')
         .replace('EUR', '').replace('USD', '').replace('GBP', '')
         .replace('%', '').replace('_', '')
         .strip())
    if s in _BLANKS:
        return None
    try:
        f = float(s)
    except ValueError:
        return None
    return f if math.isfinite(f) else None


# ─── Flags ────────────────────────────────────────────────────────────────────

_TRUE_TOKENS = {"yes", "y", "true", "1"}
_FALSE_TOKENS = {"no", "n", "false", "0"}


def parse_flag(val: Any) -> Optional[bool]:
    """Booleans pass through; "Yes"/"No" (any case) and friends are mapped; else None."""
    if val is None:
        return None
    if isinstance(val, bool):
        return val
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        if val == 1:
            return True
        if val == 0:
            return False
        return None
    token = str(val).strip().lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return None


# ─── Dates ────────────────────────────────────────────────────────────────────

_MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}
_EXCEL_EPOCH = date(1899, 12, 30)
_EXCEL_MAX_SERIAL = 2_958_465


def parse_date(val: Any) -> Optional[date]:
    """
    Parse date input → `date`.
    Supports: date/datetime objects, Excel serial numbers, DD-Mon-YY,
    M/D/YYYY or D/M/YYYY (slash or dash), and ISO-like text.

    Slash dates are month-first unless the first group exceeds 12 while the
    second does not, in which case the first group is the day.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    if isinstance(val, (int, float)):
        return _numeric_date(val)

    s = str(val).strip()
    if not s:
        return None

    # 30-Sep-24
    m = re.match(r'^(\d{1,2})-([A-Za-z]{3})-(\d{2})$', s)
    if m:
        month = _MONTHS.get(m.group(2).lower())
        if month is not None:
            return _safe_date(2000 + int(m.group(3)), month, int(m.group(1)))

    # 9/30/2024, 30/9/2024, 9-30-2024
    m = re.match(r'^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$', s)
    if m:
        p1, p2, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if p1 > 12 and p2 <= 12:
            day, month = p1, p2
        else:
            month, day = p1, p2
        return _safe_date(year, month, day)

    # ISO and other full-year forms
    if re.search(r'\d{4}', s):
        parsed = pd.to_datetime(s, errors="coerce")
        if not pd.isna(parsed):
            return parsed.date()

    logger.debug("Unparseable date text: %r", s)
    return None


def _numeric_date(val: float) -> Optional[date]:
    """Excel serial (1 … 2958465, i.e. up to 9999-12-31) or a YYYYMMDD integer."""
    if not math.isfinite(val):
        return None
    n = int(val)
    if 1 <= n <= _EXCEL_MAX_SERIAL:
        return _EXCEL_EPOCH + timedelta(days=n)
    if 10_000_101 <= n <= 99_991_231:
        return _safe_date(n // 10_000, n // 100 % 100, n % 100)
    logger.debug("Numeric date out of range: %r", val)
    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def normalize_date_text(val: Any) -> Optional[str]:
    """ISO text for parseable dates; otherwise the original text unchanged."""
    parsed = parse_date(val)
    if parsed is not None:
        return parsed.isoformat()
    if val is None:
        return None
    return str(val)


# ─── Record → Input ───────────────────────────────────────────────────────────

def _text(val: Any) -> Optional[str]:
    if val is None:
        return None
    if isinstance(val, float) and math.isnan(val):
        return None
    s = str(val).strip()
    return s or None


def _require_company_name(record: Any) -> str:
    if not isinstance(record, Mapping):
        raise ValidationError("record", f"expected a mapping, got {type(record).__name__}")
    name = _text(record.get("company_name"))
    if name is None:
        raise ValidationError("company_name", "Company name is required")
    return name


_COMPANY_NUMERIC = (
    "employees",
    "revenue_y1", "revenue_y2", "revenue_y3",
    "ebit_y1", "ebit_y2", "ebit_y3",
    "revenue_f1", "revenue_f2", "revenue_f3",
    "ebit_f1", "ebit_f2", "ebit_f3",
    "total_debt", "current_assets", "current_liabilities",
    "ownership_pct", "mgmt_turnover_pct",
    "top3_concentration_pct", "target_timeline_months",
)
_COMPANY_TEXT = (
    "sector", "country_code", "currency_code", "credit_rating",
    "documentation_readiness", "seller_flexibility",
)
_COMPANY_FLAGS = (
    "litigation_active", "founder_dependency_high", "supplier_dependency_high",
    "key_staff_retention_plan", "financials_audited",
)


def parse_company_input(record: Mapping[str, Any]) -> CompanyFinancialInput:
    """Validate and coerce a standard/enterprise record."""
    name = _require_company_name(record)
    kwargs = {"company_name": name}
    for key in _COMPANY_NUMERIC:
        kwargs[key] = to_numeric(record.get(key))
    for key in _COMPANY_TEXT:
        kwargs[key] = _text(record.get(key))
    for key in _COMPANY_FLAGS:
        kwargs[key] = parse_flag(record.get(key))

    raw_date = record.get("valuation_date")
    kwargs["valuation_date"] = parse_date(raw_date)
    kwargs["valuation_date_text"] = normalize_date_text(raw_date)
    if raw_date not in (None, "") and kwargs["valuation_date"] is None:
        logger.warning("Could not parse valuation_date %r for %s", raw_date, name)
    return CompanyFinancialInput(**kwargs)


def parse_free_input(record: Mapping[str, Any]) -> FreeCompanyInput:
    """Validate and coerce a free-variant record."""
    name = _require_company_name(record)
    return FreeCompanyInput(
        company_name=name,
        sector=_text(record.get("sector")),
        country=_text(record.get("country")),
        currency=_text(record.get("currency")),
        annual_revenue=to_numeric(record.get("annual_revenue")),
        ebit=to_numeric(record.get("ebit")),
        employees=to_numeric(record.get("employees")),
        top3_customers_pct=to_numeric(record.get("top3_customers_pct")),
    )
