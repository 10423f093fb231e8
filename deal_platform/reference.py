"""
deal_platform/reference.py
==========================
Read-only reference data consumed by the valuation pipeline.

Two kinds of lookup series:
  - ExactSeries      keyed by a trimmed, case-insensitive code
                     (sector, country, currency, credit rating)
  - ThresholdSeries  ascending breakpoints with an associated value
                     (revenue size bands, top-3 concentration bands,
                     deal-size score bands)

A ReferenceSnapshot bundles one of each table under a version label. It is
built once (from pandas DataFrames or a directory of CSV files) and then
shared, unmodified, by any number of computations.
"""
from __future__ import annotations
import logging
import math
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Generic, Mapping, Optional, Tuple, TypeVar

import pandas as pd

from .exceptions import ReferenceDataError
from .types import SectorMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


def normalize_key(key: Any) -> str:
    return str(key).strip().lower()


# ─── Lookup Series ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExactSeries(Generic[T]):
    name: str
    entries: Mapping[str, T] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized = {normalize_key(k): v for k, v in self.entries.items()}
        object.__setattr__(self, "entries", MappingProxyType(normalized))

    def get(self, key: Optional[str]) -> Optional[T]:
        if key is None or not str(key).strip():
            return None
        return self.entries.get(normalize_key(key))

    def __contains__(self, key: object) -> bool:
        return key is not None and normalize_key(key) in self.entries

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class ThresholdSeries:
    """
    Ascending breakpoints paired with values.

    `ceiling` is the standard band rule: the first breakpoint >= x selects
    its value and the last entry saturates anything above the top band.
    """
    name: str
    breakpoints: Tuple[float, ...] = ()
    values: Tuple[float, ...] = ()

    def __post_init__(self) -> None:
        if len(self.breakpoints) != len(self.values):
            raise ReferenceDataError(self.name, "breakpoints and values differ in length")
        pairs = sorted(zip(self.breakpoints, self.values), key=lambda p: p[0])
        object.__setattr__(self, "breakpoints", tuple(float(b) for b, _ in pairs))
        object.__setattr__(self, "values", tuple(float(v) for _, v in pairs))

    def __len__(self) -> int:
        return len(self.breakpoints)

    def ceiling(self, x: float) -> Optional[float]:
        if not self.breakpoints:
            return None
        for limit, value in zip(self.breakpoints, self.values):
            if x <= limit:
                return value
        return self.values[-1]

    def preceding(self, x: float) -> Optional[float]:
        """Like `ceiling`, but the matched band hands back its predecessor's value."""
        if not self.breakpoints:
            return None
        for i in range(1, len(self.breakpoints)):
            if x <= self.breakpoints[i]:
                return self.values[i - 1]
        return self.values[-1]

    def floor(self, x: float) -> Optional[float]:
        """Highest band whose lower bound (inclusive) is <= x; below all bands → first band."""
        if not self.breakpoints:
            return None
        selected = self.values[0]
        for limit, value in zip(self.breakpoints, self.values):
            if x >= limit:
                selected = value
            else:
                break
        return selected


# ─── Snapshot ─────────────────────────────────────────────────────────────────

# table name → (key or breakpoint column, value column)
EXACT_TABLES: Dict[str, Tuple[str, str]] = {
    "country_adjustments": ("country_code", "delta_multiple"),
    "fx_rates": ("currency_code", "rate_to_eur"),
    "credit_ratings": ("rating", "score"),
}
THRESHOLD_TABLES: Dict[str, Tuple[str, str]] = {
    "size_adjustments": ("rev_min_eur", "delta_multiple"),
    "concentration_adjustments": ("top3_min_pct", "delta_multiple"),
    "deal_size_scores": ("ev_min_eur", "size_score"),
}
SECTOR_TABLE = "sector_metrics"
SECTOR_KEY = "subsector_name_updated"
REFERENCE_TABLES: Tuple[str, ...] = (SECTOR_TABLE, *EXACT_TABLES, *THRESHOLD_TABLES)


@dataclass(frozen=True)
class ReferenceSnapshot:
    version: str = "unversioned"
    sector_metrics: ExactSeries[SectorMetrics] = field(
        default_factory=lambda: ExactSeries(SECTOR_TABLE))
    country_adjustments: ExactSeries[float] = field(
        default_factory=lambda: ExactSeries("country_adjustments"))
    fx_rates: ExactSeries[float] = field(
        default_factory=lambda: ExactSeries("fx_rates"))
    credit_ratings: ExactSeries[float] = field(
        default_factory=lambda: ExactSeries("credit_ratings"))
    size_adjustments: ThresholdSeries = field(
        default_factory=lambda: ThresholdSeries("size_adjustments"))
    concentration_adjustments: ThresholdSeries = field(
        default_factory=lambda: ThresholdSeries("concentration_adjustments"))
    deal_size_scores: ThresholdSeries = field(
        default_factory=lambda: ThresholdSeries("deal_size_scores"))

    @classmethod
    def from_frames(
        cls, frames: Mapping[str, pd.DataFrame], version: str = "unversioned"
    ) -> "ReferenceSnapshot":
        """Build a snapshot from DataFrames keyed by table name; absent tables stay empty."""
        unknown = set(frames) - set(REFERENCE_TABLES)
        if unknown:
            logger.warning("Ignoring unknown reference tables: %s", ", ".join(sorted(unknown)))

        kwargs: Dict[str, Any] = {"version": version}
        if SECTOR_TABLE in frames:
            kwargs[SECTOR_TABLE] = _sector_series(frames[SECTOR_TABLE])
        for table, (key_col, value_col) in EXACT_TABLES.items():
            if table in frames:
                kwargs[table] = _exact_series(table, frames[table], key_col, value_col)
        for table, (bp_col, value_col) in THRESHOLD_TABLES.items():
            if table in frames:
                kwargs[table] = _threshold_series(table, frames[table], bp_col, value_col)
        return cls(**kwargs)


def load_reference_snapshot(directory: str, version: Optional[str] = None) -> ReferenceSnapshot:
    """Read `<table>.csv` files from a directory into a snapshot."""
    if not os.path.isdir(directory):
        raise ReferenceDataError(directory, "reference directory does not exist")
    frames: Dict[str, pd.DataFrame] = {}
    for table in REFERENCE_TABLES:
        path = os.path.join(directory, f"{table}.csv")
        if os.path.exists(path):
            frames[table] = pd.read_csv(path)
        else:
            logger.warning("Reference table %s not found in %s; lookups will miss", table, directory)
    label = version or os.path.basename(os.path.normpath(directory))
    return ReferenceSnapshot.from_frames(frames, version=label)


# ─── Frame → Series ───────────────────────────────────────────────────────────

def _require_columns(table: str, df: pd.DataFrame, *columns: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ReferenceDataError(table, f"missing columns {missing}")


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(f) else f


def _exact_series(table: str, df: pd.DataFrame, key_col: str, value_col: str) -> ExactSeries[float]:
    _require_columns(table, df, key_col, value_col)
    values = pd.to_numeric(df[value_col], errors="coerce")
    entries: Dict[str, float] = {}
    for key, value in zip(df[key_col], values):
        if pd.isna(key) or pd.isna(value):
            logger.warning("Skipping incomplete row in %s: key=%r value=%r", table, key, value)
            continue
        entries[normalize_key(key)] = float(value)
    return ExactSeries(table, entries)


def _sector_series(df: pd.DataFrame) -> ExactSeries[SectorMetrics]:
    _require_columns(SECTOR_TABLE, df, SECTOR_KEY, "base_ebit_multiple")
    entries: Dict[str, SectorMetrics] = {}
    for row in df.to_dict(orient="records"):
        key = row.get(SECTOR_KEY)
        base = _optional_float(row.get("base_ebit_multiple"))
        if key is None or pd.isna(key) or base is None:
            logger.warning("Skipping incomplete sector row: %r", key)
            continue
        entries[normalize_key(key)] = SectorMetrics(
            base_ebit_multiple=base,
            target_ebit_margin_pct=_optional_float(row.get("target_ebit_margin_pct")),
            target_cagr_pct=_optional_float(row.get("target_cagr_pct")),
            growth_score=_optional_float(row.get("score")),
        )
    return ExactSeries(SECTOR_TABLE, entries)


def _threshold_series(table: str, df: pd.DataFrame, bp_col: str, value_col: str) -> ThresholdSeries:
    _require_columns(table, df, bp_col, value_col)
    frame = pd.DataFrame({
        "bp": pd.to_numeric(df[bp_col], errors="coerce"),
        "value": pd.to_numeric(df[value_col], errors="coerce"),
    })
    if frame.isna().any().any():
        raise ReferenceDataError(table, f"non-numeric values in {bp_col}/{value_col}")
    frame = frame.sort_values("bp", kind="mergesort")
    return ThresholdSeries(table, tuple(frame["bp"].tolist()), tuple(frame["value"].tolist()))
