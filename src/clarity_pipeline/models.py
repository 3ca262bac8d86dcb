# ========================
# src/clarity_pipeline/models.py
# ========================

"""
Data Records

Immutable value records passed between pipeline stages.
"""

from dataclasses import dataclass
from datetime import date as date_type
from typing import Optional


@dataclass(frozen=True)
class Observation:
    """A single Secchi depth measurement with canonical field names."""

    region_id: Optional[int]
    value: Optional[float]
    year: int
    month: int
    lat: Optional[float] = None
    lon: Optional[float] = None
    date: Optional[date_type] = None


@dataclass(frozen=True)
class MonthlyMean:
    """Mean value for one (region, year, month)."""

    region_id: int
    year: int
    month: int
    value: Optional[float]


@dataclass(frozen=True)
class RegionYearMean:
    """Mean of the monthly means for one (region, year). Final layer row."""

    region_id: int
    year: int
    value: Optional[float]
