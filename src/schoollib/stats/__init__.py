"""Circulation statistics module."""

from .analytics import (
    BorrowerStats,
    LoanStatistics,
    LoanStats,
    PeriodCounts,
    ResourceStats,
    StatusShare,
)

__all__ = [
    "BorrowerStats",
    "LoanStatistics",
    "LoanStats",
    "PeriodCounts",
    "ResourceStats",
    "StatusShare",
]
