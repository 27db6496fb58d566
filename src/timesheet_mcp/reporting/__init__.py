"""Reports and aggregations over tracking history."""

from .models import CommutePattern, DailyAveragesReport, DailyBreakdownRow, PeriodAggregate
from .service import ReportingService

__all__ = [
    "CommutePattern",
    "DailyAveragesReport",
    "DailyBreakdownRow",
    "PeriodAggregate",
    "ReportingService",
]
