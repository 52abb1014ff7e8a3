"""Read-only aggregations for the dashboard and calendar views."""

from voicemoney.insights.month_view import (
    CalendarDay,
    month_grid,
    recording_datetime_for,
    transactions_on,
)
from voicemoney.insights.summary import (
    WEEKDAY_LABELS,
    CategoryTotal,
    DashboardSummary,
    WeekdayImpulse,
    category_breakdown,
    impulse_band,
    impulse_by_weekday,
    local_datetime,
    summarize,
)

__all__ = [
    "WEEKDAY_LABELS",
    "CalendarDay",
    "CategoryTotal",
    "DashboardSummary",
    "WeekdayImpulse",
    "category_breakdown",
    "impulse_band",
    "impulse_by_weekday",
    "local_datetime",
    "month_grid",
    "recording_datetime_for",
    "summarize",
    "transactions_on",
]
