"""
Calendar month view data.

The recording entry point is a month grid: each day shows what was spent
and earned, and clicking a day starts a recording dated that day.
"""

import calendar
from datetime import date, datetime, time
from typing import Iterable, Optional

from pydantic import BaseModel

from voicemoney.insights.summary import local_datetime
from voicemoney.models.transaction import Transaction, TransactionType


class CalendarDay(BaseModel):
    day: date
    expense: int = 0
    income: int = 0
    count: int = 0
    is_today: bool = False


def transactions_on(transactions: Iterable[Transaction], day: date) -> list[Transaction]:
    return [t for t in transactions if local_datetime(t.date).date() == day]


def month_grid(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
    today: Optional[date] = None,
) -> list[list[Optional[CalendarDay]]]:
    """
    Weeks of the month, Sunday first. Cells before the 1st and after the
    last day are None.
    """
    today = today or date.today()
    totals: dict[date, CalendarDay] = {}
    for transaction in transactions:
        day = local_datetime(transaction.date).date()
        if day.year != year or day.month != month:
            continue
        cell = totals.setdefault(day, CalendarDay(day=day))
        cell.count += 1
        if transaction.type == TransactionType.EXPENSE:
            cell.expense += transaction.amount
        else:
            cell.income += transaction.amount

    weeks = []
    for week in calendar.Calendar(firstweekday=calendar.SUNDAY).monthdatescalendar(year, month):
        row: list[Optional[CalendarDay]] = []
        for day in week:
            if day.month != month:
                row.append(None)
                continue
            cell = totals.get(day, CalendarDay(day=day))
            cell.is_today = day == today
            row.append(cell)
        weeks.append(row)
    return weeks


def recording_datetime_for(day: date, now: Optional[datetime] = None) -> datetime:
    """
    Timestamp given to a recording started from a calendar day.

    Today keeps the current time; any other day gets noon, which keeps the
    date stable across time zones.
    """
    now = now or datetime.now()
    if day == now.date():
        return now.replace(microsecond=0)
    return datetime.combine(day, time(12, 0))
