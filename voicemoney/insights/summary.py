"""
Dashboard aggregations.

Pure functions over a sequence of transactions. Nothing here reads storage
or calls the model; the dashboard passes in whatever the store holds.
"""

from collections import defaultdict
from datetime import datetime
from typing import Iterable

from pydantic import BaseModel, Field

from voicemoney.models.transaction import (
    CATEGORY_COLORS,
    Category,
    Transaction,
    TransactionType,
)

# Sunday first, as on a Korean wall calendar
WEEKDAY_LABELS = ["일", "월", "화", "수", "목", "금", "토"]


class CategoryTotal(BaseModel):
    category: Category
    amount: int = Field(ge=0)
    color: str


class WeekdayImpulse(BaseModel):
    label: str
    average_score: float = Field(ge=0.0, le=10.0)
    count: int = Field(ge=0)


class DashboardSummary(BaseModel):
    """Everything the dashboard view shows."""

    transaction_count: int
    total_expense: int
    total_income: int
    average_impulse_score: float
    category_breakdown: list[CategoryTotal] = Field(default_factory=list)
    impulse_by_weekday: list[WeekdayImpulse] = Field(default_factory=list)

    @property
    def balance(self) -> int:
        return self.total_income - self.total_expense


def local_datetime(value: datetime) -> datetime:
    """Timestamps read back from storage may carry a UTC offset; show them locally."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def sunday_first_weekday(value: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (local_datetime(value).weekday() + 1) % 7


def impulse_band(score: float) -> str:
    """Traffic-light band for an impulse score: 'low', 'medium' or 'high'."""
    if score <= 3:
        return "low"
    if score <= 7:
        return "medium"
    return "high"


def category_breakdown(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """Expense totals per category, in order of first appearance."""
    totals: dict[Category, int] = {}
    for transaction in transactions:
        if transaction.type != TransactionType.EXPENSE:
            continue
        totals[transaction.category] = totals.get(transaction.category, 0) + transaction.amount
    return [
        CategoryTotal(category=category, amount=amount, color=CATEGORY_COLORS[category])
        for category, amount in totals.items()
    ]


def impulse_by_weekday(transactions: Iterable[Transaction]) -> list[WeekdayImpulse]:
    scores: dict[int, list[int]] = defaultdict(list)
    for transaction in transactions:
        scores[sunday_first_weekday(transaction.date)].append(transaction.impulse_score)

    result = []
    for index, label in enumerate(WEEKDAY_LABELS):
        day_scores = scores.get(index, [])
        average = round(sum(day_scores) / len(day_scores), 1) if day_scores else 0.0
        result.append(WeekdayImpulse(label=label, average_score=average, count=len(day_scores)))
    return result


def summarize(transactions: Iterable[Transaction]) -> DashboardSummary:
    items = list(transactions)

    total_expense = sum(t.amount for t in items if t.type == TransactionType.EXPENSE)
    total_income = sum(t.amount for t in items if t.type == TransactionType.INCOME)
    average_score = (
        round(sum(t.impulse_score for t in items) / len(items), 1) if items else 0.0
    )

    return DashboardSummary(
        transaction_count=len(items),
        total_expense=total_expense,
        total_income=total_income,
        average_impulse_score=average_score,
        category_breakdown=category_breakdown(items),
        impulse_by_weekday=impulse_by_weekday(items),
    )
