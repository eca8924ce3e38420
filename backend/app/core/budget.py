# app/core/budget.py
"""
Budget roll-up over event allocations.

Spending is not tracked separately yet, so an allocated amount counts as
spent and a category's remaining is always zero.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

GENERAL_CATEGORY = "General Events"

# (keywords, category); first match wins
_TITLE_CATEGORIES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("formal", "dance", "party"), "Formal Events"),
    (("alumni", "mixer"), "Alumni Events"),
    (("recruitment", "rush"), "Recruitment"),
    (("brotherhood", "bonding"), "Brotherhood Events"),
    (("meeting", "onboarding"), "Meetings & Planning"),
)


def infer_category(title: Optional[str]) -> str:
    t = (title or "").lower()
    for keywords, category in _TITLE_CATEGORIES:
        if any(k in t for k in keywords):
            return category
    return GENERAL_CATEGORY


def event_category(budget_label: Optional[str], title: Optional[str]) -> str:
    label = (budget_label or "").strip()
    return label or infer_category(title)


@dataclass
class BudgetCategory:
    name: str
    allocated: Decimal = Decimal("0")
    spent: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    events: list = field(default_factory=list)


@dataclass
class BudgetSummary:
    starting_budget: Decimal
    total_allocated: Decimal
    total_spent: Decimal
    remaining: Decimal
    categories: list[BudgetCategory]


def summarize_budget(starting_budget: Decimal | float | int, events: Iterable) -> BudgetSummary:
    """
    ``events`` are objects with title/budget_label/budget_amount (Event rows).
    Only positive allocations count. Categories keep first-seen order.
    """
    starting = Decimal(str(starting_budget))
    categories: dict[str, BudgetCategory] = {}
    total = Decimal("0")

    for ev in events:
        amount = Decimal(str(ev.budget_amount)) if ev.budget_amount is not None else Decimal("0")
        if amount <= 0:
            continue
        name = event_category(ev.budget_label, ev.title)
        cat = categories.setdefault(name, BudgetCategory(name=name))
        cat.allocated += amount
        cat.spent += amount
        cat.events.append(ev)
        total += amount

    return BudgetSummary(
        starting_budget=starting,
        total_allocated=total,
        total_spent=total,
        remaining=starting - total,
        categories=list(categories.values()),
    )
