# backend/dormsplit/domain/split_calculator.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from dormsplit.domain.models import Expense, Member, SplitResult
from dormsplit.domain.money import to_decimal
from dormsplit.domain.reconcile import apply_rounding_and_remainder
from dormsplit.domain.weighting import SplitRuleError, get_strategy, normalize_settings

logger = logging.getLogger(__name__)

EMPTY_MEMBERS = "成员列表不能为空"
NON_POSITIVE_TOTAL = "总金额必须大于0"
INVALID_TOTAL = "总金额必须是整数"
NON_POSITIVE_STAY_DAYS = "总在寝天数必须大于0"
DUPLICATE_MEMBERS = "成员ID不能重复"


def calculate_by_stay_days(
    members: Sequence[Member],
    total_amount: int,
    expense_type: str,
    custom_settings: Optional[Mapping[str, Any]] = None,
) -> SplitResult:
    """
    Split total_amount (smallest currency unit) among members.

    The expense type picks the weighting strategy; unknown types split by
    stay-day ratio. Bad input comes back as a failed SplitResult, never
    as an exception. Settings keys may be snake_case or the client's
    camelCase; a whole-valued float total is taken as its int.
    """
    settings = normalize_settings(custom_settings or {})

    if not members:
        return SplitResult.failure(EMPTY_MEMBERS)

    if isinstance(total_amount, bool) or not isinstance(total_amount, (int, float)):
        return SplitResult.failure(INVALID_TOTAL)
    if isinstance(total_amount, float):
        # nan and inf fail is_integer() as well
        if not total_amount.is_integer():
            return SplitResult.failure(INVALID_TOTAL)
        total_amount = int(total_amount)

    if total_amount <= 0:
        return SplitResult.failure(NON_POSITIVE_TOTAL)

    ids = [m.id for m in members]
    if len(set(ids)) != len(ids):
        return SplitResult.failure(DUPLICATE_MEMBERS)

    total_stay_days = sum((to_decimal(m.stay_days or 0) for m in members), Decimal(0))
    if total_stay_days <= 0:
        return SplitResult.failure(NON_POSITIVE_STAY_DAYS)

    strategy = get_strategy(expense_type)
    logger.debug("splitting %s across %d members with %s", total_amount, len(members), strategy.__name__)

    try:
        weighting = strategy(members, total_amount, total_stay_days, settings)
    except SplitRuleError as e:
        return SplitResult.failure(str(e))

    return apply_rounding_and_remainder(
        members,
        weighting.amounts,
        total_amount,
        weighting.rounding_rule,
    )


def calculate_expense(expense: Expense, members: Sequence[Member]) -> SplitResult:
    return calculate_by_stay_days(
        members,
        expense.total_amount,
        expense.type,
        expense.custom_settings,
    )
