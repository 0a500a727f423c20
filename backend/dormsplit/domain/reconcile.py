# backend/dormsplit/domain/reconcile.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Mapping, Optional, Sequence

from dormsplit.domain.models import Member, SplitResult
from dormsplit.domain.money import RoundingRule, round_to_unit, safe_sum_units, to_decimal

logger = logging.getLogger(__name__)

VERIFICATION_FAILED = "分摊计算结果验证失败"


def apply_rounding_and_remainder(
    members: Sequence[Member],
    split_amounts: Mapping[str, Decimal],
    total_amount: int,
    rounding_rule: Optional[str] = None,
) -> SplitResult:
    """
    Round unrounded shares to whole currency units so they add up to
    total_amount exactly.

    Steps:
    - Round every share with the rule (ceil by default) and keep the
      signed rounding error: remainder = unrounded - rounded.
    - difference = total_amount - sum(rounded).
    - Walk members by ascending remainder (stable, ties keep input order)
      and move each of the first |difference| members by one unit towards
      the total. Each member moves at most once.
    - If the sum still misses the total, fail instead of returning it.
    """
    rule = RoundingRule.parse(rounding_rule)

    rounded: Dict[str, int] = {}
    remainders: Dict[str, Decimal] = {}
    for m in members:
        amount = to_decimal(split_amounts[m.id])
        rounded[m.id] = round_to_unit(amount, rule)
        remainders[m.id] = amount - rounded[m.id]

    difference = total_amount - safe_sum_units(*rounded.values())

    if difference != 0:
        ordered = sorted(members, key=lambda m: remainders[m.id])
        step = 1 if difference > 0 else -1
        for m in ordered[: abs(difference)]:
            rounded[m.id] += step

    final_total = safe_sum_units(*rounded.values())
    if final_total != total_amount:
        logger.error(
            "split verification failed: total=%s final=%s amounts=%s",
            total_amount,
            final_total,
            rounded,
        )
        return SplitResult.failure(VERIFICATION_FAILED)

    return SplitResult.ok(
        split_amounts=rounded,
        original_amounts={member_id: float(amount) for member_id, amount in split_amounts.items()},
        rounding_rule=rule.value,
        total_amount=total_amount,
    )
