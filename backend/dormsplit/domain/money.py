# backend/dormsplit/domain/money.py
from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Union

Number = Union[int, float, Decimal]


class MoneyError(ValueError):
    """Raised when an amount cannot be converted or rounded."""


class RoundingRule(str, Enum):
    CEIL = "ceil"
    FLOOR = "floor"
    ROUND = "round"

    @classmethod
    def parse(cls, value: object) -> "RoundingRule":
        """
        Map a rule name to a RoundingRule.
        Anything unrecognised (including None and "") means ceil.
        """
        if isinstance(value, RoundingRule):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.CEIL


_DECIMAL_ROUNDING = {
    RoundingRule.CEIL: ROUND_CEILING,
    RoundingRule.FLOOR: ROUND_FLOOR,
    # half rounds up, like Math.round for the non-negative shares we produce
    RoundingRule.ROUND: ROUND_HALF_UP,
}


def to_decimal(value: Number) -> Decimal:
    """
    Convert an int/float/Decimal to Decimal without picking up binary noise.

    Floats go through str() so 0.3 becomes Decimal("0.3"), not
    Decimal("0.299999999999999988897769753748...").
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MoneyError(f"not a number: {value!r}")
    try:
        d = Decimal(value) if isinstance(value, int) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise MoneyError(f"invalid numeric value: {value!r}") from e
    if not d.is_finite():
        raise MoneyError(f"amount must be finite: {value!r}")
    return d


def round_to_unit(amount: Decimal, rule: RoundingRule) -> int:
    """
    Round an amount to a whole number of minor currency units.

      round_to_unit(Decimal("33.34"), RoundingRule.CEIL)  -> 34
      round_to_unit(Decimal("33.34"), RoundingRule.FLOOR) -> 33
      round_to_unit(Decimal("33.5"),  RoundingRule.ROUND) -> 34
    """
    return int(amount.quantize(Decimal("1"), rounding=_DECIMAL_ROUNDING[rule]))


def safe_sum_units(*values: int) -> int:
    """
    Sum integer currency units with type checks (no floats).
    """
    total = 0
    for v in values:
        if isinstance(v, bool) or not isinstance(v, int):
            raise MoneyError("all values must be int currency units")
        total += v
    return total
