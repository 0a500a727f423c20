# backend/dormsplit/domain/weighting.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Sequence

from dormsplit.domain.models import Member
from dormsplit.domain.money import MoneyError, RoundingRule, to_decimal


class SplitRuleError(ValueError):
    """Raised when an expense type's settings are missing or unusable."""


@dataclass(frozen=True)
class Weighting:
    """
    Unrounded per-member amounts produced by a strategy, plus the rounding
    rule the reconciler should apply to them.
    """
    amounts: Dict[str, Decimal]
    rounding_rule: str = RoundingRule.CEIL.value


WeightingStrategy = Callable[[Sequence[Member], int, Decimal, Mapping[str, Any]], Weighting]

# Host costs: 70% by stay days, 30% by declared host usage.
HOST_STAY_WEIGHT = Decimal("0.7")
HOST_USAGE_WEIGHT = Decimal("0.3")

DEFAULT_MIN_USAGE_DAYS = 15
DEFAULT_BASE_USAGE = 10
DEFAULT_ACTUAL_USAGE = 20
DEFAULT_BASE_ELECTRICITY = 50
DEFAULT_ACTUAL_ELECTRICITY = 150

# Keys the client app sends in camelCase.
SETTING_ALIASES = {
    "hostUsageRatio": "host_usage_ratio",
    "minUsageDays": "min_usage_days",
    "baseUsage": "base_usage",
    "actualUsage": "actual_usage",
    "baseElectricity": "base_electricity",
    "actualElectricity": "actual_electricity",
    "customRule": "custom_rule",
    "customRatio": "custom_ratio",
    "roundingRule": "rounding_rule",
}


def normalize_settings(settings: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of settings with camelCase keys mapped to their snake_case names."""
    return {SETTING_ALIASES.get(key, key): value for key, value in settings.items()}


def _setting(settings: Mapping[str, Any], key: str, default: Any) -> Any:
    # zero and empty values fall back to the default as well
    return settings.get(key) or default


def _number(value: Any, name: str) -> Decimal:
    try:
        return to_decimal(value)
    except MoneyError as e:
        raise SplitRuleError(f"{name} must be a number") from e


def _ratio_map(raw: Any, name: str) -> Dict[str, Decimal]:
    if not isinstance(raw, Mapping):
        raise SplitRuleError(f"{name} must be an object mapping member id -> number")
    weights: Dict[str, Decimal] = {}
    for k, v in raw.items():
        weight = _number(v, f"{name}[{k}]")
        if weight < 0:
            raise SplitRuleError(f"{name}[{k}] must be >= 0")
        weights[str(k)] = weight
    return weights


def _rule(settings: Mapping[str, Any]) -> str:
    return RoundingRule.parse(settings.get("rounding_rule")).value


def _stay(member: Member) -> Decimal:
    return to_decimal(member.stay_days or 0)


def _by_stay_ratio(members: Sequence[Member], total: Decimal, total_stay_days: Decimal) -> Dict[str, Decimal]:
    return {m.id: total * _stay(m) / total_stay_days for m in members}


def _equal(members: Sequence[Member], total: Decimal) -> Dict[str, Decimal]:
    share = total / len(members)
    return {m.id: share for m in members}


def _base_plus_stay(
    members: Sequence[Member],
    total: Decimal,
    total_stay_days: Decimal,
    base_usage: Decimal,
    actual_usage: Decimal,
) -> Dict[str, Decimal]:
    base_amount = total * base_usage / actual_usage
    extra_amount = total - base_amount
    base_share = base_amount / len(members)
    return {m.id: base_share + extra_amount * _stay(m) / total_stay_days for m in members}


def split_by_stay_days(members, total_amount, total_stay_days, settings) -> Weighting:
    amounts = _by_stay_ratio(members, to_decimal(total_amount), total_stay_days)
    return Weighting(amounts, _rule(settings))


def split_host(members, total_amount, total_stay_days, settings) -> Weighting:
    if not settings.get("host_usage_ratio"):
        raise SplitRuleError("主机费用需要提供主机使用比例")  # host costs need host_usage_ratio
    usage = _ratio_map(settings["host_usage_ratio"], "host_usage_ratio")

    total = to_decimal(total_amount)
    amounts: Dict[str, Decimal] = {}
    for m in members:
        stay_ratio = _stay(m) / total_stay_days
        combined = stay_ratio * HOST_STAY_WEIGHT + usage.get(m.id, Decimal(0)) * HOST_USAGE_WEIGHT
        amounts[m.id] = total * combined
    return Weighting(amounts, _rule(settings))


def split_air_conditioner(members, total_amount, total_stay_days, settings) -> Weighting:
    min_days = _number(_setting(settings, "min_usage_days", DEFAULT_MIN_USAGE_DAYS), "min_usage_days")

    effective = {m.id: max(_stay(m), min_days) for m in members}
    effective_total = sum(effective.values(), Decimal(0))
    if effective_total <= 0:
        raise SplitRuleError("min_usage_days must be > 0")

    total = to_decimal(total_amount)
    amounts = {member_id: total * days / effective_total for member_id, days in effective.items()}
    return Weighting(amounts, _rule(settings))


def split_water(members, total_amount, total_stay_days, settings) -> Weighting:
    base = _number(_setting(settings, "base_usage", DEFAULT_BASE_USAGE), "base_usage")
    actual = _number(_setting(settings, "actual_usage", DEFAULT_ACTUAL_USAGE), "actual_usage")
    amounts = _base_plus_stay(members, to_decimal(total_amount), total_stay_days, base, actual)
    return Weighting(amounts, _rule(settings))


def split_electricity(members, total_amount, total_stay_days, settings) -> Weighting:
    base = _number(_setting(settings, "base_electricity", DEFAULT_BASE_ELECTRICITY), "base_electricity")
    actual = _number(_setting(settings, "actual_electricity", DEFAULT_ACTUAL_ELECTRICITY), "actual_electricity")
    amounts = _base_plus_stay(members, to_decimal(total_amount), total_stay_days, base, actual)
    return Weighting(amounts, _rule(settings))


def split_equally(members, total_amount, total_stay_days, settings) -> Weighting:
    return Weighting(_equal(members, to_decimal(total_amount)), _rule(settings))


def split_custom(members, total_amount, total_stay_days, settings) -> Weighting:
    """
    User-defined rule picked by settings["custom_rule"]:

      stay_days_only -> stay-day ratio
      equal_share    -> equal split
      custom_ratio   -> settings["custom_ratio"] weights, normalised by
                        the sum of every supplied weight
    """
    rule = settings.get("custom_rule")
    if not rule:
        raise SplitRuleError("自定义费用需要提供自定义规则")  # custom costs need custom_rule

    total = to_decimal(total_amount)
    if rule == "stay_days_only":
        return Weighting(_by_stay_ratio(members, total, total_stay_days), _rule(settings))
    if rule == "equal_share":
        return Weighting(_equal(members, total), _rule(settings))
    if rule == "custom_ratio":
        if not settings.get("custom_ratio"):
            raise SplitRuleError("自定义比例分摊需要提供比例设置")  # custom_ratio is required
        weights = _ratio_map(settings["custom_ratio"], "custom_ratio")
        weight_total = sum(weights.values(), Decimal(0))
        if weight_total <= 0:
            raise SplitRuleError("custom_ratio weights must add up to more than 0")
        amounts = {m.id: total * weights.get(m.id, Decimal(0)) / weight_total for m in members}
        return Weighting(amounts, _rule(settings))

    raise SplitRuleError(f"不支持的自定义规则: {rule}")  # unsupported custom rule


WEIGHTING_STRATEGIES: Dict[str, WeightingStrategy] = {
    "lighting": split_by_stay_days,
    "host": split_host,
    "air_conditioner": split_air_conditioner,
    "water": split_water,
    "electricity": split_electricity,
    "internet": split_equally,
    "custom": split_custom,
}

DEFAULT_STRATEGY: WeightingStrategy = split_by_stay_days


def get_strategy(expense_type: str) -> WeightingStrategy:
    return WEIGHTING_STRATEGIES.get(expense_type, DEFAULT_STRATEGY)


def register_strategy(expense_type: str, strategy: WeightingStrategy) -> None:
    if not isinstance(expense_type, str) or not expense_type.strip():
        raise ValueError("expense_type must be a non-empty string")
    WEIGHTING_STRATEGIES[expense_type] = strategy


def expense_types() -> list[str]:
    return sorted(WEIGHTING_STRATEGIES)
