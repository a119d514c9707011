"""
Skip-condition evaluation

A stage is skipped when any of its conditions asks for it:
- skip_if_true=True  and the condition holds
- skip_if_true=False and the condition does not hold

Values are looked up by dotted path in the context's merged view; a missing
path yields None.
"""

import logging
from enum import Enum
from typing import Any, Mapping, Optional

from schemas.pipeline_types import ConditionOperator, SkipCondition, Stage

logger = logging.getLogger(__name__)


def lookup_path(view: Mapping[str, Any], dotted: str) -> Any:
    value: Any = view
    for part in dotted.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _to_number(value: Any) -> Optional[float]:
    value = _plain(value)
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _loose_equals(left: Any, right: Any) -> bool:
    left, right = _plain(left), _plain(right)
    if left is None or right is None:
        return left is None and right is None

    if isinstance(left, (int, float, bool)) or isinstance(right, (int, float, bool)):
        left_num, right_num = _to_number(left), _to_number(right)
        if left_num is not None and right_num is not None:
            return left_num == right_num

    return left == right


def evaluate_condition(value: Any, operator: Any, expected: Any) -> bool:
    """True when the condition holds; unknown operators never hold"""
    try:
        operator = ConditionOperator(_plain(operator))
    except ValueError:
        logger.warning(f"[Conditions] Unknown operator: {operator}")
        return False

    if operator in (ConditionOperator.GT, ConditionOperator.LT):
        left, right = _to_number(value), _to_number(expected)
        if left is None or right is None:
            return False
        return left > right if operator == ConditionOperator.GT else left < right

    if operator == ConditionOperator.EQ:
        return _loose_equals(value, expected)

    haystack = "" if value is None else str(_plain(value))
    return str(_plain(expected)) in haystack


def condition_requests_skip(condition: SkipCondition, view: Mapping[str, Any]) -> bool:
    met = evaluate_condition(lookup_path(view, condition.field), condition.operator, condition.value)
    if condition.skip_if_true:
        return met
    return not met


def should_skip(stage: Stage, view: Mapping[str, Any]) -> bool:
    return any(condition_requests_skip(c, view) for c in stage.conditions)
