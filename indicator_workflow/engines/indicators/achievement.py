"""
Achieved / not-achieved determination for a submitted value.

Boolean indicators store their acceptance value as the string "1" or "0";
a submitted "true" is compared as "1", anything else as "0". Numeric,
percentage and monetary values are achieved when value >= acceptance.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from indicator_workflow.exceptions import InvalidSubmissionValueError
from indicator_workflow.kernel.models.indicator import ResponseFormat


def normalize_boolean(value: Any) -> str:
    """Map a submitted boolean to the stored "1"/"0" convention."""
    if isinstance(value, bool):
        return "1" if value else "0"
    return "1" if str(value) == "true" else "0"


def to_decimal(value: Any, response_format: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidSubmissionValueError(value, response_format)
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidSubmissionValueError(value, response_format)
    # Decimal accepts NaN and Infinity
    if not number.is_finite():
        raise InvalidSubmissionValueError(value, response_format)
    return number


def is_achieved(
    response_format: str,
    acceptance_value: Optional[str],
    value: Any,
) -> bool:
    if acceptance_value is None:
        return True

    fmt = ResponseFormat(response_format)
    if fmt == ResponseFormat.BOOLEAN:
        return normalize_boolean(value) == str(acceptance_value)

    return to_decimal(value, fmt.value) >= to_decimal(acceptance_value, fmt.value)
