"""
Values -- Decimal helpers for amounts and quantities.

Every amount and quantity in the posting core is a ``Decimal``.  Inputs
arriving from documents, YAML or JSON pass through ``to_decimal`` once, at
the boundary; floats are converted through ``str`` so 0.1 stays 0.1.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from farm_kernel.exceptions import InvalidAmountError

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: object, field: str = "amount") -> Decimal:
    """
    Convert ``value`` to a finite Decimal.

    ``None`` converts to zero.  Anything that is not a finite number raises
    InvalidAmountError naming ``field``.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise InvalidAmountError(field, value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise InvalidAmountError(field, value) from None
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise InvalidAmountError(field, value)
    if not result.is_finite():
        raise InvalidAmountError(field, value)
    return result


def to_non_negative(value: object, field: str = "amount") -> Decimal:
    """Like ``to_decimal`` but rejects negative values."""
    result = to_decimal(value, field)
    if result < ZERO:
        raise InvalidAmountError(field, value)
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def within_tolerance(a: Decimal, b: Decimal, tolerance: Decimal) -> bool:
    """True when ``|a - b| < tolerance``."""
    return abs(a - b) < tolerance
