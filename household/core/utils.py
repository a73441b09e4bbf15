from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from enum import Enum
from typing import Iterable, Type, TypeVar
from household.core.errors import ValidationError

getcontext().prec = 28
CENTS= Decimal("0.01")
ZERO = Decimal("0")
# largest value a Numeric(10, 2) column holds
MAX_AMOUNT = Decimal("99999999.99")

E = TypeVar("E", bound=Enum)

def qround(d : Decimal) -> Decimal:
    return d.quantize(CENTS, rounding=ROUND_HALF_UP)

def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # floats go through str() so 0.1 stays 0.1
    return Decimal(str(value))

def positive_amount(value, label: str = "Value") -> Decimal:
    """Parse ``value`` as a money amount strictly greater than zero."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{label} must be a positive number.")
    try:
        amount = to_decimal(value)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{label} must be a positive number.")

    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{label} must be a positive number.")

    try:
        rounded = qround(amount)
    except InvalidOperation:
        # more digits than the decimal context can quantize to cents
        raise ValidationError(f"{label} cannot exceed {MAX_AMOUNT}.")

    if rounded <= 0:
        raise ValidationError(f"{label} must be at least {CENTS}.")
    if rounded > MAX_AMOUNT:
        raise ValidationError(f"{label} cannot exceed {MAX_AMOUNT}.")
    return rounded

def parse_enum(enum_cls: Type[E], value, label: str) -> E:
    """Turn ``value`` into a member of ``enum_cls`` or raise ValidationError.

    Accepts a member or its exact value. Absence is handled by the caller,
    anything unrecognised is rejected rather than replaced by a default.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if value == member.value:
                return member

    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(f"Invalid {label}. Expected one of: {allowed}.")

def compute_balance(target, contributions: Iterable) -> Decimal:
    """Outstanding amount of an expense: target minus every contributed value."""
    total = sum((to_decimal(c) for c in contributions), ZERO)
    return qround(to_decimal(target) - total)
