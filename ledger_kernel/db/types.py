"""
Module: ledger_kernel.db.types
Responsibility: Money coercion and rounding helpers.  Column precision
    (Numeric(38, 9)) comes from the type_annotation_map in db/base.py; every
    service rounds through these helpers so results match system-wide.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

CRITICAL: No floats anywhere in the kernel.  All monetary amounts use
Decimal with explicit precision.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_DECIMAL_PLACES = 9
DISPLAY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_money(value) -> Decimal:
    """
    Coerce a request value to Decimal without going through float.

    Raises:
        ValueError: If value is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a monetary amount: {value!r}") from None
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raise ValueError(f"Not a monetary amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = DISPLAY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for financial values.
    Balance checks compare totals rounded here at two places.
    """
    quantize_str = "0." + "0" * decimal_places
    return Decimal(value).quantize(Decimal(quantize_str), rounding=rounding)
