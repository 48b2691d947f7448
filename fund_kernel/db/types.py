"""
Module: fund_kernel.db.types
Responsibility: Annotated type aliases and money helpers shared by models,
    selectors and services.  Centralizes precision and rounding so that every
    layer uses identical definitions.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    selectors/ or domain/.

Invariants enforced:
    - Amounts carry exactly two decimal places.  round_money() is the ONLY
      sanctioned rounding function for amounts.
    - No floats anywhere in the kernel.  Floats passed to to_money() are
      converted through str() so binary artefacts never leak into Decimal.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from fund_kernel.exceptions import InvalidAmountError

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for amounts in the kernel.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """
    Coerce an input or aggregate result into a two-decimal Decimal.

    ``None`` (e.g. SUM over zero rows) becomes 0.00.

    Raises:
        InvalidAmountError: If the value cannot be parsed as a number.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        dec = value
    else:
        try:
            dec = Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmountError(value, "not a number") from None
    if not dec.is_finite():
        raise InvalidAmountError(value, "not a finite number")
    return round_money(dec)


def positive_money(value: Decimal | int | float | str) -> Decimal:
    """
    Validate a caller-supplied amount: a finite number strictly above zero
    with no more than two decimal places.

    Raises:
        InvalidAmountError: If the amount is malformed, non-positive or has
            sub-paisa precision.
    """
    amount = to_money(value)
    if amount <= ZERO:
        raise InvalidAmountError(value)
    original = value if isinstance(value, Decimal) else Decimal(str(value))
    if original != amount:
        raise InvalidAmountError(value, "more than two decimal places")
    return amount
