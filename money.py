# money.py
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from exceptions import MalformedAmountError

Money = Decimal

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def to_money(value, budget_id=None) -> Money:
    """Coerce a stored or user supplied amount into ``Money``.

    ``None`` becomes zero. Floats go through ``str`` so that 0.1 stays 0.1.
    Anything that does not parse to a finite number raises
    ``MalformedAmountError``.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise MalformedAmountError(value, budget_id)
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise MalformedAmountError(value, budget_id)
    else:
        raise MalformedAmountError(value, budget_id)
    if not amount.is_finite():
        raise MalformedAmountError(value, budget_id)
    return amount


def format_money(amount: Money) -> str:
    return str(to_money(amount).quantize(CENTS, rounding=ROUND_HALF_UP))
