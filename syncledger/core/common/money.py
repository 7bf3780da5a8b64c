from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Union[Decimal, int, str]) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"INVALID_AMOUNT: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"INVALID_AMOUNT: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
