# collateral/valuation.py
"""
Position valuation and the collateralization ratio.

value_of() applies the unit price twice: once before and once after
normalising by token decimals. Every step saturates at the unsigned 128-bit
maximum instead of wrapping.

collateralization_ratio() is the one-shot form. The monitor cycle also needs
the two totals, so it calls sum_values() per side and ratio_from_totals(),
which prices every position once and yields the same ratio.
"""
from typing import Iterable

from collateral.errors import PriceError, ValuationError
from collateral.models import U128_MAX, DecimalRatio, TokenAmount
from collateral.prices import PRICE_DECIMALS, PriceOracle, ValuationContext


def saturating_add(a: int, b: int) -> int:
    return min(a + b, U128_MAX)


def saturating_mul(a: int, b: int) -> int:
    return min(a * b, U128_MAX)


def value_of(position: TokenAmount, decimals: int, oracle: PriceOracle) -> int:
    try:
        price = oracle.price_of(position.denom)
    except PriceError as exc:
        raise ValuationError(f"cannot value {position}: {exc}") from exc

    units = price.as_integer_units(PRICE_DECIMALS)
    scaled = saturating_mul(position.amount, units)
    normalized = scaled // 10**decimals if decimals > 0 else scaled

    # second application of the price
    return saturating_mul(normalized, units)


def sum_values(positions: Iterable[TokenAmount], context: ValuationContext) -> int:
    total = 0
    for pos in positions:
        total = saturating_add(total, value_of(pos, context.decimals_for(pos.denom), context.oracle))
    return total


def collateralization_ratio(
    debts: Iterable[TokenAmount],
    collaterals: Iterable[TokenAmount],
    context: ValuationContext,
) -> DecimalRatio:
    # Σ(collateral value) / Σ(debt value)
    return ratio_from_totals(sum_values(collaterals, context), sum_values(debts, context))


def ratio_from_totals(coll_value: int, debt_value: int) -> DecimalRatio:
    # no debt means no risk: reported as exact zero, not inf
    if debt_value == 0:
        return DecimalRatio.zero()
    return DecimalRatio.from_ratio(coll_value, debt_value)
