# collateral/prices.py
from dataclasses import dataclass, field
from typing import Callable, Dict, Protocol, runtime_checkable

from collateral.models import DecimalRatio

# prices are quoted with 6 implied decimal places (1.000000 -> 1_000_000 units)
PRICE_DECIMALS = 6
DEFAULT_TOKEN_DECIMALS = 6


@runtime_checkable
class PriceOracle(Protocol):
    """
    Unit price source for a denomination.

    Implementations raise collateral.errors.PriceError when a price can't be
    obtained; the valuation engine propagates it and the cycle is aborted.
    """

    def price_of(self, denom: str) -> DecimalRatio:
        ...


class ConstantPriceOracle:
    """Placeholder oracle: every denom is worth the same fixed price (1 USD by default)."""

    def __init__(self, price: DecimalRatio = DecimalRatio.from_atomics(1_000_000, PRICE_DECIMALS)):
        self._price = price

    def price_of(self, denom: str) -> DecimalRatio:
        return self._price


@dataclass(frozen=True)
class DecimalsTable:
    """denom -> token decimals, falling back to a single default."""
    default:   int = DEFAULT_TOKEN_DECIMALS
    overrides: Dict[str, int] = field(default_factory=dict)

    def __call__(self, denom: str) -> int:
        return self.overrides.get(denom, self.default)


def parse_decimals_overrides(raw: str) -> Dict[str, int]:
    """Parse "uatom=6,ueth=18" into {"uatom": 6, "ueth": 18}."""
    table: Dict[str, int] = {}
    for chunk in (raw or "").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        denom, sep, value = chunk.partition("=")
        if not sep or not denom.strip():
            raise ValueError(f"bad decimals override {chunk!r}, expected denom=decimals")
        decimals = int(value)
        if decimals < 0:
            raise ValueError(f"decimals for {denom.strip()!r} must be >= 0")
        table[denom.strip()] = decimals
    return table


@dataclass(frozen=True)
class ValuationContext:
    decimals_for: Callable[[str], int]
    oracle:       PriceOracle

    @classmethod
    def default(cls) -> "ValuationContext":
        return cls(decimals_for=DecimalsTable(), oracle=ConstantPriceOracle())
