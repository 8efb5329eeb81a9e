# collateral/models.py
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from math import gcd
from typing import List

U128_MAX = 2**128 - 1

# fixed-point places used when rendering a ratio, same as the on-chain Decimal
DISPLAY_PLACES = 18


class QueryKind(str, Enum):
    DEBTS = "user_debts"
    COLLATERALS = "user_collaterals"


@dataclass(frozen=True)
class TokenAmount:
    denom:  str
    amount: int

    def __post_init__(self):
        if not self.denom:
            raise ValueError("denom must be non-empty")
        if not 0 <= self.amount <= U128_MAX:
            raise ValueError(f"amount {self.amount} outside unsigned 128-bit range")

    def __str__(self):
        return f"{self.amount}{self.denom}"


# debts or collaterals of one account at one point in time; denoms may repeat
PositionSet = List[TokenAmount]


@dataclass(frozen=True)
class DecimalRatio:
    """
    Exact non-negative rational kept in lowest terms.

    Used for unit prices and for the collateralization ratio. Zero is 0/1.
    """
    numerator:   int
    denominator: int = 1

    def __post_init__(self):
        if self.denominator <= 0:
            raise ValueError("denominator must be strictly positive")
        if self.numerator < 0:
            raise ValueError("numerator must be non-negative")
        g = gcd(self.numerator, self.denominator)
        if g > 1:
            object.__setattr__(self, "numerator", self.numerator // g)
            object.__setattr__(self, "denominator", self.denominator // g)

    @classmethod
    def zero(cls) -> "DecimalRatio":
        return cls(0, 1)

    @classmethod
    def one(cls) -> "DecimalRatio":
        return cls(1, 1)

    @classmethod
    def from_ratio(cls, numerator: int, denominator: int) -> "DecimalRatio":
        return cls(numerator, denominator)

    @classmethod
    def from_atomics(cls, units: int, decimal_places: int) -> "DecimalRatio":
        # from_atomics(1_000_000, 6) == 1.0
        return cls(units, 10**decimal_places)

    def is_zero(self) -> bool:
        return self.numerator == 0

    def as_integer_units(self, decimal_places: int = 6) -> int:
        """Floor of the value scaled by 10**decimal_places."""
        return self.numerator * 10**decimal_places // self.denominator

    def to_decimal(self) -> Decimal:
        return Decimal(self.numerator) / Decimal(self.denominator)

    def __str__(self):
        scaled = self.as_integer_units(DISPLAY_PLACES)
        whole, frac = divmod(scaled, 10**DISPLAY_PLACES)
        if not frac:
            return str(whole)
        return f"{whole}.{frac:0{DISPLAY_PLACES}d}".rstrip("0")
