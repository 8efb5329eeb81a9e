import pytest

from collateral import prices
from collateral.models import DecimalRatio


def test_constant_oracle_is_one_dollar():
    oracle = prices.ConstantPriceOracle()
    p = oracle.price_of("uosmo")
    assert p == DecimalRatio.one()
    assert p.as_integer_units(prices.PRICE_DECIMALS) == 1_000_000
    assert oracle.price_of("ibc/27394FB092D2ECCD56123C74F36E4C1F926001CEADA9CA97EA622B25F41E5EB2") == p
    assert isinstance(oracle, prices.PriceOracle)


def test_decimals_table_falls_back_to_default():
    table = prices.DecimalsTable(overrides={"ueth": 18})
    assert table("ueth") == 18
    assert table("uosmo") == 6


def test_parse_decimals_overrides():
    assert prices.parse_decimals_overrides("") == {}
    assert prices.parse_decimals_overrides("uatom=6, ueth=18,") == {"uatom": 6, "ueth": 18}
    with pytest.raises(ValueError):
        prices.parse_decimals_overrides("uatom")
    with pytest.raises(ValueError):
        prices.parse_decimals_overrides("uatom=-1")
