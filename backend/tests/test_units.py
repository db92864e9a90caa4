"""
Test exact base-unit conversion (lamports, micro-USDC).
"""
from decimal import Decimal

from ibrl.agent.units import format_base_units, from_base_units, to_base_units
from ibrl.schemas.intent import Asset


def test_to_base_units():
    assert to_base_units(Decimal("0.1"), Asset.SOL) == 100_000_000
    assert to_base_units(Decimal("2.5"), Asset.USDC) == 2_500_000
    assert to_base_units(Decimal("1"), "SOL") == 1_000_000_000


def test_to_base_units_floors_sub_unit_precision():
    assert to_base_units(Decimal("1.0000000019"), Asset.SOL) == 1_000_000_001
    assert to_base_units(Decimal("0.0000009"), Asset.USDC) == 0


def test_from_base_units():
    assert from_base_units(1_500_000, Asset.USDC) == Decimal("1.5")
    assert from_base_units(1, Asset.SOL) == Decimal("0.000000001")


def test_format_base_units():
    assert format_base_units(1_234_567_891, Asset.SOL) == "1.234567 SOL"
    assert format_base_units(2_000_000, Asset.USDC) == "2 USDC"
    assert format_base_units(10_000_000, Asset.USDC) == "10 USDC"
    assert format_base_units(1_239_999, Asset.USDC) == "1.23 USDC"
