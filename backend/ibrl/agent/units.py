"""Exact conversion between human amounts and base units.

All arithmetic is Decimal/int. A float never touches a spend amount.
"""
from decimal import ROUND_DOWN, Decimal

from ibrl.schemas.intent import Asset

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

DECIMALS = {
    Asset.SOL: 9,   # lamports
    Asset.USDC: 6,  # micro-USDC
}

MINTS = {
    Asset.SOL: SOL_MINT,
    Asset.USDC: USDC_MINT,
}


def to_base_units(value: Decimal, asset: Asset) -> int:
    """Floor a human amount to whole base units (never rounds up a spend)."""
    scaled = Decimal(value).scaleb(DECIMALS[Asset(asset)])
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_base_units(amount: int, asset: Asset) -> Decimal:
    return Decimal(int(amount)).scaleb(-DECIMALS[Asset(asset)])


def format_base_units(amount: int, asset: Asset) -> str:
    human = from_base_units(amount, asset)
    places = 6 if Asset(asset) == Asset.SOL else 2
    quantized = human.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)
    return f"{quantized.normalize():f} {Asset(asset).value}"
