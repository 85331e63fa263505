"""
Core math modules для pooled_vault

Целочисленные примитивы share-accounting с явным направлением округления.
"""

from pooled_vault.core.math.share_math import (
    # Constants
    BPS_DENOMINATOR,
    MAX_BPS,
    # Mul-div
    mul_div_down,
    mul_div_up,
    # Shares <-> assets
    price_per_share,
    to_assets_down,
    to_shares_down,
    # Slippage
    apply_slippage_floor,
    realized_slippage_bps,
    # Validation
    validate_bps,
    validate_positive_int,
    validate_uint,
)

__all__ = [
    # Constants
    "BPS_DENOMINATOR",
    "MAX_BPS",
    # Mul-div
    "mul_div_down",
    "mul_div_up",
    # Shares <-> assets
    "price_per_share",
    "to_assets_down",
    "to_shares_down",
    # Slippage
    "apply_slippage_floor",
    "realized_slippage_bps",
    # Validation
    "validate_bps",
    "validate_positive_int",
    "validate_uint",
]
