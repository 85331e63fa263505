"""Asset Registry — принимаемые токены и base asset пула."""

from .asset_registry import AssetRegistry

__all__ = [
    "AssetRegistry",
]
