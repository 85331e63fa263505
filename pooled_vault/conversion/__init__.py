"""Conversion — нормализация сумм между принимаемыми токенами и base asset.

- ConversionGateway: точка входа для Vault Orchestrator
- IdentityConversion / SwapConversion: полиморфные реализации per token
- SwapVenue: протокол внешнего venue, ConstantProductVenue: in-memory reference
"""

from .gateway import (
    Conversion,
    ConversionGateway,
    ConversionResult,
    GatewayConfig,
    IdentityConversion,
    SwapConversion,
)
from .venues import ConstantProductVenue, SwapVenue

__all__ = [
    "Conversion",
    "ConversionGateway",
    "ConversionResult",
    "GatewayConfig",
    "IdentityConversion",
    "SwapConversion",
    "ConstantProductVenue",
    "SwapVenue",
]
