"""
Domain models and value objects.

Contains fundamental domain entities like PoolState and TokenDescriptor.
"""

from pooled_vault.core.domain.pool_state import POOL_STATE_SCHEMA_VERSION, PoolState
from pooled_vault.core.domain.tokens import TokenDescriptor

__all__ = [
    # Pool state
    "POOL_STATE_SCHEMA_VERSION",
    "PoolState",
    # Tokens
    "TokenDescriptor",
]
