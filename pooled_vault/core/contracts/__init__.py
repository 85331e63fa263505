"""
Contract Validation Module

JSON Schema контракт документа pool_state.
"""

from .validators import PoolStateValidator, SchemaLoader, validate_pool_state

__all__ = [
    "SchemaLoader",
    "PoolStateValidator",
    "validate_pool_state",
]
