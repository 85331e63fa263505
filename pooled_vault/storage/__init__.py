"""Storage — durable снапшоты Pool State."""

from .json_store import PoolStateStore

__all__ = [
    "PoolStateStore",
]
