"""Vault — Orchestrator операций deposit/withdraw и token custody."""

from .custody import InMemoryCustody, TokenCustody
from .operations import (
    OperationKind,
    OperationReceipt,
    OperationStage,
    OperationTracker,
)
from .orchestrator import VaultConfig, VaultOrchestrator

__all__ = [
    "InMemoryCustody",
    "TokenCustody",
    "OperationKind",
    "OperationReceipt",
    "OperationStage",
    "OperationTracker",
    "VaultConfig",
    "VaultOrchestrator",
]
