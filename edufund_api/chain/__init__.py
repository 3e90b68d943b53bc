"""Cardano ledger access"""

from .chain_context import CardanoChainContext
from .ledger_provider import (
    BlockfrostLedgerProvider,
    LedgerAsset,
    LedgerOutput,
    LedgerProvider,
    LedgerTransaction,
    MintRequest,
)
from .policy import TimeLockedPolicy


__all__ = [
    "BlockfrostLedgerProvider",
    "CardanoChainContext",
    "LedgerAsset",
    "LedgerOutput",
    "LedgerProvider",
    "LedgerTransaction",
    "MintRequest",
    "TimeLockedPolicy",
]
