"""Pydantic models for pool snapshots and route requests."""

from sor.models.snapshot import PoolModel, PoolSnapshot, TokenModel
from sor.models.types import Address, Amount, DecimalStr, normalize_address

__all__ = [
    # Types
    "Address",
    "Amount",
    "DecimalStr",
    "normalize_address",
    # Snapshot models
    "PoolModel",
    "PoolSnapshot",
    "TokenModel",
]
