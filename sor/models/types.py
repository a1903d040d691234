"""Shared type definitions for snapshot and route models."""

from decimal import Decimal
from typing import Annotated, Any

from pydantic import AfterValidator, BeforeValidator, Field, PlainSerializer

from sor.math.decimal_math import bnum


def validate_decimal(value: Any) -> Decimal:
    """Validate that a value is a finite decimal number.

    Args:
        value: Value to validate (string, int, float or Decimal)

    Returns:
        The value as Decimal

    Raises:
        ValueError: If value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Decimal must be a number, got {value!r}")
    return bnum(value)


def validate_non_negative(value: Decimal) -> Decimal:
    """Reject negative decimals."""
    if value < 0:
        raise ValueError(f"Value cannot be negative: {value}")
    return value


def validate_address(value: Any) -> str:
    """Validate and normalize an Ethereum address.

    Raises:
        ValueError: If value is not a 20-byte hex address
    """
    if not isinstance(value, str):
        raise ValueError(f"Address must be a string, got {type(value).__name__}")
    return normalize_address(value, validate=True)


# Ethereum address, normalized to lowercase
Address = Annotated[str, BeforeValidator(validate_address)]

# Decimal amount serialized as a string so no precision is lost in JSON
DecimalStr = Annotated[
    Decimal,
    BeforeValidator(validate_decimal),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
    Field(description="Decimal number as string"),
]

# Non-negative decimal amount
Amount = Annotated[DecimalStr, AfterValidator(validate_non_negative)]


def normalize_address(address: str, *, validate: bool = False) -> str:
    """Normalize an Ethereum address to lowercase.

    Args:
        address: An Ethereum address (with or without 0x prefix)
        validate: If True, raises ValueError for invalid addresses

    Returns:
        Lowercase address with 0x prefix

    Raises:
        ValueError: If validate=True and address is not a valid Ethereum address
    """
    addr = address.strip().lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr

    if validate and not is_valid_address(addr):
        raise ValueError(f"Invalid address: {address}")

    return addr


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid Ethereum address."""
    if not isinstance(address, str):
        return False
    if not address.startswith("0x") or len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False
