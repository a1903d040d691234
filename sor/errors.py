"""Router error classes.

Every error raised by the pricing and routing core derives from SorError and
carries enough context (pool, pool type, token pair) to diagnose the failing
snapshot. None of these are retryable: the core performs no I/O.
"""

from __future__ import annotations


class SorError(Exception):
    """Base error for smart order router operations."""

    def __init__(
        self,
        message: str,
        *,
        pool_id: str | None = None,
        pool_type: str | None = None,
        token_in: str | None = None,
        token_out: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.pool_id = pool_id
        self.pool_type = pool_type
        self.token_in = token_in
        self.token_out = token_out

    @property
    def context(self) -> dict[str, str]:
        """Diagnostic context that was supplied, without empty entries."""
        items = {
            "pool_id": self.pool_id,
            "pool_type": self.pool_type,
            "token_in": self.token_in,
            "token_out": self.token_out,
        }
        return {k: v for k, v in items.items() if v is not None}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class UnknownTokenError(SorError):
    """A pair references a token the pool does not hold."""

    pass


class UnsupportedOperationError(SorError):
    """The pool type does not implement the requested pricing primitive."""

    pass


class InsufficientLiquidityError(SorError):
    """Requested amount exceeds the total capacity of the usable paths."""

    pass


class DegenerateInvariantError(SorError):
    """A pricing computation left the invariant's valid domain."""

    pass


class StableInvariantDidNotConverge(DegenerateInvariantError):
    """Newton iteration for the stable invariant (or a balance) hit its cap."""

    pass


class EmptyPoolSetError(SorError):
    """No pools were supplied at all."""

    pass


__all__ = [
    "SorError",
    "UnknownTokenError",
    "UnsupportedOperationError",
    "InsufficientLiquidityError",
    "DegenerateInvariantError",
    "StableInvariantDidNotConverge",
    "EmptyPoolSetError",
]
