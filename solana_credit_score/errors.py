"""Error hierarchy for the credit score pipeline.

Every failure that aborts a run is one of these classes, so callers can branch
on the category instead of matching message strings.
"""

from __future__ import annotations

from typing import Any, Optional


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


class RPCError(RuntimeError):
    """Raised when the Solana RPC cannot be reached or keeps failing."""


class RPCResponseError(RPCError):
    """Raised when the Solana RPC returns a JSON-RPC error object."""

    def __init__(self, method: str, code: Optional[int], message: str, data: Any = None) -> None:
        super().__init__(f"RPC error on method {method}: [{code}] {message}")
        self.method = method
        self.code = code
        self.message = message
        self.data = data


class SlotSkipped(RPCResponseError):
    """The requested slot was skipped or is missing from long-term storage."""


class CreditScoreError(RuntimeError):
    """Base class for failures of the credit score computation."""


class InvalidEpoch(CreditScoreError):
    def __init__(self, requested: int, current_epoch: int) -> None:
        super().__init__(f"Invalid relative epoch value: {requested} (current epoch {current_epoch})")
        self.requested = requested
        self.current_epoch = current_epoch


class FutureEpochRequested(CreditScoreError):
    def __init__(self, epoch: int, current_epoch: int) -> None:
        super().__init__(f"Future epoch, {epoch}, requested (current epoch {current_epoch})")
        self.epoch = epoch
        self.current_epoch = current_epoch


class BlockFetchFailed(CreditScoreError):
    def __init__(self, slot: int, cause: BaseException) -> None:
        super().__init__(f"Failed to fetch the block for slot {slot}: {cause}")
        self.slot = slot
        self.cause = cause


class SnapshotUnavailable(CreditScoreError):
    """No block was produced within the allowed number of slots after the epoch start."""

    def __init__(self, first_slot: int, attempts: int) -> None:
        super().__init__(
            f"No block found in {attempts} slots starting at slot {first_slot}; commission snapshot unavailable"
        )
        self.first_slot = first_slot
        self.attempts = attempts


class CommissionMissing(CreditScoreError):
    def __init__(self, identity: Any) -> None:
        super().__init__(f"No commission recorded for vote account {identity}")
        self.identity = identity


class StakeHistoryUnavailable(CreditScoreError):
    def __init__(self, epoch: int) -> None:
        super().__init__(f"Stake history has no entry for epoch {epoch}")
        self.epoch = epoch


class DeserializationFailed(CreditScoreError):
    """Raised when an account blob returned by the RPC cannot be decoded."""
