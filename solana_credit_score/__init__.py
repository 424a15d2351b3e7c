"""Rank Solana validators by the vote credits they earn for their stakers."""

from .errors import (
    BlockFetchFailed,
    CommissionMissing,
    ConfigurationError,
    CreditScoreError,
    DeserializationFailed,
    FutureEpochRequested,
    InvalidEpoch,
    RPCError,
    SnapshotUnavailable,
    StakeHistoryUnavailable,
)
from .models import CreditScoreReport, EpochInfo, RankedEntry, RewardEstimate, ScoredEntry, ValidatorAccount
from .pipeline import run_credit_score
from .ranking import get_validators_by_credit_score, rank_validators

__version__ = "0.1.0"
