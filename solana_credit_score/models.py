from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from solders.pubkey import Pubkey

from .errors import DeserializationFailed


LAMPORTS_PER_SOL = 1_000_000_000


def lamports_to_sol(value: Optional[int]) -> float:
    return 0.0 if value in (None, 0) else value / LAMPORTS_PER_SOL


def safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def strict_int(value: Any) -> Optional[int]:
    """Integer value of a JSON field, or ``None`` when it is absent or not an integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def parse_pubkey(value: Any) -> Optional[Pubkey]:
    """Parse a base58 address, returning ``None`` instead of a placeholder key."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return Pubkey.from_string(value)
    except Exception:  # pylint: disable=broad-except
        logging.getLogger(__name__).debug("Unparseable public key %r", value)
        return None


@dataclass(frozen=True)
class EpochInfo:
    current_epoch: int
    absolute_slot: int
    slot_index: int
    slots_in_epoch: int

    @classmethod
    def from_rpc(cls, result: Dict[str, Any]) -> "EpochInfo":
        if not isinstance(result, dict):
            raise DeserializationFailed(f"getEpochInfo returned {result!r}")
        fields: Dict[str, int] = {}
        for name, key in (
            ("current_epoch", "epoch"),
            ("absolute_slot", "absoluteSlot"),
            ("slot_index", "slotIndex"),
            ("slots_in_epoch", "slotsInEpoch"),
        ):
            value = strict_int(result.get(key))
            if value is None or value < 0:
                raise DeserializationFailed(f"getEpochInfo field '{key}' is missing or invalid: {result.get(key)!r}")
            fields[name] = value
        return cls(**fields)


@dataclass(frozen=True)
class EpochCredits:
    epoch: int
    credits: int
    prev_credits: int

    @property
    def earned(self) -> int:
        return max(self.credits - self.prev_credits, 0)


@dataclass(frozen=True)
class ValidatorAccount:
    vote_identity: Pubkey
    commission: int
    activated_stake: int
    epoch_credits: Tuple[EpochCredits, ...] = ()
    delinquent: bool = False

    def credits_for_epoch(self, epoch: int) -> Optional[EpochCredits]:
        for entry in self.epoch_credits:
            if entry.epoch == epoch:
                return entry
        return None


@dataclass(frozen=True)
class VoteAccounts:
    current: Tuple[ValidatorAccount, ...]
    delinquent: Tuple[ValidatorAccount, ...]
    # malformed vote accounts; reported, never ranked
    rejected: int = 0

    def all(self) -> List[ValidatorAccount]:
        return list(self.current) + list(self.delinquent)


@dataclass(frozen=True)
class BlockReward:
    pubkey: str
    lamports: int
    post_balance: int
    reward_type: Optional[str]
    commission: Optional[int]


@dataclass(frozen=True)
class InflationGovernor:
    initial: float
    terminal: float
    taper: float
    foundation: float
    foundation_term: float

    @classmethod
    def from_rpc(cls, result: Dict[str, Any]) -> "InflationGovernor":
        return cls(
            initial=float(result.get("initial", 0.0)),
            terminal=float(result.get("terminal", 0.0)),
            taper=float(result.get("taper", 0.0)),
            foundation=float(result.get("foundation", 0.0)),
            foundation_term=float(result.get("foundationTerm", 0.0)),
        )


@dataclass(frozen=True)
class StakeHistoryEntry:
    effective: int
    activating: int
    deactivating: int


@dataclass(frozen=True)
class RankedEntry:
    staker_credits: int
    vote_identity: Pubkey
    activated_stake: int


@dataclass(frozen=True)
class RewardEstimate:
    estimated_by_points: int
    expected_by_stake: int

    @property
    def estimated_by_points_sol(self) -> float:
        return lamports_to_sol(self.estimated_by_points)

    @property
    def expected_by_stake_sol(self) -> float:
        return lamports_to_sol(self.expected_by_stake)


@dataclass(frozen=True)
class ScoredEntry:
    rank: int
    entry: RankedEntry
    percentile: int
    percent_of_top: float
    credits_behind: int
    reward: Optional[RewardEstimate] = None

    def to_dict(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "rank": self.rank,
            "vote_pubkey": str(self.entry.vote_identity),
            "staker_credits": self.entry.staker_credits,
            "activated_stake_sol": lamports_to_sol(self.entry.activated_stake),
            "percent_of_top": self.percent_of_top,
            "percentile": self.percentile,
            "credits_behind": self.credits_behind,
        }
        if self.reward is not None:
            row["estimated_reward_sol"] = self.reward.estimated_by_points_sol
            row["expected_reward_sol"] = self.reward.expected_by_stake_sol
        return row


@dataclass
class CreditScoreReport:
    epoch: int
    current_epoch: int
    entries: List[ScoredEntry] = field(default_factory=list)
    total_validators: int = 0
    total_effective_stake: Optional[int] = None
    epoch_reward_estimate: Optional[int] = None

    @property
    def is_current_epoch(self) -> bool:
        return self.epoch == self.current_epoch

    def context(self) -> Dict[str, Any]:
        context: Dict[str, Any] = {
            "epoch": self.epoch,
            "current_epoch": self.current_epoch,
            "total_validators": self.total_validators,
            "reported_validators": len(self.entries),
        }
        if self.total_effective_stake is not None:
            context["total_effective_stake_sol"] = lamports_to_sol(self.total_effective_stake)
        if self.epoch_reward_estimate is not None:
            context["epoch_reward_estimate_sol"] = lamports_to_sol(self.epoch_reward_estimate)
        return context


def rows_for(entries: Sequence[ScoredEntry]) -> List[Dict[str, Any]]:
    return [entry.to_dict() for entry in entries]
