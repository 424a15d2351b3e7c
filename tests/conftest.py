from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

import pytest
from solders.pubkey import Pubkey

from solana_credit_score.chain import parse_block_rewards
from solana_credit_score.errors import RPCResponseError, SlotSkipped
from solana_credit_score.models import (
    BlockReward,
    EpochCredits,
    EpochInfo,
    InflationGovernor,
    StakeHistoryEntry,
    ValidatorAccount,
    VoteAccounts,
)


def make_account(
    earned: Optional[int],
    epoch: int = 10,
    commission: int = 0,
    stake: int = 1_000,
    delinquent: bool = False,
    pubkey: Optional[Pubkey] = None,
) -> ValidatorAccount:
    """Vote account that earned ``earned`` credits in ``epoch``; ``None`` means no entry."""
    credits = []
    if earned is not None:
        credits.append(EpochCredits(epoch=epoch - 1, credits=5_000, prev_credits=4_000))
        credits.append(EpochCredits(epoch=epoch, credits=5_000 + earned, prev_credits=5_000))
    return ValidatorAccount(
        vote_identity=pubkey or Pubkey.new_unique(),
        commission=commission,
        activated_stake=stake,
        epoch_credits=tuple(credits),
        delinquent=delinquent,
    )


def voting_reward(pubkey: Pubkey, commission: int) -> BlockReward:
    return BlockReward(pubkey=str(pubkey), lamports=1, post_balance=1, reward_type="Voting", commission=commission)


class FakeChain:
    """In-memory stand-in for ChainDataSource."""

    def __init__(
        self,
        epoch_info: EpochInfo,
        current: Iterable[ValidatorAccount] = (),
        delinquent: Iterable[ValidatorAccount] = (),
        blocks: Optional[Dict[int, List[BlockReward]]] = None,
        failing_slots: Iterable[int] = (),
        null_slots: Iterable[int] = (),
        governor: Optional[InflationGovernor] = None,
        total_supply: int = 0,
        stake_history: Optional[Dict[int, StakeHistoryEntry]] = None,
    ) -> None:
        self.epoch_info = epoch_info
        self.vote_accounts = VoteAccounts(current=tuple(current), delinquent=tuple(delinquent))
        self.blocks = blocks or {}
        self.failing_slots: Set[int] = set(failing_slots)
        # slots whose getBlock result is null
        self.null_slots: Set[int] = set(null_slots)
        self.governor = governor or InflationGovernor(
            initial=0.5, terminal=0.125, taper=0.5, foundation=0.5, foundation_term=1.0
        )
        self.total_supply = total_supply
        self.stake_history = stake_history if stake_history is not None else {}
        self.block_requests: List[int] = []
        self.governor_requests = 0

    async def get_epoch_info(self) -> EpochInfo:
        return self.epoch_info

    async def get_block_rewards(self, slot: int) -> List[BlockReward]:
        self.block_requests.append(slot)
        if slot in self.failing_slots:
            raise RPCResponseError("getBlock", -32004, f"Block not available for slot {slot}")
        if slot in self.null_slots:
            return parse_block_rewards(None)
        if slot not in self.blocks:
            raise SlotSkipped("getBlock", -32007, f"Slot {slot} was skipped, or missing due to ledger jump to recent snapshot")
        return self.blocks[slot]

    async def get_vote_accounts(self, include_delinquent_unstaked: bool = True) -> VoteAccounts:
        return self.vote_accounts

    async def get_inflation_governor(self) -> InflationGovernor:
        self.governor_requests += 1
        return self.governor

    async def get_stake_history(self) -> Dict[int, StakeHistoryEntry]:
        return self.stake_history

    async def get_total_supply(self) -> int:
        return self.total_supply


@pytest.fixture
def epoch_info() -> EpochInfo:
    # epoch 10 started at slot 1000; epoch 9 at slot 900
    return EpochInfo(current_epoch=10, absolute_slot=1_050, slot_index=50, slots_in_epoch=100)


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tests.solana_credit_score")
