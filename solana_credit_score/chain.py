"""Typed read access to the cluster state the credit score needs."""

from __future__ import annotations

import base64
import binascii
import logging
import struct
from typing import Any, Dict, List, Optional, Tuple

from solders.sysvar import STAKE_HISTORY

from .errors import DeserializationFailed, RPCError
from .models import (
    BlockReward,
    EpochCredits,
    EpochInfo,
    InflationGovernor,
    StakeHistoryEntry,
    ValidatorAccount,
    VoteAccounts,
    parse_pubkey,
    safe_int,
    strict_int,
)
from .rpc import SolanaRPCClient


COMMITMENT = "finalized"
_U64 = struct.Struct("<Q")
_STAKE_HISTORY_RECORD = struct.Struct("<QQQQ")


def decode_stake_history(data: bytes) -> Dict[int, StakeHistoryEntry]:
    """Decode the bincode layout of the stake history sysvar.

    A little-endian ``u64`` length prefix followed by ``(epoch, effective,
    activating, deactivating)`` records, newest epoch first.
    """
    if len(data) < _U64.size:
        raise DeserializationFailed(f"Stake history blob too short: {len(data)} bytes")
    (count,) = _U64.unpack_from(data, 0)
    expected = _U64.size + count * _STAKE_HISTORY_RECORD.size
    if len(data) < expected:
        raise DeserializationFailed(
            f"Stake history blob declares {count} entries but holds only {len(data)} of {expected} bytes"
        )
    history: Dict[int, StakeHistoryEntry] = {}
    for epoch, effective, activating, deactivating in _STAKE_HISTORY_RECORD.iter_unpack(
        data[_U64.size:expected]
    ):
        history[epoch] = StakeHistoryEntry(effective=effective, activating=activating, deactivating=deactivating)
    return history


def parse_vote_account(entry: Dict[str, Any], delinquent: bool) -> Optional[ValidatorAccount]:
    """Typed vote account, or ``None`` when any field it is ranked on is malformed."""
    vote_pubkey = parse_pubkey(entry.get("votePubkey"))
    commission = strict_int(entry.get("commission"))
    activated_stake = strict_int(entry.get("activatedStake"))
    if vote_pubkey is None or commission is None or activated_stake is None or activated_stake < 0:
        return None
    credits: List[EpochCredits] = []
    for item in entry.get("epochCredits") or []:
        if not isinstance(item, (list, tuple)) or len(item) < 3:
            return None
        epoch, total, prev = (strict_int(value) for value in item[:3])
        if epoch is None or total is None or prev is None:
            return None
        credits.append(EpochCredits(epoch=epoch, credits=total, prev_credits=prev))
    return ValidatorAccount(
        vote_identity=vote_pubkey,
        commission=min(max(commission, 0), 100),
        activated_stake=activated_stake,
        epoch_credits=tuple(credits),
        delinquent=delinquent,
    )


def parse_block_rewards(block: Optional[Dict[str, Any]]) -> List[BlockReward]:
    if not isinstance(block, dict):
        raise DeserializationFailed(f"getBlock returned no block: {block!r}")
    rewards: List[BlockReward] = []
    for reward in block.get("rewards") or []:
        if not isinstance(reward, dict):
            continue
        commission = safe_int(reward.get("commission"))
        rewards.append(
            BlockReward(
                pubkey=str(reward.get("pubkey") or ""),
                lamports=safe_int(reward.get("lamports")) or 0,
                post_balance=safe_int(reward.get("postBalance")) or 0,
                reward_type=reward.get("rewardType"),
                commission=commission,
            )
        )
    return rewards


class ChainDataSource:
    def __init__(self, client: SolanaRPCClient) -> None:
        self._client = client
        self.logger = logging.getLogger(self.__class__.__name__)

    async def get_epoch_info(self) -> EpochInfo:
        result = await self._client.request("getEpochInfo", [{"commitment": COMMITMENT}])
        if not result:
            raise RPCError("Failed to retrieve epoch info")
        return EpochInfo.from_rpc(result)

    async def get_block_rewards(self, slot: int) -> List[BlockReward]:
        """Reward records of the block in ``slot``; raises ``SlotSkipped`` for empty slots."""
        block = await self._client.request(
            "getBlock",
            [
                slot,
                {
                    "commitment": COMMITMENT,
                    "encoding": "json",
                    "transactionDetails": "none",
                    "rewards": True,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        return parse_block_rewards(block)

    async def get_vote_accounts(self, include_delinquent_unstaked: bool = True) -> VoteAccounts:
        result = await self._client.request(
            "getVoteAccounts",
            [{"commitment": COMMITMENT, "keepUnstakedDelinquents": include_delinquent_unstaked}],
        ) or {}
        groups: Dict[str, Tuple[ValidatorAccount, ...]] = {}
        rejected = 0
        for category, delinquent_flag in (("current", False), ("delinquent", True)):
            accounts: List[ValidatorAccount] = []
            for entry in result.get(category) or []:
                account = parse_vote_account(entry, delinquent_flag) if isinstance(entry, dict) else None
                if account is None:
                    rejected += 1
                    self.logger.warning("Skipping malformed vote account: %r", entry)
                    continue
                accounts.append(account)
            groups[category] = tuple(accounts)
        return VoteAccounts(current=groups["current"], delinquent=groups["delinquent"], rejected=rejected)

    async def get_inflation_governor(self) -> InflationGovernor:
        result = await self._client.request("getInflationGovernor", [{"commitment": COMMITMENT}])
        if not result:
            raise RPCError("Failed to retrieve inflation governor")
        return InflationGovernor.from_rpc(result)

    async def get_stake_history(self) -> Dict[int, StakeHistoryEntry]:
        result = await self._client.request(
            "getAccountInfo",
            [str(STAKE_HISTORY), {"commitment": COMMITMENT, "encoding": "base64"}],
        )
        value = (result or {}).get("value")
        if not value:
            raise DeserializationFailed("Stake history sysvar account not found")
        data = value.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], str):
            raise DeserializationFailed(f"Unexpected stake history account data: {data!r}")
        try:
            raw = base64.b64decode(data[0], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DeserializationFailed(f"Stake history data is not valid base64: {exc}") from exc
        return decode_stake_history(raw)

    async def get_total_supply(self) -> int:
        result = await self._client.request(
            "getSupply",
            [{"commitment": COMMITMENT, "excludeNonCirculatingAccountsList": True}],
        )
        total = safe_int(((result or {}).get("value") or {}).get("total"))
        if total is None:
            raise RPCError("Failed to retrieve total supply")
        return total
