from __future__ import annotations

import logging
from typing import Dict, List

from solders.pubkey import Pubkey

from .epoch import ensure_settled, first_slot_in_epoch
from .errors import BlockFetchFailed, DeserializationFailed, RPCError, SlotSkipped, SnapshotUnavailable
from .models import BlockReward, EpochInfo, parse_pubkey


VOTING_REWARD_TYPE = "voting"
DEFAULT_MAX_SLOT_ADVANCE = 1000


def commissions_from_rewards(rewards: List[BlockReward], logger: logging.Logger) -> Dict[Pubkey, int]:
    commissions: Dict[Pubkey, int] = {}
    for reward in rewards:
        if (reward.reward_type or "").lower() != VOTING_REWARD_TYPE or reward.commission is None:
            continue
        vote_pubkey = parse_pubkey(reward.pubkey)
        if vote_pubkey is None:
            logger.warning("Dropping voting reward with unparseable pubkey %r", reward.pubkey)
            continue
        commissions[vote_pubkey] = min(max(reward.commission, 0), 100)
    return commissions


async def get_epoch_commissions(
    chain,
    epoch_info: EpochInfo,
    epoch: int,
    logger: logging.Logger,
    max_slot_advance: int = DEFAULT_MAX_SLOT_ADVANCE,
) -> Dict[Pubkey, int]:
    """Commission each vote account had at the start of a settled ``epoch``.

    Voting rewards for the previous epoch are paid in the first block of
    ``epoch`` and carry the commission that applied, so the first produced
    block at or after the epoch's first slot is the snapshot source.
    """
    ensure_settled(epoch, epoch_info)
    first_slot = first_slot_in_epoch(epoch_info, epoch)

    slot = first_slot
    for _ in range(max(1, max_slot_advance)):
        logger.info("fetching block in slot %d", slot)
        try:
            rewards = await chain.get_block_rewards(slot)
        except SlotSkipped:
            logger.info("slot %d skipped", slot)
            slot += 1
            continue
        except (RPCError, DeserializationFailed) as exc:
            raise BlockFetchFailed(slot, exc) from exc
        commissions = commissions_from_rewards(rewards, logger)
        logger.info("Recovered %d validator commissions for epoch %d from slot %d", len(commissions), epoch, slot)
        return commissions

    raise SnapshotUnavailable(first_slot, max(1, max_slot_advance))
