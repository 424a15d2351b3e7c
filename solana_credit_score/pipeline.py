from __future__ import annotations

import logging
from typing import Dict, Optional

from solders.pubkey import Pubkey

from .commission import get_epoch_commissions
from .config import Settings
from .epoch import resolve_epoch
from .models import CreditScoreReport, RewardEstimate
from .percentile import apply_percentile_gate, percentile_summary
from .ranking import get_validators_by_credit_score
from .rewards import effective_stake_for_epoch, estimate_rewards


async def run_credit_score(chain, settings: Settings, logger: logging.Logger) -> CreditScoreReport:
    """Resolve the epoch, rank every vote account and apply the output filters.

    Nothing is returned unless every stage succeeds.
    """
    epoch_info = await chain.get_epoch_info()
    epoch = resolve_epoch(settings.epoch, epoch_info)
    logger.info("Processing epoch %d (current epoch %d)", epoch, epoch_info.current_epoch)

    epoch_commissions: Optional[Dict[Pubkey, int]] = None
    total_effective_stake: Optional[int] = None
    if epoch != epoch_info.current_epoch:
        epoch_commissions = await get_epoch_commissions(
            chain,
            epoch_info,
            epoch,
            logger,
            max_slot_advance=settings.max_slot_advance,
        )
        stake_history = await chain.get_stake_history()
        total_effective_stake = effective_stake_for_epoch(stake_history, epoch)

    ranked = await get_validators_by_credit_score(
        chain,
        epoch,
        logger,
        epoch_commissions=epoch_commissions,
        ignore_commission=settings.ignore_commission,
    )
    if ranked:
        logger.info("Staker credit percentiles: %s", percentile_summary(ranked))

    rewards: Optional[Dict[Pubkey, RewardEstimate]] = None
    epoch_reward: Optional[int] = None
    if settings.estimate_rewards and epoch == epoch_info.current_epoch:
        epoch_reward, rewards = await estimate_rewards(
            chain,
            ranked,
            epoch_info.absolute_slot,
            epoch_info.slots_in_epoch,
            logger,
            inflation_activation_slot=settings.inflation_activation_slot,
            slots_per_year=settings.slots_per_year,
        )

    entries = apply_percentile_gate(
        ranked,
        logger,
        limit=settings.num,
        min_percentile=settings.min_percentile,
        rewards=rewards,
    )
    return CreditScoreReport(
        epoch=epoch,
        current_epoch=epoch_info.current_epoch,
        entries=entries,
        total_validators=len(ranked),
        total_effective_stake=total_effective_stake,
        epoch_reward_estimate=epoch_reward,
    )
