"""Inflation reward estimate for the epoch that is still accruing credits.

The cluster only pays rewards once an epoch completes, so for the current
epoch the issuance is projected from the inflation schedule and split across
validators two ways: by credit-weighted stake ("points", which is how the
runtime distributes rewards) and by plain stake, as a cross-check.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Sequence, Tuple

from solders.pubkey import Pubkey

from .errors import StakeHistoryUnavailable
from .models import InflationGovernor, RankedEntry, RewardEstimate, StakeHistoryEntry


# slot at which full inflation was enabled on mainnet-beta (start of epoch 150)
MAINNET_INFLATION_ACTIVATION_SLOT = 64_800_004
# 160 ticks per second / 64 ticks per slot over a 365.242199 day year
DEFAULT_SLOTS_PER_YEAR = 365.242199 * 24.0 * 60.0 * 60.0 * 160.0 / 64.0


def total_inflation_rate(governor: InflationGovernor, years: float) -> float:
    tapered = governor.initial * (1.0 - governor.taper) ** years
    return max(tapered, governor.terminal)


def foundation_inflation_rate(governor: InflationGovernor, years: float) -> float:
    if years < governor.foundation_term:
        return total_inflation_rate(governor, years) * governor.foundation
    return 0.0


def validator_inflation_rate(governor: InflationGovernor, years: float) -> float:
    return total_inflation_rate(governor, years) - foundation_inflation_rate(governor, years)


def estimate_epoch_reward(
    governor: InflationGovernor,
    slots_since_activation: int,
    slots_per_year: float,
    total_supply: int,
    slots_in_epoch: int,
) -> int:
    """Lamports the validator inflation issues over one epoch."""
    if slots_per_year <= 0:
        return 0
    years = max(slots_since_activation, 0) / slots_per_year
    rate = validator_inflation_rate(governor, years)
    return int(rate * total_supply * (slots_in_epoch / slots_per_year))


def distribute_epoch_reward(
    ranked: Sequence[RankedEntry],
    epoch_reward: int,
    logger: logging.Logger,
) -> Dict[Pubkey, RewardEstimate]:
    total_points = sum(entry.staker_credits * entry.activated_stake for entry in ranked)
    total_stake = sum(entry.activated_stake for entry in ranked)
    logger.info(
        "Distributing %d lamports over %d points and %d lamports of stake",
        epoch_reward,
        total_points,
        total_stake,
    )

    estimates: Dict[Pubkey, RewardEstimate] = {}
    for entry in ranked:
        points = entry.staker_credits * entry.activated_stake
        by_points = epoch_reward * points // total_points if total_points else 0
        by_stake = epoch_reward * entry.activated_stake // total_stake if total_stake else 0
        estimates[entry.vote_identity] = RewardEstimate(estimated_by_points=by_points, expected_by_stake=by_stake)
    return estimates


def effective_stake_for_epoch(history: Mapping[int, StakeHistoryEntry], epoch: int) -> int:
    entry = history.get(epoch)
    if entry is None:
        raise StakeHistoryUnavailable(epoch)
    return entry.effective


async def estimate_rewards(
    chain,
    ranked: Sequence[RankedEntry],
    absolute_slot: int,
    slots_in_epoch: int,
    logger: logging.Logger,
    inflation_activation_slot: int = MAINNET_INFLATION_ACTIVATION_SLOT,
    slots_per_year: float = DEFAULT_SLOTS_PER_YEAR,
) -> Tuple[int, Dict[Pubkey, RewardEstimate]]:
    governor = await chain.get_inflation_governor()
    total_supply = await chain.get_total_supply()
    epoch_reward = estimate_epoch_reward(
        governor,
        absolute_slot - inflation_activation_slot,
        slots_per_year,
        total_supply,
        slots_in_epoch,
    )
    logger.info("Estimated validator inflation for this epoch: %d lamports", epoch_reward)
    return epoch_reward, distribute_epoch_reward(ranked, epoch_reward, logger)
