from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional

from solders.pubkey import Pubkey

from .errors import CommissionMissing
from .models import RankedEntry, ValidatorAccount


def staker_credits_for(earned_credits: int, commission: int) -> int:
    """Credits left for stakers once the validator takes its commission, rounded down."""
    commission = min(max(commission, 0), 100)
    return max(earned_credits, 0) * (100 - commission) // 100


def rank_validators(
    accounts: Iterable[ValidatorAccount],
    epoch: int,
    logger: logging.Logger,
    epoch_commissions: Optional[Mapping[Pubkey, int]] = None,
    ignore_commission: bool = False,
) -> List[RankedEntry]:
    """Score every vote account for ``epoch`` and order them best first.

    ``epoch_commissions`` is the snapshot for a settled epoch; when it is
    ``None`` the live commission of each account applies. Accounts without
    credits in ``epoch`` stay in the list with a score of zero.
    """
    ranked: List[RankedEntry] = []
    for account in accounts:
        staker_credits = 0
        entry = account.credits_for_epoch(epoch)
        if entry is not None:
            if ignore_commission:
                commission = 0
            elif epoch_commissions is not None:
                if account.vote_identity not in epoch_commissions:
                    raise CommissionMissing(account.vote_identity)
                commission = epoch_commissions[account.vote_identity]
            else:
                commission = account.commission
            staker_credits = staker_credits_for(entry.earned, commission)
            logger.debug(
                "%s: total credits %d, staker credits %d in epoch %d",
                account.vote_identity,
                entry.earned,
                staker_credits,
                epoch,
            )
        ranked.append(RankedEntry(staker_credits, account.vote_identity, account.activated_stake))

    # stable, so equal scores keep the current-then-delinquent order
    ranked.sort(key=lambda item: item.staker_credits, reverse=True)
    return ranked


async def get_validators_by_credit_score(
    chain,
    epoch: int,
    logger: logging.Logger,
    epoch_commissions: Optional[Mapping[Pubkey, int]] = None,
    ignore_commission: bool = False,
) -> List[RankedEntry]:
    vote_accounts = await chain.get_vote_accounts(include_delinquent_unstaked=True)
    logger.info(
        "Ranking %d current and %d delinquent vote accounts for epoch %d",
        len(vote_accounts.current),
        len(vote_accounts.delinquent),
        epoch,
    )
    if vote_accounts.rejected:
        logger.warning("%d malformed vote accounts excluded", vote_accounts.rejected)
    return rank_validators(
        vote_accounts.all(),
        epoch,
        logger,
        epoch_commissions=epoch_commissions,
        ignore_commission=ignore_commission,
    )
