from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
from solders.pubkey import Pubkey

from .models import RankedEntry, RewardEstimate, ScoredEntry


class PercentileTable:
    """Linearly interpolated percentiles over the whole score population."""

    def __init__(self, values: Sequence[float]) -> None:
        self._values = np.sort(np.asarray(values, dtype=np.float64))
        # whole percentiles are looked up once per ranked entry
        self._whole = np.percentile(self._values, np.arange(101)) if self._values.size else np.zeros(101)

    def __len__(self) -> int:
        return int(self._values.size)

    def value_at(self, percentile: float) -> float:
        if not 0 <= percentile <= 100:
            raise ValueError(f"percentile must be within [0, 100], got {percentile}")
        if self._values.size == 0:
            return 0.0
        if float(percentile).is_integer():
            return float(self._whole[int(percentile)])
        return float(np.percentile(self._values, percentile))


def apply_percentile_gate(
    ranked: Sequence[RankedEntry],
    logger: logging.Logger,
    limit: Optional[int] = None,
    min_percentile: int = 0,
    rewards: Optional[Mapping[Pubkey, RewardEstimate]] = None,
) -> List[ScoredEntry]:
    """Annotate ``ranked`` (best first) with percentiles and apply the filters.

    The percentile cursor only moves down because ``ranked`` is ordered by
    non-increasing score, so each entry resumes the search where the previous
    one stopped.
    """
    if not ranked:
        return []

    table = PercentileTable([entry.staker_credits for entry in ranked])
    top_credits = ranked[0].staker_credits

    scored: List[ScoredEntry] = []
    percentile = 100
    for index, entry in enumerate(ranked):
        while percentile > 0 and entry.staker_credits < table.value_at(percentile):
            percentile -= 1
        if percentile < min_percentile:
            logger.debug("Stopping at rank %d: percentile %d below floor %d", index + 1, percentile, min_percentile)
            break
        if limit is not None and len(scored) >= limit:
            break
        scored.append(
            ScoredEntry(
                rank=index + 1,
                entry=entry,
                percentile=percentile,
                percent_of_top=entry.staker_credits * 100.0 / top_credits if top_credits else 0.0,
                credits_behind=max(top_credits - entry.staker_credits, 0),
                reward=rewards.get(entry.vote_identity) if rewards else None,
            )
        )
    return scored


def percentile_summary(ranked: Sequence[RankedEntry], points: Sequence[int] = (25, 50, 75, 90, 99)) -> Dict[int, float]:
    table = PercentileTable([entry.staker_credits for entry in ranked])
    return {point: table.value_at(point) for point in points}
