import random

import pytest
from solders.pubkey import Pubkey

from solana_credit_score.models import RankedEntry, RewardEstimate
from solana_credit_score.percentile import PercentileTable, apply_percentile_gate


def ranked_from(scores):
    entries = [RankedEntry(score, Pubkey.new_unique(), 1_000) for score in scores]
    return sorted(entries, key=lambda entry: entry.staker_credits, reverse=True)


class TestPercentileTable:

    def test_linear_interpolation(self):
        table = PercentileTable([0, 10, 20, 30, 40])
        assert table.value_at(0) == 0.0
        assert table.value_at(50) == 20.0
        assert table.value_at(100) == 40.0
        assert table.value_at(12.5) == pytest.approx(5.0)

    def test_monotonic_in_percentile(self):
        rng = random.Random(5)
        table = PercentileTable([rng.randint(0, 10_000) for _ in range(97)])
        values = [table.value_at(p) for p in range(101)]
        assert values == sorted(values)

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            PercentileTable([1, 2]).value_at(101)


class TestPercentileGate:

    def test_limit_keeps_top_validator_only(self, logger):
        ranked = ranked_from([1_000, 500])

        scored = apply_percentile_gate(ranked, logger, limit=1)

        assert len(scored) == 1
        assert scored[0].entry.staker_credits == 1_000
        assert scored[0].percent_of_top == 100.0
        assert scored[0].percentile == 100
        assert scored[0].credits_behind == 0
        assert scored[0].rank == 1

    def test_annotations_relative_to_top(self, logger):
        scored = apply_percentile_gate(ranked_from([1_000, 500]), logger)

        second = scored[1]
        assert second.rank == 2
        assert second.percent_of_top == 50.0
        assert second.credits_behind == 500
        assert second.percentile == 0

    def test_percentile_floor_excludes_low_scores(self, logger):
        ranked = ranked_from(range(0, 101))
        everything = apply_percentile_gate(ranked, logger)

        scored = apply_percentile_gate(ranked, logger, min_percentile=90)

        assert scored == [item for item in everything if item.percentile >= 90]
        assert 0 < len(scored) < len(ranked)
        assert scored[0].entry.staker_credits == 100

    def test_floor_then_limit(self, logger):
        ranked = ranked_from(range(0, 101))
        everything = apply_percentile_gate(ranked, logger)

        scored = apply_percentile_gate(ranked, logger, limit=5, min_percentile=50)

        assert scored == [item for item in everything if item.percentile >= 50][:5]
        assert [item.rank for item in scored] == [1, 2, 3, 4, 5]

    def test_distribution_uses_full_population(self, logger):
        ranked = ranked_from([100] + [0] * 99)

        (top,) = apply_percentile_gate(ranked, logger, limit=1)

        assert top.percentile == 100
        rest = apply_percentile_gate(ranked, logger)
        # zero scores still reach the 98th percentile of a mostly-zero population
        assert rest[1].percentile == 98

    def test_assigned_percentiles_never_increase(self, logger):
        rng = random.Random(17)
        ranked = ranked_from([rng.choice([0, rng.randint(0, 50_000)]) for _ in range(300)])

        scored = apply_percentile_gate(ranked, logger)

        percentiles = [item.percentile for item in scored]
        assert percentiles == sorted(percentiles, reverse=True)
        assert len(scored) == len(ranked)

    def test_attaches_reward_estimates(self, logger):
        ranked = ranked_from([10, 5])
        estimate = RewardEstimate(estimated_by_points=3, expected_by_stake=4)

        scored = apply_percentile_gate(ranked, logger, rewards={ranked[0].vote_identity: estimate})

        assert scored[0].reward == estimate
        assert scored[1].reward is None

    def test_empty_and_all_zero(self, logger):
        assert apply_percentile_gate([], logger) == []
        scored = apply_percentile_gate(ranked_from([0, 0]), logger)
        assert [item.percent_of_top for item in scored] == [0.0, 0.0]
        assert [item.percentile for item in scored] == [100, 100]
