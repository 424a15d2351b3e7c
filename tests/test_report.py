import json

import httpx
import pandas as pd
import pytest
from solders.pubkey import Pubkey

from solana_credit_score.models import CreditScoreReport, RankedEntry, RewardEstimate, ScoredEntry
from solana_credit_score.notifier import Notifier
from solana_credit_score.report import format_entry, render_text, write_csv_output, write_json_output


VOTE = Pubkey.new_unique()


def scored(rank, credits, percentile, percent, behind, reward=None):
    return ScoredEntry(
        rank=rank,
        entry=RankedEntry(credits, VOTE, 2_000_000_000),
        percentile=percentile,
        percent_of_top=percent,
        credits_behind=behind,
        reward=reward,
    )


def test_format_entry_top_validator():
    line = format_entry(scored(1, 1_000, 100, 100.0, 0))
    assert line == "   1. {:<44} (100.00%) (100th percentile)".format(str(VOTE))


def test_format_entry_trailing_credits_and_reward():
    reward = RewardEstimate(estimated_by_points=1_500_000_000, expected_by_stake=1_000_000_000)
    line = format_entry(scored(12, 750, 7, 75.0, 250, reward))
    assert line.startswith("  12. ")
    assert "( 75.00%) (  7th percentile) [-250 credits]" in line
    assert line.endswith("[◎1.5000 est, ◎1.0000 by stake]")


def test_writers(tmp_path, logger):
    reward = RewardEstimate(estimated_by_points=3, expected_by_stake=4)
    report = CreditScoreReport(
        epoch=10,
        current_epoch=10,
        entries=[scored(1, 10, 100, 100.0, 0, reward), scored(2, 5, 0, 50.0, 5, reward)],
        total_validators=2,
        epoch_reward_estimate=7,
    )

    json_path = tmp_path / "out.json"
    csv_path = tmp_path / "out.csv"
    write_json_output(json_path, report, logger)
    write_csv_output(csv_path, report, logger)

    payload = json.loads(json_path.read_text(encoding="utf-8"))
    assert payload["metadata"]["epoch"] == 10
    assert payload["metadata"]["reported_validators"] == 2
    assert payload["validators"][1]["credits_behind"] == 5
    frame = pd.read_csv(csv_path)
    assert list(frame["rank"]) == [1, 2]
    assert "expected_reward_sol" in frame.columns
    assert render_text(report).count("\n") == 1


def test_csv_without_entries(tmp_path, logger):
    path = tmp_path / "empty.csv"
    write_csv_output(path, CreditScoreReport(epoch=3, current_epoch=10), logger)
    assert path.read_text(encoding="utf-8").startswith("rank,vote_pubkey")


class TestNotifier:

    @pytest.mark.asyncio
    async def test_no_webhooks_is_a_no_op(self):
        assert Notifier().is_empty
        assert await Notifier().send("hello") == 0

    @pytest.mark.asyncio
    async def test_posts_to_each_webhook(self):
        bodies = {}

        def handler(request: httpx.Request) -> httpx.Response:
            bodies[request.url.host] = json.loads(request.content)
            if request.url.host == "slack.test":
                return httpx.Response(500)
            return httpx.Response(204)

        notifier = Notifier(
            discord_webhook="https://discord.test/hook",
            slack_webhook="https://slack.test/hook",
            transport=httpx.MockTransport(handler),
        )

        assert await notifier.send("```ranking```") == 1
        assert bodies["discord.test"] == {"content": "```ranking```"}
        assert bodies["slack.test"] == {"text": "```ranking```"}

    @pytest.mark.asyncio
    async def test_discord_message_truncated(self):
        captured = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(json.loads(request.content)["content"])
            return httpx.Response(204)

        notifier = Notifier(discord_webhook="https://discord.test/hook", transport=httpx.MockTransport(handler))
        await notifier.send("```" + "x" * 5_000 + "```")

        assert len(captured[0]) == 2_000
        assert captured[0].endswith("```")
