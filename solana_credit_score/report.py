from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

from .models import CreditScoreReport, ScoredEntry, rows_for


CSV_COLUMNS = [
    "rank",
    "vote_pubkey",
    "staker_credits",
    "activated_stake_sol",
    "percent_of_top",
    "percentile",
    "credits_behind",
    "estimated_reward_sol",
    "expected_reward_sol",
]


def format_entry(scored: ScoredEntry) -> str:
    line = "{:>4}. {:<44} ({:>6.2f}%) ({:>3}th percentile)".format(
        scored.rank,
        str(scored.entry.vote_identity),
        scored.percent_of_top,
        scored.percentile,
    )
    if scored.credits_behind > 0:
        line += f" [-{scored.credits_behind} credits]"
    if scored.reward is not None:
        line += " [◎{:.4f} est, ◎{:.4f} by stake]".format(
            scored.reward.estimated_by_points_sol,
            scored.reward.expected_by_stake_sol,
        )
    return line


def render_text(report: CreditScoreReport) -> str:
    return "\n".join(format_entry(scored) for scored in report.entries)


def render_console_output(report: CreditScoreReport, logger: logging.Logger) -> str:
    text = render_text(report)
    print(f"Epoch {report.epoch}")
    if not report.entries:
        logger.warning("No validators matched the requested filters in epoch %d", report.epoch)
        return text
    print(text)
    return text


def build_context(report: CreditScoreReport) -> Dict[str, Any]:
    context: Dict[str, Any] = {"generated_at": datetime.now(tz=timezone.utc).isoformat()}
    context.update(report.context())
    return context


def write_json_output(output_path: Path, report: CreditScoreReport, logger: logging.Logger) -> None:
    payload = {
        "metadata": build_context(report),
        "validators": rows_for(report.entries),
    }
    output_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    logger.info("Wrote JSON report to %s", output_path)


def write_csv_output(output_path: Path, report: CreditScoreReport, logger: logging.Logger) -> None:
    rows: List[Dict[str, Any]] = rows_for(report.entries)
    frame = pd.DataFrame(rows)
    columns = [column for column in CSV_COLUMNS if column in frame.columns] if rows else CSV_COLUMNS[:7]
    frame = frame.reindex(columns=columns)
    frame.to_csv(output_path, index=False)
    logger.info("Wrote CSV report to %s", output_path)
