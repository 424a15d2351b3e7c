from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .commission import DEFAULT_MAX_SLOT_ADVANCE
from .errors import ConfigurationError
from .models import safe_int
from .rewards import DEFAULT_SLOTS_PER_YEAR, MAINNET_INFLATION_ACTIVATION_SLOT


CONFIG_FILENAME = "config.json"
CLUSTER_MONIKERS = {
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "m": "https://api.mainnet-beta.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "t": "https://api.testnet.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "d": "https://api.devnet.solana.com",
    "localhost": "http://localhost:8899",
    "l": "http://localhost:8899",
}
DEFAULT_RPC_ENDPOINTS: Sequence[str] = (CLUSTER_MONIKERS["mainnet-beta"],)
OUTPUT_FORMATS = {"console", "json", "csv"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def normalize_to_url_if_moniker(value: str) -> str:
    return CLUSTER_MONIKERS.get(value.strip(), value.strip())


@dataclass(frozen=True)
class Settings:
    rpc_endpoints: Tuple[str, ...] = tuple(DEFAULT_RPC_ENDPOINTS)
    epoch: Optional[int] = None
    num: Optional[int] = None
    min_percentile: int = 0
    ignore_commission: bool = False
    estimate_rewards: bool = True
    max_slot_advance: int = DEFAULT_MAX_SLOT_ADVANCE
    request_timeout: float = 35.0
    max_rpc_retries: int = 1
    inflation_activation_slot: int = MAINNET_INFLATION_ACTIVATION_SLOT
    slots_per_year: float = DEFAULT_SLOTS_PER_YEAR
    output_format: Tuple[str, ...] = ("console",)
    json_output_file: str = "credit_scores.json"
    csv_output_file: str = "credit_scores.csv"
    log_level: str = "WARNING"
    discord_webhook: Optional[str] = field(default=None, repr=False)
    slack_webhook: Optional[str] = field(default=None, repr=False)


def load_config(config_path: Optional[Path], required: bool = False) -> Dict[str, Any]:
    if config_path is None:
        return {}
    if not config_path.exists():
        if required:
            raise ConfigurationError(f"Configuration file not found at {config_path}")
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        try:
            config = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON in configuration file: {exc}") from exc
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration file must contain a JSON object")
    return config


def _normalize_endpoints(value: Any) -> List[str]:
    if isinstance(value, str):
        candidates: List[Any] = [value]
    elif isinstance(value, (list, tuple)):
        candidates = list(value)
    else:
        raise ConfigurationError("'rpc_endpoints' must be a URL or a list of URLs")
    endpoints: List[str] = []
    for candidate in candidates:
        endpoint = normalize_to_url_if_moniker(str(candidate))
        if not endpoint:
            continue
        if not endpoint.startswith(("http://", "https://")):
            raise ConfigurationError(f"Invalid RPC endpoint: {candidate}")
        if endpoint not in endpoints:
            endpoints.append(endpoint)
    if not endpoints:
        raise ConfigurationError("No valid RPC endpoints configured")
    return endpoints


def _bounded_int(config: Mapping[str, Any], key: str, default: Optional[int], minimum: int, maximum: Optional[int] = None) -> Optional[int]:
    raw = config.get(key, default)
    if raw is None:
        return None
    value = safe_int(raw)
    if value is None or isinstance(raw, bool):
        raise ConfigurationError(f"'{key}' must be an integer, got {raw!r}")
    if value < minimum or (maximum is not None and value > maximum):
        upper = f" and {maximum}" if maximum is not None else ""
        raise ConfigurationError(f"'{key}' must be at least {minimum}{upper}, got {value}")
    return value


def _bool_setting(config: Mapping[str, Any], key: str, default: bool) -> bool:
    raw = config.get(key, default)
    if not isinstance(raw, bool):
        raise ConfigurationError(f"'{key}' must be true or false, got {raw!r}")
    return raw


def build_settings(
    file_config: Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Merge defaults, the config file, the environment and CLI overrides, then validate."""
    environ = os.environ if environ is None else environ
    merged: Dict[str, Any] = dict(file_config)

    if environ.get("SOLANA_RPC_URL"):
        merged["rpc_endpoints"] = environ["SOLANA_RPC_URL"]
    for key, env_name in (("discord_webhook", "DISCORD_WEBHOOK"), ("slack_webhook", "SLACK_WEBHOOK")):
        if environ.get(env_name) and not merged.get(key):
            merged[key] = environ[env_name]
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    epoch = merged.get("epoch")
    if epoch is not None:
        parsed_epoch = safe_int(epoch)
        if parsed_epoch is None or isinstance(epoch, bool):
            raise ConfigurationError(f"'epoch' must be an integer, got {epoch!r}")
        epoch = parsed_epoch

    output_format = merged.get("output_format", ["console"])
    if isinstance(output_format, str):
        output_format = output_format.split(",")
    formats = tuple(str(fmt).strip().lower() for fmt in output_format if str(fmt).strip())
    unknown = sorted(set(formats) - OUTPUT_FORMATS)
    if unknown:
        raise ConfigurationError(f"Unknown output format(s): {', '.join(unknown)}")

    log_level = str(merged.get("log_level", "WARNING")).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level: {log_level}")

    try:
        request_timeout = float(merged.get("request_timeout", 35.0))
        slots_per_year = float(merged.get("slots_per_year", DEFAULT_SLOTS_PER_YEAR))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid numeric setting: {exc}") from exc
    if request_timeout <= 0 or slots_per_year <= 0:
        raise ConfigurationError("'request_timeout' and 'slots_per_year' must be positive")

    return Settings(
        rpc_endpoints=tuple(_normalize_endpoints(merged.get("rpc_endpoints", DEFAULT_RPC_ENDPOINTS))),
        epoch=epoch,
        num=_bounded_int(merged, "num", None, 0),
        min_percentile=_bounded_int(merged, "min_percentile", 0, 0, 100) or 0,
        ignore_commission=_bool_setting(merged, "ignore_commission", False),
        estimate_rewards=_bool_setting(merged, "estimate_rewards", True),
        max_slot_advance=_bounded_int(merged, "max_slot_advance", DEFAULT_MAX_SLOT_ADVANCE, 1) or DEFAULT_MAX_SLOT_ADVANCE,
        request_timeout=request_timeout,
        max_rpc_retries=_bounded_int(merged, "max_rpc_retries", 1, 1) or 1,
        inflation_activation_slot=_bounded_int(
            merged, "inflation_activation_slot", MAINNET_INFLATION_ACTIVATION_SLOT, 0
        ) or 0,
        slots_per_year=slots_per_year,
        output_format=formats,
        json_output_file=str(merged.get("json_output_file", "credit_scores.json")),
        csv_output_file=str(merged.get("csv_output_file", "credit_scores.csv")),
        log_level=log_level,
        discord_webhook=merged.get("discord_webhook") or None,
        slack_webhook=merged.get("slack_webhook") or None,
    )
