"""
Configuration loading utilities for Reflex.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from chains.providers import resolve_rpc_urls
from core.constants import DEFAULT_CHAIN_ID, DEFAULT_MAX_HOPS, DEFAULT_RPC_TIMEOUT_SECONDS
from core.exceptions import ConfigError, ErrorCode


CONFIG_DIR = Path(__file__).parent
SCENARIOS_DIR = CONFIG_DIR / "scenarios"


@dataclass
class ReflexConfig:
    """Engine settings."""

    chain_id: int = DEFAULT_CHAIN_ID
    max_hops: int = DEFAULT_MAX_HOPS

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    # Quoter over RPC (optional)
    rpc_urls: List[str] = field(default_factory=list)
    rpc_timeout_seconds: int = DEFAULT_RPC_TIMEOUT_SECONDS
    quoter_address: Optional[str] = None


def load_reflex_config(config_path: Path | None = None) -> ReflexConfig:
    """
    Load engine configuration from YAML file.

    Args:
        config_path: Path to reflex.yaml (default: config/reflex.yaml)

    Returns:
        ReflexConfig, all defaults when the file is missing
    """
    if config_path is None:
        config_path = CONFIG_DIR / "reflex.yaml"

    if not config_path.exists():
        return ReflexConfig()

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    engine = data.get("engine", {})
    logging_data = data.get("logging", {})
    rpc = data.get("rpc", {})

    max_hops = engine.get("max_hops", DEFAULT_MAX_HOPS)
    if not isinstance(max_hops, int) or max_hops < 1:
        raise ConfigError(
            ErrorCode.VALIDATION_ERROR,
            f"engine.max_hops must be a positive integer, got {max_hops!r}",
            details={"path": str(config_path)},
        )

    return ReflexConfig(
        chain_id=engine.get("chain_id", DEFAULT_CHAIN_ID),
        max_hops=max_hops,
        log_level=str(logging_data.get("level", "INFO")).upper(),
        json_logs=bool(logging_data.get("json", True)),
        rpc_urls=resolve_rpc_urls(rpc.get("urls", [])),
        rpc_timeout_seconds=rpc.get("timeout_seconds", DEFAULT_RPC_TIMEOUT_SECONDS),
        quoter_address=rpc.get("quoter_address"),
    )


def load_scenario(path: Path) -> Dict[str, Any]:
    """
    Load a backrun scenario (tokens, pools, quote, shares, trigger).

    Relative names are looked up in config/scenarios/.
    """
    path = Path(path)
    if not path.exists() and not path.is_absolute():
        path = SCENARIOS_DIR / path
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    for section in ("tokens", "pools", "trigger"):
        if section not in data:
            raise ConfigError(
                ErrorCode.VALIDATION_ERROR,
                f"Scenario is missing section '{section}'",
                details={"path": str(path)},
            )
    return data
