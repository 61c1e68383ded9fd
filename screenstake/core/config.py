"""Ledger configuration."""
import os
from pathlib import Path
from typing import Optional
from loguru import logger
from pydantic import BaseModel, Field, field_validator

from .stake import penalty_rate_for
from .store import get_state_dir

CONFIG_FILE = "config.yaml"
TRANSFER_BACKENDS = ("local", "near")


class LedgerConfig(BaseModel):
    """Settings for the stake ledger and its collaborators."""
    owner: str = "operator"
    account_id: Optional[str] = None  # Identity the CLI acts as, defaults to owner
    state_dir: Path = Field(default_factory=get_state_dir)
    decimals: int = 18
    penalty_rate: Optional[int] = None
    allow_restake: bool = False
    transfer: str = "local"
    network: str = "testnet"
    sender_account: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("transfer")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        if value not in TRANSFER_BACKENDS:
            raise ValueError(f"transfer must be one of {', '.join(TRANSFER_BACKENDS)}")
        return value

    @field_validator("decimals")
    @classmethod
    def _enough_decimals(cls, value: int) -> int:
        if value < 5:
            raise ValueError("decimals must be at least 5 to express the penalty rate")
        return value

    @field_validator("penalty_rate")
    @classmethod
    def _non_negative_rate(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("penalty_rate must not be negative")
        return value

    @property
    def caller(self) -> str:
        return self.account_id or self.owner

    @property
    def effective_penalty_rate(self) -> int:
        """Configured rate, or 0.00015 native units at ``decimals``."""
        if self.penalty_rate is not None:
            return self.penalty_rate
        return penalty_rate_for(self.decimals)

    @property
    def events_path(self) -> Path:
        return self.state_dir / "events.jsonl"


def default_config_path() -> Path:
    return get_state_dir() / CONFIG_FILE


def _apply_env(config: LedgerConfig) -> LedgerConfig:
    updates = {}
    if os.getenv("SCREEN_STAKE_STATE_DIR"):
        updates["state_dir"] = Path(os.environ["SCREEN_STAKE_STATE_DIR"])
    if os.getenv("SCREEN_STAKE_ACCOUNT_ID"):
        updates["account_id"] = os.environ["SCREEN_STAKE_ACCOUNT_ID"]
    if os.getenv("SCREEN_STAKE_LOG_LEVEL"):
        updates["log_level"] = os.environ["SCREEN_STAKE_LOG_LEVEL"]
    if os.getenv("NEAR_ENV"):
        updates["network"] = os.environ["NEAR_ENV"]
    return config.model_copy(update=updates) if updates else config


def load_config(config_path: Optional[Path] = None) -> LedgerConfig:
    """Load and validate configuration.

    A missing or invalid file falls back to the defaults. Environment
    variables are applied on top of whatever was loaded.

    Args:
        config_path: Path to a YAML configuration file

    Returns:
        Validated configuration
    """
    path = Path(config_path) if config_path else default_config_path()
    config = LedgerConfig()
    if path.exists():
        try:
            import yaml
            with open(path) as f:
                config_dict = yaml.safe_load(f) or {}
            config = LedgerConfig(**config_dict)
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            logger.info("Using default configuration")
    elif config_path:
        logger.warning(f"Config file {path} not found, using defaults")
    return _apply_env(config)
