"""Stake ledger core."""
from .auth import OwnershipGate
from .config import LedgerConfig, load_config
from .errors import (
    AlreadyStaked,
    AlreadyWithdrawn,
    InvalidAmount,
    InvalidDuration,
    InvalidOwner,
    InvalidScreenTime,
    NoStake,
    StakeError,
    StakingNotEnded,
    TransferFailed,
    Unauthorized,
)
from .events import EventLog, OwnershipTransferred, Staked, Withdrawn
from .ledger import StakeLedger, open_ledger
from .stake import PENALTY_RATE, StakeRecord, calculate_reward, split_settlement
from .store import StakeStore
from .transfer import LocalTransfer, ValueTransfer

__all__ = [
    "AlreadyStaked",
    "AlreadyWithdrawn",
    "EventLog",
    "InvalidAmount",
    "InvalidDuration",
    "InvalidOwner",
    "InvalidScreenTime",
    "LedgerConfig",
    "LocalTransfer",
    "NoStake",
    "OwnershipGate",
    "OwnershipTransferred",
    "PENALTY_RATE",
    "StakeError",
    "StakeLedger",
    "StakeRecord",
    "StakeStore",
    "Staked",
    "StakingNotEnded",
    "TransferFailed",
    "Unauthorized",
    "ValueTransfer",
    "Withdrawn",
    "calculate_reward",
    "load_config",
    "open_ledger",
    "split_settlement",
]
