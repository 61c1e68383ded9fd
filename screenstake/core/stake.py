"""Stake records and reward calculation."""
from typing import Optional, Tuple
from pydantic import BaseModel

SECONDS_PER_HOUR = 3600

# 0.00015 native units per exceeded hour at 18 decimals
PENALTY_RATE = 150_000_000_000_000


def penalty_rate_for(decimals: int) -> int:
    """Return the per-hour penalty expressed in units of ``10**-decimals``."""
    if decimals < 5:
        raise ValueError(f"Cannot express 0.00015 with {decimals} decimals")
    return 15 * 10 ** (decimals - 5)


class StakeRecord(BaseModel):
    """Stake deposited by the operator on behalf of a user."""
    amount: int
    start_time: int
    end_time: int
    allowed_time: int
    withdrawn: bool = False
    # Filled in once the stake is settled
    reward: Optional[int] = None
    penalty: Optional[int] = None
    settled_at: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.amount > 0 and not self.withdrawn

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time

    def has_ended(self, now: int) -> bool:
        return now >= self.end_time

    def settled(self, reward: int, now: int) -> "StakeRecord":
        """Copy of this record marked withdrawn with the given payout."""
        return self.model_copy(update={
            "withdrawn": True,
            "reward": reward,
            "penalty": self.amount - reward,
            "settled_at": now,
        })


def exceeded_hours(screen_time: int, allowed_time: int) -> int:
    """Whole hours of usage over the allowance; partial hours are not counted."""
    if screen_time <= allowed_time:
        return 0
    return (screen_time - allowed_time) // SECONDS_PER_HOUR


def calculate_penalty(screen_time: int, allowed_time: int, rate: int = PENALTY_RATE) -> int:
    """Raw penalty before it is capped at the staked amount."""
    return exceeded_hours(screen_time, allowed_time) * rate


def calculate_reward(amount: int, screen_time: int, allowed_time: int,
                     rate: int = PENALTY_RATE) -> int:
    """Calculate what is paid back to the user.

    Args:
        amount: Staked principal in the smallest unit
        screen_time: Observed usage in seconds
        allowed_time: Usage allowance in seconds
        rate: Penalty per exceeded hour in the smallest unit

    Returns:
        Reward between 0 and ``amount`` inclusive
    """
    penalty = calculate_penalty(screen_time, allowed_time, rate)
    if penalty >= amount:
        return 0
    return amount - penalty


def split_settlement(amount: int, screen_time: int, allowed_time: int,
                     rate: int = PENALTY_RATE) -> Tuple[int, int]:
    """Return ``(reward, penalty)`` where the penalty is capped at ``amount``."""
    reward = calculate_reward(amount, screen_time, allowed_time, rate)
    return reward, amount - reward
