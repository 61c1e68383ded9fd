"""Errors raised by the stake ledger."""


class StakeError(Exception):
    """Base class for all ledger rejections."""


class Unauthorized(StakeError):
    """Caller is not the operator."""

    def __init__(self, caller: str):
        super().__init__(f"{caller!r} is not authorized")
        self.caller = caller


class InvalidAmount(StakeError):
    """Deposit or inbound value is not positive."""


class InvalidDuration(StakeError):
    """Staking duration or allowance is out of range."""


class InvalidScreenTime(StakeError):
    """Reported screen time is negative."""


class InvalidOwner(StakeError):
    """New owner identity is empty."""


class AlreadyStaked(StakeError):
    """An active stake already exists for the user."""

    def __init__(self, user: str):
        super().__init__(f"Stake already exists for {user}")
        self.user = user


class NoStake(StakeError):
    """No stake recorded for the user."""

    def __init__(self, user: str):
        super().__init__(f"No stake found for {user}")
        self.user = user


class StakingNotEnded(StakeError):
    """Settlement attempted before the stake's end time."""

    def __init__(self, user: str, end_time: int, now: int):
        super().__init__(f"Staking period for {user} ends at {end_time} (now {now})")
        self.user = user
        self.end_time = end_time
        self.now = now


class AlreadyWithdrawn(StakeError):
    """Stake was already settled."""

    def __init__(self, user: str):
        super().__init__(f"Stake for {user} already withdrawn")
        self.user = user


class TransferFailed(StakeError):
    """Value transfer was rejected by the recipient or the environment."""

    def __init__(self, recipient: str, amount: int, reason: str = ""):
        message = f"Transfer of {amount} to {recipient} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
