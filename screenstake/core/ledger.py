"""Stake ledger: opening, previewing and settling stakes."""
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Tuple
from loguru import logger

from .auth import OwnershipGate
from .errors import (
    AlreadyStaked,
    AlreadyWithdrawn,
    InvalidAmount,
    InvalidDuration,
    InvalidScreenTime,
    NoStake,
    StakingNotEnded,
    TransferFailed,
)
from .events import EventLog, OwnershipTransferred, Staked, Withdrawn
from .stake import PENALTY_RATE, StakeRecord, calculate_reward
from .store import LedgerState, StakeStore
from .transfer import ValueTransfer

EMPTY = "empty"
ACTIVE = "active"
SETTLED = "settled"


def system_clock() -> int:
    return int(time.time())


class StakeLedger:
    """Keyed store of stakes plus the operations that create and settle them.

    Mutations for one user run under that user's lock, so two settlements of
    the same stake can never both see it unsettled. Pool balance changes run
    under a separate pool lock, always taken after the user lock.

    Settlements and sweeps are saved before any funds move. If the transfer
    then fails the saved state is put back: the stake stays unsettled, the
    pool is untouched and no event is emitted.
    """

    def __init__(self,
                 gate: OwnershipGate,
                 transfer: ValueTransfer,
                 events: Optional[EventLog] = None,
                 store: Optional[StakeStore] = None,
                 clock: Callable[[], float] = system_clock,
                 penalty_rate: int = PENALTY_RATE,
                 allow_restake: bool = False):
        """Initialize the ledger.

        Args:
            gate: Authorization gate holding the operator identity
            transfer: Backend used to pay out rewards and sweeps
            events: Event log receiving notifications
            store: Optional persistence; state is loaded from it on startup
            clock: Returns the current unix time in seconds
            penalty_rate: Penalty per exceeded hour in the smallest unit
            allow_restake: Let a settled user open a new stake
        """
        if penalty_rate < 0:
            raise ValueError("penalty_rate must not be negative")
        self.gate = gate
        self.transfer = transfer
        self.events = events if events is not None else EventLog()
        self.store = store
        self.penalty_rate = penalty_rate
        self.allow_restake = allow_restake
        self._clock = clock

        self._stakes: Dict[str, StakeRecord] = {}
        self._balance = 0
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._pool_lock = threading.Lock()

        if store is not None:
            state = store.load()
            self._stakes = dict(state.stakes)
            self._balance = state.balance
            logger.debug(f"Loaded {len(self._stakes)} stakes from {store.path}")

        gate.on_transfer(self._ownership_transferred)

    def now(self) -> int:
        return int(self._clock())

    @property
    def balance(self) -> int:
        """Value currently held by the ledger."""
        return self._balance

    @contextmanager
    def _user_lock(self, user: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(user, threading.Lock())
        with lock:
            yield

    def _persist(self) -> None:
        if self.store is None:
            return
        self.store.save(LedgerState(
            owner=self.gate.owner,
            balance=self._balance,
            stakes=dict(self._stakes),
        ))

    def _restore_saved(self) -> None:
        try:
            self._persist()
        except Exception:
            logger.exception("Could not restore saved state after a failed transfer")

    def _undo_settlement(self, user: str, stake: StakeRecord, reward: int) -> None:
        self._stakes[user] = stake
        self._balance += reward
        self._restore_saved()

    def _ownership_transferred(self, previous: str, new: str) -> None:
        self._persist()
        self.events.emit(OwnershipTransferred(previous_owner=previous, new_owner=new))

    # Queries

    def get_stake(self, user: str) -> Optional[StakeRecord]:
        return self._stakes.get(user)

    def stakes(self) -> Dict[str, StakeRecord]:
        return dict(self._stakes)

    def status(self, user: str) -> str:
        stake = self._stakes.get(user)
        if stake is None or stake.amount == 0:
            return EMPTY
        return SETTLED if stake.withdrawn else ACTIVE

    def _ended_stake(self, user: str) -> StakeRecord:
        stake = self._stakes.get(user)
        if stake is None or stake.amount == 0:
            raise NoStake(user)
        now = self.now()
        if not stake.has_ended(now):
            raise StakingNotEnded(user, stake.end_time, now)
        return stake

    def preview_reward(self, user: str, screen_time: int) -> int:
        """Reward ``user`` would receive for ``screen_time`` seconds of usage.

        Read-only and open to anyone. Raises ``NoStake`` or
        ``StakingNotEnded`` under the same rules as settlement.
        """
        if screen_time < 0:
            logger.warning(f"Rejected screen time {screen_time} for {user}")
            raise InvalidScreenTime(f"Screen time must not be negative, got {screen_time}")
        stake = self._ended_stake(user)
        return calculate_reward(stake.amount, screen_time, stake.allowed_time, self.penalty_rate)

    # Mutations

    def open_stake(self, caller: str, user: str, deposit_amount: int,
                   duration: int, allowed_time: int) -> StakeRecord:
        """Deposit ``deposit_amount`` for ``user`` for ``duration`` seconds.

        Args:
            caller: Identity making the request, must be the operator
            user: User the stake is held for
            deposit_amount: Principal in the smallest unit
            duration: Seconds until the stake may be settled
            allowed_time: Screen time allowance in seconds

        Returns:
            The newly created stake record
        """
        self.gate.require(caller)
        if deposit_amount <= 0:
            logger.warning(f"Rejected stake for {user}: invalid amount {deposit_amount}")
            raise InvalidAmount(f"Deposit must be positive, got {deposit_amount}")
        if duration <= 0:
            logger.warning(f"Rejected stake for {user}: invalid duration {duration}")
            raise InvalidDuration(f"Duration must be positive, got {duration}")
        if allowed_time < 0:
            logger.warning(f"Rejected stake for {user}: invalid allowance {allowed_time}")
            raise InvalidDuration(f"Allowed time must not be negative, got {allowed_time}")

        with self._user_lock(user):
            previous = self._stakes.get(user)
            if previous is not None and previous.amount > 0:
                if not (self.allow_restake and previous.withdrawn):
                    logger.warning(f"Rejected stake for {user}: already staked")
                    raise AlreadyStaked(user)

            now = self.now()
            stake = StakeRecord(
                amount=deposit_amount,
                start_time=now,
                end_time=now + duration,
                allowed_time=allowed_time,
            )
            with self._pool_lock:
                self._stakes[user] = stake
                self._balance += deposit_amount
                try:
                    self._persist()
                except Exception:
                    self._balance -= deposit_amount
                    if previous is None:
                        del self._stakes[user]
                    else:
                        self._stakes[user] = previous
                    raise

        logger.info(f"Staked {deposit_amount} for {user} until {stake.end_time}")
        self.events.emit(Staked(user=user, amount=deposit_amount, end_time=stake.end_time))
        return stake

    def settle(self, caller: str, user: str, screen_time: int) -> Tuple[int, int]:
        """Settle ``user``'s stake against the reported screen time.

        The reward is transferred to the user and the remainder is kept by
        the pool as penalty.

        Returns:
            ``(reward, penalty)``
        """
        self.gate.require(caller)
        if screen_time < 0:
            logger.warning(f"Rejected screen time {screen_time} for {user}")
            raise InvalidScreenTime(f"Screen time must not be negative, got {screen_time}")

        with self._user_lock(user):
            stake = self._ended_stake(user)
            if stake.withdrawn:
                logger.warning(f"Rejected settlement for {user}: already withdrawn")
                raise AlreadyWithdrawn(user)

            reward = calculate_reward(stake.amount, screen_time, stake.allowed_time, self.penalty_rate)
            settled = stake.settled(reward, self.now())

            with self._pool_lock:
                if reward > self._balance:
                    logger.error(f"Pool holds {self._balance}, cannot pay {reward} to {user}")
                    raise TransferFailed(user, reward, "insufficient pool balance")

                # Persisted before the payout
                self._stakes[user] = settled
                self._balance -= reward
                try:
                    self._persist()
                except Exception:
                    self._stakes[user] = stake
                    self._balance += reward
                    logger.error(f"Could not save settlement for {user}, nothing was sent")
                    raise

                try:
                    self.transfer.send(user, reward)
                except TransferFailed:
                    self._undo_settlement(user, stake, reward)
                    logger.warning(f"Settlement for {user} rolled back: transfer failed")
                    raise
                except Exception as e:
                    self._undo_settlement(user, stake, reward)
                    logger.error(f"Settlement for {user} rolled back: {e}")
                    raise TransferFailed(user, reward, str(e)) from e

        logger.info(f"Settled stake for {user}: reward {reward}, penalty {settled.penalty}")
        self.events.emit(Withdrawn(user=user, reward=reward, penalty=settled.penalty))
        return reward, settled.penalty

    # Administration

    def receive_deposit(self, amount: int) -> None:
        """Accept value sent to the ledger outside of any stake."""
        if amount <= 0:
            logger.warning(f"Rejected deposit of {amount}")
            raise InvalidAmount(f"Deposit must be positive, got {amount}")
        with self._pool_lock:
            self._balance += amount
            try:
                self._persist()
            except Exception:
                self._balance -= amount
                raise
        logger.info(f"Received {amount} into the pool")

    def sweep_balance(self, caller: str) -> int:
        """Transfer the whole pool balance to the operator.

        Returns:
            Amount swept, 0 when the pool was empty
        """
        self.gate.require(caller)
        with self._pool_lock:
            amount = self._balance
            if amount == 0:
                logger.info("Pool is empty, nothing to sweep")
                return 0
            self._balance = 0
            try:
                self._persist()
            except Exception:
                self._balance = amount
                logger.error(f"Could not save sweep of {amount}, nothing was sent")
                raise

            try:
                self.transfer.send(self.gate.owner, amount)
            except TransferFailed:
                self._balance = amount
                self._restore_saved()
                logger.warning(f"Sweep of {amount} to {self.gate.owner} failed")
                raise
            except Exception as e:
                self._balance = amount
                self._restore_saved()
                logger.error(f"Sweep of {amount} to {self.gate.owner} failed: {e}")
                raise TransferFailed(self.gate.owner, amount, str(e)) from e
        logger.info(f"Swept {amount} to {self.gate.owner}")
        return amount


def open_ledger(config) -> StakeLedger:
    """Build a ledger and its collaborators from a ``LedgerConfig``.

    A persisted owner takes precedence over the configured one.
    """
    store = StakeStore(config.state_dir)
    owner = store.load().owner or config.owner

    if config.transfer == "near":
        from .near import NEARTransfer
        transfer = NEARTransfer(
            sender=config.sender_account or owner,
            network=config.network,
            decimals=config.decimals,
        )
    else:
        from .transfer import LocalTransfer
        transfer = LocalTransfer()

    return StakeLedger(
        gate=OwnershipGate(owner),
        transfer=transfer,
        events=EventLog(config.events_path),
        store=store,
        penalty_rate=config.effective_penalty_rate,
        allow_restake=config.allow_restake,
    )
