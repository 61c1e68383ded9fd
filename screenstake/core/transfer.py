"""Value transfer backends."""
from typing import Dict, List, Protocol, Set, Tuple
from loguru import logger

from .errors import TransferFailed


class ValueTransfer(Protocol):
    """Moves funds to a recipient, raising ``TransferFailed`` on rejection."""

    def send(self, recipient: str, amount: int) -> None:
        ...


class LocalTransfer:
    """In-process transfer that credits recipient balances.

    Recipients added with ``refuse`` reject every payment, which mirrors an
    account that cannot receive funds.
    """

    def __init__(self):
        self.balances: Dict[str, int] = {}
        self.history: List[Tuple[str, int]] = []
        self._refusing: Set[str] = set()

    def refuse(self, recipient: str) -> None:
        self._refusing.add(recipient)

    def accept(self, recipient: str) -> None:
        self._refusing.discard(recipient)

    def balance_of(self, recipient: str) -> int:
        return self.balances.get(recipient, 0)

    def send(self, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferFailed(recipient, amount, "negative amount")
        if recipient in self._refusing:
            raise TransferFailed(recipient, amount, "recipient refused funds")

        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        self.history.append((recipient, amount))
        logger.debug(f"Sent {amount} to {recipient}")
