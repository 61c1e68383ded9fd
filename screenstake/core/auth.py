"""Operator authorization."""
from typing import Callable, List, Optional
from loguru import logger

from .errors import InvalidOwner, Unauthorized


class OwnershipGate:
    """Holds the single operator identity allowed to mutate the ledger."""

    def __init__(self, owner: str):
        if not owner or not owner.strip():
            raise InvalidOwner("Owner identity must not be empty")
        self._owner = owner
        self._listeners: List[Callable[[str, str], None]] = []

    @property
    def owner(self) -> str:
        return self._owner

    def is_authorized(self, caller: Optional[str]) -> bool:
        return caller is not None and caller == self._owner

    def require(self, caller: Optional[str]) -> None:
        """Raise ``Unauthorized`` unless ``caller`` is the current owner."""
        if not self.is_authorized(caller):
            logger.warning(f"Rejected call from unauthorized caller {caller!r}")
            raise Unauthorized(str(caller))

    def on_transfer(self, listener: Callable[[str, str], None]) -> None:
        """Register ``listener(previous, new)`` for ownership changes."""
        self._listeners.append(listener)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Hand the operator role to ``new_owner``.

        Args:
            caller: Identity making the request, must be the current owner
            new_owner: Identity that becomes the operator
        """
        self.require(caller)
        if not new_owner or not new_owner.strip():
            logger.warning(f"Rejected ownership transfer to {new_owner!r}")
            raise InvalidOwner("New owner is the zero identity")

        previous = self._owner
        self._owner = new_owner
        logger.info(f"Ownership transferred from {previous} to {new_owner}")
        for listener in self._listeners:
            listener(previous, new_owner)
