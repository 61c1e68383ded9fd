"""Ledger notifications."""
import json
import time
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Callable, List, Optional, Union
from loguru import logger


@dataclass
class Staked:
    """A stake was opened."""
    user: str
    amount: int
    end_time: int
    timestamp: float = field(default_factory=time.time)
    name: str = field(default="Staked", init=False)


@dataclass
class Withdrawn:
    """A stake was settled and the reward paid out."""
    user: str
    reward: int
    penalty: int
    timestamp: float = field(default_factory=time.time)
    name: str = field(default="Withdrawn", init=False)


@dataclass
class OwnershipTransferred:
    previous_owner: str
    new_owner: str
    timestamp: float = field(default_factory=time.time)
    name: str = field(default="OwnershipTransferred", init=False)


Event = Union[Staked, Withdrawn, OwnershipTransferred]

EVENT_TYPES = {cls.__name__: cls for cls in (Staked, Withdrawn, OwnershipTransferred)}


def event_from_dict(data: dict) -> Event:
    """Rebuild an event from its JSON form."""
    data = dict(data)
    cls = EVENT_TYPES[data.pop("name")]
    return cls(**data)


class EventLog:
    """Append-only log of ledger notifications.

    Events are kept in memory and, when ``path`` is given, mirrored to a
    JSON-lines file so that external watchers can follow them.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._events: List[Event] = []
        self._subscribers: List[Callable[[Event], None]] = []
        self._load()

    def _load(self) -> None:
        if not self.path or not self.path.exists():
            return
        with open(self.path) as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    self._events.append(event_from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, TypeError) as e:
                    logger.error(f"Skipping unreadable event in {self.path}: {e}")

    def subscribe(self, callback: Callable[[Event], None]) -> None:
        self._subscribers.append(callback)

    def emit(self, event: Event) -> None:
        """Record ``event`` and notify subscribers.

        A failing file write or subscriber is logged and does not reach
        the caller.
        """
        self._events.append(event)
        if self.path:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, 'a') as f:
                    f.write(json.dumps(asdict(event)) + "\n")
            except OSError:
                logger.exception(f"Failed to write {event.name} event to {self.path}")
        logger.debug(f"Event {event.name}: {asdict(event)}")
        for callback in self._subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on {event.name}")

    def events(self, name: Optional[str] = None) -> List[Event]:
        """Return recorded events, optionally only those called ``name``."""
        if name is None:
            return list(self._events)
        return [e for e in self._events if e.name == name]

    def recent(self, limit: int = 10) -> List[Event]:
        return self._events[-limit:][::-1] if limit > 0 else []

    def __len__(self) -> int:
        return len(self._events)
