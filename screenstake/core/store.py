"""JSON persistence for ledger state."""
import os
import json
import platform
import tempfile
from pathlib import Path
from typing import Dict, Optional
from loguru import logger
from pydantic import BaseModel, ValidationError

from .stake import StakeRecord

STATE_FILE = "ledger.json"


def get_state_dir() -> Path:
    """Get the ledger state directory path."""
    override = os.getenv("SCREEN_STAKE_STATE_DIR")
    if override:
        return Path(override)
    if os.name == 'nt':  # Windows
        return Path(os.getenv('APPDATA')) / 'screen-stake'
    elif platform.system() == 'Darwin':  # macOS
        return Path.home() / 'Library' / 'Application Support' / 'screen-stake'
    else:  # Linux and others
        return Path.home() / '.config' / 'screen-stake'


class LedgerState(BaseModel):
    """Everything the ledger needs to resume after a restart."""
    owner: Optional[str] = None
    balance: int = 0
    stakes: Dict[str, StakeRecord] = {}


class StakeStore:
    """Stores the stake mapping and pool balance in a single JSON file."""

    def __init__(self, state_dir: Optional[Path] = None):
        self.state_dir = Path(state_dir) if state_dir else get_state_dir()
        self.path = self.state_dir / STATE_FILE

    def load(self) -> LedgerState:
        """Load state from disk, starting empty when no file exists yet."""
        if not self.path.exists():
            return LedgerState()
        with open(self.path) as f:
            data = json.load(f)
        try:
            return LedgerState(**data)
        except ValidationError as e:
            logger.error(f"Corrupt ledger state in {self.path}: {e}")
            raise

    def save(self, state: LedgerState) -> None:
        """Write state to a temp file and move it over the previous one."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.state_dir, prefix=".ledger-", suffix=".json")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(state.model_dump(), f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Saved {len(state.stakes)} stakes to {self.path}")
