"""Screen Stake: operator-run staking ledger settled on screen time."""

__version__ = "0.1.0"
