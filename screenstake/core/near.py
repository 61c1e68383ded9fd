"""Value transfer through the NEAR CLI."""
import subprocess
from decimal import Decimal
from typing import List, Optional
from loguru import logger

from .errors import TransferFailed

NEAR_DECIMALS = 24


def to_near(amount: int, decimals: int = NEAR_DECIMALS) -> str:
    """Format an amount in the smallest unit as a plain decimal NEAR string."""
    value = Decimal(amount).scaleb(-decimals)
    text = format(value, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def from_near(amount: str, decimals: int = NEAR_DECIMALS) -> int:
    """Parse a decimal NEAR amount into the smallest unit."""
    value = Decimal(amount).scaleb(decimals)
    if value != value.to_integral_value():
        raise ValueError(f"{amount} has more than {decimals} decimals")
    return int(value)


class NEARTransfer:
    """Pays out through ``near send`` from the operator's account."""

    def __init__(self, sender: str, network: str = "testnet", decimals: int = NEAR_DECIMALS):
        """Initialize the NEAR transfer backend.

        Args:
            sender: Account the ledger pays out from
            network: NEAR network to use (testnet/mainnet)
            decimals: Decimals of the ledger's smallest unit
        """
        if not sender:
            raise ValueError("NEAR transfers need a sender account")
        self.sender = sender
        self.network = network
        self.decimals = decimals

    def _command(self, recipient: str, amount: int) -> List[str]:
        cmd = ['near', 'send', self.sender, recipient, to_near(amount, self.decimals)]
        if self.network != "mainnet":
            cmd.extend(['--networkId', self.network])
        return cmd

    def send(self, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferFailed(recipient, amount, "negative amount")
        if amount == 0:
            logger.debug(f"Skipping zero transfer to {recipient}")
            return

        cmd = self._command(recipient, amount)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError:
            logger.error(
                "\nNEAR CLI not found. Please install it with one of these commands:"
                "\n  npm install -g near-cli"
                "\n  npm install -g near-cli-rs@latest"
            )
            raise TransferFailed(recipient, amount, "NEAR CLI not installed")

        if result.returncode != 0:
            logger.error(f"near send failed: {result.stderr}")
            raise TransferFailed(recipient, amount, result.stderr.strip())

        tx_hash = self._transaction_hash(result.stdout)
        logger.info(f"Sent {to_near(amount, self.decimals)} NEAR to {recipient} ({tx_hash or 'no hash'})")

    @staticmethod
    def _transaction_hash(output: str) -> Optional[str]:
        for line in output.split('\n'):
            if 'Transaction Id' in line:
                return line.split()[-1]
        return None
