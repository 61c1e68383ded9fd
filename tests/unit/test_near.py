"""Unit tests for the NEAR transfer backend."""
import pytest
from unittest.mock import patch, MagicMock
from screenstake.core.errors import TransferFailed
from screenstake.core.near import NEARTransfer, from_near, to_near

ONE_NEAR = 10**24


@pytest.mark.parametrize("amount,expected", [
    (ONE_NEAR, "1"),
    (ONE_NEAR * 3 // 2, "1.5"),
    (150, "0.00000000000000000000015"),
    (0, "0"),
    (12 * ONE_NEAR, "12"),
])
def test_to_near(amount, expected):
    assert to_near(amount) == expected


def test_to_near_other_decimals():
    assert to_near(850_000_000_000_000, decimals=18) == "0.00085"


def test_from_near():
    assert from_near("1.5") == ONE_NEAR * 3 // 2
    assert from_near("0.00085", decimals=18) == 850_000_000_000_000
    with pytest.raises(ValueError):
        from_near("0.1234", decimals=2)


def test_needs_sender():
    with pytest.raises(ValueError):
        NEARTransfer("")


def test_send_command():
    """Payout runs near send with a decimal NEAR amount."""
    mock_result = MagicMock()
    mock_result.returncode = 0
    mock_result.stdout = "Transaction Id 6kNvRvXc6hUQq3SVVz5Xth9GXt7BeHMJ3xBVnPsz5YpL\n"

    transfer = NEARTransfer("operator.testnet")
    with patch('subprocess.run', return_value=mock_result) as mock_run:
        transfer.send("alice.testnet", ONE_NEAR // 2)

    mock_run.assert_called_once()
    assert mock_run.call_args[0][0] == [
        'near', 'send', 'operator.testnet', 'alice.testnet', '0.5',
        '--networkId', 'testnet'
    ]


def test_send_mainnet_has_no_network_flag():
    mock_result = MagicMock()
    mock_result.returncode = 0
    mock_result.stdout = ""

    transfer = NEARTransfer("operator.near", network="mainnet")
    with patch('subprocess.run', return_value=mock_result) as mock_run:
        transfer.send("alice.near", ONE_NEAR)
    assert mock_run.call_args[0][0] == ['near', 'send', 'operator.near', 'alice.near', '1']


def test_send_failure():
    mock_result = MagicMock()
    mock_result.returncode = 1
    mock_result.stderr = "Account alice.testnet does not exist"

    transfer = NEARTransfer("operator.testnet")
    with patch('subprocess.run', return_value=mock_result):
        with pytest.raises(TransferFailed) as excinfo:
            transfer.send("alice.testnet", ONE_NEAR)
    assert "does not exist" in str(excinfo.value)
    assert excinfo.value.recipient == "alice.testnet"


def test_missing_cli():
    transfer = NEARTransfer("operator.testnet")
    with patch('subprocess.run', side_effect=FileNotFoundError()):
        with pytest.raises(TransferFailed):
            transfer.send("alice.testnet", ONE_NEAR)


def test_zero_amount_is_not_sent():
    transfer = NEARTransfer("operator.testnet")
    with patch('subprocess.run') as mock_run:
        transfer.send("alice.testnet", 0)
    mock_run.assert_not_called()


def test_negative_amount():
    transfer = NEARTransfer("operator.testnet")
    with pytest.raises(TransferFailed):
        transfer.send("alice.testnet", -1)
