"""Unit tests for ledger persistence."""
import json
import pytest
from pydantic import ValidationError
from screenstake.core.auth import OwnershipGate
from screenstake.core.errors import TransferFailed
from screenstake.core.ledger import StakeLedger
from screenstake.core.stake import StakeRecord
from screenstake.core.store import LedgerState, StakeStore, get_state_dir
from screenstake.core.transfer import LocalTransfer


def test_state_dir_from_env(state_dir):
    assert get_state_dir() == state_dir


def test_load_missing_file(store):
    state = store.load()
    assert state.owner is None
    assert state.balance == 0
    assert state.stakes == {}


def test_save_and_load(store):
    record = StakeRecord(amount=10, start_time=0, end_time=5, allowed_time=1)
    store.save(LedgerState(owner="op", balance=10, stakes={"alice": record}))

    assert store.path.exists()
    assert list(store.state_dir.glob(".ledger-*")) == []
    state = store.load()
    assert state.owner == "op"
    assert state.balance == 10
    assert state.stakes["alice"] == record


def test_corrupt_state_raises(store):
    store.state_dir.mkdir(parents=True)
    store.path.write_text(json.dumps({"stakes": {"alice": {"amount": "lots"}}}))
    with pytest.raises(ValidationError):
        store.load()


def test_ledger_state_survives_restart(store, gate, clock, operator):
    ledger = StakeLedger(gate, LocalTransfer(), store=store, clock=clock)
    ledger.open_stake(operator, "alice", 1000, 3600, 0)
    ledger.open_stake(operator, "bob", 500, 3600, 0)
    clock.advance(3600)
    ledger.settle(operator, "alice", 0)

    restarted = StakeLedger(OwnershipGate(operator), LocalTransfer(), store=store, clock=clock)
    assert restarted.balance == 500
    assert restarted.get_stake("alice").withdrawn
    assert restarted.get_stake("alice").reward == 1000
    assert not restarted.get_stake("bob").withdrawn


def test_failed_settlement_is_not_persisted(store, gate, clock, operator):
    transfer = LocalTransfer()
    ledger = StakeLedger(gate, transfer, store=store, clock=clock)
    ledger.open_stake(operator, "alice", 1000, 3600, 0)
    clock.advance(3600)
    transfer.refuse("alice")
    with pytest.raises(TransferFailed):
        ledger.settle(operator, "alice", 0)

    state = store.load()
    assert not state.stakes["alice"].withdrawn
    assert state.balance == 1000


def test_failed_save_rolls_back_open(store, gate, clock, operator, monkeypatch):
    ledger = StakeLedger(gate, LocalTransfer(), store=store, clock=clock)

    def broken_save(state):
        raise OSError("disk full")

    monkeypatch.setattr(store, "save", broken_save)
    with pytest.raises(OSError):
        ledger.open_stake(operator, "alice", 1000, 3600, 0)
    assert ledger.get_stake("alice") is None
    assert ledger.balance == 0


def test_ownership_is_persisted(store, gate, clock, operator):
    StakeLedger(gate, LocalTransfer(), store=store, clock=clock)
    gate.transfer_ownership(operator, "bob")
    assert store.load().owner == "bob"


def test_failed_save_during_settle_sends_nothing(store, gate, clock, operator, monkeypatch):
    transfer = LocalTransfer()
    ledger = StakeLedger(gate, transfer, store=store, clock=clock)
    ledger.open_stake(operator, "alice", 1000, 3600, 0)
    clock.advance(3600)

    def broken_save(state):
        raise OSError("disk full")

    monkeypatch.setattr(store, "save", broken_save)
    with pytest.raises(OSError):
        ledger.settle(operator, "alice", 0)
    assert transfer.history == []
    assert ledger.status("alice") == "active"
    assert ledger.balance == 1000
    monkeypatch.undo()

    # A ledger rebuilt from disk pays out exactly once
    restarted = StakeLedger(OwnershipGate(operator), transfer, store=store, clock=clock)
    assert restarted.status("alice") == "active"
    assert restarted.settle(operator, "alice", 0) == (1000, 0)
    assert transfer.history == [("alice", 1000)]
    assert store.load().stakes["alice"].withdrawn


def test_settlement_saved_before_payout(store, gate, clock, operator):
    transfer = LocalTransfer()
    ledger = StakeLedger(gate, transfer, store=store, clock=clock)
    ledger.open_stake(operator, "alice", 1000, 3600, 0)
    clock.advance(3600)

    saved_at_send = []
    send = transfer.send

    def recording_send(recipient, amount):
        state = store.load()
        saved_at_send.append((state.stakes["alice"].withdrawn, state.balance))
        send(recipient, amount)

    transfer.send = recording_send
    ledger.settle(operator, "alice", 0)
    assert saved_at_send == [(True, 0)]


def test_failed_save_during_sweep_sends_nothing(store, gate, clock, operator, monkeypatch):
    transfer = LocalTransfer()
    ledger = StakeLedger(gate, transfer, store=store, clock=clock)
    ledger.receive_deposit(500)

    def broken_save(state):
        raise OSError("disk full")

    monkeypatch.setattr(store, "save", broken_save)
    with pytest.raises(OSError):
        ledger.sweep_balance(operator)
    assert transfer.history == []
    assert ledger.balance == 500


def test_failed_sweep_is_restored_on_disk(store, gate, clock, operator):
    transfer = LocalTransfer()
    ledger = StakeLedger(gate, transfer, store=store, clock=clock)
    ledger.receive_deposit(500)
    transfer.refuse(operator)
    with pytest.raises(TransferFailed):
        ledger.sweep_balance(operator)
    assert store.load().balance == 500
    assert ledger.balance == 500
