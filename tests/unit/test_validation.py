"""
Test suite for transaction validation and the fee model
"""

import pytest

from contractrunner.config.settings import TestingSettings
from contractrunner.core.errors import ValidationError
from contractrunner.core.fee import calculate_fee, calculate_gas_cost, gas_limit
from contractrunner.core.types import Transaction, TxType
from contractrunner.core.validation import validate_tx
from contractrunner.security.security_utils import KeyPair
from contractrunner.storage.world_state import AppState, StateDB

FEE_PER_GAS = TestingSettings.FEE_PER_GAS
GAS_PER_BYTE = TestingSettings.GAS_PER_BYTE


@pytest.fixture
def key():
    return KeyPair.generate()


@pytest.fixture
def app_state(key):
    state = StateDB(FEE_PER_GAS)
    state.set_balance(key.address, 100 * 10 ** 18)
    return AppState(state)


def _sign(key, tx):
    tx.signature = key.public_key_bytes + key.sign(tx.signature_hash())
    return tx


def _call(key, **kwargs):
    fields = {"type": TxType.CALL_CONTRACT, "nonce": 1, "to": "0x" + "ab" * 20, "max_fee": 10 ** 18}
    fields.update(kwargs)
    return _sign(key, Transaction(**fields))


def test_fee_is_size_based(key):
    tx = _call(key)
    assert calculate_fee(FEE_PER_GAS, tx, GAS_PER_BYTE) == FEE_PER_GAS * tx.size() * GAS_PER_BYTE
    assert calculate_gas_cost(FEE_PER_GAS, 2500) == 2500 * FEE_PER_GAS


def test_gas_limit(key):
    """Test the gas left for execution after the size fee"""
    tx = _call(key)
    expected = (tx.max_fee - calculate_fee(FEE_PER_GAS, tx, GAS_PER_BYTE)) // FEE_PER_GAS
    assert gas_limit(FEE_PER_GAS, tx, GAS_PER_BYTE) == expected
    assert gas_limit(0, tx, GAS_PER_BYTE) is None
    assert gas_limit(FEE_PER_GAS, _call(key, max_fee=0), GAS_PER_BYTE) == 0


def test_valid_transaction_returns_sender(app_state, key):
    assert validate_tx(app_state, _call(key), FEE_PER_GAS) == key.address


def test_unsigned_transaction(app_state):
    tx = Transaction(type=TxType.CALL_CONTRACT, to="0x" + "ab" * 20, max_fee=10 ** 18)
    with pytest.raises(ValidationError, match="invalid signature"):
        validate_tx(app_state, tx, FEE_PER_GAS)


def test_tampered_transaction(app_state, key):
    tx = _call(key)
    tx.amount = 1
    with pytest.raises(ValidationError, match="invalid signature"):
        validate_tx(app_state, tx, FEE_PER_GAS)


def test_missing_recipient(app_state, key):
    with pytest.raises(ValidationError, match="recipient is nil"):
        validate_tx(app_state, _call(key, to=None), FEE_PER_GAS)
    with pytest.raises(ValidationError, match="recipient is nil"):
        validate_tx(app_state, _call(key, type=TxType.TERMINATE_CONTRACT, to=None), FEE_PER_GAS)


def test_deploy_needs_no_recipient(app_state, key):
    tx = _call(key, type=TxType.DEPLOY_CONTRACT, to=None)
    assert validate_tx(app_state, tx, FEE_PER_GAS) == key.address


def test_max_fee_too_low(app_state, key):
    with pytest.raises(ValidationError, match="max fee is too low"):
        validate_tx(app_state, _call(key, max_fee=1), FEE_PER_GAS)


def test_insufficient_funds(app_state, key):
    """Test that amount and max fee must both be covered"""
    with pytest.raises(ValidationError, match="insufficient funds"):
        validate_tx(app_state, _call(key, amount=100 * 10 ** 18), FEE_PER_GAS)


def test_negative_amount(app_state, key):
    with pytest.raises(ValidationError, match="negative amount"):
        validate_tx(app_state, _call(key, amount=-1), FEE_PER_GAS)


def test_nonce_is_not_checked(app_state, key):
    assert validate_tx(app_state, _call(key, nonce=42), FEE_PER_GAS) == key.address


def test_fee_follows_state_gas_per_byte(app_state, key):
    """Test that validation prices size with the gas per byte of the state"""
    tx = _call(key)
    assert validate_tx(app_state, tx, FEE_PER_GAS) == key.address

    costly = StateDB(FEE_PER_GAS, gas_per_byte=10 ** 6)
    costly.set_balance(key.address, 100 * 10 ** 18)
    with pytest.raises(ValidationError, match="max fee is too low"):
        validate_tx(AppState(costly), tx, FEE_PER_GAS)
