"""
Transaction validation against ledger rules.

Nonces are not checked: the simulation accepts transactions in any order.
"""

import logging

from contractrunner.core.errors import ValidationError
from contractrunner.core.fee import calculate_fee
from contractrunner.core.types import Transaction, TxType
from contractrunner.security.security_utils import CryptoError
from contractrunner.storage.world_state import AppState

logger = logging.getLogger(__name__)

_TX_WITH_RECIPIENT = (TxType.SEND, TxType.CALL_CONTRACT, TxType.TERMINATE_CONTRACT)


def validate_tx(app_state: AppState, tx: Transaction, fee_per_gas: int) -> str:
    """
    Validate a signed transaction and return its sender.

    Args:
        app_state: State to validate against
        tx: Transaction to validate
        fee_per_gas: Current fee per gas

    Raises:
        ValidationError: if the transaction breaks a ledger rule
    """
    try:
        sender = tx.sender()
    except CryptoError as e:
        raise ValidationError(f"invalid signature: {e}") from e

    if tx.type in _TX_WITH_RECIPIENT and not tx.to:
        raise ValidationError("recipient is nil")

    if tx.amount < 0 or tx.max_fee < 0 or tx.tips < 0:
        raise ValidationError("negative amount")

    min_fee = calculate_fee(fee_per_gas, tx, app_state.state.gas_per_byte)
    if tx.max_fee < min_fee:
        raise ValidationError(f"max fee is too low: {tx.max_fee} < {min_fee}")

    balance = app_state.state.get_balance(sender)
    if balance < tx.amount + tx.max_fee + tx.tips:
        raise ValidationError("insufficient funds")

    logger.debug(f"Transaction {tx.hash()} from {sender} is valid")
    return sender
