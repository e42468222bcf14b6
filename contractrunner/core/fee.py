"""
Fee model of the in-memory chain.

A transaction pays a size-based protocol fee plus the cost of the gas its
execution consumed, capped by its max fee.
"""

from contractrunner.core.types import Transaction


def calculate_fee(fee_per_gas: int, tx: Transaction, gas_per_byte: int) -> int:
    """Protocol fee implied by the transaction size."""
    return fee_per_gas * tx.size() * gas_per_byte


def calculate_gas_cost(fee_per_gas: int, gas_used: int) -> int:
    return fee_per_gas * gas_used


def gas_limit(fee_per_gas: int, tx: Transaction, gas_per_byte: int) -> int | None:
    """
    Gas available to the execution of tx after its protocol fee.

    Returns None when the limit is unbounded (free gas).
    """
    if fee_per_gas <= 0:
        return None
    remaining = tx.max_fee - calculate_fee(fee_per_gas, tx, gas_per_byte)
    return max(remaining, 0) // fee_per_gas
