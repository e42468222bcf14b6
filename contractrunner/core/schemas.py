"""
Arrow Schemas for ContractRunner Core Data Structures.

This module defines the Apache Arrow schemas used for:
- Transactions: the body of a block
- Contract events: events emitted by committed contract executions
"""

import pyarrow as pa

# Transaction Schema - one row per transaction in a block
TRANSACTION_SCHEMA = pa.schema([
    ('tx_hash', pa.string()),
    ('type', pa.int16()),
    ('nonce', pa.int64()),
    ('epoch', pa.int64()),
    ('to', pa.string()),             # Optional (deploy has no recipient)
    ('amount', pa.string()),         # Base units can exceed int64
    ('max_fee', pa.string()),
    ('tips', pa.string()),
    ('payload', pa.binary()),
    ('signature', pa.binary()),
])


# Contract Event Schema - one row per emitted event, in emission order
CONTRACT_EVENT_SCHEMA = pa.schema([
    ('height', pa.int64()),
    ('tx_hash', pa.string()),
    ('contract', pa.string()),
    ('event', pa.string()),
    ('args', pa.list_(pa.binary())),
])


def get_transaction_schema() -> pa.Schema:
    """Return the Arrow schema for a Transaction."""
    return TRANSACTION_SCHEMA


def get_contract_event_schema() -> pa.Schema:
    """Return the Arrow schema for a Contract Event."""
    return CONTRACT_EVENT_SCHEMA
