"""
Ledger core of ContractRunner: transactions, blocks, validation, fees and the
in-memory chain.
"""
