"""
Contract VM module for ContractRunner.

Contracts are embedded Python classes selected by code hash.
"""
