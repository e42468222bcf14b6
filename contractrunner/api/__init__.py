"""
JSON-RPC services of ContractRunner.
"""
