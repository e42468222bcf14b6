"""
Shared helpers for ContractRunner tests.
"""

from contractrunner.api.schemas import DeployArgs
from contractrunner.core.utils import to_hex
from contractrunner.vm.embedded import KEY_VALUE_STORE_CODE_HASH, TIME_LOCK_CODE_HASH

KV_CODE_HASH = to_hex(KEY_VALUE_STORE_CODE_HASH)
TIME_LOCK_CODE_HASH_HEX = to_hex(TIME_LOCK_CODE_HASH)
MAX_FEE = "1"


def deploy_and_mine(contract_api, chain, args: DeployArgs) -> str:
    """Submit a deploy, produce a block and return the new contract address"""
    tx_hash = contract_api.deploy(args)
    chain.generate_blocks(1)
    receipt = chain.get_receipt(tx_hash)
    assert receipt is not None and receipt.success, receipt
    return receipt.contract_address
