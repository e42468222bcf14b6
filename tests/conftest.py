"""
Pytest configuration for ContractRunner.

Provides a fresh in-memory chain per test together with the RPC services bound
to it, and helpers for deploying the built-in contracts.
"""

import os
import sys

import pytest

# Compute project root (parent of this tests directory)
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from contractrunner.api.base_api import BaseApi
from contractrunner.api.chain_api import ChainApi
from contractrunner.api.contract_api import ContractApi
from contractrunner.api.schemas import DeployArgs, DynamicArg
from contractrunner.config.settings import TestingSettings
from contractrunner.core.blockchain import MemBlockchain
from contractrunner.security.security_utils import KeyPair

from tests.helpers import KV_CODE_HASH, TIME_LOCK_CODE_HASH_HEX, MAX_FEE, deploy_and_mine


@pytest.fixture
def god_key():
    return KeyPair.generate()


@pytest.fixture
def chain(god_key):
    """In-memory chain holding only the genesis block"""
    return MemBlockchain(god_key, TestingSettings)


@pytest.fixture
def base_api(chain):
    return BaseApi(chain)


@pytest.fixture
def contract_api(base_api, chain):
    return ContractApi(base_api, chain)


@pytest.fixture
def chain_api(base_api, chain):
    return ChainApi(base_api, chain)


@pytest.fixture
def kv_contract(contract_api, chain):
    """Address of a deployed KeyValueStore owned by the god account"""
    return deploy_and_mine(contract_api, chain, DeployArgs(code_hash=KV_CODE_HASH, max_fee=MAX_FEE))


@pytest.fixture
def time_lock_args(chain):
    """Deploy arguments of a TimeLock unlocking two blocks after the head"""
    unlock_at = chain.head.timestamp + 2 * TestingSettings.BLOCK_TIME_STEP
    return DeployArgs(
        code_hash=TIME_LOCK_CODE_HASH_HEX,
        amount="10",
        max_fee=MAX_FEE,
        args=[DynamicArg(index=0, format="uint64", value=str(unlock_at))]
    )
