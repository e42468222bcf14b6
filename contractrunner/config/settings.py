"""
Configuration settings for ContractRunner.

This module provides the configuration management for the local simulation node.
It defines settings for the in-memory chain (network id, genesis allocation, block
timing), the fee model, contract storage limits, the JSON-RPC endpoint and logging.

The configuration supports multiple environments (development, production, testing)
selected through the CRN_ENV environment variable.
"""

import os
from typing import Dict, Any, List


class Settings:
    """Runner configuration settings"""

    FRAMEWORK_NAME = "contract-runner"

    # Chain settings
    NETWORK_ID = 0x99
    BLOCK_TIME_STEP = 20  # seconds added to the parent timestamp per generated block
    GENESIS_TIMESTAMP = 1_600_000_000
    FIRST_CEREMONY_TIME = 4070908800  # 01.01.2099
    GENESIS_GOD_BALANCE = 1_000_000  # in DNA

    # Amounts
    DNA_DECIMALS = 18

    # Fee settings
    FEE_PER_GAS = 10 ** 10  # base units per gas
    GAS_PER_BYTE = 10
    MAX_BLOCK_TRANSACTIONS = 1000

    # Contract storage
    MAX_CONTRACT_STORE_KEY_LENGTH = 32

    # RPC settings
    RPC_HOST = os.getenv("CRN_RPC_HOST", "localhost")
    RPC_PORT = int(os.getenv("CRN_RPC_PORT", "3333"))
    RPC_MODULES = ["contract", "chain"]

    # Logging settings
    LOG_LEVEL = os.getenv("CRN_LOG_LEVEL", "INFO")
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def dna_base(cls) -> int:
        """Number of base units in one DNA"""
        return 10 ** cls.DNA_DECIMALS

    @classmethod
    def get_chain_config(cls) -> Dict[str, Any]:
        """Get chain configuration"""
        return {
            "network": cls.NETWORK_ID,
            "block_time_step": cls.BLOCK_TIME_STEP,
            "genesis_timestamp": cls.GENESIS_TIMESTAMP,
            "first_ceremony_time": cls.FIRST_CEREMONY_TIME,
            "god_balance": cls.GENESIS_GOD_BALANCE * cls.dna_base(),
            "max_block_transactions": cls.MAX_BLOCK_TRANSACTIONS
        }

    @classmethod
    def get_fee_config(cls) -> Dict[str, Any]:
        """Get fee configuration"""
        return {
            "fee_per_gas": cls.FEE_PER_GAS,
            "gas_per_byte": cls.GAS_PER_BYTE
        }

    @classmethod
    def get_rpc_config(cls) -> Dict[str, Any]:
        """Get RPC configuration"""
        return {
            "host": cls.RPC_HOST,
            "port": cls.RPC_PORT,
            "modules": list(cls.RPC_MODULES)
        }

    @classmethod
    def validate_config(cls) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        if cls.BLOCK_TIME_STEP <= 0:
            errors.append("BLOCK_TIME_STEP must be positive")

        if cls.FEE_PER_GAS < 0:
            errors.append("FEE_PER_GAS must not be negative")

        if cls.GAS_PER_BYTE <= 0:
            errors.append("GAS_PER_BYTE must be positive")

        if cls.MAX_CONTRACT_STORE_KEY_LENGTH <= 0:
            errors.append("MAX_CONTRACT_STORE_KEY_LENGTH must be positive")

        if cls.RPC_PORT <= 0 or cls.RPC_PORT > 65535:
            errors.append("RPC_PORT must be between 1 and 65535")

        return errors


# Environment-specific settings
class DevelopmentSettings(Settings):
    """Development environment settings"""
    LOG_LEVEL = os.getenv("CRN_LOG_LEVEL", "DEBUG")


class ProductionSettings(Settings):
    """Production environment settings"""
    LOG_LEVEL = os.getenv("CRN_LOG_LEVEL", "WARNING")
    RPC_HOST = os.getenv("CRN_RPC_HOST", "0.0.0.0")


class TestingSettings(Settings):
    """Testing environment settings"""
    LOG_LEVEL = "DEBUG"
    MAX_BLOCK_TRANSACTIONS = 50


def get_settings() -> Settings:
    """Get settings based on environment variable"""
    env = os.getenv("CRN_ENV", "development").lower()

    if env == "production":
        return ProductionSettings()
    elif env == "testing":
        return TestingSettings()
    else:
        return DevelopmentSettings()


# Global settings instance
settings = get_settings()
