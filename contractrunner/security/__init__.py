"""
Key management for ContractRunner.
"""

from contractrunner.security.security_utils import KeyPair, CryptoError, verify_signature, recover_signer
from contractrunner.security.key_store import KeyStore

__all__ = [
    'KeyPair',
    'CryptoError',
    'verify_signature',
    'recover_signer',
    'KeyStore'
]
