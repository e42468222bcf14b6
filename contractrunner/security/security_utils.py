"""
Security Utilities for ContractRunner.

This module provides the cryptographic primitives of the runner: Ed25519 key pairs
for signing transactions, blocks and votes, address derivation from public keys,
and signature verification.
"""

from typing import Optional
import binascii
from nacl.signing import SigningKey, VerifyKey
from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
import logging

from contractrunner.core.utils import hash_bytes, to_hex, ADDRESS_LENGTH

logger = logging.getLogger(__name__)

PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64


class CryptoError(Exception):
    """Base exception for cryptographic errors."""
    pass


def pubkey_to_address(public_key: bytes) -> str:
    """Derive the 0x-prefixed address owned by a raw Ed25519 public key."""
    return to_hex(hash_bytes(public_key)[-ADDRESS_LENGTH:])


class KeyPair:
    """
    Represents an Ed25519 key pair for signing and verification.
    """
    def __init__(self, private_key: Optional[SigningKey] = None):
        if private_key:
            self._signing_key = private_key
        else:
            self._signing_key = SigningKey.generate()
        self._verify_key = self._signing_key.verify_key

    @property
    def public_key(self) -> str:
        """Return the public key as a hex string."""
        return self._verify_key.encode(encoder=HexEncoder).decode('utf-8')

    @property
    def public_key_bytes(self) -> bytes:
        return bytes(self._verify_key)

    @property
    def private_key(self) -> str:
        """Return the private key as a hex string (CAUTION: Sensitive)."""
        return self._signing_key.encode(encoder=HexEncoder).decode('utf-8')

    @property
    def address(self) -> str:
        return pubkey_to_address(self.public_key_bytes)

    @classmethod
    def generate(cls) -> 'KeyPair':
        """Generate a new random key pair."""
        return cls()

    @classmethod
    def from_private_key(cls, private_key_hex: str) -> 'KeyPair':
        """Load a key pair from a hex-encoded private key (with or without 0x)."""
        if private_key_hex.startswith(("0x", "0X")):
            private_key_hex = private_key_hex[2:]
        try:
            private_key_bytes = HexEncoder.decode(private_key_hex.encode('utf-8'))
            return cls(SigningKey(private_key_bytes))
        except Exception as e:
            raise CryptoError(f"Invalid private key format: {str(e)}")

    def sign(self, message: bytes) -> bytes:
        """
        Sign a message and return the raw 64 byte signature.

        Args:
            message: The message bytes to sign.
        """
        try:
            return self._signing_key.sign(message).signature
        except Exception as e:
            raise CryptoError(f"Signing failed: {str(e)}")


def verify_signature(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """
    Verify an Ed25519 signature.

    Args:
        public_key: The signer's raw public key.
        message: The original message bytes.
        signature: The raw signature.

    Returns:
        True if valid, False otherwise.
    """
    try:
        VerifyKey(public_key).verify(message, signature)
        return True
    except (BadSignatureError, ValueError, binascii.Error):
        return False
    except Exception as e:
        logger.error(f"Unexpected error during verification: {e}")
        return False


def split_signature(envelope: bytes) -> tuple[bytes, bytes]:
    """
    Split a signature envelope into (public key, signature).

    Ed25519 signatures do not allow public key recovery, so every signature the
    runner produces is prefixed with the signer's public key.
    """
    if len(envelope) != PUBLIC_KEY_LENGTH + SIGNATURE_LENGTH:
        raise CryptoError(f"Invalid signature envelope length: {len(envelope)}")
    return envelope[:PUBLIC_KEY_LENGTH], envelope[PUBLIC_KEY_LENGTH:]


def recover_signer(message: bytes, envelope: bytes) -> str:
    """
    Verify a signature envelope and return the signer's address.

    Raises:
        CryptoError: if the envelope is malformed or the signature is invalid
    """
    public_key, signature = split_signature(envelope)
    if not verify_signature(public_key, message, signature):
        raise CryptoError("Invalid signature")
    return pubkey_to_address(public_key)
