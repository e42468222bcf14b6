"""
Test suite for key pairs, signature envelopes and the key store
"""

import pytest

from contractrunner.security.key_store import KeyStore
from contractrunner.security.security_utils import CryptoError, KeyPair, recover_signer, verify_signature


def test_keypair_signing():
    """Test Ed25519 signing and verification"""
    key = KeyPair.generate()
    signature = key.sign(b"message")
    assert len(signature) == 64
    assert verify_signature(key.public_key_bytes, b"message", signature)
    assert not verify_signature(key.public_key_bytes, b"other", signature)


def test_keypair_from_private_key():
    key = KeyPair.generate()
    restored = KeyPair.from_private_key("0x" + key.private_key)
    assert restored.address == key.address
    assert KeyPair.from_private_key(key.private_key).address == key.address
    with pytest.raises(CryptoError):
        KeyPair.from_private_key("0x1234")


def test_address_format():
    address = KeyPair.generate().address
    assert address.startswith("0x")
    assert len(address) == 42
    assert address == address.lower()


def test_key_store_signs_envelopes():
    """Test that envelopes recover to the signing address"""
    store = KeyStore()
    key = KeyPair.generate()
    address = store.add_key(key)

    envelope = store.sign(address, b"payload")
    assert recover_signer(b"payload", envelope) == address
    with pytest.raises(CryptoError):
        recover_signer(b"tampered", envelope)
    with pytest.raises(CryptoError):
        recover_signer(b"payload", envelope[:-1])


def test_key_store_can_sign():
    store = KeyStore()
    address = store.add_key(KeyPair.generate())
    assert store.can_sign(address)
    assert store.can_sign(address.upper().replace("0X", "0x"))
    assert not store.can_sign(KeyPair.generate().address)
    assert not store.can_sign(None)
    assert not store.can_sign("not an address")
    with pytest.raises(CryptoError):
        store.sign(KeyPair.generate().address, b"x")


def test_key_export_and_import():
    """Test password protected key export"""
    source = KeyStore()
    address = source.add_key(KeyPair.generate())
    exported = source.export_key(address, "correct horse")

    target = KeyStore()
    with pytest.raises(CryptoError):
        target.import_key(exported, "wrong password")
    assert target.import_key(exported, "correct horse") == address
    assert target.can_sign(address)
