"""
Key Store for locally held accounts.

The node signs transactions only for addresses whose keys it holds. The store also
exports and imports keys as password-encrypted blobs (PBKDF2 derived Fernet keys),
so a god key can be reused across runs.
"""

import base64
import json
import logging
import os
import threading

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from contractrunner.core.utils import normalize_address
from contractrunner.security.security_utils import KeyPair, CryptoError

logger = logging.getLogger(__name__)

KDF_ITERATIONS = 100000


def _derive_key(password: str, salt: bytes) -> bytes:
    """Derive a Fernet key from password."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(password.encode()))


class KeyStore:
    """
    In-memory store of key pairs indexed by address.
    """

    def __init__(self):
        self._keys: dict[str, KeyPair] = {}
        self._lock = threading.Lock()

    def add_key(self, keypair: KeyPair) -> str:
        """Add a key pair and return its address."""
        with self._lock:
            self._keys[keypair.address] = keypair
        logger.debug(f"Key added for {keypair.address}")
        return keypair.address

    def import_private_key(self, private_key_hex: str) -> str:
        """Add a key from its hex private key."""
        return self.add_key(KeyPair.from_private_key(private_key_hex))

    def can_sign(self, address: str | None) -> bool:
        """True if the store holds the key for address."""
        if not address:
            return False
        try:
            address = normalize_address(address)
        except ValueError:
            return False
        with self._lock:
            return address in self._keys

    def get_key(self, address: str) -> KeyPair:
        """
        Get the key pair for address.

        Raises:
            CryptoError: if the store holds no key for the address
        """
        address = normalize_address(address)
        with self._lock:
            keypair = self._keys.get(address)
        if keypair is None:
            raise CryptoError(f"No key for address {address}")
        return keypair

    def sign(self, address: str, message: bytes) -> bytes:
        """Sign message with the key of address and return a signature envelope."""
        keypair = self.get_key(address)
        return keypair.public_key_bytes + keypair.sign(message)

    def addresses(self) -> list[str]:
        with self._lock:
            return list(self._keys)

    def export_key(self, address: str, password: str) -> str:
        """Export a key as a password-encrypted JSON blob."""
        keypair = self.get_key(address)
        salt = os.urandom(16)
        f = Fernet(_derive_key(password, salt))
        encrypted_blob = f.encrypt(json.dumps({
            'address': keypair.address,
            'private_key': keypair.private_key
        }).encode())
        return json.dumps({
            'address': keypair.address,
            'salt': base64.b64encode(salt).decode('utf-8'),
            'blob': base64.b64encode(encrypted_blob).decode('utf-8')
        })

    def import_key(self, data: str, password: str) -> str:
        """
        Import a key exported with export_key.

        Raises:
            CryptoError: on a wrong password or a corrupted blob
        """
        try:
            vault = json.loads(data)
            salt = base64.b64decode(vault['salt'])
            f = Fernet(_derive_key(password, salt))
            key_data = json.loads(f.decrypt(base64.b64decode(vault['blob'])))
        except (InvalidToken, KeyError, ValueError) as e:
            raise CryptoError("Invalid key password or corrupted key data") from e
        return self.import_private_key(key_data['private_key'])
