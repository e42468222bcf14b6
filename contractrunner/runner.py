"""
Runner: wires the god key, the in-memory chain and the RPC server together.
"""

import logging
import os

import uvicorn

from contractrunner.api import codec
from contractrunner.api.server import create_app
from contractrunner.config.settings import Settings, settings as default_settings
from contractrunner.core.blockchain import MemBlockchain
from contractrunner.security.key_store import KeyStore
from contractrunner.security.security_utils import CryptoError, KeyPair

logger = logging.getLogger(__name__)


class Runner:
    """
    Local contract runner node.

    Args:
        config: Settings class to run with
        god_key: Hex private key of the god account; a fresh key is generated
            when omitted
        key_file: Password-encrypted god key file. An existing file supplies the
            god key when god_key is omitted; a missing one is created holding
            the key the runner starts with
        password: Password of key_file
    """

    def __init__(self, config: Settings | None = None, god_key: str | None = None,
                 key_file: str | None = None, password: str | None = None):
        self.config = config or default_settings
        self._god_key_hex = god_key
        self._key_file = key_file
        self._password = password
        self.chain: MemBlockchain | None = None
        self.app = None

    def start(self):
        """Create the chain and the RPC application."""
        key = self._load_god_key()
        self.chain = MemBlockchain(key, self.config)
        self.app = create_app(self.chain, self.config)
        self.log_balance()
        return self.app

    def _load_god_key(self) -> KeyPair:
        """
        Resolve the god key from the explicit key, the key file or a fresh one.

        Raises:
            CryptoError: on an invalid key, a missing password or a key file that
                cannot be decrypted
        """
        if self._key_file and not self._password:
            raise CryptoError("A password is required for the god key file")

        key_file_exists = bool(self._key_file) and os.path.exists(self._key_file)
        if self._god_key_hex:
            key = KeyPair.from_private_key(self._god_key_hex)
            logger.info(f"Loaded god address addr={key.address}")
        elif key_file_exists:
            key_store = KeyStore()
            with open(self._key_file, encoding="utf-8") as f:
                address = key_store.import_key(f.read(), self._password)
            key = key_store.get_key(address)
            logger.info(f"Loaded god address addr={key.address} file={self._key_file}")
        else:
            key = KeyPair.generate()
            logger.info(f"Generated god address addr={key.address} key=0x{key.private_key}")

        if self._key_file and not key_file_exists:
            key_store = KeyStore()
            key_store.add_key(key)
            with open(self._key_file, "w", encoding="utf-8") as f:
                f.write(key_store.export_key(key.address, self._password))
            logger.info(f"Saved god key file={self._key_file}")
        return key

    def log_balance(self):
        state = self.chain.readonly_app_state().state
        balance = codec.dna_string(state.get_balance(self.chain.god_address))
        logger.info(f"God balance: {balance} DNA")

    def serve(self):
        """Start the runner and block serving HTTP until interrupted."""
        if self.app is None:
            self.start()
        rpc_config = self.config.get_rpc_config()
        logger.info(f"HTTP endpoint opened url=http://{rpc_config['host']}:{rpc_config['port']}")
        uvicorn.run(
            self.app,
            host=rpc_config["host"],
            port=rpc_config["port"],
            log_level=self.config.LOG_LEVEL.lower()
        )
