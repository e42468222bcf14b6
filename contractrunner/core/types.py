"""
Ledger types for ContractRunner.

This module defines the transaction, receipt, event and consensus vote types the
in-memory chain works with. Hashes and addresses are carried as 0x-prefixed
lowercase hex strings; raw payloads and signatures as bytes.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from contractrunner.core.utils import canonical_json, hash_bytes, to_hex, from_hex, generate_hash
from contractrunner.security.security_utils import recover_signer, CryptoError


class TxType(IntEnum):
    """Transaction types understood by the chain"""
    SEND = 0x0
    DEPLOY_CONTRACT = 0xF
    CALL_CONTRACT = 0x10
    TERMINATE_CONTRACT = 0x11


@dataclass
class Transaction:
    """
    A ledger transaction.

    The signature is an envelope of the signer's public key followed by the
    Ed25519 signature over signature_hash().
    """
    type: TxType
    nonce: int = 0
    epoch: int = 0
    to: str | None = None
    amount: int = 0
    max_fee: int = 0
    tips: int = 0
    payload: bytes = b""
    signature: bytes | None = None

    def signing_fields(self) -> dict[str, Any]:
        """Fields covered by the signature"""
        return {
            "type": int(self.type),
            "nonce": self.nonce,
            "epoch": self.epoch,
            "to": self.to,
            "amount": str(self.amount),
            "maxFee": str(self.max_fee),
            "tips": str(self.tips),
            "payload": to_hex(self.payload)
        }

    def signature_hash(self) -> bytes:
        return hash_bytes(canonical_json(self.signing_fields()))

    @property
    def signed(self) -> bool:
        return self.signature is not None

    def sender(self) -> str:
        """
        Address of the signer.

        Raises:
            CryptoError: if the transaction is unsigned or the signature is invalid
        """
        if self.signature is None:
            raise CryptoError("Transaction is not signed")
        return recover_signer(self.signature_hash(), self.signature)

    def to_dict(self) -> dict[str, Any]:
        data = self.signing_fields()
        data["signature"] = to_hex(self.signature) if self.signature is not None else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Transaction':
        signature = data.get("signature")
        return cls(
            type=TxType(data["type"]),
            nonce=data.get("nonce", 0),
            epoch=data.get("epoch", 0),
            to=data.get("to"),
            amount=int(data.get("amount", 0)),
            max_fee=int(data.get("maxFee", 0)),
            tips=int(data.get("tips", 0)),
            payload=from_hex(data.get("payload", "0x")),
            signature=from_hex(signature) if signature else None
        )

    def encode(self) -> bytes:
        return canonical_json(self.to_dict())

    def size(self) -> int:
        return len(self.encode())

    def hash(self) -> str:
        return generate_hash(self.encode())


@dataclass
class ContractEvent:
    """An event emitted by a contract during execution"""
    contract: str
    event: str
    args: list[bytes] = field(default_factory=list)


@dataclass
class TxReceipt:
    """Raw execution result produced by the VM"""
    tx_hash: str
    success: bool
    gas_used: int
    gas_cost: int = 0
    error: str | None = None
    method: str = ""
    contract_address: str | None = None
    events: list[ContractEvent] = field(default_factory=list)


@dataclass
class VoteHeader:
    round: int
    step: int
    parent_hash: str
    voted_hash: str
    turn_offline: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "step": self.step,
            "parentHash": self.parent_hash,
            "votedHash": self.voted_hash,
            "turnOffline": self.turn_offline
        }


@dataclass
class Vote:
    header: VoteHeader
    signature: bytes | None = None

    def signature_hash(self) -> bytes:
        """Hash signed by validators for consensus messages"""
        return hash_bytes(canonical_json(self.header.to_dict()))

    def voter(self) -> str:
        if self.signature is None:
            raise CryptoError("Vote is not signed")
        return recover_signer(self.signature_hash(), self.signature)


@dataclass
class BlockCert:
    """Compressed certificate: one shared header, one signature per vote"""
    round: int
    step: int
    voted_hash: str
    signatures: list[tuple[str, bool, bytes]] = field(default_factory=list)

    def votes(self) -> list[Vote]:
        """Expand back into full votes"""
        return [
            Vote(
                header=VoteHeader(
                    round=self.round,
                    step=self.step,
                    parent_hash=parent_hash,
                    voted_hash=self.voted_hash,
                    turn_offline=turn_offline
                ),
                signature=signature
            )
            for parent_hash, turn_offline, signature in self.signatures
        ]


@dataclass
class FullBlockCert:
    votes: list[Vote] = field(default_factory=list)

    def compress(self) -> BlockCert:
        if not self.votes:
            raise ValueError("Cannot compress an empty certificate")
        first = self.votes[0].header
        return BlockCert(
            round=first.round,
            step=first.step,
            voted_hash=first.voted_hash,
            signatures=[(v.header.parent_hash, v.header.turn_offline, v.signature) for v in self.votes]
        )
