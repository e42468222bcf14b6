"""
Proof of Authority rules for ContractRunner.

The simulated chain is run by a fixed set of authorities (in practice exactly one,
the local validator). This module validates what the authorities produce: the
proposer signature of a block and the vote certificate that finalizes it.
"""

import logging
from typing import Any

from contractrunner.core.block import Block
from contractrunner.core.types import BlockCert, FullBlockCert
from contractrunner.security.security_utils import CryptoError, recover_signer
from contractrunner.core.utils import from_hex

logger = logging.getLogger(__name__)

# Step of the final vote round
FINAL_STEP = 1


class ProofOfAuthority:
    """
    Proof of Authority consensus rules.

    Block creation and voting are restricted to the registered authorities, and a
    certificate is accepted once more than two thirds of them voted for a block.
    """

    def __init__(self, name: str = "ProofOfAuthority"):
        self.name = name
        self.authorities: set[str] = set()
        self.authority_metadata: dict[str, dict[str, Any]] = {}

    def add_authority(self, authority_id: str, metadata: dict[str, Any] | None = None) -> bool:
        """
        Add a new authority.

        Args:
            authority_id: Address of the authority
            metadata: Additional metadata about the authority

        Returns:
            True if the authority was added, False if already present
        """
        if authority_id in self.authorities:
            return False
        self.authorities.add(authority_id)
        self.authority_metadata[authority_id] = metadata or {}
        return True

    def is_authority(self, authority_id: str) -> bool:
        return authority_id in self.authorities

    def get_validator_count(self) -> int:
        return len(self.authorities)

    def vote_threshold(self) -> int:
        """Votes needed to finalize a block"""
        return self.get_validator_count() * 2 // 3 + 1

    def validate_proposal(self, block: Block, previous_block: Block) -> str | None:
        """
        Validate a proposed block against its parent.

        Returns:
            None if the block is valid, otherwise the reason it is not
        """
        if block.height != previous_block.height + 1:
            return f"unexpected height {block.height}"
        if block.parent_hash != previous_block.hash:
            return "parent hash mismatch"
        if block.timestamp <= previous_block.timestamp:
            return "timestamp is not after the parent"
        if not block.validate_structure():
            return "invalid block structure"
        if block.proposer_signature is None:
            return "block is not signed"
        try:
            signer = recover_signer(from_hex(block.hash), block.proposer_signature)
        except CryptoError as e:
            return f"invalid proposer signature: {e}"
        if signer != block.header.proposer or not self.is_authority(signer):
            return f"proposer {signer} is not an authority"
        return None

    def validate_certificate(self, block: Block, cert: BlockCert | FullBlockCert) -> str | None:
        """
        Validate a certificate finalizing block.

        Returns:
            None if the certificate is valid, otherwise the reason it is not
        """
        votes = cert.votes() if isinstance(cert, BlockCert) else cert.votes
        voters = set()
        for vote in votes:
            header = vote.header
            if header.round != block.height:
                return f"vote round {header.round} does not match height {block.height}"
            if header.step != FINAL_STEP:
                return f"unexpected vote step {header.step}"
            if header.voted_hash != block.hash or header.parent_hash != block.parent_hash:
                return "vote is for another block"
            if header.turn_offline:
                return "vote turns the proposer offline"
            try:
                voter = vote.voter()
            except CryptoError as e:
                return f"invalid vote signature: {e}"
            if not self.is_authority(voter):
                return f"voter {voter} is not an authority"
            voters.add(voter)
        if len(voters) < self.vote_threshold():
            return f"not enough votes: {len(voters)} < {self.vote_threshold()}"
        return None

    def get_authority_stats(self) -> dict[str, Any]:
        return {
            "total_authorities": len(self.authorities),
            "authorities": sorted(self.authorities),
            "vote_threshold": self.vote_threshold()
        }

    def __repr__(self) -> str:
        return f"ProofOfAuthority(name={self.name}, authorities={len(self.authorities)})"
