"""
Consensus module for ContractRunner.
"""

from contractrunner.core.consensus.proof_of_authority import ProofOfAuthority, FINAL_STEP

__all__ = [
    "ProofOfAuthority",
    "FINAL_STEP"
]
