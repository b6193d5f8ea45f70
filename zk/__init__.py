"""
Zero-Knowledge Proof Module for the voting protocol
Proof services satisfying the vote statement/witness contract
"""

from .zk_proofs import (
    # Core classes
    Proof,
    ProofService,
    SimulatedProofService,
    SnarkjsProofService,
    get_proof_service,
    unsatisfied_constraints,

    # Exceptions
    ZKError,
    ProofBackendError,
    TrustedSetupError,
)

__version__ = "1.0.0"

__all__ = [
    # Classes
    'Proof',
    'ProofService',
    'SimulatedProofService',
    'SnarkjsProofService',
    'get_proof_service',
    'unsatisfied_constraints',

    # Exceptions
    'ZKError',
    'ProofBackendError',
    'TrustedSetupError',
]
