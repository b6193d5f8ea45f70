"""
Anonymous verifiable voting core: commitments, nullifiers, the voter
membership accumulator, elections and the network phase state machine.
"""

from .errors import (
    VotingError,
    InvalidPhaseError,
    DuplicateBallotError,
    DuplicateElectionError,
    NotFoundError,
    VerificationError,
    ProofGenerationError,
    InvalidProofError,
    MalformedPayloadError,
    NotEligibleError,
)
from .field import (
    Poseidon,
    FieldElement,
    EMPTY_LEAF,
    poseidon_hash,
    hash_elements,
    string_commitment,
    voter_commitment,
    ballot_id,
    answer_commitment,
)
from .merkle import MerkleTree, MembershipProof, PathEntry, merkle_root, verify_membership
from .network_state import NetworkState, NetworkStateMachine
from .registry import VoterRegistry
from .attributes import ATTRIBUTE_TAGS, AttributeMask, VoterAttributes, check_eligibility
from .elections import Election, ElectionDB, Tally, election_commitment
from .statement import Statement, Witness
from .voter import Voter
from .votes import Vote

__version__ = "1.0.0"

__all__ = [
    # Errors
    'VotingError',
    'InvalidPhaseError',
    'DuplicateBallotError',
    'DuplicateElectionError',
    'NotFoundError',
    'VerificationError',
    'ProofGenerationError',
    'InvalidProofError',
    'MalformedPayloadError',
    'NotEligibleError',

    # Field and commitments
    'Poseidon',
    'FieldElement',
    'EMPTY_LEAF',
    'poseidon_hash',
    'hash_elements',
    'string_commitment',
    'voter_commitment',
    'ballot_id',
    'answer_commitment',

    # Accumulator
    'MerkleTree',
    'MembershipProof',
    'PathEntry',
    'merkle_root',
    'verify_membership',
    'VoterRegistry',

    # Phases
    'NetworkState',
    'NetworkStateMachine',

    # Elections and votes
    'ATTRIBUTE_TAGS',
    'AttributeMask',
    'VoterAttributes',
    'check_eligibility',
    'Election',
    'ElectionDB',
    'Tally',
    'election_commitment',
    'Statement',
    'Witness',
    'Voter',
    'Vote',
]
