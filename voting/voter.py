"""
Voter credentials: a private secret, its public commitment, and the
membership proof obtained after registration.
"""

import logging
import secrets
from typing import Dict, Optional

from .attributes import EligibilityResult, VoterAttributes, check_eligibility
from .errors import ProofGenerationError
from .field import Poseidon, FieldElement, FieldLike, ballot_id, voter_commitment
from .merkle import MembershipProof
from .statement import Witness

logger = logging.getLogger(__name__)


class Voter:
    """Holds the voter secret and derives everything public from it"""

    def __init__(self, secret: Optional[FieldLike] = None, attributes: Optional[Dict[str, str]] = None):
        if secret is None:
            secret = secrets.randbelow(Poseidon.PRIME)
        self._secret = FieldElement.coerce(secret)
        self.attributes = attributes if isinstance(attributes, VoterAttributes) else VoterAttributes(attributes or {})
        self.commitment = voter_commitment(self._secret)
        self.membership_proof: Optional[MembershipProof] = None
        self.merkle_tree_root: Optional[FieldElement] = None

    def ballot(self, election_commitment: FieldLike) -> FieldElement:
        """Nullifier for this voter in the given election"""
        return ballot_id(self._secret, election_commitment)

    def set_membership_proof(self, membership_proof: MembershipProof, merkle_tree_root: FieldLike):
        """Store a proof together with the root it was issued against"""
        self.membership_proof = membership_proof
        self.merkle_tree_root = FieldElement.coerce(merkle_tree_root)
        logger.info(f"Stored membership proof at index {membership_proof.index}")

    def can_vote(self, election) -> EligibilityResult:
        return check_eligibility(election.attribute_mask, self.attributes)

    def witness(self, answer: bool) -> Witness:
        if self.membership_proof is None:
            raise ProofGenerationError('voter has no membership proof')
        return Witness(
            secret=self._secret,
            membership_proof=self.membership_proof,
            attributes=self.attributes,
            answer=answer,
        )

    def __repr__(self) -> str:
        return f"Voter(commitment={self.commitment})"
