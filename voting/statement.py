"""
Public statement and private witness for the vote proof.

Public statement, fixed order:
    [merkleTreeRoot, ballotId, hash(answer), slot_0 .. slot_{n-1}, electionCommitment]

where slot_i is the string commitment of the election's i-th attribute
constraint, or zero for an empty slot.

Private witness: voter secret, membership proof, raw attribute values.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .attributes import ATTRIBUTE_TAGS, VoterAttributes
from .errors import MalformedPayloadError
from .field import FieldElement
from .merkle import MembershipProof


@dataclass(frozen=True)
class Statement:
    merkle_tree_root: FieldElement
    ballot_id: FieldElement
    answer_hash: FieldElement
    attribute_slots: Tuple[FieldElement, ...]
    election_commitment: FieldElement

    def elements(self) -> List[FieldElement]:
        return ([self.merkle_tree_root, self.ballot_id, self.answer_hash]
                + list(self.attribute_slots)
                + [self.election_commitment])

    def to_public_signals(self) -> List[str]:
        return [str(e) for e in self.elements()]

    @classmethod
    def from_public_signals(cls, signals: Sequence[str]) -> 'Statement':
        expected = 4 + len(ATTRIBUTE_TAGS)
        if not isinstance(signals, (list, tuple)) or len(signals) != expected:
            raise MalformedPayloadError(f"statement must have exactly {expected} public signals")
        elements = [FieldElement.of_string(s) for s in signals]
        return cls(
            merkle_tree_root=elements[0],
            ballot_id=elements[1],
            answer_hash=elements[2],
            attribute_slots=tuple(elements[3:-1]),
            election_commitment=elements[-1],
        )


@dataclass(frozen=True)
class Witness:
    """Private inputs; never leaves the voter's process"""
    secret: FieldElement
    membership_proof: MembershipProof
    attributes: VoterAttributes
    answer: bool

    def __repr__(self) -> str:
        return f"Witness(index=<hidden>, path_length={len(self.membership_proof.path)})"
