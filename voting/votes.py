"""
Votes and the statements they are proven against.
"""

from dataclasses import dataclass
from typing import Any, Dict

from .errors import MalformedPayloadError
from .field import FieldElement, answer_commitment
from .statement import Statement

REQUIRED_VOTE_PARAMS = ('voterCommitment', 'electionCommitment', 'ballot', 'answer')


@dataclass(frozen=True)
class Vote:
    """A yes/no answer tied to an election by its ballot id (nullifier)"""
    voter_commitment: FieldElement
    election_commitment: FieldElement
    ballot_id: FieldElement
    answer: bool

    @classmethod
    def cast(cls, voter, election, answer: bool) -> 'Vote':
        if not isinstance(answer, bool):
            raise TypeError('answer must be a boolean')
        return cls(
            voter_commitment=voter.commitment,
            election_commitment=election.commitment,
            ballot_id=voter.ballot(election.commitment),
            answer=answer,
        )

    def statement(self, merkle_tree_root: FieldElement, election) -> Statement:
        """Public inputs for this vote against the given root"""
        if election.commitment != self.election_commitment:
            raise ValueError('Vote.statement() received the wrong election')

        return Statement(
            merkle_tree_root=FieldElement.coerce(merkle_tree_root),
            ballot_id=self.ballot_id,
            answer_hash=answer_commitment(self.answer),
            attribute_slots=tuple(election.attribute_mask.witness()),
            election_commitment=self.election_commitment,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            'voterCommitment': str(self.voter_commitment),
            'electionCommitment': str(self.election_commitment),
            'ballot': str(self.ballot_id),
            'answer': self.answer,
        }

    @classmethod
    def from_payload(cls, payload: Any) -> 'Vote':
        if not isinstance(payload, dict):
            raise MalformedPayloadError('vote payload must be an object')
        for param in REQUIRED_VOTE_PARAMS:
            if param not in payload:
                raise MalformedPayloadError(f'missing or invalid parameter "{param}"')
        if not isinstance(payload['answer'], bool):
            raise MalformedPayloadError('missing or invalid parameter "answer"')

        return cls(
            voter_commitment=FieldElement.of_string(payload['voterCommitment']),
            election_commitment=FieldElement.of_string(payload['electionCommitment']),
            ballot_id=FieldElement.of_string(payload['ballot']),
            answer=payload['answer'],
        )
