"""
Elections and the election database.

An election's identity is the hash of its summary and attribute mask, so
its eligibility rules cannot change without it becoming a different
election. Ballot uniqueness is enforced purely by nullifier equality; the
registrar never learns which voter produced a ballot id.
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, List, NamedTuple, Optional

from .attributes import AttributeMask
from .errors import DuplicateBallotError, DuplicateElectionError, MalformedPayloadError, NotFoundError
from .field import FieldElement, FieldLike, hash_elements, string_commitment

logger = logging.getLogger(__name__)


class Tally(NamedTuple):
    yes: int
    no: int


def election_commitment(summary: str, attribute_mask: AttributeMask) -> FieldElement:
    return hash_elements([string_commitment(summary)] + attribute_mask.witness())


class Election:
    """A yes/no question with eligibility rules and its recorded votes"""

    def __init__(self, summary: str, attribute_mask: Optional[AttributeMask] = None):
        if not isinstance(summary, str):
            raise MalformedPayloadError('missing or invalid "summary" param')
        self.summary = summary
        self.attribute_mask = attribute_mask or AttributeMask.unrestricted()
        self.commitment = election_commitment(self.summary, self.attribute_mask)
        self.votes: List[Any] = []
        self.seen_ballots = set()
        self._lock = threading.Lock()

    def has_ballot(self, ballot_id: FieldLike) -> bool:
        return FieldElement.coerce(ballot_id) in self.seen_ballots

    def record_vote(self, vote):
        """Append vote unless its ballot id was already seen"""
        with self._lock:
            if vote.ballot_id in self.seen_ballots:
                raise DuplicateBallotError('ballot already submitted')
            self.votes.append(vote)
            self.seen_ballots.add(vote.ballot_id)

        logger.info(f"Recorded ballot {str(vote.ballot_id)[:16]}... in election {str(self.commitment)[:16]}...")

    def tally(self) -> Tally:
        with self._lock:
            answers = [vote.answer for vote in self.votes]
        yes = sum(1 for answer in answers if answer)
        return Tally(yes=yes, no=len(answers) - yes)

    def format_tally(self) -> str:
        yes, no = self.tally()
        return f"Yes: {yes}\nNo:  {no}"

    def to_payload(self) -> Dict[str, Any]:
        return {'summary': self.summary, 'attributeMask': self.attribute_mask.to_payload()}

    @classmethod
    def from_payload(cls, payload: Any) -> 'Election':
        if not isinstance(payload, dict):
            raise MalformedPayloadError('election payload must be an object')
        if not isinstance(payload.get('summary'), str):
            raise MalformedPayloadError('missing or invalid "summary" param')
        if not isinstance(payload.get('attributeMask'), list):
            raise MalformedPayloadError('missing or invalid "attributeMask" param')
        return cls(payload['summary'], AttributeMask.of_sequence(payload['attributeMask']))

    def __repr__(self) -> str:
        return f"Election(summary={self.summary!r}, commitment={self.commitment})"


class ElectionDB:
    """Elections keyed by commitment, in insertion order"""

    def __init__(self):
        self._elections: 'OrderedDict[FieldElement, Election]' = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._elections)

    def add(self, election: Election):
        with self._lock:
            if election.commitment in self._elections:
                raise DuplicateElectionError('election already exists')
            self._elections[election.commitment] = election

        logger.info(f"Added election {str(election.commitment)[:16]}...: {election.summary}")

    def get(self, commitment: FieldLike) -> Optional[Election]:
        return self._elections.get(FieldElement.coerce(commitment))

    def exists(self, commitment: FieldLike) -> bool:
        return self.get(commitment) is not None

    def dump(self) -> List[Election]:
        with self._lock:
            return list(self._elections.values())

    def record_vote(self, vote):
        election = self.get(vote.election_commitment)
        if election is None:
            raise NotFoundError('election not found')
        election.record_vote(vote)

    def format_listing(self, voter=None) -> str:
        """One block per election; marks eligibility when a voter is given"""
        blocks = []
        for election in self.dump():
            yes, no = election.tally()
            lines = [
                f"[{election.commitment}]",
                f"  {election.summary}",
                f"  constraints: {election.attribute_mask}",
                f"  yes: {yes}  no: {no}",
            ]
            if voter is not None:
                result = voter.can_vote(election)
                lines.append(f"  eligible: {'yes' if result.eligible else 'no'}")
            blocks.append('\n'.join(lines))
        return '\n\n'.join(blocks) if blocks else 'no elections'
