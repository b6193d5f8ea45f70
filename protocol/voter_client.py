"""
Voter client: registers a voter, keeps a local mirror of elections and
votes, and casts proven votes through the registrar.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from voting.attributes import AttributeMask
from voting.elections import Election, ElectionDB
from voting.errors import NotEligibleError, NotFoundError, ProofGenerationError, VotingError
from voting.field import FieldElement, FieldLike
from voting.merkle import MembershipProof
from voting.network_state import NetworkState
from voting.voter import Voter
from voting.votes import Vote
from zk.zk_proofs import ProofBackendError, ProofService, SimulatedProofService

from .events import ELECTIONS, NETWORK_STATE, VOTES, EventBus
from .registrar import Registrar

logger = logging.getLogger(__name__)


def parse_answer(answer: str) -> bool:
    if answer in ('y', 'Y'):
        return True
    if answer in ('n', 'N'):
        return False
    raise ValueError('invalid vote (valid answers are "Y/N" or "y/n")')


class VoterClient:
    """One voter's session against a registrar"""

    def __init__(
        self,
        voter: Voter,
        registrar: Registrar,
        bus: Optional[EventBus] = None,
        proof_service: Optional[ProofService] = None
    ):
        self.voter = voter
        self.registrar = registrar
        self.bus = bus or registrar.bus
        self.proof_service = proof_service

        self.election_db = ElectionDB()
        self.network_state: Optional[NetworkState] = None
        self._pending_votes: Dict[FieldElement, List[Vote]] = {}
        self._queues: Dict[str, asyncio.Queue] = {}
        self._tasks: List[asyncio.Task] = []

    @property
    def merkle_tree_root(self) -> Optional[FieldElement]:
        return self.voter.merkle_tree_root

    async def initialize(self):
        """Sync keys, obtain a membership proof and load the current elections"""
        # Subscribe before taking the snapshot so no broadcast is missed
        self._subscribe()
        initial_state = await self.registrar.init()
        await self._synchronize_keys(initial_state['proofSystemKeyHash'])
        self.network_state = NetworkState.from_payload(initial_state['networkState'])

        if self.network_state is NetworkState.REGISTRATION:
            state_queue = self.bus.subscribe(NETWORK_STATE)
            try:
                logger.info("Registering voter")
                await self.registrar.register(self.voter.commitment)
                logger.info("Registered, waiting for registration to close")
                self.network_state = NetworkState.from_payload(await state_queue.get())
            finally:
                self.bus.unsubscribe(NETWORK_STATE, state_queue)

        response = await self.registrar.prove_membership(self.voter.commitment)
        self.voter.set_membership_proof(
            MembershipProof.from_payload(response['membershipProof']),
            FieldElement.of_string(response['merkleTreeRoot'])
        )

        for election_data in initial_state['elections']:
            self._apply_election(election_data)
        for vote_data in initial_state['votes']:
            self._apply_vote(vote_data)

    async def _synchronize_keys(self, target_key_hash: str):
        if self.proof_service is not None and self.proof_service.key_hash == target_key_hash:
            return
        keys = await self.registrar.get_keys()
        if keys.get('protocol') != SimulatedProofService.PROTOCOL:
            raise ProofBackendError(
                f"registrar uses {keys.get('protocol')} proofs; configure a local proof service with key hash {target_key_hash}")
        self.proof_service = SimulatedProofService.from_keys(keys)
        logger.info(f"Fetched proof system keys ({self.proof_service.key_hash[:16]}...)")

    # ------------------------------------------------------------------
    # Event mirroring
    # ------------------------------------------------------------------

    def _subscribe(self):
        for stream, handler in ((ELECTIONS, self._apply_election), (VOTES, self._apply_vote)):
            queue = self.bus.subscribe(stream)
            self._queues[stream] = queue
            self._tasks.append(asyncio.create_task(self._consume(queue, handler)))

    async def _consume(self, queue: asyncio.Queue, handler):
        while True:
            payload = await queue.get()
            try:
                handler(payload)
            except VotingError as e:
                logger.warning(f"Ignoring event: {e}")
            finally:
                queue.task_done()

    async def sync(self):
        """Wait until every event received so far has been applied"""
        for queue in self._queues.values():
            await queue.join()

    def _apply_election(self, election_data: Any):
        election = Election.from_payload(election_data)
        if not self.election_db.exists(election.commitment):
            self.election_db.add(election)
        for vote in self._pending_votes.pop(election.commitment, []):
            self._record(vote)

    def _apply_vote(self, vote_data: Any):
        vote = Vote.from_payload(vote_data)
        if not self.election_db.exists(vote.election_commitment):
            # The elections event can arrive after a vote on it
            self._pending_votes.setdefault(vote.election_commitment, []).append(vote)
            return
        self._record(vote)

    def _record(self, vote: Vote):
        election = self.election_db.get(vote.election_commitment)
        if not election.has_ballot(vote.ballot_id):
            election.record_vote(vote)

    def pending_vote_count(self) -> int:
        return sum(len(votes) for votes in self._pending_votes.values())

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_election(self, summary: str, *attribute_constraints: Optional[str]) -> Election:
        election = Election(summary, AttributeMask.of_sequence(list(attribute_constraints)))
        await self.registrar.create_election(election.to_payload())
        if not self.election_db.exists(election.commitment):
            self.election_db.add(election)
        return election

    async def vote(self, election_commitment: FieldLike, answer: bool) -> Vote:
        """Check eligibility, prove the vote locally and submit it"""
        election = self.election_db.get(election_commitment)
        if election is None:
            raise NotFoundError('election not found')

        eligibility = self.voter.can_vote(election)
        if not eligibility.eligible:
            raise NotEligibleError(eligibility.unsatisfied)

        if self.merkle_tree_root is None or self.proof_service is None:
            raise ProofGenerationError('voter client is not initialized')

        vote = Vote.cast(self.voter, election, answer)
        statement = vote.statement(self.merkle_tree_root, election)
        loop = asyncio.get_running_loop()
        proof = await loop.run_in_executor(None, self.proof_service.prove, statement, self.voter.witness(answer))

        await self.registrar.cast_vote(vote.to_payload(), proof.to_payload())
        logger.info(f"Vote successfully cast in election {str(election.commitment)[:16]}...")
        return vote

    def list_elections(self) -> str:
        return self.election_db.format_listing(self.voter)

    def tally(self, election_commitment: FieldLike) -> str:
        election = self.election_db.get(election_commitment)
        if election is None:
            raise NotFoundError('election not found')
        return election.format_tally()

    async def close(self):
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        for stream, queue in self._queues.items():
            self.bus.unsubscribe(stream, queue)
        self._tasks.clear()
        self._queues.clear()


async def register_cohort(registrar: Registrar, clients: List[VoterClient]):
    """
    Initialize every client, closing registration once all have registered.

    The first client whose initialization fails has its exception raised
    here; the remaining initializations are cancelled.
    """
    tasks = [asyncio.create_task(client.initialize()) for client in clients]
    try:
        while len(registrar.registry) < len(clients):
            done = [task for task in tasks if task.done()]
            for task in done:
                task.result()
            if len(done) == len(tasks):
                break
            await asyncio.sleep(0)

        if registrar.network_state is NetworkState.REGISTRATION:
            registrar.close_registration()
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
