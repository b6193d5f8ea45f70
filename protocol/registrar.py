"""
Registrar: the single writer of voting state.

Owns the voter registry, the election database and the network state
machine, and serves the request surface voter clients call:

    init, get_keys, register, prove_membership, create_election, cast_vote

plus the operator commands close_registration, list_elections and tally.
Every accepted mutation is broadcast on the EventBus.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

from config.config import RegistrarConfig
from utils.utils import PerformanceMonitor
from voting.elections import Election, ElectionDB
from voting.errors import DuplicateBallotError, NotFoundError, VerificationError
from voting.field import FieldElement, FieldLike
from voting.network_state import NetworkState, NetworkStateMachine
from voting.registry import VoterRegistry
from voting.votes import Vote
from zk.zk_proofs import Proof, ProofService

from .events import ELECTIONS, NETWORK_STATE, VOTES, EventBus

logger = logging.getLogger(__name__)


class Registrar:
    """Coordinates registration, elections and vote verification"""

    def __init__(
        self,
        proof_service: ProofService,
        config: Optional[RegistrarConfig] = None,
        bus: Optional[EventBus] = None
    ):
        self.config = config or RegistrarConfig()
        self.proof_service = proof_service
        self.bus = bus or EventBus()

        self.registry = VoterRegistry()
        self.election_db = ElectionDB()
        self.network = NetworkStateMachine(self.registry)
        self.network.subscribe(self._broadcast_network_state)

        self.performance_monitor = PerformanceMonitor()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.verify_workers,
            thread_name_prefix="vote-verify"
        )

        logger.info(f"Registrar ready (proof key hash {self.proof_service.key_hash[:16]}...)")

    @property
    def network_state(self) -> NetworkState:
        return self.network.state

    def _broadcast_network_state(self, state: NetworkState):
        self.bus.publish(NETWORK_STATE, state.value)

    # ------------------------------------------------------------------
    # Request surface
    # ------------------------------------------------------------------

    async def init(self) -> Dict[str, Any]:
        """Snapshot for a newly connected voter"""
        elections = self.election_db.dump()
        return {
            'networkState': self.network_state.value,
            'proofSystemKeyHash': self.proof_service.key_hash,
            'elections': [election.to_payload() for election in elections],
            'votes': [vote.to_payload() for election in elections for vote in list(election.votes)],
        }

    async def get_keys(self) -> Dict[str, Any]:
        return self.proof_service.get_keys()

    async def register(self, commitment: FieldLike):
        self.network.require(NetworkState.REGISTRATION)
        self.registry.register(FieldElement.coerce(commitment))

    async def prove_membership(self, commitment: FieldLike) -> Dict[str, Any]:
        membership_proof, root = self.registry.prove_membership_with_root(FieldElement.coerce(commitment))
        return {
            'membershipProof': membership_proof.to_payload(),
            'merkleTreeRoot': str(root),
        }

    async def create_election(self, election_payload: Any):
        self.network.require(NetworkState.POLLING)
        election = Election.from_payload(election_payload)
        self.election_db.add(election)
        self.bus.publish(ELECTIONS, election.to_payload())

    async def cast_vote(self, vote_payload: Any, proof_payload: Any):
        """
        Verify a vote proof against the current registry root and record it.

        Verification runs on a worker thread without holding any lock. A
        rejected or timed-out verification raises VerificationError and records
        nothing. Cancellation propagates to the caller, also recording nothing.
        """
        self.network.require(NetworkState.POLLING)
        vote = Vote.from_payload(vote_payload)
        proof = Proof.from_payload(proof_payload)

        election = self.election_db.get(vote.election_commitment)
        if election is None:
            raise NotFoundError('election not found')
        if election.has_ballot(vote.ballot_id):
            raise DuplicateBallotError('ballot already submitted')

        statement = vote.statement(self.registry.merkle_tree_root(), election)

        loop = asyncio.get_running_loop()
        with self.performance_monitor.start_operation("verify_vote"):
            try:
                accepted = await asyncio.wait_for(
                    loop.run_in_executor(self._executor, self.proof_service.verify, statement, proof),
                    timeout=self.config.verify_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(f"Vote verification timed out after {self.config.verify_timeout}s")
                raise VerificationError('proof verification timed out')
            except asyncio.CancelledError:
                logger.warning("Vote verification cancelled, nothing recorded")
                raise

        if not accepted:
            logger.warning(f"Rejected vote in election {str(election.commitment)[:16]}...")
            raise VerificationError('failed to verify vote proof')

        election.record_vote(vote)
        self.bus.publish(VOTES, vote.to_payload())

    # ------------------------------------------------------------------
    # Operator commands
    # ------------------------------------------------------------------

    def close_registration(self) -> NetworkState:
        return self.network.close_registration()

    def list_elections(self) -> str:
        self.network.require(NetworkState.POLLING)
        return self.election_db.format_listing()

    def tally(self, election_commitment: FieldLike) -> str:
        self.network.require(NetworkState.POLLING)
        election = self.election_db.get(election_commitment)
        if election is None:
            raise NotFoundError('election not found')
        return election.format_tally()

    def shutdown(self):
        self._executor.shutdown(wait=False)
        logger.info("Registrar shut down")
