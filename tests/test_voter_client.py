import asyncio

import pytest

from protocol.events import ELECTIONS, VOTES, EventBus
from protocol.registrar import Registrar
from protocol.voter_client import VoterClient, parse_answer, register_cohort
from voting.elections import Election
from voting.errors import NotEligibleError, NotFoundError, ProofGenerationError
from voting.merkle import verify_membership
from voting.network_state import NetworkState
from voting.voter import Voter
from voting.votes import Vote
from zk.zk_proofs import ProofBackendError

ADULT_US = {"age": "age>=18", "region": "region=US"}
ADULT_EU = {"age": "age>=18", "region": "region=EU"}


async def start_session(proof_service, attributes_list):
    """Register one client per attribute set and close registration"""
    registrar = Registrar(proof_service)
    clients = [VoterClient(Voter(attributes=attrs), registrar) for attrs in attributes_list]
    await register_cohort(registrar, clients)
    return registrar, clients


async def end_session(registrar, clients):
    for client in clients:
        await client.close()
    registrar.shutdown()


@pytest.mark.parametrize("answer,expected", [("y", True), ("Y", True), ("n", False), ("N", False)])
def test_parse_answer(answer, expected):
    assert parse_answer(answer) is expected


@pytest.mark.parametrize("answer", ["yes", "", "x"])
def test_parse_answer_rejects_other_input(answer):
    with pytest.raises(ValueError):
        parse_answer(answer)


def test_clients_register_then_receive_membership_proofs(proof_service):
    async def scenario():
        registrar, clients = await start_session(proof_service, [ADULT_US, ADULT_EU, {}])
        root = registrar.registry.merkle_tree_root()
        for client in clients:
            assert client.network_state is NetworkState.POLLING
            assert client.merkle_tree_root == root
            assert verify_membership(client.voter.commitment, client.voter.membership_proof, root)
            # Keys were fetched from the registrar
            assert client.proof_service.key_hash == proof_service.key_hash
        await end_session(registrar, clients)

    asyncio.run(scenario())


def test_unregistered_client_joining_during_polling(proof_service):
    async def scenario():
        registrar, clients = await start_session(proof_service, [{}])
        latecomer = VoterClient(Voter(), registrar, proof_service=proof_service)
        with pytest.raises(NotFoundError):
            await latecomer.initialize()
        await end_session(registrar, clients + [latecomer])

    asyncio.run(scenario())


def test_end_to_end_election(proof_service):
    async def scenario():
        registrar, clients = await start_session(proof_service, [ADULT_US, ADULT_EU, ADULT_US])
        organizer = clients[0]

        election = await organizer.create_election("Fund the transit pass?", "age>=18", "", "region=US")
        for client in clients:
            await client.sync()
            assert client.election_db.exists(election.commitment)

        await clients[0].vote(election.commitment, True)
        await clients[2].vote(election.commitment, False)

        with pytest.raises(NotEligibleError) as exc_info:
            await clients[1].vote(election.commitment, True)
        assert exc_info.value.unsatisfied == [("region", "region=US")]

        for client in clients:
            await client.sync()
            assert client.tally(election.commitment) == registrar.tally(election.commitment)
        assert registrar.tally(election.commitment) == "Yes: 1\nNo:  1"

        listing = clients[1].list_elections()
        assert "eligible: no" in listing
        await end_session(registrar, clients)

    asyncio.run(scenario())


def test_late_joiner_loads_snapshot(proof_service):
    async def scenario():
        registrar = Registrar(proof_service)
        early = VoterClient(Voter(), registrar)
        late_voter = Voter()

        init_task = asyncio.create_task(early.initialize())
        while len(registrar.registry) < 1 and not init_task.done():
            await asyncio.sleep(0)
        await registrar.register(late_voter.commitment)
        registrar.close_registration()
        await init_task

        election = await early.create_election("Adopt?")
        await early.vote(election.commitment, True)

        late = VoterClient(late_voter, registrar)
        await late.initialize()
        assert late.network_state is NetworkState.POLLING
        assert late.tally(election.commitment) == "Yes: 1\nNo:  0"

        await late.vote(election.commitment, False)
        await early.sync()
        assert early.tally(election.commitment) == "Yes: 1\nNo:  1"
        await end_session(registrar, [early, late])

    asyncio.run(scenario())


def test_votes_for_unknown_elections_are_buffered(proof_service):
    async def scenario():
        registrar, clients = await start_session(proof_service, [{}])
        client = clients[0]
        bus: EventBus = registrar.bus

        election = Election("Out of order?")
        stray_vote = Vote.cast(Voter(secret=42), election, True)

        bus.publish(VOTES, stray_vote.to_payload())
        await client.sync()
        assert client.pending_vote_count() == 1
        assert not client.election_db.exists(election.commitment)

        bus.publish(ELECTIONS, election.to_payload())
        await client.sync()
        assert client.pending_vote_count() == 0
        assert client.tally(election.commitment) == "Yes: 1\nNo:  0"
        await end_session(registrar, clients)

    asyncio.run(scenario())


def test_malformed_events_do_not_stop_mirroring(proof_service):
    async def scenario():
        registrar, clients = await start_session(proof_service, [{}])
        client = clients[0]

        registrar.bus.publish(ELECTIONS, {"summary": 3})
        registrar.bus.publish(ELECTIONS, Election("Still listening?").to_payload())
        await client.sync()
        assert len(client.election_db) == 1
        await end_session(registrar, clients)

    asyncio.run(scenario())


def test_vote_requires_initialized_client(proof_service):
    async def scenario():
        registrar = Registrar(proof_service)
        client = VoterClient(Voter(), registrar)
        election = Election("Adopt?")
        client.election_db.add(election)

        with pytest.raises(ProofGenerationError):
            await client.vote(election.commitment, True)
        with pytest.raises(NotFoundError):
            await client.vote(Election("Unknown?").commitment, True)
        registrar.shutdown()

    asyncio.run(scenario())


def test_register_cohort_raises_initialization_failure(proof_service, monkeypatch):
    async def scenario():
        registrar = Registrar(proof_service)

        async def groth16_keys():
            return {"protocol": "groth16"}

        monkeypatch.setattr(registrar, "get_keys", groth16_keys)
        # One client already holds matching keys; the other has none and cannot load groth16 keys
        ready = VoterClient(Voter(), registrar, proof_service=proof_service)
        keyless = VoterClient(Voter(), registrar)

        with pytest.raises(ProofBackendError):
            await asyncio.wait_for(register_cohort(registrar, [ready, keyless]), timeout=5)
        assert registrar.network_state is NetworkState.REGISTRATION
        await end_session(registrar, [ready, keyless])

    asyncio.run(scenario())


def test_register_cohort_when_registration_already_closed(proof_service):
    async def scenario():
        registrar = Registrar(proof_service)
        registrar.close_registration()
        client = VoterClient(Voter(), registrar)

        with pytest.raises(NotFoundError):
            await asyncio.wait_for(register_cohort(registrar, [client]), timeout=5)
        await end_session(registrar, [client])

    asyncio.run(scenario())
