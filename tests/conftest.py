import sys
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from voting import Voter, VoterRegistry  # noqa: E402
from zk.zk_proofs import SimulatedProofService  # noqa: E402

TEST_KEY = bytes(range(32))


@pytest.fixture
def proof_service():
    return SimulatedProofService(TEST_KEY)


@pytest.fixture
def registered_voters():
    """Three registered voters and a sealed registry"""
    voters = [
        Voter(secret=101, attributes={"age": "age>=18", "region": "region=US"}),
        Voter(secret=202, attributes={"age": "age>=18"}),
        Voter(secret=303),
    ]
    registry = VoterRegistry()
    for voter in voters:
        registry.register(voter.commitment)
    registry.close_registration()
    for voter in voters:
        voter.set_membership_proof(*registry.prove_membership_with_root(voter.commitment))
    return voters, registry
