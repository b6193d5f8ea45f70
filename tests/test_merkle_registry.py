import math

import pytest

from voting.errors import InvalidPhaseError, MalformedPayloadError, NotFoundError
from voting.field import EMPTY_LEAF, hash_elements, string_commitment
from voting.merkle import MembershipProof, MerkleTree, PathEntry, merkle_root, verify_membership
from voting.network_state import NetworkState
from voting.registry import VoterRegistry


def leaves(*names):
    return [string_commitment(name) for name in names]


class TestMerkleTree:
    def test_empty_and_single_leaf_roots(self):
        assert MerkleTree().root() == EMPTY_LEAF
        a = string_commitment("A")
        assert MerkleTree([a]).root() == a

    def test_two_level_root(self):
        a, b, c, d = leaves("A", "B", "C", "D")
        expected = hash_elements([hash_elements([a, b]), hash_elements([c, d])])
        assert merkle_root([a, b, c, d]) == expected

    def test_odd_width_is_padded_with_empty_leaf(self):
        a, b, c = leaves("A", "B", "C")
        expected = hash_elements([hash_elements([a, b]), hash_elements([c, EMPTY_LEAF])])
        assert merkle_root([a, b, c]) == expected

    def test_incremental_appends_match_full_rebuild(self):
        tree = MerkleTree()
        names = [f"v{i}" for i in range(9)]
        for i, leaf in enumerate(leaves(*names)):
            assert tree.append(leaf) == i
            assert tree.root() == merkle_root(tree.leaves)

    @pytest.mark.parametrize("count", [1, 2, 3, 5, 8, 11])
    def test_every_proof_folds_to_root(self, count):
        tree = MerkleTree(leaves(*[f"v{i}" for i in range(count)]))
        expected_depth = math.ceil(math.log2(count))
        for index, leaf in enumerate(tree.leaves):
            proof = tree.proof(index)
            assert len(proof.path) == expected_depth
            assert verify_membership(leaf, proof, tree.root())

    def test_proof_index_out_of_range(self):
        tree = MerkleTree(leaves("A"))
        with pytest.raises(IndexError):
            tree.proof(1)

    def test_wrong_leaf_or_flipped_orientation_rejected(self):
        a, b, c, d = leaves("A", "B", "C", "D")
        tree = MerkleTree([a, b, c, d])
        proof = tree.proof(1)
        assert not verify_membership(c, proof, tree.root())

        flipped = MembershipProof(
            index=proof.index,
            path=tuple(PathEntry(e.sibling, not e.is_left) for e in proof.path)
        )
        assert not verify_membership(b, flipped, tree.root())

    def test_payload_round_trip_and_validation(self):
        tree = MerkleTree(leaves("A", "B", "C"))
        proof = tree.proof(2)
        assert MembershipProof.from_payload(proof.to_payload()) == proof

        with pytest.raises(MalformedPayloadError):
            MembershipProof.from_payload({"index": -1, "path": []})
        with pytest.raises(MalformedPayloadError):
            MembershipProof.from_payload({"index": 0, "path": [["1", "yes"]]})
        with pytest.raises(MalformedPayloadError):
            MembershipProof.from_payload([0, []])


class TestVoterRegistry:
    def test_issued_proof_accepts_issuance_root_only(self):
        a, b, c, d, e = leaves("A", "B", "C", "D", "E")
        registry = VoterRegistry()
        for leaf in (a, b, c, d):
            registry.register(leaf)
        registry.close_registration()

        proof, issuance_root = registry.prove_membership_with_root(b)
        assert len(proof.path) == 2
        assert verify_membership(b, proof, issuance_root)

        later_root = merkle_root([a, b, c, d, e])
        assert not verify_membership(b, proof, later_root)

    def test_proofs_match_root_at_issuance(self):
        registry = VoterRegistry()
        issued = []
        for leaf in leaves("v1", "v2", "v3", "v4", "v5"):
            registry.register(leaf)
            issued.append((leaf, registry.prove_membership(leaf), registry.merkle_tree_root()))

        for leaf, proof, root in issued:
            assert proof.compute_root(leaf) == root

    def test_sealed_registry_rejects_registration(self):
        registry = VoterRegistry()
        registry.register(string_commitment("v1"))
        registry.close_registration()

        with pytest.raises(InvalidPhaseError) as exc_info:
            registry.register(string_commitment("v2"))
        assert exc_info.value.required_phase is NetworkState.REGISTRATION
        assert len(registry) == 1

    def test_close_twice_fails(self):
        registry = VoterRegistry()
        registry.close_registration()
        with pytest.raises(InvalidPhaseError):
            registry.close_registration()

    def test_unknown_commitment_not_found(self):
        registry = VoterRegistry()
        registry.register(string_commitment("v1"))
        with pytest.raises(NotFoundError):
            registry.prove_membership(string_commitment("stranger"))

    def test_duplicate_commitments_are_accepted(self):
        registry = VoterRegistry()
        v1 = string_commitment("v1")
        assert registry.register(v1) == 0
        assert registry.register(v1) == 1
        assert registry.prove_membership(v1).index == 0
        assert v1 in registry
