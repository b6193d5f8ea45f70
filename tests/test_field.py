import pytest

import voting
from voting.errors import MalformedPayloadError
from voting.field import (
    EMPTY_LEAF,
    Poseidon,
    FieldElement,
    answer_commitment,
    ballot_id,
    hash_elements,
    poseidon_hash,
    string_commitment,
    voter_commitment,
)


def test_round_constants_cover_every_round():
    expected = (Poseidon.FULL_ROUNDS + Poseidon.PARTIAL_ROUNDS) * Poseidon.WIDTH
    assert len(Poseidon.ROUND_CONSTANTS) == expected
    assert all(0 <= c < Poseidon.PRIME for c in Poseidon.ROUND_CONSTANTS)


def test_hash_is_deterministic_and_in_field():
    first = poseidon_hash([1, 2, 3])
    assert first == poseidon_hash([1, 2, 3])
    assert 0 <= first < Poseidon.PRIME


def test_hash_distinguishes_length_and_order():
    digests = {
        poseidon_hash([]),
        poseidon_hash([0]),
        poseidon_hash([0, 0]),
        poseidon_hash([1, 2]),
        poseidon_hash([2, 1]),
    }
    assert len(digests) == 5


def test_empty_leaf_is_hash_of_empty_sequence():
    assert EMPTY_LEAF == hash_elements([])
    assert EMPTY_LEAF.value == poseidon_hash([])


class TestFieldElement:
    def test_parses_decimal_and_hex(self):
        assert FieldElement.of_string("255") == FieldElement(255)
        assert FieldElement.of_string("0xff") == FieldElement(255)
        assert str(FieldElement(255)) == "255"
        assert FieldElement(255).to_hex() == "0xff"

    @pytest.mark.parametrize("text", ["", "abc", "-1", "1.5", str(Poseidon.PRIME)])
    def test_rejects_invalid_strings(self, text):
        with pytest.raises(MalformedPayloadError):
            FieldElement.of_string(text)

    def test_rejects_out_of_range_and_non_int(self):
        with pytest.raises(MalformedPayloadError):
            FieldElement(Poseidon.PRIME)
        with pytest.raises(MalformedPayloadError):
            FieldElement(-1)
        with pytest.raises(MalformedPayloadError):
            FieldElement(True)

    def test_coerce_accepts_int_str_and_element(self):
        element = FieldElement(7)
        assert FieldElement.coerce(element) is element
        assert FieldElement.coerce(7) == element
        assert FieldElement.coerce("7") == element

    def test_zero(self):
        assert FieldElement.zero().is_zero()
        assert not FieldElement(1).is_zero()


class TestCommitments:
    def test_string_commitment_hashes_code_points(self):
        assert string_commitment("ab") == hash_elements([97, 98])
        assert string_commitment("") == EMPTY_LEAF
        assert string_commitment("ab") != string_commitment("ba")

    def test_string_commitment_rejects_non_strings(self):
        with pytest.raises(MalformedPayloadError):
            string_commitment(42)

    def test_voter_commitment(self):
        assert voter_commitment(5) == hash_elements([5])
        assert voter_commitment(5) != voter_commitment(6)

    def test_answer_commitments_differ(self):
        assert answer_commitment(True) == string_commitment("true")
        assert answer_commitment(False) == string_commitment("false")
        assert answer_commitment(True) != answer_commitment(False)

    def test_ballot_id_stable_and_distinct(self):
        secrets = [11, 22]
        elections = [string_commitment("e1"), string_commitment("e2")]

        ids = [ballot_id(s, e) for s in secrets for e in elections]
        assert ids == [ballot_id(s, e) for s in secrets for e in elections]
        assert len(set(ids)) == 4


def test_poseidon_is_not_circomlib_poseidon():
    # circomlib Poseidon([1, 2]); this instance uses its own round constants
    circomlib_digest = 7853200120776062878684798364095072458815029376092732009249414926327459813530
    assert voting.Poseidon is Poseidon
    assert poseidon_hash([1, 2]) != circomlib_digest
    assert "circomlib" in Poseidon.__doc__
