"""
BN254 scalar field elements and the Poseidon hash used for every
commitment and nullifier in the protocol.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

from .errors import MalformedPayloadError

logger = logging.getLogger(__name__)

# ============================================================================
# POSEIDON PERMUTATION OVER BN254
# ============================================================================


class Poseidon:
    """Poseidon permutation (t=3, x^5 S-box) with a length-tagged sponge.

    Uses the circomlib MDS matrix, but the round constants are derived from
    ``CONSTANTS_SEED`` with SHA-256 rather than taken from circomlib, so
    digests do not match circomlib's ``Poseidon`` template. A circuit that
    checks these commitments must embed the same derived constants.
    """

    # BN254 scalar field prime
    PRIME = 21888242871839275222246405745257275088548364400416034343698204186575808495617

    FULL_ROUNDS = 8
    PARTIAL_ROUNDS = 57
    WIDTH = 3  # capacity 1, rate 2
    RATE = 2

    CONSTANTS_SEED = b"poseidon_bn254_t3_round_constants"

    @staticmethod
    def derive_round_constants(count: int, seed: bytes, prime: int) -> List[int]:
        """Derive one constant per state word per round from a fixed seed"""
        constants = []
        for i in range(count):
            digest = hashlib.sha256(seed + i.to_bytes(4, 'big')).digest()
            constants.append(int.from_bytes(digest, 'big') % prime)
        return constants

    # MDS matrix from circomlib for t=3
    MDS_MATRIX = [
        [0x109b7f411ba0e4c9b2b70caf5c36a7b194be7c11ad24378bfedb68592ba8118b,
         0x2969f27eed31a480b9c36c764379dbca2cc8fdd1415c3dded62940bcde0bd771,
         0x16ed41e13bb9c0c66ae119424fddbcbc9314dc9fdbdeea55d6c64543dc4903e0],
        [0x2e2419f9ec02ec394c9871c832963dc1b89d743c8c7b964029b2311687b1fe23,
         0x176cc029695ad02582a70eff08a6fd99d057e12e58e7d7b6b16cdfabc8ee2911,
         0x19a3fc0a56702bf417ba7fee3802593fa644470307043f7773279cd71d25d5e0],
        [0x2b90bba00fca0589f617e7dcbfe82e0df706ab640ceb247b791a93b74e36736d,
         0x101071f0032379b697315876690f053d148d4e109f5fb065c8aacc55a0f89bfa,
         0x0ee972cfc5375bf0dfca69bb79fb73c7a687c3d2f966b3d68a3725f0292e4c5d]
    ]

    ROUND_CONSTANTS = derive_round_constants.__func__(
        (FULL_ROUNDS + PARTIAL_ROUNDS) * WIDTH, CONSTANTS_SEED, PRIME)

    @staticmethod
    def field_mult(a: int, b: int) -> int:
        """Field multiplication modulo prime"""
        return (a * b) % Poseidon.PRIME

    @staticmethod
    def field_add(a: int, b: int) -> int:
        """Field addition modulo prime"""
        return (a + b) % Poseidon.PRIME

    @staticmethod
    def ark(state: List[int], constant_idx: int) -> List[int]:
        """Add round constants"""
        constants = Poseidon.ROUND_CONSTANTS
        return [Poseidon.field_add(state[i], constants[constant_idx + i]) for i in range(Poseidon.WIDTH)]

    @staticmethod
    def sbox(state: List[int], full_round: bool) -> List[int]:
        """Apply S-box (x^5 mod p)"""
        if full_round:
            return [pow(x, 5, Poseidon.PRIME) for x in state]
        return [pow(state[0], 5, Poseidon.PRIME), state[1], state[2]]

    @staticmethod
    def mix(state: List[int]) -> List[int]:
        """Apply MDS matrix multiplication"""
        new_state = [0] * Poseidon.WIDTH
        for i in range(Poseidon.WIDTH):
            for j in range(Poseidon.WIDTH):
                new_state[i] = Poseidon.field_add(
                    new_state[i], Poseidon.field_mult(state[j], Poseidon.MDS_MATRIX[i][j]))
        return new_state

    @staticmethod
    def permute(state: List[int]) -> List[int]:
        constant_idx = 0
        half_full = Poseidon.FULL_ROUNDS // 2

        for _ in range(half_full):
            state = Poseidon.ark(state, constant_idx)
            constant_idx += Poseidon.WIDTH
            state = Poseidon.sbox(state, True)
            state = Poseidon.mix(state)

        for _ in range(Poseidon.PARTIAL_ROUNDS):
            state = Poseidon.ark(state, constant_idx)
            constant_idx += Poseidon.WIDTH
            state = Poseidon.sbox(state, False)
            state = Poseidon.mix(state)

        for _ in range(half_full):
            state = Poseidon.ark(state, constant_idx)
            constant_idx += Poseidon.WIDTH
            state = Poseidon.sbox(state, True)
            state = Poseidon.mix(state)

        return state

    @staticmethod
    def hash(inputs: Sequence[int]) -> int:
        """
        Sponge over the permutation.

        The input length seeds the capacity word, so [] and [0] and [0, 0]
        all hash differently. An empty input still runs one permutation.
        """
        state = [len(inputs) % Poseidon.PRIME, 0, 0]

        if not inputs:
            return Poseidon.permute(state)[1]

        for i in range(0, len(inputs), Poseidon.RATE):
            chunk = list(inputs[i:i + Poseidon.RATE])
            chunk += [0] * (Poseidon.RATE - len(chunk))
            state[1] = Poseidon.field_add(state[1], chunk[0])
            state[2] = Poseidon.field_add(state[2], chunk[1])
            state = Poseidon.permute(state)

        return state[1]


poseidon_hash = Poseidon.hash

# ============================================================================
# FIELD ELEMENTS
# ============================================================================


@dataclass(frozen=True)
class FieldElement:
    """Immutable value in the BN254 scalar field"""
    value: int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise MalformedPayloadError(f"field element must be an integer, got {type(self.value).__name__}")
        if self.value < 0 or self.value >= Poseidon.PRIME:
            raise MalformedPayloadError(f"value {self.value} outside field bounds")

    @classmethod
    def zero(cls) -> 'FieldElement':
        return cls(0)

    @classmethod
    def of_int(cls, value: int) -> 'FieldElement':
        return cls(value)

    @classmethod
    def of_string(cls, text: str) -> 'FieldElement':
        """Parse decimal or 0x-prefixed hex"""
        if not isinstance(text, str):
            raise MalformedPayloadError(f"expected field element string, got {type(text).__name__}")
        stripped = text.strip()
        try:
            if stripped.lower().startswith('0x'):
                value = int(stripped, 16)
            else:
                if not stripped.isdigit():
                    raise ValueError(stripped)
                value = int(stripped, 10)
        except ValueError:
            raise MalformedPayloadError(f"invalid field element string: {text!r}")
        return cls(value)

    @classmethod
    def coerce(cls, value: Union['FieldElement', int, str]) -> 'FieldElement':
        if isinstance(value, FieldElement):
            return value
        if isinstance(value, str):
            return cls.of_string(value)
        return cls(value)

    def is_zero(self) -> bool:
        return self.value == 0

    def to_hex(self) -> str:
        return hex(self.value)

    def __str__(self) -> str:
        return str(self.value)

    def __int__(self) -> int:
        return self.value


FieldLike = Union[FieldElement, int, str]

# ============================================================================
# COMMITMENTS AND NULLIFIERS
# ============================================================================


def hash_elements(elements: Iterable[FieldLike]) -> FieldElement:
    """Collision-resistant, deterministic hash of a field element sequence"""
    values = [FieldElement.coerce(e).value for e in elements]
    return FieldElement(poseidon_hash(values))


EMPTY_LEAF = hash_elements([])


def string_commitment(text: str) -> FieldElement:
    """Hash a string one code point per field element"""
    if not isinstance(text, str):
        raise MalformedPayloadError(f"expected string, got {type(text).__name__}")
    code_points = []
    for char in text:
        code = ord(char)
        if code >= Poseidon.PRIME:
            raise MalformedPayloadError(f"code point {code} does not fit the field")
        code_points.append(FieldElement(code))
    return hash_elements(code_points)


def voter_commitment(secret: FieldLike) -> FieldElement:
    return hash_elements([secret])


def ballot_id(secret: FieldLike, election_commitment: FieldLike) -> FieldElement:
    """Nullifier binding a voter secret to one election"""
    return hash_elements([secret, election_commitment])


def answer_commitment(answer: bool) -> FieldElement:
    return string_commitment('true' if answer else 'false')
