"""
Vote proof services.

The registrar and voters only talk to a ProofService:
    prove(statement, witness) -> Proof
    verify(statement, proof)  -> bool

Two backends:
- SimulatedProofService evaluates the circuit relations directly in Python
  and authenticates the public signals with an HMAC key that stands in for
  the proving/verification key pair. Used for tests and demos.
- SnarkjsProofService shells out to snarkjs (Groth16) against a compiled
  vote circuit and its trusted-setup artifacts.
"""

import hashlib
import json
import logging
import secrets
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import requests
from cryptography.hazmat.primitives import constant_time, hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac

from config.config import ZKConfig
from voting.errors import InvalidProofError, ProofGenerationError, VotingError
from voting.field import answer_commitment, ballot_id, voter_commitment
from voting.merkle import verify_membership
from voting.statement import Statement, Witness

logger = logging.getLogger(__name__)

# ============================================================================
# EXCEPTIONS AND PROOF CONTAINER
# ============================================================================


class ZKError(VotingError):
    """Base exception for proof backend operations"""
    pass


class ProofBackendError(ZKError):
    """Proof backend unavailable or misconfigured"""
    pass


class TrustedSetupError(ZKError):
    """Trusted setup artifacts missing or failed verification"""
    pass


@dataclass(frozen=True)
class Proof:
    """Backend-specific proof plus the protocol that produced it"""
    protocol: str
    payload: Dict[str, Any] = field(default_factory=dict)
    generation_time: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        return {'protocol': self.protocol, 'proof': self.payload}

    @classmethod
    def from_payload(cls, data: Any) -> 'Proof':
        if isinstance(data, Proof):
            return data
        if not isinstance(data, dict):
            raise InvalidProofError('proof must be an object')
        protocol = data.get('protocol')
        payload = data.get('proof')
        if not isinstance(protocol, str) or not isinstance(payload, dict):
            raise InvalidProofError('proof must carry "protocol" and "proof" fields')
        return cls(protocol=protocol, payload=payload)


class ProofService(Protocol):
    @property
    def key_hash(self) -> str:
        ...

    def get_keys(self) -> Dict[str, Any]:
        ...

    def prove(self, statement: Statement, witness: Witness) -> Proof:
        ...

    def verify(self, statement: Statement, proof: Proof) -> bool:
        ...

# ============================================================================
# CIRCUIT RELATIONS
# ============================================================================


def unsatisfied_constraints(statement: Statement, witness: Witness) -> List[str]:
    """
    Evaluate the vote circuit's relations; returns the violated ones.

    (a) the secret's commitment is a leaf under merkle_tree_root
    (b) ballot_id == hash([secret, election_commitment])
    (c) every non-zero attribute slot equals the voter's attribute commitment
    (d) answer_hash matches the witnessed answer
    """
    violations = []

    leaf = voter_commitment(witness.secret)
    if not verify_membership(leaf, witness.membership_proof, statement.merkle_tree_root):
        violations.append('membership')

    if ballot_id(witness.secret, statement.election_commitment) != statement.ballot_id:
        violations.append('ballot_id')

    attribute_commitments = witness.attributes.commitments()
    if len(attribute_commitments) != len(statement.attribute_slots):
        violations.append('attribute_count')
    else:
        for slot, (required, held) in enumerate(zip(statement.attribute_slots, attribute_commitments)):
            if not required.is_zero() and required != held:
                violations.append(f'attribute[{slot}]')

    if answer_commitment(witness.answer) != statement.answer_hash:
        violations.append('answer')

    return violations

# ============================================================================
# SIMULATED BACKEND
# ============================================================================


class SimulatedProofService:
    """In-process proof service with an HMAC key in place of Groth16 keys.

    For tests and demos only. ``get_keys()`` hands the HMAC key to every
    caller as both proving and verification key, so anyone who has fetched
    the keys can mint a valid-looking proof for any statement. Use
    ``SnarkjsProofService`` for real elections.
    """

    PROTOCOL = "simulated-hmac-sha256"
    TAG_LENGTH = 32

    def __init__(self, key: Optional[bytes] = None):
        self._key = key if key is not None else secrets.token_bytes(32)
        if len(self._key) < 16:
            raise ProofBackendError("simulated proof key must be at least 16 bytes")

    @classmethod
    def from_keys(cls, keys: Dict[str, Any]) -> 'SimulatedProofService':
        """Rebuild a voter-side service from a get_keys() response"""
        try:
            return cls(bytes.fromhex(keys['provingKey']))
        except (KeyError, TypeError, ValueError):
            raise ProofBackendError("invalid simulated key material")

    @property
    def key_hash(self) -> str:
        return hashlib.sha256(self._key).hexdigest()

    def get_keys(self) -> Dict[str, Any]:
        return {
            'protocol': self.PROTOCOL,
            'provingKey': self._key.hex(),
            'verificationKey': self._key.hex(),
        }

    def _tag(self, statement: Statement) -> crypto_hmac.HMAC:
        h = crypto_hmac.HMAC(self._key, hashes.SHA256())
        h.update(json.dumps(statement.to_public_signals()).encode())
        return h

    def prove(self, statement: Statement, witness: Witness) -> Proof:
        start_time = time.time()
        violations = unsatisfied_constraints(statement, witness)
        if violations:
            raise ProofGenerationError(f"witness does not satisfy statement: {', '.join(violations)}")

        tag = self._tag(statement).finalize()
        generation_time = time.time() - start_time
        logger.debug(f"Generated simulated proof in {generation_time:.3f}s")
        return Proof(protocol=self.PROTOCOL, payload={'tag': tag.hex()}, generation_time=generation_time)

    def verify(self, statement: Statement, proof: Proof) -> bool:
        proof = Proof.from_payload(proof)
        if proof.protocol != self.PROTOCOL:
            raise InvalidProofError(f"expected {self.PROTOCOL} proof, got {proof.protocol}")

        raw_tag = proof.payload.get('tag')
        if not isinstance(raw_tag, str):
            raise InvalidProofError('simulated proof is missing its tag')
        try:
            tag = bytes.fromhex(raw_tag)
        except ValueError:
            raise InvalidProofError('simulated proof tag is not hex')
        if len(tag) != self.TAG_LENGTH:
            raise InvalidProofError('simulated proof tag has the wrong length')

        expected = self._tag(statement).finalize()
        return constant_time.bytes_eq(expected, tag)

# ============================================================================
# SNARKJS BACKEND
# ============================================================================

# Blake2b hashes of the Hermez Powers of Tau files
HERMEZ_PTAU_HASHES = {
    14: "eeefbcf7c3803b523c94112023c7ff89558f9b8e0cf5d6cdcba3ade60f168af4a181c9c21774b94fbae6c90411995f7d854d02ebd93fb66043dbb06f17a831c1",
    15: "982372c867d229c236091f767e703253249a9b432c1710b4f326306bfa2428a17b06240359606cfe4d580b10a5a1f63fbed499527069c18ae17060472969ae6e",
    16: "6a6277a2f74e1073601b4f9fed6e1e55226917efb0f0db8a07d98ab01df1ccf43eb0e8c3159432acd4960e2f29fe84a4198501fa54c8dad9e43297453efec125",
}

PTAU_URL = "https://hermez.s3-eu-west-1.amazonaws.com/powersOfTau28_hez_final_{power}.ptau"


def hash_file(file_path: Path) -> str:
    """Compute Blake2b hash of file"""
    h = hashlib.blake2b()
    with open(file_path, 'rb') as f:
        while chunk := f.read(8192):
            h.update(chunk)
    return h.hexdigest()


def circuit_input(statement: Statement, witness: Witness) -> Dict[str, Any]:
    """Signal assignment for the compiled vote circuit"""
    return {
        'merkleTreeRoot': str(statement.merkle_tree_root),
        'ballotId': str(statement.ballot_id),
        'answerHash': str(statement.answer_hash),
        'attributeSlots': [str(s) for s in statement.attribute_slots],
        'electionCommitment': str(statement.election_commitment),
        'secret': str(witness.secret),
        'pathElements': [str(entry.sibling) for entry in witness.membership_proof.path],
        'pathIndices': [0 if entry.is_left else 1 for entry in witness.membership_proof.path],
        'attributes': [str(c) for c in witness.attributes.commitments()],
        'answer': 1 if witness.answer else 0,
    }


class SnarkjsProofService:
    """Groth16 proofs through the snarkjs command line"""

    PROTOCOL = "groth16"

    def __init__(self, config: ZKConfig):
        self.config = config
        if shutil.which(config.snarkjs_bin) is None:
            raise ProofBackendError(f"snarkjs binary not found: {config.snarkjs_bin}")
        for artifact in (config.wasm_file, config.zkey_file, config.vkey_file):
            if not artifact.exists():
                raise TrustedSetupError(f"missing circuit artifact: {artifact}")
        self._vkey_cache: Optional[Dict[str, Any]] = None

    @property
    def key_hash(self) -> str:
        return hashlib.sha256(self.config.vkey_file.read_bytes()).hexdigest()

    def get_keys(self) -> Dict[str, Any]:
        return {
            'protocol': self.PROTOCOL,
            'provingKeyHash': hash_file(self.config.zkey_file),
            'verificationKey': self._verification_key(),
        }

    def _verification_key(self) -> Dict[str, Any]:
        if self._vkey_cache is None:
            self._vkey_cache = json.loads(self.config.vkey_file.read_text())
        return self._vkey_cache

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        return subprocess.run(cmd, capture_output=True, text=True, timeout=self.config.proof_timeout)

    def prove(self, statement: Statement, witness: Witness) -> Proof:
        start_time = time.time()

        with tempfile.TemporaryDirectory(prefix="vote_snarkjs_") as temp_dir:
            temp_path = Path(temp_dir)
            input_file = temp_path / "input.json"
            proof_file = temp_path / "proof.json"
            public_file = temp_path / "public.json"
            input_file.write_text(json.dumps(circuit_input(statement, witness)))

            cmd = [
                self.config.snarkjs_bin, 'groth16', 'fullprove',
                str(input_file),
                str(self.config.wasm_file),
                str(self.config.zkey_file),
                str(proof_file),
                str(public_file)
            ]
            try:
                result = self._run(cmd)
            except subprocess.TimeoutExpired:
                raise ProofGenerationError("snarkjs fullprove timed out")
            if result.returncode != 0:
                raise ProofGenerationError(f"Proof generation failed: {result.stderr[-4000:]}")

            proof = json.loads(proof_file.read_text())
            public_signals = json.loads(public_file.read_text())

        if public_signals != statement.to_public_signals():
            raise ProofGenerationError("circuit public signals do not match the statement")

        generation_time = time.time() - start_time
        logger.info(f"Generated Groth16 vote proof in {generation_time:.2f}s")
        return Proof(protocol=self.PROTOCOL, payload=proof, generation_time=generation_time)

    def verify(self, statement: Statement, proof: Proof) -> bool:
        proof = Proof.from_payload(proof)
        if proof.protocol != self.PROTOCOL:
            raise InvalidProofError(f"expected {self.PROTOCOL} proof, got {proof.protocol}")
        for key in ('pi_a', 'pi_b', 'pi_c'):
            if not isinstance(proof.payload.get(key), list):
                raise InvalidProofError(f"groth16 proof is missing {key}")

        with tempfile.TemporaryDirectory(prefix="vote_snarkjs_") as temp_dir:
            temp_path = Path(temp_dir)
            vkey_file = temp_path / "vkey.json"
            public_file = temp_path / "public.json"
            proof_file = temp_path / "proof.json"
            vkey_file.write_text(json.dumps(self._verification_key()))
            public_file.write_text(json.dumps(statement.to_public_signals()))
            proof_file.write_text(json.dumps(proof.payload))

            cmd = [
                self.config.snarkjs_bin, 'groth16', 'verify',
                str(vkey_file),
                str(public_file),
                str(proof_file)
            ]
            try:
                result = self._run(cmd)
            except subprocess.TimeoutExpired:
                logger.warning("snarkjs verify timed out, treating proof as rejected")
                return False

        return result.returncode == 0 and "OK!" in result.stdout


# ============================================================================
# TRUSTED SETUP
# ============================================================================


def ensure_ptau(config: ZKConfig) -> Path:
    """Fetch the Hermez Powers of Tau file into ``config.setup_dir``.

    The download lands in a ``.part`` file that is renamed into place only
    after its Blake2b hash matches the published one, so an existing ptau
    file is always complete. Interrupted or mismatched downloads leave
    nothing behind and the next call fetches again.
    """
    ptau_file = config.setup_dir / f"powersOfTau28_hez_final_{config.ptau_power}.ptau"
    if ptau_file.exists():
        return ptau_file

    expected_hash = HERMEZ_PTAU_HASHES.get(config.ptau_power)
    if expected_hash is None:
        raise TrustedSetupError(f"No known hash for PTAU power {config.ptau_power}")

    ptau_file.parent.mkdir(parents=True, exist_ok=True)
    part_file = ptau_file.with_name(ptau_file.name + ".part")
    url = PTAU_URL.format(power=config.ptau_power)
    logger.info(f"Downloading Powers of Tau file (2^{config.ptau_power})...")

    try:
        with requests.get(url, stream=True, timeout=60) as response:
            response.raise_for_status()
            with open(part_file, 'wb') as f:
                for chunk in response.iter_content(chunk_size=1 << 20):
                    f.write(chunk)

        if hash_file(part_file) != expected_hash:
            raise TrustedSetupError("Powers of Tau file hash mismatch")
        part_file.replace(ptau_file)
    finally:
        if part_file.exists():
            part_file.unlink()

    logger.info(f"Powers of Tau file verified: {ptau_file}")
    return ptau_file


# ============================================================================
# BACKEND SELECTION
# ============================================================================


def get_proof_service(config: Optional[ZKConfig] = None) -> ProofService:
    config = config or ZKConfig()

    if config.backend == "snarkjs":
        return SnarkjsProofService(config)

    logger.warning("Using the simulated proof backend: proofs are HMAC tags and "
                   "anyone holding the served keys can forge them")
    key = bytes.fromhex(config.simulated_key_hex) if config.simulated_key_hex else None
    return SimulatedProofService(key)
