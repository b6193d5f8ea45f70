"""
Error taxonomy for the voting protocol.

Every failure the registrar or a voter client can surface derives from
VotingError so that front ends can report it and keep the session alive.
"""


class VotingError(Exception):
    """Base exception for voting protocol operations"""
    pass


class InvalidPhaseError(VotingError):
    """Operation is not allowed in the current network state"""

    def __init__(self, required_phase, message: str = None):
        self.required_phase = required_phase
        phase_name = getattr(required_phase, 'value', required_phase)
        super().__init__(message or f"operation requires the '{phase_name}' phase")


class DuplicateBallotError(VotingError):
    """Ballot id already recorded for this election"""
    pass


class DuplicateElectionError(VotingError):
    """An election with the same commitment already exists"""
    pass


class NotFoundError(VotingError):
    """Unknown voter commitment or election"""
    pass


class VerificationError(VotingError):
    """Vote proof was rejected (never retried automatically)"""
    pass


class ProofGenerationError(VotingError):
    """Witness cannot satisfy the statement"""
    pass


class InvalidProofError(VotingError):
    """Proof encoding is malformed"""
    pass


class MalformedPayloadError(VotingError, ValueError):
    """Required field missing or invalid during deserialization"""
    pass


class NotEligibleError(VotingError):
    """Voter attributes do not satisfy the election's attribute mask"""

    def __init__(self, unsatisfied):
        self.unsatisfied = list(unsatisfied)
        described = ' '.join(f"{tag}={value}" for tag, value in self.unsatisfied)
        super().__init__(f"cannot vote in election, unsatisfied constraints: {described}")
