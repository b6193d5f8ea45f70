"""
Voter registry: a sealable Merkle accumulator of voter commitments.
"""

import logging
import threading
from typing import List

from .errors import InvalidPhaseError, NotFoundError
from .field import FieldElement, FieldLike
from .merkle import MembershipProof, MerkleTree
from .network_state import NetworkState

logger = logging.getLogger(__name__)


class VoterRegistry:
    """
    Ordered, append-only sequence of voter commitments.

    Once sealed no further leaves are appended. The root is a pure function
    of the leaf sequence. Duplicate commitments are accepted; admission
    control belongs to whoever calls register().
    """

    def __init__(self):
        self._tree = MerkleTree()
        self._sealed = False
        self._lock = threading.RLock()

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __len__(self) -> int:
        return len(self._tree)

    def __contains__(self, commitment) -> bool:
        with self._lock:
            return self._tree.index_of(commitment) is not None

    @property
    def leaves(self) -> List[FieldElement]:
        with self._lock:
            return self._tree.leaves

    def register(self, commitment: FieldLike) -> int:
        """Append a voter commitment; returns its leaf index"""
        leaf = FieldElement.coerce(commitment)
        with self._lock:
            if self._sealed:
                raise InvalidPhaseError(NetworkState.REGISTRATION, "registration is not open")
            index = self._tree.append(leaf)

        logger.info(f"Registered voter commitment at index {index}")
        return index

    def close_registration(self):
        with self._lock:
            if self._sealed:
                raise InvalidPhaseError(NetworkState.REGISTRATION, "registration has already been closed")
            self._sealed = True
            voter_count = len(self._tree)

        logger.info(f"Registration sealed with {voter_count} voters")

    def prove_membership(self, commitment: FieldLike) -> MembershipProof:
        leaf = FieldElement.coerce(commitment)
        with self._lock:
            index = self._tree.index_of(leaf)
            if index is None:
                raise NotFoundError("not a member")
            return self._tree.proof(index)

    def prove_membership_with_root(self, commitment: FieldLike):
        """Proof and the root it folds to, captured atomically"""
        with self._lock:
            return self.prove_membership(commitment), self._tree.root()

    def merkle_tree_root(self) -> FieldElement:
        with self._lock:
            return self._tree.root()
