"""
Append-only binary Merkle tree over voter commitments.

Odd-width levels are padded with EMPTY_LEAF (the hash of the empty
sequence), so a tree of n leaves has ceil(log2(n)) levels above the leaves.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from .errors import MalformedPayloadError
from .field import EMPTY_LEAF, FieldElement, FieldLike, hash_elements

logger = logging.getLogger(__name__)


class PathEntry(NamedTuple):
    """Sibling hash plus whether the folded node sits on the left"""
    sibling: FieldElement
    is_left: bool


@dataclass(frozen=True)
class MembershipProof:
    """Leaf index and sibling path from the leaf up to the root"""
    index: int
    path: Tuple[PathEntry, ...]

    def compute_root(self, leaf: FieldLike) -> FieldElement:
        """Fold the path starting from the leaf"""
        current = FieldElement.coerce(leaf)
        for sibling, is_left in self.path:
            if is_left:
                current = hash_elements([current, sibling])
            else:
                current = hash_elements([sibling, current])
        return current

    def orientation_matches_index(self) -> bool:
        for level, entry in enumerate(self.path):
            if entry.is_left != (((self.index >> level) & 1) == 0):
                return False
        return self.index < (1 << len(self.path))

    def to_payload(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'path': [[str(entry.sibling), entry.is_left] for entry in self.path]
        }

    @classmethod
    def from_payload(cls, payload: Any) -> 'MembershipProof':
        if not isinstance(payload, dict):
            raise MalformedPayloadError("membership proof must be an object")

        index = payload.get('index')
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise MalformedPayloadError('missing or invalid "index" param')

        raw_path = payload.get('path')
        if not isinstance(raw_path, list):
            raise MalformedPayloadError('missing or invalid "path" param')

        path = []
        for raw_entry in raw_path:
            if not isinstance(raw_entry, (list, tuple)) or len(raw_entry) != 2:
                raise MalformedPayloadError("path entries must be [sibling, is_left] pairs")
            sibling, is_left = raw_entry
            if not isinstance(is_left, bool):
                raise MalformedPayloadError("path orientation must be a boolean")
            path.append(PathEntry(FieldElement.of_string(sibling), is_left))

        return cls(index=index, path=tuple(path))


def verify_membership(leaf: FieldLike, proof: MembershipProof, root: FieldLike) -> bool:
    """Recompute the root from leaf and path and compare"""
    if not proof.orientation_matches_index():
        return False
    return proof.compute_root(leaf) == FieldElement.coerce(root)


class MerkleTree:
    """Dense Merkle tree supporting leaf appends with path recomputation"""

    def __init__(self, leaves: Optional[Sequence[FieldLike]] = None):
        self._levels: List[List[FieldElement]] = [[]]
        for leaf in leaves or ():
            self.append(leaf)

    def __len__(self) -> int:
        return len(self._levels[0])

    @property
    def leaves(self) -> List[FieldElement]:
        return list(self._levels[0])

    @property
    def depth(self) -> int:
        return len(self._levels) - 1

    def _node(self, level: int, index: int) -> FieldElement:
        nodes = self._levels[level]
        return nodes[index] if index < len(nodes) else EMPTY_LEAF

    def append(self, leaf: FieldLike) -> int:
        """Append a leaf and update every ancestor on its path"""
        self._levels[0].append(FieldElement.coerce(leaf))
        index = len(self._levels[0]) - 1

        level = 0
        while len(self._levels[level]) > 1:
            parent = index // 2
            node = hash_elements([self._node(level, 2 * parent), self._node(level, 2 * parent + 1)])

            if level + 1 == len(self._levels):
                self._levels.append([])
            upper = self._levels[level + 1]
            if parent < len(upper):
                upper[parent] = node
            else:
                upper.append(node)

            index = parent
            level += 1

        return len(self._levels[0]) - 1

    def root(self) -> FieldElement:
        if not self._levels[0]:
            return EMPTY_LEAF
        return self._levels[-1][0]

    def index_of(self, leaf: FieldLike) -> Optional[int]:
        target = FieldElement.coerce(leaf)
        for index, candidate in enumerate(self._levels[0]):
            if candidate == target:
                return index
        return None

    def proof(self, index: int) -> MembershipProof:
        """Sibling path for the leaf at index"""
        if index < 0 or index >= len(self):
            raise IndexError(f"Index {index} out of bounds")

        path = []
        current = index
        for level in range(self.depth):
            path.append(PathEntry(self._node(level, current ^ 1), current % 2 == 0))
            current //= 2
        return MembershipProof(index=index, path=tuple(path))


def merkle_root(leaves: Sequence[FieldLike]) -> FieldElement:
    """Root of the tree built from leaves"""
    return MerkleTree(leaves).root()
