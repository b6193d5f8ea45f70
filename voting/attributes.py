"""
Attribute masks: per-election eligibility constraints, one slot per
recognized attribute tag.

A constrained slot holds a constraint string such as "age>=18". A voter
satisfies it when the attribute they hold for that tag is the same string,
which is what the circuit checks by comparing string commitments.
"""

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .errors import MalformedPayloadError
from .field import FieldElement, string_commitment

# Slot order is part of every election commitment; append only.
ATTRIBUTE_TAGS: Tuple[str, ...] = ("age", "citizenship", "region")


def _normalize_slot(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedPayloadError(f"attribute constraint must be a string or null, got {type(value).__name__}")
    return value or None


@dataclass(frozen=True)
class AttributeMask:
    """Ordered optional constraints, one per entry in ATTRIBUTE_TAGS"""
    mask: Tuple[Optional[str], ...] = ()

    def __post_init__(self):
        slots = [_normalize_slot(v) for v in self.mask]
        if len(slots) > len(ATTRIBUTE_TAGS):
            raise MalformedPayloadError(
                f"attribute mask has {len(slots)} slots, at most {len(ATTRIBUTE_TAGS)} are recognized")
        slots += [None] * (len(ATTRIBUTE_TAGS) - len(slots))
        object.__setattr__(self, 'mask', tuple(slots))

    @classmethod
    def of_sequence(cls, constraints: Sequence[Optional[str]]) -> 'AttributeMask':
        if isinstance(constraints, (str, bytes)) or not isinstance(constraints, (list, tuple)):
            raise MalformedPayloadError('attribute mask must be an array')
        return cls(tuple(constraints))

    @classmethod
    def unrestricted(cls) -> 'AttributeMask':
        return cls(())

    def witness(self) -> List[FieldElement]:
        """Zero for an empty slot, the constraint's string commitment otherwise"""
        return [string_commitment(c) if c else FieldElement.zero() for c in self.mask]

    def constraints(self) -> List[Tuple[str, str]]:
        return [(tag, c) for tag, c in zip(ATTRIBUTE_TAGS, self.mask) if c]

    def to_payload(self) -> List[Optional[str]]:
        return list(self.mask)

    def __str__(self) -> str:
        described = ' '.join(f"{tag}={c}" for tag, c in self.constraints())
        return described or 'unrestricted'


@dataclass(frozen=True)
class VoterAttributes:
    """Raw attribute values a voter holds privately"""
    values: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        unknown = [tag for tag in self.values if tag not in ATTRIBUTE_TAGS]
        if unknown:
            raise MalformedPayloadError(f"unrecognized attribute tags: {', '.join(sorted(unknown))}")
        for tag, value in self.values.items():
            if not isinstance(value, str):
                raise MalformedPayloadError(f"attribute {tag} must be a string")
        object.__setattr__(self, 'values', dict(self.values))

    def slot_values(self) -> List[Optional[str]]:
        return [self.values.get(tag) for tag in ATTRIBUTE_TAGS]

    def commitments(self) -> List[FieldElement]:
        return [string_commitment(v) if v else FieldElement.zero() for v in self.slot_values()]


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    unsatisfied: List[Tuple[str, str]]


def check_eligibility(mask: AttributeMask, attributes: VoterAttributes) -> EligibilityResult:
    """Compare each constrained slot against the voter's attribute"""
    unsatisfied = []
    for tag, constraint in mask.constraints():
        if attributes.values.get(tag) != constraint:
            unsatisfied.append((tag, constraint))
    return EligibilityResult(eligible=not unsatisfied, unsatisfied=unsatisfied)
