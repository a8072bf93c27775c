from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Union

import numpy as np


@dataclass(frozen=True, eq=False)
class FaceDescriptor:
    # Fixed-length float32 embedding; the array is made read-only on creation.
    vector: np.ndarray
    # Detector confidence of the face the descriptor was extracted from.
    det_score: float = 1.0

    def __post_init__(self) -> None:
        vec = np.array(self.vector, dtype=np.float32).reshape(-1)
        vec.setflags(write=False)
        object.__setattr__(self, "vector", vec)

    @property
    def dim(self) -> int:
        return int(self.vector.shape[0])


@dataclass(frozen=True)
class EnrollmentRecord:
    identity_id: str
    # Encoded descriptor (dim * 4 float32 bytes) or an encoded photo.
    raw_template: Optional[bytes]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_template(self) -> bool:
        return bool(self.raw_template)


@dataclass(frozen=True)
class MatchCandidate:
    identity_id: str
    distance: float
    valid: bool = True


@dataclass
class MatchSummary:
    # Counters collected while scanning one snapshot.
    scanned: int = 0
    skipped_missing: int = 0
    skipped_corrupt: int = 0
    compared: int = 0
    batches: int = 0


class ResultKind(str, enum.Enum):
    IDENTIFIED = "identified"
    NO_FACE_DETECTED = "no_face_detected"
    NO_GALLERY_MATCH = "no_gallery_match"
    INPUT_ERROR = "input_error"


@dataclass(frozen=True)
class Identified:
    identity_id: str
    # Presentation score in [0, 100], not a probability.
    confidence: float
    distance: float
    kind: ResultKind = field(default=ResultKind.IDENTIFIED, init=False)


@dataclass(frozen=True)
class NoFaceDetected:
    kind: ResultKind = field(default=ResultKind.NO_FACE_DETECTED, init=False)


@dataclass(frozen=True)
class NoGalleryMatch:
    kind: ResultKind = field(default=ResultKind.NO_GALLERY_MATCH, init=False)


@dataclass(frozen=True)
class InputError:
    reason: str
    kind: ResultKind = field(default=ResultKind.INPUT_ERROR, init=False)


VerificationResult = Union[Identified, NoFaceDetected, NoGalleryMatch, InputError]


@dataclass(frozen=True)
class User:
    user_id: str


@dataclass(frozen=True)
class Professional:
    professional_id: str
    roles: FrozenSet[str] = frozenset()


# Authenticated caller, resolved by the access-control layer.
Caller = Union[User, Professional]
