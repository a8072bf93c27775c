"""1:N face identification against an enrolled gallery snapshot."""

from .decision_engine import confidence_from_distance, decide
from .face_types import (
    Identified,
    InputError,
    NoFaceDetected,
    NoGalleryMatch,
    ResultKind,
    VerificationResult,
)
from .verification_service import VerificationService
from .verify_config import VerifierConfig

__all__ = [
    "Identified",
    "InputError",
    "NoFaceDetected",
    "NoGalleryMatch",
    "ResultKind",
    "VerificationResult",
    "VerificationService",
    "VerifierConfig",
    "confidence_from_distance",
    "decide",
]
