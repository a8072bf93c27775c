from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from .errors import FaceVerifyError
from .face_types import Identified, InputError, ResultKind, VerificationResult
from .gallery_store import ProfileDirectory

# Profile fields returned on a match; optional ones default to "None".
PROFILE_FIELDS = ("name", "aadhar_number", "emergency_contact", "blood_group")
OPTIONAL_PROFILE_FIELDS = ("allergies", "past_surgery", "other_medical_conditions")

_STATUS = {
    ResultKind.IDENTIFIED: 200,
    ResultKind.NO_FACE_DETECTED: 400,
    ResultKind.INPUT_ERROR: 400,
    ResultKind.NO_GALLERY_MATCH: 404,
}

_DETAILS = {
    ResultKind.NO_FACE_DETECTED: "No face detected in the image; ensure the face is clearly visible and well-lit",
    ResultKind.NO_GALLERY_MATCH: "Could not find a matching face among enrolled identities",
}


def format_confidence(confidence: float) -> str:
    return f"{confidence:.2f}%"


def _profile_payload(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    raw = raw or {}
    profile: Dict[str, Any] = {key: raw.get(key) for key in PROFILE_FIELDS}
    for key in OPTIONAL_PROFILE_FIELDS:
        profile[key] = raw.get(key) or "None"
    return profile


def build_response(
    result: VerificationResult, profiles: Optional[ProfileDirectory] = None
) -> Tuple[int, Dict[str, Any]]:
    """Return (status, payload) for a verification outcome."""
    status = _STATUS[result.kind]
    if isinstance(result, Identified):
        payload: Dict[str, Any] = {
            "kind": result.kind.value,
            "identity_id": result.identity_id,
            "confidence": result.confidence,
            "confidence_text": format_confidence(result.confidence),
        }
        if profiles is not None:
            payload["profile"] = _profile_payload(profiles.profile(result.identity_id))
        return status, payload
    if isinstance(result, InputError):
        detail = result.reason
    else:
        detail = _DETAILS[result.kind]
    return status, {"kind": result.kind.value, "detail": detail, "status": status}


def error_response(exc: FaceVerifyError) -> Tuple[int, Dict[str, Any]]:
    payload: Dict[str, Any] = {"kind": exc.kind, "detail": exc.detail, "status": exc.status}
    retryable = getattr(exc, "retryable", None)
    if retryable is not None:
        payload["retryable"] = retryable
    return exc.status, payload
