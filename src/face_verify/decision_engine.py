from __future__ import annotations

from typing import Optional

from .face_types import Identified, MatchCandidate, NoGalleryMatch, VerificationResult


def confidence_from_distance(distance: float) -> float:
    """Map a descriptor distance to a 0-100 presentation score.

    ``clamp((1 - distance) * 100, 0, 100)`` rounded to two decimals. It is
    non-increasing in distance and is NOT a calibrated match probability.
    """
    score = (1.0 - float(distance)) * 100.0
    return round(min(100.0, max(0.0, score)), 2)


def decide(best: Optional[MatchCandidate], threshold: float) -> VerificationResult:
    if best is None or not best.valid:
        return NoGalleryMatch()
    if best.distance > threshold:
        return NoGalleryMatch()
    return Identified(
        identity_id=best.identity_id,
        confidence=confidence_from_distance(best.distance),
        distance=best.distance,
    )
