import pytest

from face_verify.decision_engine import confidence_from_distance, decide
from face_verify.face_types import Identified, MatchCandidate, NoGalleryMatch, ResultKind


def test_decide_without_candidate_is_no_gallery_match():
    assert decide(None, 0.6) == NoGalleryMatch()


def test_decide_rejects_distance_above_threshold():
    result = decide(MatchCandidate(identity_id="A", distance=0.61), 0.6)
    assert result.kind is ResultKind.NO_GALLERY_MATCH


def test_decide_accepts_distance_equal_to_threshold():
    result = decide(MatchCandidate(identity_id="A", distance=0.6), 0.6)
    assert isinstance(result, Identified)
    assert result.identity_id == "A"
    assert result.confidence == pytest.approx(40.0)


def test_decide_ignores_invalid_candidate():
    result = decide(MatchCandidate(identity_id="A", distance=0.1, valid=False), 0.6)
    assert result == NoGalleryMatch()


def test_confidence_at_zero_distance_is_100():
    assert confidence_from_distance(0.0) == 100.0


def test_confidence_is_clamped_to_range():
    assert confidence_from_distance(1.7) == 0.0
    assert 0.0 <= confidence_from_distance(0.999) <= 100.0


def test_confidence_is_non_increasing_in_distance():
    distances = [0.0, 0.05, 0.2, 0.45, 0.6, 0.61, 0.9, 1.0, 1.5]
    scores = [confidence_from_distance(d) for d in distances]
    assert scores == sorted(scores, reverse=True)


def test_confidence_rounds_to_two_decimals():
    assert confidence_from_distance(0.45) == 55.0
    assert confidence_from_distance(0.1234) == 87.66
