from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, Tuple

import cv2
import numpy as np

from .errors import DecodeError, ModelInitError, NoFaceDetectedError
from .face_types import FaceDescriptor
from .log import get_logger
from .verify_config import VerifierConfig

logger = get_logger(__name__)


class DescriptorExtractor(Protocol):
    def extract(self, image_bytes: bytes) -> FaceDescriptor:
        ...


def decode_image(image_bytes: bytes) -> np.ndarray:
    """Decode an encoded image (JPEG, PNG, ...) into a BGR array."""
    if not image_bytes:
        raise DecodeError("empty image payload")
    buffer = np.frombuffer(image_bytes, dtype=np.uint8)
    try:
        frame = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    except cv2.error as exc:
        raise DecodeError(f"image could not be decoded: {exc}") from exc
    if frame is None or frame.size == 0:
        raise DecodeError("image could not be decoded")
    return frame


def select_best_face(scores: Sequence[float], min_score: float) -> Optional[int]:
    """Index of the highest-scoring face at or above min_score.

    Equal scores resolve to the first face in detector order.
    """
    best_idx: Optional[int] = None
    best_score = -1.0
    for idx, score in enumerate(scores):
        if score < min_score:
            continue
        if score > best_score:
            best_idx = idx
            best_score = score
    return best_idx


class FaceEmbedder:
    """Single-face detection + embedding over raw image bytes.

    The InsightFace model is loaded once in the constructor and only read
    afterwards, so one instance can be shared by concurrent calls.
    """

    def __init__(self, config: Optional[VerifierConfig] = None) -> None:
        self.config = config or VerifierConfig()
        try:
            from insightface.app import FaceAnalysis
        except ImportError as exc:
            raise ModelInitError(
                "insightface is required. Install with: pip install insightface onnxruntime"
            ) from exc

        size = self.config.detector_input_size
        try:
            self._app = FaceAnalysis(
                name=self.config.model_name,
                providers=list(self.config.providers),
                allowed_modules=["detection", "recognition"],
            )
            # ctx_id=-1 uses CPU; det_size is the detector working resolution.
            self._app.prepare(
                ctx_id=-1,
                det_thresh=self.config.min_detection_confidence,
                det_size=(size, size),
            )
        except Exception as exc:
            raise ModelInitError(f"failed to load face model {self.config.model_name!r}: {exc}") from exc
        logger.info(
            "Face model %s loaded (det_size=%d, min_confidence=%.2f)",
            self.config.model_name,
            size,
            self.config.min_detection_confidence,
        )

    def detect(self, frame: np.ndarray) -> List[Tuple[float, np.ndarray]]:
        faces = self._app.get(frame)
        detections: List[Tuple[float, np.ndarray]] = []
        for face in faces:
            embedding = getattr(face, "normed_embedding", None)
            if embedding is None:
                continue
            det_score = float(getattr(face, "det_score", 0.0))
            detections.append((det_score, np.asarray(embedding, dtype=np.float32)))
        return detections

    def extract(self, image_bytes: bytes) -> FaceDescriptor:
        frame = decode_image(image_bytes)
        detections = self.detect(frame)
        idx = select_best_face(
            [score for score, _ in detections], self.config.min_detection_confidence
        )
        if idx is None:
            raise NoFaceDetectedError(
                "No face detected in the image; ensure the face is clearly visible and well-lit"
            )
        det_score, embedding = detections[idx]
        if embedding.shape[0] != self.config.descriptor_dim:
            raise DecodeError(
                f"model produced a {embedding.shape[0]}-d descriptor, expected {self.config.descriptor_dim}"
            )
        return FaceDescriptor(vector=embedding, det_score=det_score)
