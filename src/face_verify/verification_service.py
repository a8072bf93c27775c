from __future__ import annotations

import enum
import threading
import time
from typing import Optional

from .access import ensure_verifier
from .batch_matcher import BatchMatcher
from .decision_engine import decide
from .errors import (
    DecodeError,
    FaceVerifyError,
    GalleryUnavailableError,
    InputValidationError,
    InternalError,
    NoFaceDetectedError,
)
from .face_embedder import DescriptorExtractor
from .face_types import Caller, InputError, NoFaceDetected, VerificationResult
from .gallery_store import GalleryAccessor
from .log import get_logger
from .template_codec import DescriptorCache, TemplateCodec
from .verify_config import VerifierConfig

logger = get_logger(__name__)


class VerificationState(str, enum.Enum):
    RECEIVING_INPUT = "receiving_input"
    VALIDATING_IMAGE = "validating_image"
    EXTRACTING_QUERY = "extracting_query"
    FETCHING_GALLERY = "fetching_gallery"
    MATCHING = "matching"
    DECIDING = "deciding"
    DONE = "done"


class VerificationService:
    """End-to-end 1:N identification of one query image.

    The service holds no per-call state: the extractor handle (and the
    optional descriptor cache) are shared, everything else lives on the
    stack of ``verify``. Gallery failures and timeouts raise
    ``InternalError`` subclasses; every other outcome is returned as a
    ``VerificationResult``.
    """

    def __init__(
        self,
        extractor: DescriptorExtractor,
        gallery: GalleryAccessor,
        config: Optional[VerifierConfig] = None,
    ) -> None:
        self.config = config or VerifierConfig()
        self.extractor = extractor
        self.gallery = gallery
        cache = DescriptorCache(self.config.cache_size) if self.config.cache_size else None
        self.codec = TemplateCodec(extractor, dim=self.config.descriptor_dim, cache=cache)
        self.matcher = BatchMatcher(self.codec, batch_size=self.config.batch_size)

    def _enter(self, state: VerificationState) -> None:
        logger.debug("verification state -> %s", state.value)

    def validate_image(self, image_bytes: Optional[bytes]) -> bytes:
        if not image_bytes:
            raise InputValidationError("No photo provided or empty image payload")
        if len(image_bytes) > self.config.max_image_bytes:
            raise InputValidationError(
                f"Image file too large: {len(image_bytes)} bytes exceeds "
                f"{self.config.max_image_bytes}"
            )
        return bytes(image_bytes)

    def verify(
        self,
        image_bytes: Optional[bytes],
        cancel_event: Optional[threading.Event] = None,
        timeout_s: Optional[float] = None,
    ) -> VerificationResult:
        self._enter(VerificationState.RECEIVING_INPUT)
        timeout = timeout_s if timeout_s is not None else self.config.request_timeout_s
        deadline = time.monotonic() + timeout if timeout is not None else None

        self._enter(VerificationState.VALIDATING_IMAGE)
        try:
            payload = self.validate_image(image_bytes)
        except InputValidationError as exc:
            logger.info("Rejected input: %s", exc.detail)
            return InputError(reason=exc.detail)

        self._enter(VerificationState.EXTRACTING_QUERY)
        try:
            query = self.extractor.extract(payload)
        except NoFaceDetectedError:
            logger.info("No face detected in query image")
            self._enter(VerificationState.DONE)
            return NoFaceDetected()
        except DecodeError as exc:
            logger.info("Query image could not be decoded: %s", exc.detail)
            self._enter(VerificationState.DONE)
            return InputError(reason=exc.detail)
        except FaceVerifyError:
            raise
        except Exception as exc:
            raise InternalError(f"query extraction failed: {exc}") from exc

        self._enter(VerificationState.FETCHING_GALLERY)
        try:
            # Read exactly once; the rest of the call only uses this list.
            snapshot = list(self.gallery.snapshot())
        except GalleryUnavailableError:
            raise
        except Exception as exc:
            raise GalleryUnavailableError(f"gallery snapshot failed: {exc}") from exc
        logger.info("Matching query against %d enrolled identities", len(snapshot))

        self._enter(VerificationState.MATCHING)
        best, summary = self.matcher.find_best(
            query, snapshot, cancel_event=cancel_event, deadline=deadline
        )

        self._enter(VerificationState.DECIDING)
        result = decide(best, self.config.match_threshold)
        logger.info(
            "Verification finished: %s (threshold=%.2f, compared=%d, skipped=%d)",
            result.kind.value,
            self.config.match_threshold,
            summary.compared,
            summary.skipped_missing + summary.skipped_corrupt,
        )
        self._enter(VerificationState.DONE)
        return result

    def verify_for(
        self,
        caller: Caller,
        image_bytes: Optional[bytes],
        cancel_event: Optional[threading.Event] = None,
        timeout_s: Optional[float] = None,
    ) -> VerificationResult:
        ensure_verifier(caller)
        return self.verify(image_bytes, cancel_event=cancel_event, timeout_s=timeout_s)
