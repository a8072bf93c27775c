from __future__ import annotations

import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import CorruptTemplateError, MissingTemplateError, VerificationTimeoutError
from .face_types import EnrollmentRecord, FaceDescriptor, MatchCandidate, MatchSummary
from .log import get_logger
from .template_codec import TemplateCodec

logger = get_logger(__name__)

# Per-entry outcome tags.
_MATCHED = "matched"
_MISSING = "missing"
_CORRUPT = "corrupt"


def euclidean_distance(a: FaceDescriptor, b: FaceDescriptor) -> float:
    if a.vector.shape != b.vector.shape:
        raise CorruptTemplateError(
            f"descriptor shape mismatch: {a.vector.shape} vs {b.vector.shape}"
        )
    diff = a.vector.astype(np.float64) - b.vector.astype(np.float64)
    return float(np.sqrt(np.dot(diff, diff)))


def partition(snapshot: Sequence[EnrollmentRecord], size: int) -> List[Sequence[EnrollmentRecord]]:
    return [snapshot[i : i + size] for i in range(0, len(snapshot), size)]


class BatchMatcher:
    """Scans a gallery snapshot in fixed-size concurrent batches.

    Each batch is fully joined before the next one starts, so at most
    ``batch_size`` entries are decoded at any time. Entry failures are
    skipped; only cancellation aborts the scan.
    """

    def __init__(self, codec: TemplateCodec, batch_size: int = 5) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.codec = codec
        self.batch_size = batch_size

    def _evaluate(
        self, query: FaceDescriptor, record: EnrollmentRecord
    ) -> Tuple[str, Optional[MatchCandidate]]:
        if not record.has_template:
            logger.debug("Identity %s has no stored template; skipped", record.identity_id)
            return _MISSING, None
        try:
            descriptor = self.codec.decode_record(record)
            distance = euclidean_distance(query, descriptor)
        except MissingTemplateError:
            return _MISSING, None
        except Exception as exc:
            # Never abort the scan for a single unusable entry.
            logger.warning("Skipping identity %s: %s", record.identity_id, exc)
            return _CORRUPT, None
        logger.debug("Distance for identity %s: %.4f", record.identity_id, distance)
        return _MATCHED, MatchCandidate(identity_id=record.identity_id, distance=distance)

    def find_best(
        self,
        query: FaceDescriptor,
        snapshot: Sequence[EnrollmentRecord],
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> Tuple[Optional[MatchCandidate], MatchSummary]:
        """Return the minimum-distance candidate (or None) and scan counters.

        ``deadline`` is a ``time.monotonic()`` timestamp. Exact distance ties
        keep the entry that comes first in snapshot order.
        """
        summary = MatchSummary()
        best: Optional[MatchCandidate] = None
        batches = partition(snapshot, self.batch_size)
        if not batches:
            return None, summary

        executor = ThreadPoolExecutor(
            max_workers=self.batch_size, thread_name_prefix="face-verify-batch"
        )
        try:
            for batch_idx, batch in enumerate(batches):
                self._check_cancelled(cancel_event, deadline)
                logger.debug("Processing batch %d of %d", batch_idx + 1, len(batches))
                futures = [executor.submit(self._evaluate, query, rec) for rec in batch]
                self._join(futures, cancel_event, deadline)
                summary.batches += 1
                for future in futures:
                    outcome, candidate = future.result()
                    summary.scanned += 1
                    if outcome == _MISSING:
                        summary.skipped_missing += 1
                        continue
                    if outcome == _CORRUPT:
                        summary.skipped_corrupt += 1
                        continue
                    summary.compared += 1
                    if best is None or candidate.distance < best.distance:
                        best = candidate
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if best is not None:
            logger.info(
                "Best candidate %s at distance %.4f (%d compared, %d skipped)",
                best.identity_id,
                best.distance,
                summary.compared,
                summary.skipped_missing + summary.skipped_corrupt,
            )
        return best, summary

    def _join(
        self,
        futures: List[Future],
        cancel_event: Optional[threading.Event],
        deadline: Optional[float],
    ) -> None:
        pending = set(futures)
        while pending:
            timeout = 0.05
            if deadline is not None:
                timeout = min(timeout, max(0.0, deadline - time.monotonic()))
            _, pending = wait(pending, timeout=timeout, return_when=FIRST_EXCEPTION)
            if pending:
                try:
                    self._check_cancelled(cancel_event, deadline)
                except VerificationTimeoutError:
                    for future in pending:
                        future.cancel()
                    raise

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event], deadline: Optional[float]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise VerificationTimeoutError("verification cancelled")
        if deadline is not None and time.monotonic() >= deadline:
            raise VerificationTimeoutError("verification timed out")
