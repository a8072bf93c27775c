from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional, Tuple

_ENV_PREFIX = "FACE_VERIFY_"


@dataclass(frozen=True)
class VerifierConfig:
    # Input guards
    max_image_bytes: int = 10 * 1024 * 1024

    # Detector / embedder
    min_detection_confidence: float = 0.3
    detector_input_size: int = 416
    descriptor_dim: int = 512
    model_name: str = "buffalo_l"
    providers: Tuple[str, ...] = ("CPUExecutionProvider",)

    # Matching
    batch_size: int = 5
    # Maximum Euclidean distance for a match. 0.6 is the calibration for
    # face-api 128-d descriptors; InsightFace normed embeddings give
    # distance = sqrt(2 - 2cos), so retune it for ArcFace models.
    match_threshold: float = 0.6

    # Request handling
    request_timeout_s: Optional[float] = 120.0
    cache_size: int = 0  # 0 disables the descriptor cache

    def __post_init__(self) -> None:
        if self.max_image_bytes <= 0:
            raise ValueError("max_image_bytes must be positive")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.match_threshold < 0:
            raise ValueError("match_threshold must be >= 0")
        if not 0.0 <= self.min_detection_confidence <= 1.0:
            raise ValueError("min_detection_confidence must be in [0, 1]")
        if self.detector_input_size <= 0 or self.detector_input_size % 32:
            raise ValueError("detector_input_size must be a positive multiple of 32")
        if self.descriptor_dim < 1:
            raise ValueError("descriptor_dim must be >= 1")
        if self.request_timeout_s is not None and self.request_timeout_s <= 0:
            raise ValueError("request_timeout_s must be positive")
        if self.cache_size < 0:
            raise ValueError("cache_size must be >= 0")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "VerifierConfig":
        """Build a config from FACE_VERIFY_* variables, e.g. FACE_VERIFY_BATCH_SIZE=8."""
        env = os.environ if environ is None else environ
        overrides = {}
        for item in fields(cls):
            raw = env.get(_ENV_PREFIX + item.name.upper())
            if raw is None or raw == "":
                continue
            overrides[item.name] = _parse(item.name, raw)
        return cls(**overrides)

    def with_overrides(self, **overrides: object) -> "VerifierConfig":
        # None means "not given" so CLI options can be passed straight through.
        given = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **given)


def _parse(name: str, raw: str) -> object:
    if name == "providers":
        return tuple(part.strip() for part in raw.split(",") if part.strip())
    if name == "model_name":
        return raw
    if name == "request_timeout_s":
        return None if raw.lower() in {"none", "off", "0"} else float(raw)
    if name in {"min_detection_confidence", "match_threshold"}:
        return float(raw)
    return int(raw)
