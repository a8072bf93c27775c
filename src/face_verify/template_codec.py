from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from typing import Optional, Tuple

import numpy as np

from .errors import CorruptTemplateError, DecodeError, MissingTemplateError, NoFaceDetectedError
from .face_embedder import DescriptorExtractor
from .face_types import EnrollmentRecord, FaceDescriptor

_FLOAT = np.dtype("<f4")

# Leading bytes of the encoded image formats OpenCV reads.
_IMAGE_SIGNATURES = (
    b"\xff\xd8\xff",  # JPEG
    b"\x89PNG\r\n\x1a\n",
    b"GIF87a",
    b"GIF89a",
    b"II*\x00",  # TIFF
    b"MM\x00*",
)


def looks_like_image(raw: bytes) -> bool:
    if raw.startswith(b"RIFF") and raw[8:12] == b"WEBP":
        return True
    # BMP headers repeat the file size right after the two-byte tag.
    if raw.startswith(b"BM") and int.from_bytes(raw[2:6], "little") == len(raw):
        return True
    return raw.startswith(_IMAGE_SIGNATURES)


class DescriptorCache:
    """Bounded LRU of descriptors keyed by (identity id, content checksum).

    An updated photo hashes to a new key, so it is re-derived on the next call
    without any rebuild step.
    """

    def __init__(self, max_entries: int) -> None:
        self.max_entries = max_entries
        self._items: "OrderedDict[Tuple[str, str], FaceDescriptor]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def key(identity_id: str, raw: bytes) -> Tuple[str, str]:
        return identity_id, hashlib.sha256(raw).hexdigest()

    def get(self, key: Tuple[str, str]) -> Optional[FaceDescriptor]:
        with self._lock:
            item = self._items.get(key)
            if item is not None:
                self._items.move_to_end(key)
            return item

    def put(self, key: Tuple[str, str], descriptor: FaceDescriptor) -> None:
        with self._lock:
            self._items[key] = descriptor
            self._items.move_to_end(key)
            while len(self._items) > self.max_entries:
                self._items.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class TemplateCodec:
    """Turns stored template/photo bytes into descriptors.

    Bytes of exactly ``dim * 4`` length without an image signature are a
    little-endian float32 template; anything else is treated as a stored
    photo and re-extracted every call.
    """

    def __init__(
        self,
        extractor: DescriptorExtractor,
        dim: int,
        cache: Optional[DescriptorCache] = None,
    ) -> None:
        self.extractor = extractor
        self.dim = dim
        self.cache = cache

    @property
    def template_size(self) -> int:
        return self.dim * _FLOAT.itemsize

    def encode(self, descriptor: FaceDescriptor) -> bytes:
        if descriptor.dim != self.dim:
            raise ValueError(f"descriptor has {descriptor.dim} dims, expected {self.dim}")
        return descriptor.vector.astype(_FLOAT).tobytes()

    def decode(self, raw: Optional[bytes]) -> FaceDescriptor:
        if not raw:
            raise MissingTemplateError("no stored template or photo")
        if len(raw) == self.template_size and not looks_like_image(raw):
            vec = np.frombuffer(raw, dtype=_FLOAT)
            if not np.all(np.isfinite(vec)):
                raise CorruptTemplateError("template contains non-finite values")
            return FaceDescriptor(vector=vec)
        try:
            descriptor = self.extractor.extract(raw)
        except (DecodeError, NoFaceDetectedError) as exc:
            raise CorruptTemplateError(f"stored photo unusable: {exc.detail}") from exc
        if descriptor.dim != self.dim:
            raise CorruptTemplateError(
                f"stored photo produced {descriptor.dim} dims, expected {self.dim}"
            )
        return descriptor

    def decode_record(self, record: EnrollmentRecord) -> FaceDescriptor:
        if self.cache is None or not record.raw_template:
            return self.decode(record.raw_template)
        key = DescriptorCache.key(record.identity_id, record.raw_template)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        descriptor = self.decode(record.raw_template)
        self.cache.put(key, descriptor)
        return descriptor
