from __future__ import annotations

import base64
import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .errors import GalleryUnavailableError
from .face_types import EnrollmentRecord


class GalleryAccessor(Protocol):
    def snapshot(self) -> Sequence[EnrollmentRecord]:
        """Enrolled records with a stored template or photo, in a fixed order."""
        ...


class ProfileDirectory(Protocol):
    def profile(self, identity_id: str) -> Optional[Dict[str, Any]]:
        ...


@dataclass
class StoredIdentity:
    identity_id: str
    template: Optional[bytes] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        encoded = base64.b64encode(self.template).decode("ascii") if self.template else None
        return {"identity_id": self.identity_id, "template": encoded, "metadata": self.metadata}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StoredIdentity":
        raw = payload.get("template")
        return cls(
            identity_id=str(payload["identity_id"]),
            template=base64.b64decode(raw) if raw else None,
            metadata=dict(payload.get("metadata") or {}),
        )


class JsonGalleryStore:
    """File-backed gallery used by the CLI.

    Every ``snapshot()`` re-reads the file, so enrollments made by another
    process show up on the next verification.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, StoredIdentity]:
        if not self.path.exists():
            return {}
        text = self.path.read_text()
        if not text.strip():
            return {}
        data = json.loads(text)
        return {entry["identity_id"]: StoredIdentity.from_dict(entry) for entry in data}

    def _save(self, identities: Dict[str, StoredIdentity]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [identity.to_dict() for identity in identities.values()]
        # Write then rename so readers never see a half-written file.
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        os.replace(tmp, self.path)

    def snapshot(self) -> List[EnrollmentRecord]:
        try:
            identities = self._load()
        except (OSError, ValueError, KeyError) as exc:
            raise GalleryUnavailableError(f"gallery {self.path} could not be read: {exc}") from exc
        return [
            EnrollmentRecord(
                identity_id=identity.identity_id,
                raw_template=identity.template,
                metadata=dict(identity.metadata),
            )
            for identity in identities.values()
            if identity.template
        ]

    def profile(self, identity_id: str) -> Optional[Dict[str, Any]]:
        identity = self._load().get(identity_id)
        if identity is None:
            return None
        return dict(identity.metadata)

    def list_identities(self) -> List[str]:
        return sorted(self._load().keys())

    def has_identity(self, identity_id: str) -> bool:
        return identity_id in self._load()

    def enroll(
        self,
        identity_id: str,
        template: bytes,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Add or replace an identity's photo/template; metadata keys are merged."""
        identities = self._load()
        current = identities.get(identity_id) or StoredIdentity(identity_id=identity_id)
        current.template = template
        if metadata:
            current.metadata.update(metadata)
        identities[identity_id] = current
        self._save(identities)

    def remove(self, identity_id: str) -> bool:
        identities = self._load()
        if identity_id not in identities:
            return False
        del identities[identity_id]
        self._save(identities)
        return True

    def stats(self) -> Dict[str, object]:
        identities = self._load()
        details = [
            {
                "identity_id": identity.identity_id,
                "has_template": bool(identity.template),
                "template_bytes": len(identity.template) if identity.template else 0,
            }
            for identity in identities.values()
        ]
        return {
            "total": len(identities),
            "with_template": sum(1 for item in details if item["has_template"]),
            "details": details,
        }
