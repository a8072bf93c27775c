import json
from pathlib import Path

import pytest

from face_verify.errors import GalleryUnavailableError
from face_verify.gallery_store import JsonGalleryStore


def test_enroll_and_snapshot_round_trip(tmp_path):
    store = JsonGalleryStore(tmp_path / "gallery.json")
    store.enroll("alice", b"\x01\x02photo", {"name": "Alice", "blood_group": "O+"})

    snapshot = store.snapshot()

    assert len(snapshot) == 1
    assert snapshot[0].identity_id == "alice"
    assert snapshot[0].raw_template == b"\x01\x02photo"
    assert snapshot[0].metadata["blood_group"] == "O+"


def test_snapshot_excludes_identities_without_template(tmp_path):
    path = tmp_path / "gallery.json"
    path.write_text(
        json.dumps(
            [
                {"identity_id": "ghost", "template": None, "metadata": {}},
                {"identity_id": "bob", "template": "cGhvdG8=", "metadata": {}},
            ]
        )
    )
    store = JsonGalleryStore(path)
    assert [r.identity_id for r in store.snapshot()] == ["bob"]
    assert store.has_identity("ghost") is True


def test_missing_file_is_empty_gallery(tmp_path):
    store = JsonGalleryStore(tmp_path / "nope.json")
    assert store.snapshot() == []
    assert store.list_identities() == []


def test_unreadable_file_raises_gallery_unavailable(tmp_path):
    path = tmp_path / "gallery.json"
    path.write_text("{not json")
    with pytest.raises(GalleryUnavailableError):
        JsonGalleryStore(path).snapshot()


def test_re_enroll_replaces_photo_and_merges_metadata(tmp_path):
    store = JsonGalleryStore(tmp_path / "gallery.json")
    store.enroll("alice", b"old", {"name": "Alice"})
    store.enroll("alice", b"new", {"allergies": "penicillin"})

    assert store.snapshot()[0].raw_template == b"new"
    assert store.profile("alice") == {"name": "Alice", "allergies": "penicillin"}


def test_changes_from_another_instance_are_visible(tmp_path):
    path = tmp_path / "gallery.json"
    reader = JsonGalleryStore(path)
    JsonGalleryStore(path).enroll("carol", b"photo")
    assert [r.identity_id for r in reader.snapshot()] == ["carol"]


def test_remove_identity(tmp_path):
    store = JsonGalleryStore(tmp_path / "gallery.json")
    store.enroll("alice", b"photo")

    assert store.remove("alice") is True
    assert store.remove("alice") is False
    assert store.has_identity("alice") is False


def test_stats_report_sizes_not_content(tmp_path):
    store = JsonGalleryStore(tmp_path / "gallery.json")
    store.enroll("alice", b"12345")
    store.enroll("bob", b"1234567")

    stats = store.stats()

    assert stats["total"] == 2
    assert stats["with_template"] == 2
    assert {d["identity_id"]: d["template_bytes"] for d in stats["details"]} == {"alice": 5, "bob": 7}
    assert "12345" not in json.dumps(stats)


def test_profile_of_unknown_identity_is_none(tmp_path):
    assert JsonGalleryStore(tmp_path / "gallery.json").profile("nobody") is None


def test_snapshot_reads_file_once(tmp_path, monkeypatch):
    store = JsonGalleryStore(tmp_path / "gallery.json")
    store.enroll("alice", b"photo")
    reads = []
    original = Path.read_text

    def _counting_read_text(self, *args, **kwargs):
        reads.append(self)
        return original(self, *args, **kwargs)

    monkeypatch.setattr(Path, "read_text", _counting_read_text)
    assert len(store.snapshot()) == 1
    assert len(reads) == 1
