import json

import numpy as np
from typer.testing import CliRunner

from face_verify import cli
from face_verify.errors import NoFaceDetectedError
from face_verify.face_types import FaceDescriptor
from face_verify.gallery_store import JsonGalleryStore

runner = CliRunner()


class _FakeEmbedder:
    by_photo = {
        b"query": [0.0, 0.0, 0.0, 0.0],
        b"alice-photo": [0.3, 0.0, 0.0, 0.0],
        b"bob-photo": [0.9, 0.0, 0.0, 0.0],
    }

    def __init__(self, config=None):
        self.config = config

    def extract(self, image_bytes):
        vec = self.by_photo.get(image_bytes)
        if vec is None:
            raise NoFaceDetectedError("No face detected in the image")
        return FaceDescriptor(vector=np.asarray(vec, dtype=np.float32))


def _setup(tmp_path, monkeypatch):
    monkeypatch.setenv("FACE_VERIFY_DESCRIPTOR_DIM", "4")
    monkeypatch.setattr(cli, "FaceEmbedder", _FakeEmbedder)
    gallery = tmp_path / "gallery.json"
    for name in ("alice", "bob"):
        photo = tmp_path / f"{name}.jpg"
        photo.write_bytes(f"{name}-photo".encode())
        result = runner.invoke(
            cli.app, ["enroll", name, str(photo), "--gallery", str(gallery), "--name", name.title()]
        )
        assert result.exit_code == 0, result.output
    return gallery


def test_verify_reports_match_as_json(tmp_path, monkeypatch):
    gallery = _setup(tmp_path, monkeypatch)
    query = tmp_path / "query.jpg"
    query.write_bytes(b"query")

    result = runner.invoke(cli.app, ["verify", str(query), "--gallery", str(gallery), "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["identity_id"] == "alice"
    assert payload["confidence_text"] == "70.00%"
    assert payload["profile"]["name"] == "Alice"


def test_verify_without_face_exits_with_client_error(tmp_path, monkeypatch):
    gallery = _setup(tmp_path, monkeypatch)
    query = tmp_path / "wall.jpg"
    query.write_bytes(b"wall")

    result = runner.invoke(cli.app, ["verify", str(query), "--gallery", str(gallery), "--json"])

    assert result.exit_code == 1
    assert json.loads(result.output)["kind"] == "no_face_detected"


def test_verify_threshold_option(tmp_path, monkeypatch):
    gallery = _setup(tmp_path, monkeypatch)
    query = tmp_path / "query.jpg"
    query.write_bytes(b"query")

    result = runner.invoke(
        cli.app,
        ["verify", str(query), "--gallery", str(gallery), "--threshold", "0.2", "--json"],
    )

    assert result.exit_code == 1
    assert json.loads(result.output)["kind"] == "no_gallery_match"


def test_enroll_as_template_stores_descriptor_bytes(tmp_path, monkeypatch):
    gallery = _setup(tmp_path, monkeypatch)
    photo = tmp_path / "carol.jpg"
    photo.write_bytes(b"alice-photo")

    result = runner.invoke(
        cli.app, ["enroll", "carol", str(photo), "--gallery", str(gallery), "--as-template"]
    )

    assert result.exit_code == 0, result.output
    records = {r.identity_id: r for r in JsonGalleryStore(gallery).snapshot()}
    assert len(records["carol"].raw_template) == 16


def test_gallery_stats_and_remove(tmp_path, monkeypatch):
    gallery = _setup(tmp_path, monkeypatch)

    stats = runner.invoke(cli.app, ["gallery-stats", "--gallery", str(gallery)])
    assert stats.exit_code == 0
    assert "alice" in stats.output

    removed = runner.invoke(cli.app, ["remove", "bob", "--gallery", str(gallery)])
    assert removed.exit_code == 0
    missing = runner.invoke(cli.app, ["remove", "bob", "--gallery", str(gallery)])
    assert missing.exit_code == 1
