from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from .cli_helpers import (
    build_config,
    exit_code_for,
    read_image,
    render_payload,
    render_stats,
)
from .errors import FaceVerifyError
from .face_embedder import FaceEmbedder
from .face_types import FaceDescriptor
from .gallery_store import JsonGalleryStore
from .log import configure_logging
from .responses import build_response, error_response
from .template_codec import TemplateCodec
from .verification_service import VerificationService

app = typer.Typer(add_completion=False, help="1:N face identification against an enrolled gallery.")

_DEFAULT_GALLERY = Path("gallery/identities.json")


@app.command()
def verify(
    image: Path = typer.Argument(..., help="Query photo (JPEG/PNG)."),
    gallery_path: Path = typer.Option(_DEFAULT_GALLERY, "--gallery", help="Gallery store path."),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", help="Maximum descriptor distance accepted as a match."
    ),
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", help="Gallery entries processed concurrently per batch."
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Request timeout in seconds."),
    min_confidence: Optional[float] = typer.Option(
        None, "--min-confidence", help="Minimum face detection confidence."
    ),
    as_json: bool = typer.Option(False, "--json/--no-json", help="Print the raw JSON payload."),
    verbose: bool = typer.Option(False, "--verbose/--quiet", help="Log per-entry progress."),
) -> None:
    configure_logging(verbose)
    config = build_config(threshold, batch_size, timeout, min_confidence)
    payload_bytes = read_image(image)
    store = JsonGalleryStore(gallery_path)
    try:
        service = VerificationService(FaceEmbedder(config), store, config)
        result = service.verify(payload_bytes)
        status, payload = build_response(result, profiles=store)
    except FaceVerifyError as exc:
        status, payload = error_response(exc)
    render_payload(status, payload, as_json)
    raise typer.Exit(code=exit_code_for(status))


@app.command()
def enroll(
    identity_id: str = typer.Argument(..., help="Identity to add or update."),
    photo: Path = typer.Argument(..., help="Enrollment photo."),
    gallery_path: Path = typer.Option(_DEFAULT_GALLERY, "--gallery", help="Gallery store path."),
    as_template: bool = typer.Option(
        False,
        "--as-template/--as-photo",
        help="Store the extracted descriptor instead of the photo.",
    ),
    name: Optional[str] = typer.Option(None, "--name"),
    blood_group: Optional[str] = typer.Option(None, "--blood-group"),
    emergency_contact: Optional[str] = typer.Option(None, "--emergency-contact"),
    allergies: Optional[str] = typer.Option(None, "--allergies"),
) -> None:
    configure_logging(False)
    raw = read_image(photo)
    config = build_config()
    if len(raw) > config.max_image_bytes:
        typer.secho("Enrollment photo exceeds the size limit.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if as_template:
        try:
            embedder = FaceEmbedder(config)
            descriptor: FaceDescriptor = embedder.extract(raw)
        except FaceVerifyError as exc:
            typer.secho(f"Enrollment failed: {exc.detail}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=exit_code_for(exc.status)) from exc
        raw = TemplateCodec(embedder, dim=config.descriptor_dim).encode(descriptor)
    metadata = {
        key: value
        for key, value in {
            "name": name,
            "blood_group": blood_group,
            "emergency_contact": emergency_contact,
            "allergies": allergies,
        }.items()
        if value is not None
    }
    store = JsonGalleryStore(gallery_path)
    store.enroll(identity_id, raw, metadata)
    typer.secho(f"Enrolled {identity_id} ({len(raw)} bytes)", fg=typer.colors.GREEN)


@app.command()
def remove(
    identity_id: str = typer.Argument(...),
    gallery_path: Path = typer.Option(_DEFAULT_GALLERY, "--gallery", help="Gallery store path."),
) -> None:
    store = JsonGalleryStore(gallery_path)
    if not store.remove(identity_id):
        typer.secho(f"Identity {identity_id} not found", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho(f"Removed {identity_id}", fg=typer.colors.GREEN)


@app.command("gallery-stats")
def gallery_stats(
    gallery_path: Path = typer.Option(_DEFAULT_GALLERY, "--gallery", help="Gallery store path."),
) -> None:
    render_stats(JsonGalleryStore(gallery_path).stats())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
