from __future__ import annotations


class FaceVerifyError(Exception):
    # Machine-checkable kind and the conventional HTTP status class.
    kind: str = "internal_error"
    status: int = 500

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail


class InputValidationError(FaceVerifyError):
    """Malformed, empty or oversized image payload."""

    kind = "input_error"
    status = 400


class DecodeError(InputValidationError):
    pass


class NoFaceDetectedError(FaceVerifyError):
    kind = "no_face_detected"
    status = 400


class CorruptTemplateError(FaceVerifyError):
    """A stored template or photo could not be turned into a descriptor."""

    kind = "corrupt_template"


class MissingTemplateError(CorruptTemplateError):
    kind = "missing_template"


class AccessDeniedError(FaceVerifyError):
    kind = "access_denied"
    status = 403


class InternalError(FaceVerifyError):
    kind = "internal_error"
    status = 500
    retryable: bool = False


class GalleryUnavailableError(InternalError):
    retryable = True


class VerificationTimeoutError(InternalError):
    retryable = True


class ModelInitError(InternalError):
    pass
