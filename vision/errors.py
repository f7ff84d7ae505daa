"""
Error taxonomy for the Rekognition pipeline.

Every failure the pipeline can surface is a VisionError carrying an
ErrorKind. Raw AWS error codes are only ever looked at in
classify_remote_error(); the rest of the code branches on kinds.

Propagation:
    ConfigurationError, InvalidInput, DownloadFailed, TooLarge
        raised before any remote call is made
    RemoteServiceError, NoFaceDetected
        raised by the client wrapper; captured per feature during
        analysis, propagated whole from compare_faces()
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    CONFIGURATION = "configuration"
    INVALID_INPUT = "invalid_input"
    DOWNLOAD_FAILED = "download_failed"
    TIMEOUT = "timeout"
    TOO_LARGE = "too_large"
    NO_FACE_DETECTED = "no_face_detected"
    INVALID_IMAGE_FORMAT = "invalid_image_format"
    IMAGE_TOO_LARGE = "image_too_large"
    ACCESS_DENIED = "access_denied"
    THROTTLED = "throttled"
    REMOTE_SERVICE = "remote_service"
    UNEXPECTED = "unexpected"


class VisionError(Exception):
    """Base class for every error the pipeline raises on purpose."""
    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ConfigurationError(VisionError):
    """Required AWS credentials are missing."""
    kind = ErrorKind.CONFIGURATION


class InvalidInput(VisionError):
    """Bad URL, wrong content type, unknown feature, missing image."""
    kind = ErrorKind.INVALID_INPUT


class DownloadFailed(VisionError):
    """Network failure while fetching the image."""
    kind = ErrorKind.DOWNLOAD_FAILED


class DownloadTimeout(DownloadFailed):
    kind = ErrorKind.TIMEOUT


class TooLarge(VisionError):
    """Image exceeds the acquisition size ceiling."""
    kind = ErrorKind.TOO_LARGE

    def __init__(self, message: str, size: Optional[int] = None, limit: Optional[int] = None):
        super().__init__(message)
        self.size = size
        self.limit = limit


class RemoteServiceError(VisionError):
    """Rekognition rejected or failed a request."""
    kind = ErrorKind.REMOTE_SERVICE

    def __init__(self, message: str, code: Optional[str] = None,
                 kind: Optional[ErrorKind] = None, operation: Optional[str] = None):
        super().__init__(message, kind)
        self.code = code
        self.operation = operation


class NoFaceDetected(RemoteServiceError):
    """CompareFaces found no face in the source or the target image."""
    kind = ErrorKind.NO_FACE_DETECTED


# AWS error code -> kind. InvalidParameterException is handled separately
# because its meaning depends on the operation.
# CompareFaces reports a faceless image as a bare InvalidParameterException,
# either with the generic message or one that mentions the face.
_NO_FACE_MESSAGES = ("request has invalid parameters", "face")


def _means_no_face(message: str) -> bool:
    text = (message or "").lower()
    return any(marker in text for marker in _NO_FACE_MESSAGES)


_CODE_KINDS = {
    "InvalidImageFormatException": ErrorKind.INVALID_IMAGE_FORMAT,
    "ImageTooLargeException": ErrorKind.IMAGE_TOO_LARGE,
    "AccessDeniedException": ErrorKind.ACCESS_DENIED,
    "UnrecognizedClientException": ErrorKind.ACCESS_DENIED,
    "InvalidSignatureException": ErrorKind.ACCESS_DENIED,
    "ExpiredTokenException": ErrorKind.ACCESS_DENIED,
    "ThrottlingException": ErrorKind.THROTTLED,
    "ProvisionedThroughputExceededException": ErrorKind.THROTTLED,
}


def classify_remote_error(exc: Exception, operation: str) -> VisionError:
    """
    Turn an exception raised by boto3 into a VisionError.

    Args:
        exc: Whatever the botocore call raised
        operation: Rekognition operation name, e.g. "CompareFaces"

    Returns:
        The classified error (never raises). Callers do `raise ... from exc`.
    """
    from botocore.exceptions import (
        BotoCoreError,
        ClientError,
        ConnectTimeoutError,
        NoCredentialsError,
        PartialCredentialsError,
        ReadTimeoutError,
    )

    if isinstance(exc, VisionError):
        return exc

    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return ConfigurationError(f"AWS credentials rejected by client: {exc}")

    if isinstance(exc, (ConnectTimeoutError, ReadTimeoutError)):
        return RemoteServiceError(
            f"Timed out talking to Rekognition: {exc}",
            kind=ErrorKind.TIMEOUT, operation=operation,
        )

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "")
        message = error.get("Message") or str(exc)

        if code == "InvalidParameterException" and operation == "CompareFaces":
            if _means_no_face(message):
                return NoFaceDetected(message, code=code, operation=operation)
            # e.g. "Minimum image height is 80 pixels": the user's image is at fault
            return RemoteServiceError(message, code=code, kind=ErrorKind.INVALID_INPUT, operation=operation)

        kind = _CODE_KINDS.get(code, ErrorKind.REMOTE_SERVICE)
        return RemoteServiceError(message, code=code, kind=kind, operation=operation)

    if isinstance(exc, BotoCoreError):
        return RemoteServiceError(str(exc), operation=operation)

    return RemoteServiceError(
        str(exc) or exc.__class__.__name__,
        kind=ErrorKind.UNEXPECTED, operation=operation,
    )
