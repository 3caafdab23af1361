from typing import Optional

from fitcheck.domain.models import QualityVerdict


class UploadRejectedError(ValueError):
    """Base class for uploads the gate refuses. `message` is user-facing."""

    def __init__(self, message: str, key: str = "imageProcessingError"):
        super().__init__(message)
        self.message = message
        self.key = key


class FileTooLargeError(UploadRejectedError):
    def __init__(self, message: str, size_bytes: int, limit_bytes: int):
        super().__init__(message, key="fileTooLargeError")
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class UnsupportedImageTypeError(UploadRejectedError):
    def __init__(self, message: str, mime_type: str):
        super().__init__(message, key="unsupportedImageTypeError")
        self.mime_type = mime_type


class ImageFetchError(UploadRejectedError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, key="imageFetchError")
        self.status_code = status_code


class ImageQualityError(UploadRejectedError):
    def __init__(self, message: str, verdict: QualityVerdict):
        super().__init__(message, key="imageQualityError")
        self.verdict = verdict
