# Upload gate: size/type validation, then the quality check.

import logging
from typing import Optional

from fitcheck.adapters.image_source import sniff_mime, url_to_data_url
from fitcheck.core.config import QualityThresholds, UploadSettings
from fitcheck.core.image_quality import ImageInput, analyze, analyze_async, to_encoded_image
from fitcheck.core.messages import format_quality_error, translate
from fitcheck.domain.errors import FileTooLargeError, ImageQualityError, UnsupportedImageTypeError, UploadRejectedError
from fitcheck.domain.models import EncodedImage, QualityVerdict

logger = logging.getLogger("fitcheck.services.image_quality")


class ImageQualityService:
    """Decides whether an uploaded target or garment photo may enter the try-on workflow."""

    def __init__(self, thresholds: Optional[QualityThresholds] = None, settings: Optional[UploadSettings] = None):
        self.thresholds = thresholds or QualityThresholds()
        self.settings = settings or UploadSettings()

    @classmethod
    def from_env(cls) -> "ImageQualityService":
        return cls(QualityThresholds.from_env(), UploadSettings.from_env())

    def validate_upload(self, image_input: ImageInput) -> EncodedImage:
        language = self.settings.language
        try:
            image = to_encoded_image(image_input)
        except ValueError as e:
            logger.error(f"Could not read upload: {e}")
            raise UploadRejectedError(translate("imageProcessingError", language)) from e

        if image.size > self.settings.max_upload_bytes:
            raise FileTooLargeError(
                self._too_large_message(),
                size_bytes=image.size,
                limit_bytes=self.settings.max_upload_bytes,
            )

        mime = image.mime_type
        if mime == "application/octet-stream":
            mime = sniff_mime(image.data) or mime
        if mime not in self.settings.allowed_mime_types:
            raise UnsupportedImageTypeError(translate("unsupportedImageTypeError", language, mime=mime), mime_type=mime)

        return image if mime == image.mime_type else EncodedImage(data=image.data, mime_type=mime)

    def check(self, image_input: ImageInput) -> QualityVerdict:
        return analyze(image_input, self.thresholds)

    def _reject_if_poor(self, verdict: QualityVerdict) -> None:
        if verdict.is_acceptable:
            return
        message = format_quality_error(verdict.issues, self.settings.language)
        logger.info(f"Upload rejected: {[i.value for i in verdict.issues]}")
        raise ImageQualityError(message, verdict)

    def accept_upload(self, image_input: ImageInput) -> EncodedImage:
        """Validates and quality-checks an upload. Returns the image or raises an UploadRejectedError."""
        image = self.validate_upload(image_input)
        self._reject_if_poor(self.check(image))
        return image

    async def accept_upload_async(self, image_input: ImageInput) -> EncodedImage:
        image = self.validate_upload(image_input)
        self._reject_if_poor(await analyze_async(image, self.thresholds))
        return image

    def accept_url(self, url: str) -> EncodedImage:
        try:
            data_url = url_to_data_url(url, max_bytes=self.settings.max_upload_bytes, timeout=self.settings.fetch_timeout)
        except FileTooLargeError as e:
            raise FileTooLargeError(self._too_large_message(), e.size_bytes, e.limit_bytes) from e
        return self.accept_upload(data_url)

    def _too_large_message(self) -> str:
        size_mb = round(self.settings.max_upload_mb, 2)
        return translate("fileTooLargeError", self.settings.language, size=f"{size_mb:g}")
