"""
Media Hosting
=============

Unsigned image uploads to Cloudinary. Tickets, chat messages and profile
pictures store the returned `secure_url`.
"""

from abc import ABC, abstractmethod
from typing import Optional

from quixdesk.config import settings
from quixdesk.core import ConfigurationException, ExternalServiceException, ValidationException
from quixdesk.shared.infrastructure.http import ResilientHttpClient
from quixdesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
MAX_IMAGE_BYTES = 10 * 1024 * 1024


class IMediaUploader(ABC):
    """Interface for image hosting."""

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def upload(self, filename: str, content: bytes, content_type: str) -> str:
        """Upload an image and return its public URL."""

    async def close(self) -> None:
        """Release any held connections."""


def validate_image(filename: str, content: bytes, content_type: Optional[str]) -> None:
    """Reject empty, oversized or non-image payloads before uploading."""
    if not content:
        raise ValidationException(f"Image '{filename}' is empty")
    if len(content) > MAX_IMAGE_BYTES:
        raise ValidationException(
            f"Image '{filename}' exceeds {MAX_IMAGE_BYTES // (1024 * 1024)} MB",
            {"size": len(content)}
        )
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationException(
            f"Unsupported image type: {content_type}",
            {"allowed": sorted(ALLOWED_IMAGE_TYPES)}
        )


class CloudinaryUploader(ResilientHttpClient, IMediaUploader):
    """Cloudinary unsigned-preset uploader."""

    service_name = "Cloudinary"

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        upload_preset: Optional[str] = None,
        **kwargs
    ):
        kwargs.setdefault("timeout", settings.http_timeout_seconds)
        super().__init__(**kwargs)
        self._cloud_name = cloud_name if cloud_name is not None else settings.cloudinary_cloud_name
        self._upload_preset = upload_preset if upload_preset is not None else settings.cloudinary_upload_preset

    @property
    def is_configured(self) -> bool:
        return bool(self._cloud_name and self._upload_preset)

    async def upload(self, filename: str, content: bytes, content_type: str) -> str:
        """
        Upload an image.

        Raises:
            ValidationException: payload is not an acceptable image
            ConfigurationException: Cloudinary is not configured
            ExternalServiceException: upload failed after retries
        """
        validate_image(filename, content, content_type)
        if not self.is_configured:
            raise ConfigurationException("Cloudinary upload is not configured")

        url = CLOUDINARY_UPLOAD_URL.format(cloud_name=self._cloud_name)
        with log_latency(logger, "cloudinary_upload", image_name=filename, size=len(content)):
            response = await self._post(
                url,
                data={"upload_preset": self._upload_preset},
                files={"file": (filename, content, content_type)},
            )

        if response is None:
            raise ExternalServiceException(self.service_name, "image upload failed")

        try:
            secure_url = response.json()["secure_url"]
        except (ValueError, KeyError) as e:
            raise ExternalServiceException(
                self.service_name, f"unexpected upload response: {e}"
            )
        return secure_url


__all__ = [
    "IMediaUploader",
    "CloudinaryUploader",
    "validate_image",
    "ALLOWED_IMAGE_TYPES",
]
