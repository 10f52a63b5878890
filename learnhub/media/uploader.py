"""
Asset uploads (lesson videos, avatars)
Files go to Cloudinary through its signed REST upload endpoint
"""

import hashlib
import logging
import time
from typing import Optional

import httpx

from learnhub.config import Settings
from learnhub.errors import AssetUploadError, ValidationError

logger = logging.getLogger("learnhub.media")

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/{resource_type}/upload"

VIDEO_TYPES = {"video/mp4", "video/mkv", "video/x-matroska", "video/quicktime"}
IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


class AssetUploader:
    """upload(bytes, folder) -> url"""

    async def upload(self, data: bytes, folder: str, resource_type: str = "video") -> str:
        raise NotImplementedError


class CloudinaryUploader(AssetUploader):
    def __init__(
        self,
        settings: Settings,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.timeout = timeout
        self.transport = transport

    def _sign(self, params: dict) -> str:
        # Cloudinary authentication signature: params sorted by name, joined as
        # k=v with "&", API secret appended, SHA-1 hex digest. file, api_key,
        # resource_type and cloud_name are never signed.
        # https://cloudinary.com/documentation/authentication_signatures
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return hashlib.sha1((to_sign + self.settings.cloudinary_api_secret).encode()).hexdigest()

    async def upload(self, data: bytes, folder: str, resource_type: str = "video") -> str:
        if not self.settings.uploads_configured:
            raise AssetUploadError("Asset storage is not configured")

        params = {"folder": folder, "timestamp": int(time.time())}
        form = {
            **params,
            "api_key": self.settings.cloudinary_api_key,
            "signature": self._sign(params),
        }
        url = CLOUDINARY_UPLOAD_URL.format(
            cloud_name=self.settings.cloudinary_cloud_name,
            resource_type=resource_type,
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, data=form, files={"file": ("upload", data)})
        except httpx.HTTPError:
            logger.exception("Upload to folder %s failed", folder)
            raise AssetUploadError()

        if response.status_code != 200:
            logger.error("Upload rejected: status=%s folder=%s", response.status_code, folder)
            raise AssetUploadError()

        secure_url = response.json().get("secure_url")
        if not secure_url:
            raise AssetUploadError("Upload response missing URL")
        return secure_url


def validate_video(content_type: Optional[str], size: int, max_bytes: int) -> None:
    if content_type not in VIDEO_TYPES:
        raise ValidationError("Only video files are allowed")
    if size > max_bytes:
        raise ValidationError("Video exceeds maximum upload size")


def validate_image(content_type: Optional[str], size: int) -> None:
    if content_type not in IMAGE_TYPES:
        raise ValidationError("Only image files are allowed")
    if size > MAX_IMAGE_BYTES:
        raise ValidationError("Image exceeds maximum upload size")
