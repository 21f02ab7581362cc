"""Image hosting — Cloudinary signed uploads over plain HTTPS.

Learn: Message images and profile pictures arrive as data URIs (or URLs)
in the JSON body. We hand them to Cloudinary's upload API and store only
the returned `secure_url`.

A signed upload needs: api_key, timestamp, and
    signature = sha1("timestamp=<ts>" + api_secret)
No SDK required — one multipart POST with httpx.
"""

import hashlib
import time

import httpx
import structlog

from chatify.config import settings

logger = structlog.get_logger()

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


class ImageUploadError(Exception):
    """Raised when an image can't be uploaded to the image host."""


class ImageHost:
    """Thin client for Cloudinary's image upload endpoint."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def sign(self, timestamp: int) -> str:
        return hashlib.sha1(
            f"timestamp={timestamp}{self.api_secret}".encode()
        ).hexdigest()

    async def upload(self, image: str) -> str:
        """Upload a data URI or remote URL. Returns the hosted https URL."""
        if not self.configured:
            raise ImageUploadError("Image hosting is not configured")

        timestamp = int(time.time())
        form = {
            "file": image,
            "api_key": self.api_key,
            "timestamp": str(timestamp),
            "signature": self.sign(timestamp),
        }
        url = f"{CLOUDINARY_API_BASE}/{self.cloud_name}/image/upload"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                r = await client.post(url, data=form)
        except httpx.HTTPError as e:
            raise ImageUploadError(f"Upload request failed: {e}") from e

        if r.status_code != 200:
            logger.warning(
                "media.upload_rejected", status=r.status_code, body=r.text[:200]
            )
            raise ImageUploadError(f"Image host returned {r.status_code}")

        secure_url = r.json().get("secure_url")
        if not secure_url:
            raise ImageUploadError("Image host response has no secure_url")
        return secure_url


def get_image_host() -> ImageHost:
    """FastAPI dependency — image host from settings (override in tests)."""
    return ImageHost(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
    )
