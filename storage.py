"""Image storage backed by Cloudinary. Only URLs and public ids are persisted."""

import io
import logging
from typing import Any, Dict, List, Optional

import cloudinary
import cloudinary.uploader

import config
from errors import UpstreamError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024

RESTAURANT_TRANSFORMATION = [{"width": 800, "height": 600, "crop": "fill"}]
MENU_ITEM_TRANSFORMATION = [{
    "width": 600,
    "height": 450,
    "crop": "fill",
    "gravity": "auto",
    "quality": "auto:best",
    "fetch_format": "auto",
}]


class ImageStorage:
    def __init__(self):
        self.enabled = config.cloudinary_configured()
        if not self.enabled:
            return
        if config.CLOUDINARY_URL:
            cloudinary.config(cloudinary_url=config.CLOUDINARY_URL, secure=True)
        else:
            cloudinary.config(
                cloud_name=config.CLOUDINARY_CLOUD_NAME,
                api_key=config.CLOUDINARY_API_KEY,
                api_secret=config.CLOUDINARY_API_SECRET,
                secure=True,
            )
        logger.info("Cloudinary configured")

    def upload(self, data: bytes, folder: str, transformation: Optional[List[Dict[str, Any]]] = None) -> Dict[str, str]:
        if not self.enabled:
            raise UpstreamError("Image storage is not configured")
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(data),
                folder=folder,
                resource_type="image",
                transformation=transformation,
            )
        except Exception as e:
            raise UpstreamError(f"Image upload failed: {e}") from e
        return {"url": result.get("secure_url") or result.get("url"), "id": result.get("public_id")}

    def delete(self, public_id: str) -> bool:
        if not self.enabled:
            raise UpstreamError("Image storage is not configured")
        try:
            result = cloudinary.uploader.destroy(public_id)
        except Exception as e:
            raise UpstreamError(f"Image delete failed: {e}") from e
        return result.get("result") == "ok"


def delete_quietly(storage: ImageStorage, public_id: Optional[str]) -> None:
    """Best-effort removal; a storage failure never blocks the caller."""
    if not public_id:
        return
    try:
        storage.delete(public_id)
        logger.info("Deleted image %s from storage", public_id)
    except UpstreamError as e:
        logger.warning("Could not delete image %s: %s", public_id, e)


_storage: Optional[ImageStorage] = None


def get_storage() -> ImageStorage:
    global _storage
    if _storage is None:
        _storage = ImageStorage()
    return _storage
