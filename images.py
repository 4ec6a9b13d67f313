"""
Product image storage adapter

Uploads go straight from the admin client to Cloudinary. The API only
needs to delete images when a product is removed, and that cleanup is
best effort. Without Cloudinary credentials the store has nothing to
delete from.
"""
import logging
import re
from typing import Iterable, Optional

import cloudinary
import cloudinary.uploader

import settings

logger = logging.getLogger("jaipurgadgets.images")


class ImageStore:
    """Deletes hosted images. The default store has nothing to delete from."""

    def delete(self, public_id: str) -> None:
        logger.debug("No image store configured, skipping %s", public_id)


class CloudinaryImageStore(ImageStore):
    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    def delete(self, public_id: str) -> None:
        result = cloudinary.uploader.destroy(public_id)
        outcome = (result or {}).get("result")
        if outcome != "ok":
            logger.warning("Cloudinary did not delete %s: %s", public_id, outcome)


def build_image_store() -> ImageStore:
    if settings.CLOUDINARY_CLOUD_NAME and settings.CLOUDINARY_API_KEY and settings.CLOUDINARY_API_SECRET:
        logger.info("Image store: cloudinary (%s)", settings.CLOUDINARY_CLOUD_NAME)
        return CloudinaryImageStore(settings.CLOUDINARY_CLOUD_NAME, settings.CLOUDINARY_API_KEY,
                                    settings.CLOUDINARY_API_SECRET)
    logger.info("Image store: none")
    return ImageStore()


_image_store: Optional[ImageStore] = None


def get_image_store() -> ImageStore:
    global _image_store
    if _image_store is None:
        _image_store = build_image_store()
    return _image_store


def public_id_from_url(url: str) -> Optional[str]:
    """``.../image/upload/v123/folder/name.jpg`` -> ``folder/name``"""
    parts = url.split("/")
    if "upload" not in parts:
        return None
    rest = parts[parts.index("upload") + 2:]
    if not rest:
        return None
    return re.sub(r"\.[^/.]+$", "", "/".join(rest))


def delete_product_images(store: ImageStore, urls: Iterable[str]) -> int:
    """Delete hosted images; failures are logged and ignored. Returns the number deleted."""
    deleted = 0
    for url in urls:
        if not url.startswith(("http://", "https://")):
            continue
        public_id = public_id_from_url(url)
        if not public_id:
            continue
        try:
            store.delete(public_id)
            deleted += 1
        except Exception:
            logger.exception("Error deleting image %s", url)
    return deleted
