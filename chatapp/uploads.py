import logging

import cloudinary
import cloudinary.uploader
from fastapi.concurrency import run_in_threadpool

from chatapp.config import settings

logger = logging.getLogger(__name__)


class ImageUploadError(Exception):
    pass


class ImageUploader:
    """Stores images on Cloudinary and hands back their public URL."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = "chatapp"):
        self.folder = folder
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True
        )

    async def upload(self, image: str) -> str:
        # The SDK call is blocking
        try:
            response = await run_in_threadpool(
                cloudinary.uploader.upload, image, folder=self.folder
            )
        except Exception as e:
            logger.error("Image upload failed: %s", e)
            raise ImageUploadError(str(e)) from e

        url = response.get("secure_url")
        if not url:
            raise ImageUploadError("Image host returned no URL")
        logger.info("Uploaded image %s", response.get("public_id"))
        return url


_uploader = None

def get_image_uploader() -> ImageUploader:
    global _uploader
    if _uploader is None:
        _uploader = ImageUploader(
            settings.CLOUDINARY_CLOUD_NAME,
            settings.CLOUDINARY_API_KEY,
            settings.CLOUDINARY_API_SECRET
        )
    return _uploader
