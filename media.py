"""
Product image uploads.

Images are forwarded to Cloudinary and only the returned HTTPS URL is kept on
the product. The upload is staged through a file under UPLOAD_DIR which is
left in place afterwards.
"""

import logging
import os
import shutil
import time
from typing import Optional

import cloudinary
import cloudinary.uploader
from fastapi import UploadFile

import config

logger = logging.getLogger(__name__)

cloudinary.config(
    cloud_name=config.CLOUDINARY_CLOUD_NAME,
    api_key=config.CLOUDINARY_API_KEY,
    api_secret=config.CLOUDINARY_API_SECRET,
    secure=True,
)


class UploadError(Exception):
    pass


def _stage(file: UploadFile) -> str:
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    filename = f"{int(time.time() * 1000)}-{os.path.basename(file.filename)}"
    path = os.path.join(config.UPLOAD_DIR, filename)
    with open(path, "wb") as out:
        shutil.copyfileobj(file.file, out)
    return path


def upload_image(file: Optional[UploadFile], folder: str = config.PRODUCT_IMAGE_FOLDER) -> str:
    """Upload `file` into `folder` and return its secure URL, or "" when there is no file."""
    if file is None or not file.filename:
        return ""
    try:
        path = _stage(file)
        result = cloudinary.uploader.upload(
            path,
            folder=folder,
            use_filename=True,
            unique_filename=True,
        )
    except Exception as e:
        logger.exception("Image upload failed for %s", file.filename)
        raise UploadError(f"Image upload failed: {e}") from e
    return result.get("secure_url") or ""
