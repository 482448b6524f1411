import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from fastapi import UploadFile

from core.config import Settings
from utils.logger import get_logger

logger = get_logger(__name__)


class CloudinaryStorage:
    """
    Object storage backed by Cloudinary.

    ``upload`` always removes the local file, whether or not the upload
    succeeded.
    """

    def __init__(self, config: Settings):
        self._credentials = {
            "cloud_name": config.CLOUDINARY_CLOUD_NAME,
            "api_key": config.CLOUDINARY_API_KEY,
            "api_secret": config.CLOUDINARY_API_SECRET,
        }
        self.configured = all(self._credentials.values())

    def upload(self, local_path: Optional[str]) -> Optional[str]:
        """Returns the durable URL of the uploaded file, or None on failure."""
        if not local_path:
            return None

        try:
            if not self.configured:
                logger.error("Upload skipped - storage credentials are not configured")
                return None

            logger.debug("Upload started", extra={"file": os.path.basename(local_path)})
            response = cloudinary.uploader.upload(
                local_path,
                resource_type="auto",
                secure=True,
                **self._credentials
            )
            url = response.get("secure_url") or response.get("url")

            logger.info("File uploaded", extra={"url": url})
            return url

        except (CloudinaryError, OSError) as e:
            logger.error(
                f"Upload failed: {str(e)}",
                extra={"error_type": type(e).__name__},
                exc_info=True
            )
            return None
        finally:
            Path(local_path).unlink(missing_ok=True)


def save_upload_to_temp(upload: Optional[UploadFile]) -> Optional[str]:
    """
    Persists a multipart upload to a temp file so it can be handed to storage.

    Returns None for a missing or empty upload.
    """
    if upload is None or not upload.filename:
        return None

    suffix = Path(upload.filename).suffix
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
        shutil.copyfileobj(upload.file, tmp)
        path = tmp.name

    if os.path.getsize(path) == 0:
        Path(path).unlink(missing_ok=True)
        return None

    return path
