import uuid
from pathlib import Path
from typing import Tuple
from datetime import datetime
import logging

from fastapi import UploadFile, HTTPException
from PIL import Image, ImageOps, UnidentifiedImageError

from app.core.config import settings

logger = logging.getLogger(__name__)

PURPOSES = ("thumbnail", "video", "other")

ALLOWED_MIME_TYPES = {
    "thumbnail": ["image/jpeg", "image/png", "image/webp"],
    "video": ["video/mp4", "video/quicktime", "video/webm"],
}


class StorageError(Exception):
    """Base exception for storage operations"""
    pass


def _max_size(purpose: str) -> int:
    if purpose == "video":
        return settings.MAX_VIDEO_SIZE
    return settings.MAX_FILE_SIZE


def _ensure_upload_directories():
    """Create upload directories if they don't exist"""
    base_path = Path(settings.UPLOAD_PATH)

    for purpose in PURPOSES:
        (base_path / purpose).mkdir(parents=True, exist_ok=True)


def _generate_filename(original_filename: str) -> str:
    """Generate unique filename with timestamp and UUID"""
    timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    unique_id = str(uuid.uuid4())[:8]

    # Clean original filename (remove path, keep only basename)
    clean_name = Path(original_filename).name.replace(" ", "_")

    return f"{timestamp}_{unique_id}_{clean_name}"


def save_file(file: UploadFile, purpose: str = "other") -> Tuple[str, str, str]:
    """
    Save uploaded file to local disk.

    Args:
        file: FastAPI UploadFile instance
        purpose: File purpose ("thumbnail", "video", "other")

    Returns:
        Tuple of (url, local_path, generated_filename)

    Raises:
        HTTPException: If validation fails or save operation fails
    """
    if purpose not in PURPOSES:
        raise HTTPException(
            status_code=400,
            detail=f"Purpose must be one of: {', '.join(PURPOSES)}"
        )

    if not file.filename:
        raise HTTPException(status_code=400, detail="Filename is required")

    allowed = ALLOWED_MIME_TYPES.get(purpose)
    if allowed and file.content_type not in allowed:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid file type. Allowed types: {', '.join(allowed)}"
        )

    max_size = _max_size(purpose)
    if file.size is not None and file.size > max_size:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {max_size} bytes"
        )

    try:
        _ensure_upload_directories()

        filename = _generate_filename(file.filename)

        base_path = Path(settings.UPLOAD_PATH)
        base_url = settings.UPLOAD_URL.rstrip('/')
        file_path = base_path / purpose / filename

        with open(file_path, "wb") as buffer:
            buffer.write(file.file.read())

        # Reset file pointer for potential reuse
        file.file.seek(0)

        url = f"{base_url}/{purpose}/{filename}"
        local_path = str(file_path)

        logger.info(f"File saved locally: {local_path}")
        return url, local_path, filename

    except OSError as e:
        logger.error(f"Failed to save file: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to save file: {str(e)}"
        )


def fit_thumbnail(local_path: str) -> Tuple[int, int]:
    """
    Shrink an uploaded course thumbnail in place so it fits the configured box.

    Returns:
        (width, height) of the stored image

    Raises:
        StorageError: If the file is not a readable image
    """
    box = (settings.THUMBNAIL_MAX_WIDTH, settings.THUMBNAIL_MAX_HEIGHT)
    try:
        with Image.open(local_path) as img:
            img_format = img.format
            img = ImageOps.exif_transpose(img)
            if img.width > box[0] or img.height > box[1]:
                img = ImageOps.contain(img, box)
                img.save(local_path, format=img_format)
                logger.info(f"Thumbnail resized to {img.size}: {local_path}")
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        raise StorageError(f"Invalid image file {local_path}: {e}")


def delete_file(local_path: str) -> bool:
    """
    Delete file by local path.

    Returns:
        bool: True if file was deleted, False if file didn't exist or deletion failed
    """
    try:
        file_path = Path(local_path)
        if file_path.exists():
            file_path.unlink()
            logger.info(f"File deleted: {local_path}")
            return True
        logger.warning(f"File not found for deletion: {local_path}")
        return False
    except OSError as e:
        logger.error(f"Failed to delete file {local_path}: {e}")
        return False


def get_local_path(url: str) -> str:
    """
    Convert an upload URL back to its local filesystem path.

    Args:
        url: URL previously returned by save_file

    Returns:
        str: Local path, or the url unchanged if it is not an upload URL
    """
    base_url = settings.UPLOAD_URL.rstrip('/')
    if not url or not url.startswith(base_url + "/"):
        return url
    relative = url[len(base_url) + 1:]
    return str(Path(settings.UPLOAD_PATH) / relative)


def file_exists(local_path: str) -> bool:
    return Path(local_path).exists()
