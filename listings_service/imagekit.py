# listings_service/imagekit.py
"""
Thin client for the ImageKit upload and file APIs.

Requests authenticate with HTTP basic auth using the private key as the
username and an empty password.
"""
import logging
import secrets
import time
from typing import Dict, Iterable, Optional

import httpx

from common.config import (
    IMAGEKIT_API_URL,
    IMAGEKIT_PRIVATE_KEY,
    IMAGEKIT_UPLOAD_URL,
    IMAGEKIT_URL_ENDPOINT,
)

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
DEFAULT_FOLDER = "/escape-rooms"
DEFAULT_TAGS = ("escape-room",)


class ImageValidationError(ValueError):
    """Raised when an uploaded file is not an acceptable image."""


class ImageKitError(Exception):
    """Raised when ImageKit cannot be reached or refuses a request."""


def validate_image(content_type: Optional[str], size: int) -> None:
    """
    Check an upload against the size and type limits.

    Raises
    ------
    ImageValidationError
        If the file is empty, larger than 5 MB, or not JPEG/PNG/WebP.
    """
    if size == 0:
        raise ImageValidationError("No file provided")
    if size > MAX_IMAGE_BYTES:
        raise ImageValidationError("File size too large. Maximum size is 5MB.")
    if (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise ImageValidationError(
            "Invalid file type. Only JPEG, PNG, and WebP images are allowed."
        )


def unique_file_name(original_name: Optional[str]) -> str:
    ext = ""
    if original_name and "." in original_name:
        ext = "." + original_name.rsplit(".", 1)[-1].lower()
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext}"


def public_url(file_path: str) -> str:
    return f"{IMAGEKIT_URL_ENDPOINT.rstrip('/')}/{file_path.lstrip('/')}"


def upload_image(
    content: bytes,
    original_name: Optional[str],
    content_type: Optional[str],
    folder: str = DEFAULT_FOLDER,
    tags: Iterable[str] = DEFAULT_TAGS,
) -> Dict[str, str]:
    """
    Validate and upload an image, returning its public URL and file id.

    Parameters
    ----------
    content : bytes
        Raw file content.
    original_name : Optional[str]
        Client-side file name, used only for its extension.
    content_type : Optional[str]
        MIME type reported by the client.
    folder : str
        Destination folder in the media library.
    tags : Iterable[str]
        Tags attached to the file.

    Returns
    -------
    Dict[str, str]
        ``{"url": ..., "file_id": ...}``

    Raises
    ------
    ImageValidationError
        If the file fails validation.
    ImageKitError
        If the upload request fails.
    """
    validate_image(content_type, len(content))
    file_name = unique_file_name(original_name)

    try:
        response = httpx.post(
            IMAGEKIT_UPLOAD_URL,
            auth=(IMAGEKIT_PRIVATE_KEY, ""),
            files={"file": (file_name, content, content_type)},
            data={
                "fileName": file_name,
                "folder": folder,
                "tags": ",".join(tags),
                "useUniqueFileName": "true",
                "isPrivateFile": "false",
                "overwriteFile": "false",
            },
            timeout=30.0,
        )
    except httpx.RequestError as exc:
        logger.error(f"ImageKit upload failed: {exc}", extra={"dependency": "imagekit"})
        raise ImageKitError("Upload failed") from exc

    if response.status_code != 200:
        logger.error(
            f"ImageKit upload returned {response.status_code}",
            extra={"dependency": "imagekit"},
        )
        raise ImageKitError("Upload failed")

    result = response.json()
    return {"url": public_url(result["filePath"]), "file_id": result["fileId"]}


def delete_image(file_id: str) -> None:
    """
    Delete a file from the media library.

    Raises
    ------
    ImageKitError
        If the delete request fails.
    """
    try:
        response = httpx.delete(
            f"{IMAGEKIT_API_URL}/files/{file_id}",
            auth=(IMAGEKIT_PRIVATE_KEY, ""),
            timeout=10.0,
        )
    except httpx.RequestError as exc:
        logger.error(f"ImageKit delete failed: {exc}", extra={"dependency": "imagekit"})
        raise ImageKitError("Delete failed") from exc

    if response.status_code not in (200, 204):
        raise ImageKitError("Delete failed")
