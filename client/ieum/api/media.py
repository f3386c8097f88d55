"""
Media storage: two-step uploads through a presigned URL, plus transcription.
"""
from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Union

from ieum.api.client import ApiClient
from ieum.core.errors import ApiError, ValidationError
from ieum.schemas.message import MediaItem, MediaType
from ieum.security.validators import InputValidator

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPES = {
    "audio": "audio/m4a",
    "image": "image/jpeg",
    "video": "video/mp4",
    "file": "application/octet-stream",
}
DEFAULT_EXTENSIONS = {"audio": "m4a", "image": "jpg", "video": "mp4", "file": "bin"}


def _guess_mime_type(file_name: str, media_type: str) -> str:
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or DEFAULT_MIME_TYPES[media_type]


class MediaService:
    def __init__(self, api: ApiClient):
        self.api = api

    def upload_media(self, path: Union[str, Path], media_type: MediaType) -> MediaItem:
        """
        Upload a local file and describe it as a message attachment.

        1. ask the backend for a presigned URL
        2. PUT the raw bytes straight to storage
        """
        path = Path(path)
        if not path.is_file():
            raise ValidationError("File does not exist")

        if media_type not in DEFAULT_MIME_TYPES:
            raise ValidationError(f"Unsupported media type: {media_type}")

        try:
            file_name = InputValidator.sanitize_filename(path.name)
        except ValidationError:
            file_name = f"file.{DEFAULT_EXTENSIONS[media_type]}"
        mime_type = _guess_mime_type(file_name, media_type)
        body = path.read_bytes()

        data = self.api.post("/media/upload-url", {
            "fileName": file_name,
            "fileType": mime_type,
            "mediaType": media_type,
            "fileSize": len(body),
        })
        upload_url = data.get("uploadUrl")
        file_key = data.get("fileKey")
        if not upload_url or not file_key:
            raise ApiError("Failed to get upload URL")

        self.api.put_presigned(upload_url, body, mime_type)
        logger.info("Uploaded %s (%d bytes) as %s", file_name, len(body), file_key)

        return MediaItem(
            type=media_type,
            key=file_key,
            url=upload_url.split("?")[0],
            file_name=file_name,
            mime_type=mime_type,
            file_size=len(body),
        )

    def transcribe_audio(self, path: Union[str, Path]) -> str:
        path = Path(path)
        if not path.is_file():
            raise ValidationError("File does not exist")

        mime_type = _guess_mime_type(path.name, "audio")
        with path.open("rb") as fh:
            data = self.api.upload_file("/transcribe", files={"file": (path.name, fh, mime_type)})

        return data.get("text") or ""
