"""Content-kind classification for messages and uploads.

A message is either text or a file reference. The kind is decided once, when
the message is created or the file is uploaded, and stored alongside it.
"""
import mimetypes
import os
from urllib.parse import urlparse

from relaychat.config import settings

KIND_TEXT = "text"
KIND_IMAGE = "image"
KIND_FILE = "file"

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg"}
FILE_EXTENSIONS = {
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".txt", ".zip", ".mp3", ".mp4", ".webm", ".wav", ".ogg",
}


def kind_for_mime(mime_type: str | None) -> str:
    if mime_type and (mime_type == KIND_IMAGE or mime_type.startswith("image/")):
        return KIND_IMAGE
    return KIND_FILE


def mime_for_filename(filename: str | None, fallback: str | None = None) -> str:
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or fallback or "application/octet-stream"


def _looks_like_upload(content: str) -> bool:
    parsed = urlparse(content)
    if parsed.scheme in ("http", "https"):
        return True
    return content.startswith(settings.upload_url_prefix.rstrip("/") + "/")


def classify(
    content: str,
    file_url: str | None = None,
    file_type: str | None = None,
) -> tuple[str, str | None, str | None]:
    """Return ``(kind, file_url, file_type)`` for a new message.

    Explicit ``file_url``/``file_type`` from an upload response win. Older
    clients send the upload URL as bare content; those are recognised by
    extension.
    """
    if file_url:
        mime = file_type or mime_for_filename(urlparse(file_url).path)
        return kind_for_mime(mime), file_url, mime

    text = content.strip()
    if " " in text or not _looks_like_upload(text):
        return KIND_TEXT, None, None

    ext = os.path.splitext(urlparse(text).path)[1].lower()
    if ext in IMAGE_EXTENSIONS:
        return KIND_IMAGE, text, mime_for_filename(text, "image/*")
    if ext in FILE_EXTENSIONS:
        return KIND_FILE, text, mime_for_filename(text)
    return KIND_TEXT, None, None
