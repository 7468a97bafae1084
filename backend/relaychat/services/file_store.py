import hashlib
import os

import aiofiles
from fastapi import UploadFile

from relaychat.config import settings
from relaychat.errors import ValidationError
from relaychat.services.content import kind_for_mime, mime_for_filename


async def compute_md5(file: UploadFile) -> tuple[str, int]:
    md5 = hashlib.md5()
    size = 0
    await file.seek(0)
    while chunk := await file.read(8192):
        md5.update(chunk)
        size += len(chunk)
        if size > settings.max_upload_size:
            raise ValidationError("File too large")
    await file.seek(0)
    return md5.hexdigest(), size


def _relative_path(md5_hash: str, filename: str | None) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return os.path.join(md5_hash[:2], f"{md5_hash}{ext}")


async def store_file(file: UploadFile) -> dict:
    """Store an upload content-addressed and describe it for a message.

    Identical content is written once; the returned ``kind`` and
    ``mimeType`` are meant to be sent back verbatim with the message.
    """
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")

    md5_hash, size = await compute_md5(file)
    relative = _relative_path(md5_hash, file.filename)
    storage_path = os.path.join(settings.upload_dir, relative)

    if not os.path.exists(storage_path):
        os.makedirs(os.path.dirname(storage_path), exist_ok=True)
        async with aiofiles.open(storage_path, "wb") as f:
            await file.seek(0)
            while chunk := await file.read(8192):
                await f.write(chunk)

    content_type = file.content_type
    if not content_type or content_type == "application/octet-stream":
        content_type = mime_for_filename(file.filename, content_type)

    return {
        "url": f"{settings.upload_url_prefix.rstrip('/')}/{relative.replace(os.sep, '/')}",
        "kind": kind_for_mime(content_type),
        "mimeType": content_type,
        "filename": file.filename,
        "size": size,
    }
