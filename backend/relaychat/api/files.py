from fastapi import APIRouter, UploadFile

from relaychat.schemas.file import UploadOut
from relaychat.services.file_store import store_file

router = APIRouter(tags=["files"])


@router.post("/api/upload", response_model=UploadOut)
@router.post("/upload", response_model=UploadOut, include_in_schema=False)
async def upload_file(file: UploadFile | None = None):
    return await store_file(file)
