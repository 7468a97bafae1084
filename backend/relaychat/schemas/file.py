from pydantic import BaseModel


class UploadOut(BaseModel):
    url: str
    kind: str
    mimeType: str
    filename: str
    size: int
