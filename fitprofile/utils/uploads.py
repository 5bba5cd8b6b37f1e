import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import HTTPException, UploadFile, status

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/jpg"}
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png"}


@asynccontextmanager
async def staged_upload(file: UploadFile) -> AsyncIterator[str]:
    """Write an uploaded image to a temporary file and yield its path."""
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported image type")

    extension = Path(file.filename or "").suffix.lower() or ".jpg"
    if extension not in ALLOWED_EXTENSIONS:
        extension = ".jpg"

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file upload")

    with tempfile.NamedTemporaryFile(suffix=extension, delete=False) as handle:
        handle.write(contents)
    path = Path(handle.name)
    try:
        yield str(path)
    finally:
        path.unlink(missing_ok=True)
