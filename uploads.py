from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from errors import ValidationError

router = APIRouter(prefix="/api", tags=["upload"])


@router.post("/upload")
async def upload_image(request: Request, image: Optional[UploadFile] = File(None)):
    if image is None or not image.filename:
        raise ValidationError("No file uploaded")
    content = await image.read()
    storage = request.app.state.storage
    mimetype = image.content_type or "application/octet-stream"
    url = await run_in_threadpool(storage.save, image.filename, content, mimetype)
    return {"url": url}
