from __future__ import annotations

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import FileResponse, Response

from ..config import MEDIA_DIR
from ..identity import require_admin
from ..services.media_service import upload_media

router = APIRouter()


@router.get("/media/{media_path:path}")
def media(media_path: str):
    # Uploaded names are unique and never overwritten, so short caching is safe.
    p = (MEDIA_DIR / media_path).resolve()
    if not str(p).startswith(str(MEDIA_DIR.resolve())):
        return Response(status_code=400)
    if not p.exists() or not p.is_file():
        return Response(status_code=404)
    return FileResponse(p, headers={"Cache-Control": "public, max-age=60, must-revalidate"})


@router.post("/api/media/upload")
async def upload(request: Request, file: UploadFile = File(...)):
    ident = require_admin(request)
    if isinstance(ident, Response):
        return ident
    return await upload_media(file)
