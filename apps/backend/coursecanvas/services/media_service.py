from __future__ import annotations

import io
import logging

from fastapi import UploadFile
from fastapi.responses import Response
from PIL import Image, UnidentifiedImageError

from ..config import MAX_UPLOAD_BYTES, MEDIA_DIR

logger = logging.getLogger("cc.media_service")

ALLOWED_PREFIXES = ("image/", "video/")
ALLOWED_TYPES = {"application/pdf"}


def _allowed(content_type: str) -> bool:
    return content_type.startswith(ALLOWED_PREFIXES) or content_type in ALLOWED_TYPES


def natural_size(data: bytes) -> tuple[int, int]:
    """Decoded pixel size of an image. Raises ValueError when the bytes are not a readable image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return int(img.width), int(img.height)
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"unreadable image: {e}") from e


async def upload_media(file: UploadFile) -> dict | Response:
    """
    Store an upload (scene background, image/video element, presentation file) under data/media
    and return its served src. Images also report their natural pixel size.
    """
    MEDIA_DIR.mkdir(parents=True, exist_ok=True)
    ct = (file.content_type or "").lower().split(";", 1)[0].strip()
    if not _allowed(ct):
        logger.warning("upload_media: 400 content type %r", ct)
        return Response(status_code=400, content="Only image/*, video/* and application/pdf are allowed", media_type="text/plain")

    # Basic filename sanitization + uniqueness.
    name = (file.filename or "upload").strip()
    safe = "".join(ch for ch in name if ch.isalnum() or ch in ("-", "_", ".", " ")).strip().replace(" ", "_")
    if not safe or safe.startswith("."):
        safe = "upload"
    if "." not in safe:
        ext = ct.split("/", 1)[1] if "/" in ct else ""
        if ext == "jpeg":
            ext = "jpg"
        safe = f"{safe}.{ext or 'bin'}"

    base, ext = safe.rsplit(".", 1)
    out = (MEDIA_DIR / safe).resolve()
    if not str(out).startswith(str(MEDIA_DIR.resolve())):
        return Response(status_code=400, content="Invalid filename", media_type="text/plain")
    i = 2
    while out.exists():
        out = (MEDIA_DIR / f"{base}_{i}.{ext}").resolve()
        i += 1

    data = await file.read() or b""
    if len(data) > MAX_UPLOAD_BYTES:
        return Response(status_code=413, content="File too large", media_type="text/plain")

    result: dict = {"ok": True, "src": f"/media/{out.name}", "filename": out.name, "contentType": ct}
    if ct.startswith("image/"):
        try:
            w, h = natural_size(data)
        except ValueError as e:
            logger.warning("upload_media: 400 %s (%s)", e, name)
            return Response(status_code=400, content="Unreadable image", media_type="text/plain")
        result["naturalWidth"] = w
        result["naturalHeight"] = h

    out.write_bytes(data)
    logger.debug("upload_media: %s (%s, %d bytes)", out.name, ct, len(data))
    return result
