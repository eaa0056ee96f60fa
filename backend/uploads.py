"""
Image uploads for problem transcription.

Images are written to the upload directory and served back under /uploads.
The vision model gets a URL it can reach: the public upload URL when one is
configured, otherwise the image inlined as a base64 data URL.
"""

import asyncio
import base64
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from math_text import is_image_type

logger = logging.getLogger(__name__)

UPLOAD_ROUTE = "/uploads"
UPLOAD_CHUNK_BYTES = 64 * 1024


@dataclass
class UploadResult:
    """Either a URL for the stored file or an error."""
    url: Optional[str] = None
    model_url: Optional[str] = None
    error: Optional[str] = None


class ImageUploader:

    def __init__(self, upload_dir: str, max_bytes: int, public_base_url: str = ""):
        self.upload_dir = Path(upload_dir)
        self.max_bytes = max_bytes
        self.public_base_url = public_base_url.rstrip("/")

    async def upload(self, data: bytes, content_type: Optional[str]) -> UploadResult:
        if not is_image_type(content_type):
            return UploadResult(error=f"Unsupported file type: {content_type}")
        if not data:
            return UploadResult(error="Empty file")
        if len(data) > self.max_bytes:
            return UploadResult(error=f"File larger than {self.max_bytes} bytes")

        suffix = mimetypes.guess_extension(content_type) or ""
        name = f"{uuid.uuid4().hex}{suffix}"
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread((self.upload_dir / name).write_bytes, data)
        except OSError as e:
            logger.error(f"[Upload] Could not store {name}: {e}")
            return UploadResult(error=str(e))

        url = f"{UPLOAD_ROUTE}/{name}"
        if self.public_base_url:
            model_url = f"{self.public_base_url}{url}"
        else:
            encoded = base64.b64encode(data).decode("ascii")
            model_url = f"data:{content_type};base64,{encoded}"
        logger.info(f"[Upload] Stored {name} ({len(data)} bytes)")
        return UploadResult(url=url, model_url=model_url)


async def read_limited(file, max_bytes: int, chunk_size: int = UPLOAD_CHUNK_BYTES) -> Optional[bytes]:
    """
    Read an upload in bounded chunks.

    Returns None as soon as more than ``max_bytes`` have been read, so an
    oversized file is never held in memory in full.
    """
    chunks = []
    total = 0
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            return None
        chunks.append(chunk)
    return b"".join(chunks)
