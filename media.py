"""
Media upload gateway.

Files are checked against the image/video allow-list before anything is sent.
Accepted files go to Cloudinary when it is configured, otherwise they are
staged under the local upload directory and served from /uploads/.

`UploadSizeLimit` caps the request body of the upload route before Starlette
parses the multipart form, so an oversized upload is never spooled.
"""

import io
import logging
import mimetypes
import os
import random
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from starlette.responses import JSONResponse

from errors import UnsupportedMediaError, UploadTooLargeError, UpstreamError

logger = logging.getLogger(__name__)

ALLOWED_TYPES: Dict[str, Tuple[str, ...]] = {
    ".jpg": ("image/jpeg", "image/jpg", "image/pjpeg"),
    ".jpeg": ("image/jpeg", "image/jpg", "image/pjpeg"),
    ".png": ("image/png",),
    ".gif": ("image/gif",),
    ".webp": ("image/webp",),
    ".mp4": ("video/mp4",),
    ".mov": ("video/quicktime", "video/mov"),
    ".avi": ("video/x-msvideo", "video/avi", "video/msvideo"),
}

UPLOAD_URL_PREFIX = "/uploads"
# room for multipart boundaries and part headers on top of the file itself
MULTIPART_OVERHEAD = 64 * 1024


@dataclass
class UploadResult:
    url: str
    filename: str
    original_name: str
    size: int

    def as_response(self) -> dict:
        return {
            "message": "File uploaded successfully",
            "url": self.url,
            "filename": self.filename,
            "originalName": self.original_name,
            "size": self.size,
        }


def check_media_type(filename: Optional[str], content_type: Optional[str]) -> str:
    """Return the normalized extension or raise UnsupportedMediaError."""
    ext = os.path.splitext(filename or "")[1].lower()
    allowed = ALLOWED_TYPES.get(ext)
    if not allowed:
        raise UnsupportedMediaError("Only image and video files are allowed")
    declared = (content_type or "").split(";")[0].strip().lower()
    if not declared or declared == "application/octet-stream":
        declared = (mimetypes.guess_type(f"x{ext}")[0] or "").lower()
    if declared not in allowed:
        raise UnsupportedMediaError("Only image and video files are allowed")
    return ext


def read_limited(stream, limit: int) -> bytes:
    data = stream.read(limit + 1)
    if len(data) > limit:
        raise UploadTooLargeError(limit)
    return data


class UploadSizeLimit:
    """ASGI middleware refusing upload bodies over `max_body` bytes.

    A declared Content-Length over the cap is answered 413 without reading the
    body. A body sent without one is read here, at most `max_body` bytes, and
    replayed to the app once it is known to fit.
    """

    def __init__(self, app, max_body: int, paths: Tuple[str, ...] = ("/api/upload",)):
        self.app = app
        self.max_body = max_body
        self.paths = paths

    async def _reject(self, scope, receive, send):
        response = JSONResponse({"message": f"File exceeds the {self.max_body} byte upload limit"}, status_code=413)
        await response(scope, receive, send)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["path"] not in self.paths:
            await self.app(scope, receive, send)
            return

        declared = dict(scope.get("headers") or []).get(b"content-length")
        if declared is not None:
            try:
                too_big = int(declared) > self.max_body
            except ValueError:
                too_big = False
            if too_big:
                logger.warning("Rejected upload with Content-Length %s over %d", declared.decode(), self.max_body)
                await self._reject(scope, receive, send)
                return
            await self.app(scope, receive, send)
            return

        chunks = []
        received = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                return
            body = message.get("body", b"")
            received += len(body)
            if received > self.max_body:
                logger.warning("Cut off streamed upload after %d bytes", received)
                await self._reject(scope, receive, send)
                return
            chunks.append(body)
            more_body = message.get("more_body", False)

        buffered = {"type": "http.request", "body": b"".join(chunks), "more_body": False}
        replayed = False

        async def replay():
            nonlocal replayed
            if not replayed:
                replayed = True
                return buffered
            return await receive()

        await self.app(scope, replay, send)


class MediaGateway:
    def __init__(self, settings):
        self.settings = settings
        if settings.media_host_configured:
            cloudinary.config(
                cloud_name=settings.cloudinary_cloud_name,
                api_key=settings.cloudinary_api_key,
                api_secret=settings.cloudinary_api_secret,
                secure=True,
            )

    @property
    def max_bytes(self) -> int:
        return self.settings.max_upload_bytes

    @property
    def max_body_bytes(self) -> int:
        return self.settings.max_upload_bytes + MULTIPART_OVERHEAD

    @property
    def upload_dir(self) -> str:
        return self.settings.upload_dir

    def store(self, data: bytes, original_name: str, content_type: Optional[str]) -> UploadResult:
        ext = check_media_type(original_name, content_type)
        if len(data) > self.max_bytes:
            raise UploadTooLargeError(self.max_bytes)
        filename = f"file-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"
        if self.settings.media_host_configured:
            url = self._upload_to_cloudinary(data, filename, original_name)
        else:
            url = self._stage_locally(data, filename)
        return UploadResult(url=url, filename=filename, original_name=original_name, size=len(data))

    def _stage_locally(self, data: bytes, filename: str) -> str:
        try:
            os.makedirs(self.upload_dir, exist_ok=True)
            with open(os.path.join(self.upload_dir, filename), "wb") as fh:
                fh.write(data)
        except OSError as exc:
            logger.exception("Could not write upload %s to %s", filename, self.upload_dir)
            raise UpstreamError("upload failed") from exc
        return f"{UPLOAD_URL_PREFIX}/{filename}"

    def _upload_to_cloudinary(self, data: bytes, filename: str, original_name: str) -> str:
        options = {"resource_type": "auto", "public_id": os.path.splitext(filename)[0]}
        if self.settings.cloudinary_folder:
            options["folder"] = self.settings.cloudinary_folder
        stream = io.BytesIO(data)
        stream.name = original_name
        try:
            result = cloudinary.uploader.upload(stream, **options)
            secure_url = result["secure_url"]
        except (cloudinary.exceptions.Error, OSError, KeyError, TypeError) as exc:
            logger.exception("Cloudinary upload failed for %s", original_name)
            raise UpstreamError("upload failed") from exc
        logger.info("Uploaded %s (%d bytes) to %s", original_name, len(data), secure_url)
        return secure_url
