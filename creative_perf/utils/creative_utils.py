"""Fingerprinting and inspection utilities for uploaded ad creatives.

Provides upload reading, content hashing, dimension probing and data-URL
previews for images and videos submitted for analysis or linking.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import io
from dataclasses import dataclass
from typing import Any, Protocol

from PIL import Image, UnidentifiedImageError

from creative_perf.exceptions import CreativeReadError

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class UploadLike(Protocol):
    """Anything exposing a filename and an awaitable ``read()``, e.g. ``UploadFile``."""

    filename: str | None

    async def read(self, size: int = -1) -> bytes: ...


@dataclass(frozen=True)
class CreativeFingerprint:
    name: str
    hash: str
    size: int
    content_type: str
    data: bytes


# ---------------------------------------------------------------------------
# CreativeProcessor
# ---------------------------------------------------------------------------


class CreativeProcessor:
    """Read, hash, inspect and preview creative files."""

    # ------------------------------------------------------------------
    # hash
    # ------------------------------------------------------------------

    @staticmethod
    def compute_hash(data: bytes) -> str:
        """Return the SHA-256 hex digest of *data*."""
        return hashlib.sha256(data).hexdigest()

    async def fingerprint_upload(self, upload: UploadLike) -> CreativeFingerprint:
        """Read *upload* fully and hash its bytes.

        Raises :class:`CreativeReadError` when the upload has no file name or
        cannot be read.
        """
        name = upload.filename or ""
        if not name.strip():
            raise CreativeReadError("Uploaded file has no name.", details={"filename": ""})
        try:
            data = await upload.read()
        except (OSError, ValueError) as exc:
            raise CreativeReadError(
                f'Could not read file "{name}": {exc}',
                details={"filename": name, "error": str(exc)},
            ) from exc

        content_type = getattr(upload, "content_type", None) or ""
        return CreativeFingerprint(
            name=name,
            hash=self.compute_hash(data),
            size=len(data),
            content_type=content_type,
            data=data,
        )

    async def fingerprint_many(
        self, uploads: list[UploadLike]
    ) -> list[CreativeFingerprint | CreativeReadError]:
        """Fingerprint every upload concurrently.

        Results keep the input order; a failed upload yields its
        :class:`CreativeReadError` in place of a fingerprint.
        """
        results = await asyncio.gather(
            *(self.fingerprint_upload(upload) for upload in uploads),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, CreativeReadError):
                raise result
        return list(results)

    # ------------------------------------------------------------------
    # inspect
    # ------------------------------------------------------------------

    @staticmethod
    def media_type(content_type: str) -> str:
        return "image" if content_type.startswith("image/") else "video"

    @staticmethod
    def creative_format(width: int, height: int) -> str:
        """``square`` for landscape or square creatives, ``vertical`` otherwise."""
        if height <= 0:
            return "square"
        return "square" if width / height >= 1 else "vertical"

    def inspect(self, fingerprint: CreativeFingerprint) -> dict[str, Any]:
        """Describe a creative: media type, dimensions and aspect format.

        Image dimensions are read with Pillow. Video dimensions are left
        unset. Raises :class:`CreativeReadError` for corrupt image data.
        """
        file_type = self.media_type(fingerprint.content_type)
        info: dict[str, Any] = {
            "filename": fingerprint.name,
            "hash": fingerprint.hash,
            "size": fingerprint.size,
            "file_type": file_type,
            "width": None,
            "height": None,
            "format": None,
        }
        if file_type != "image":
            return info

        try:
            with Image.open(io.BytesIO(fingerprint.data)) as img:
                width, height = img.size
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
            raise CreativeReadError(
                f'Error loading image file "{fingerprint.name}".',
                details={"filename": fingerprint.name, "error": str(exc)},
            ) from exc

        info.update(width=width, height=height, format=self.creative_format(width, height))
        return info

    # ------------------------------------------------------------------
    # preview
    # ------------------------------------------------------------------

    @staticmethod
    def to_data_url(data: bytes, content_type: str) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{content_type or 'application/octet-stream'};base64,{encoded}"
