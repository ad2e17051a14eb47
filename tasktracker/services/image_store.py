from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

import anyio
from starlette.datastructures import UploadFile

from tasktracker.config import settings
from tasktracker.errors import StoreError, TaskValidationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageUpload:
    """An uploaded image that passed the extension and size checks."""

    field_name: str
    filename: str
    content: bytes


class ImageStore:
    """Validates image uploads and writes them under a base directory.

    The storage path is `<base_dir>/<field>-<filename>`. There is no
    collision avoidance: uploading a file with the same name again replaces
    the earlier one.
    """

    def __init__(
        self,
        base_dir: str | os.PathLike[str] | None = None,
        *,
        max_bytes: int | None = None,
        extensions: tuple[str, ...] | None = None,
    ) -> None:
        self.base_dir = anyio.Path(base_dir if base_dir is not None else settings.upload_dir)
        self.max_bytes = settings.max_image_bytes if max_bytes is None else max_bytes
        exts = extensions or settings.image_extensions
        self._ext_pattern = re.compile(r"\.(" + "|".join(re.escape(e) for e in exts) + r")$")

    def validate(self, *, field_name: str, filename: str | None, content: bytes) -> ImageUpload:
        name = os.path.basename(filename or "")
        if not name or not self._ext_pattern.search(name):
            raise TaskValidationError("Please upload an image.")
        if len(content) > self.max_bytes:
            raise TaskValidationError(f"File too large. Maximum size: {self.max_bytes} bytes")
        return ImageUpload(field_name=field_name, filename=name, content=content)

    async def read_upload(self, upload: UploadFile, *, field_name: str) -> ImageUpload:
        # Read one byte past the ceiling so oversize files are caught without
        # buffering all of them.
        content = await upload.read(self.max_bytes + 1)
        return self.validate(field_name=field_name, filename=upload.filename, content=content)

    def path_for(self, image: ImageUpload) -> str:
        return str(self.base_dir / f"{image.field_name}-{image.filename}")

    async def save(self, image: ImageUpload) -> str:
        path = anyio.Path(self.path_for(image))
        try:
            await path.parent.mkdir(parents=True, exist_ok=True)
            await path.write_bytes(image.content)
        except OSError as e:
            logger.exception("image write failed path=%s", path)
            raise StoreError() from e
        logger.info("stored image path=%s bytes=%s", path, len(image.content))
        return str(path)
