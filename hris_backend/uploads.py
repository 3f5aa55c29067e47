"""Storage for uploaded profile pictures."""
from __future__ import annotations

import logging
import random
import shutil
import time
from pathlib import Path

from fastapi import UploadFile

from .config import get_settings
from .errors import StoreError, ValidationError

logger = logging.getLogger(__name__)


class PictureStore:
    """Writes uploads under one directory using collision-resistant names."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    @staticmethod
    def make_filename(original_name: str | None) -> str:
        """Return ``<epoch-millis>-<random>.<ext>`` keeping the original extension."""

        suffix = Path(original_name or "").suffix.lower()
        return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{suffix}"

    @staticmethod
    def validate(upload: UploadFile) -> None:
        content_type = upload.content_type or ""
        if not content_type.startswith("image/"):
            raise ValidationError("Profile picture must be an image")

    def save(self, upload: UploadFile) -> str:
        """Persist an upload and return the stored filename (not the path)."""

        filename = self.make_filename(upload.filename)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with (self.directory / filename).open("wb") as target:
                shutil.copyfileobj(upload.file, target)
        except OSError as exc:
            logger.error("Could not store upload %s: %s", upload.filename, exc)
            raise StoreError("Could not store uploaded file") from exc
        logger.info("Stored upload %s as %s", upload.filename, filename)
        return filename

    def path_for(self, filename: str) -> Path:
        return self.directory / filename

    def discard(self, filename: str | None) -> None:
        """Remove a stored upload whose row was never written."""

        if not filename:
            return
        try:
            self.path_for(filename).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove orphaned upload %s: %s", filename, exc)
            return
        logger.info("Removed orphaned upload %s", filename)


def get_picture_store() -> PictureStore:
    """Dependency returning the store rooted at the configured upload directory."""

    return PictureStore(get_settings().upload_dir)
