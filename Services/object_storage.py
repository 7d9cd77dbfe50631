# Services/object_storage.py
"""Object storage for vehicle, spare-part and submission images.

Files are written under ``UPLOAD_DIR/<folder>/`` and served by the app as static
files, so the URL handed back is directly fetchable. No resizing or
transcoding happens here.
"""
import logging
import os
import re
import time
import uuid
from pathlib import Path
from typing import Optional

from paths import UPLOAD_DIR
from Services.errors import UploadError

logger = logging.getLogger(__name__)

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "/uploads")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("_", Path(filename or "").name).strip("._")
    return name or "upload"


class ObjectStorage:
    def __init__(self, root: Optional[Path] = None, base_url: Optional[str] = None):
        self.root = Path(root or UPLOAD_DIR)
        self.base_url = (base_url or PUBLIC_BASE_URL).rstrip("/")

    def upload(self, filename: str, content: bytes, folder: str) -> str:
        """Store *content* and return its public URL."""
        if not content:
            raise UploadError(f"Refusing to store empty file {filename!r}")

        folder = sanitize_filename(folder)
        # Same-named files uploaded within one millisecond must not share a name
        name = f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{sanitize_filename(filename)}"
        target = self.root / folder / name
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            raise UploadError(f"Upload of {filename!r} failed: {e}") from e

        url = f"{self.base_url}/{folder}/{name}"
        logger.info(f"Stored {len(content)} bytes at {url}")
        return url

    def path_for(self, url: str) -> Optional[Path]:
        prefix = f"{self.base_url}/"
        if not url or not url.startswith(prefix):
            return None
        path = (self.root / url[len(prefix):]).resolve()
        # Only objects inside the storage root are addressable
        if not path.is_relative_to(self.root.resolve()):
            logger.warning(f"Refusing object path outside storage root: {url}")
            return None
        return path

    def delete(self, url: str) -> None:
        """Remove a stored object. Unknown or already-missing objects are ignored."""
        path = self.path_for(url)
        if path is None:
            logger.debug(f"Not a stored object, skipping delete: {url}")
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise UploadError(f"Delete of {url} failed: {e}") from e
