"""
Object Storage for Normalized Photos
====================================

Persists JPEG bytes under a key and hands back a public URL.

Bucket layout:
-------------
```
{STORAGE_PATH}/
└── photos/
    └── 2024/                # Year
        └── 01/              # Month
            ├── 3f2a9c1e4b7d4e0f9a61c2d8b5e7f013.jpg
            └── ...
```

- Chronological: easy to archive old uploads
- UUID filenames: no collisions and no client-controlled names

The local backend writes into a directory that a web server or CDN
publishes under ``PUBLIC_BASE_URL``. Any backend that implements
``put``/``build_key`` can replace it.
"""

import contextlib
import logging
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Union

from photo_analyzer.core.exceptions import StorageException

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    """Durable byte storage with public URLs."""

    def build_key(self, extension: str = "jpg") -> str:
        ...

    def put(self, data: bytes, key: str) -> str:
        ...


class LocalObjectStore:
    """
    Filesystem-backed bucket.

    Attributes:
        base_path: Bucket root directory.
        public_base_url: URL prefix the bucket root is served under.
        prefix: Top-level folder for photo keys.
    """

    def __init__(
        self,
        base_path: Union[str, Path],
        public_base_url: str,
        prefix: str = "photos",
    ) -> None:
        self.base_path = Path(base_path).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self.prefix = prefix.strip("/")

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageException(
                message=f"Cannot create storage directory at {self.base_path}",
                details={"error": str(e)},
            ) from e
        logger.info(f"Storage initialized at: {self.base_path}")

    def build_key(self, extension: str = "jpg", now: Optional[datetime] = None) -> str:
        """
        Generate a fresh object key.

        Example:
            ``photos/2024/01/3f2a9c1e4b7d4e0f9a61c2d8b5e7f013.jpg``
        """
        now = now or datetime.now(timezone.utc)
        ext = extension.lstrip(".")
        return f"{self.prefix}/{now.year}/{now.month:02d}/{uuid.uuid4().hex}.{ext}"

    def path_for(self, key: str) -> Path:
        """
        Map a key to its file inside the bucket.

        Raises:
            StorageException: The key would resolve outside the bucket.
        """
        path = (self.base_path / key).resolve()
        if path == self.base_path or self.base_path not in path.parents:
            raise StorageException(
                message="Invalid storage key",
                details={"key": key},
            )
        return path

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key.lstrip('/')}"

    def put(self, data: bytes, key: str) -> str:
        """
        Store ``data`` under ``key``.

        The bytes are written to a temporary file in the target directory
        and renamed into place, so readers never see a partial object.

        Returns:
            Public URL of the stored object.

        Raises:
            StorageException: The write failed (disk full, permissions...).
        """
        path = self.path_for(key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=path.parent, prefix=".upload-", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise StorageException(details={"key": key, "error": str(e)}) from e

        logger.info(f"Stored {key} ({len(data)} bytes)")
        return self.url_for(key)
