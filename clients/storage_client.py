"""
Local file storage for user avatars.

Files are written under a storage directory and served by the app at
`<base_url>/storage/<name>`. Input is a base64 data URI as sent by clients.
"""

import base64
import binascii
import logging
import secrets
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a file cannot be stored or deleted."""


class FileStorageClient:
    """Store and delete blobs on the local filesystem."""

    def __init__(self, storage_dir: Path | str, public_url: str):
        """
        Args:
            storage_dir: Directory files are written to (created if missing)
            public_url: URL prefix under which storage_dir is served

        Raises:
            ValueError: If public_url is empty
        """
        if not public_url:
            raise ValueError("public_url is required")

        self.storage_dir = Path(storage_dir)
        self.public_url = public_url.rstrip("/")
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _parse_data_uri(data_uri: str) -> tuple[str, bytes]:
        """Split 'data:image/png;base64,....' into (extension, bytes)."""
        try:
            header, encoded = data_uri.split(";base64,", 1)
            mime_type = header.removeprefix("data:")
            extension = mime_type.split("/", 1)[1]
            return extension, base64.b64decode(encoded, validate=True)
        except (ValueError, IndexError, binascii.Error) as e:
            raise StorageError(f"Invalid data URI: {e}") from e

    def store(self, data_uri: str) -> str:
        """
        Write a data URI to disk.

        Returns:
            Public URL of the stored file.

        Raises:
            StorageError: If the URI cannot be decoded or written
        """
        extension, content = self._parse_data_uri(data_uri)
        file_name = f"{secrets.token_hex(12)}-{int(time.time() * 1000)}.{extension}"

        try:
            (self.storage_dir / file_name).write_bytes(content)
        except OSError as e:
            logger.error(f"Failed to store file {file_name}: {e}")
            raise StorageError(f"Could not store file: {e}") from e

        logger.info(f"Stored file {file_name} ({len(content)} bytes)")
        return f"{self.public_url}/{file_name}"

    def delete(self, url: str) -> None:
        """
        Delete a file previously returned by store().

        URLs outside public_url are ignored. Missing files are not an error.
        """
        prefix = f"{self.public_url}/"
        if not url.startswith(prefix):
            logger.warning(f"Refusing to delete file outside storage: {url}")
            return

        file_name = Path(url[len(prefix):]).name
        try:
            (self.storage_dir / file_name).unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to delete file {file_name}: {e}")
            raise StorageError(f"Could not delete file: {e}") from e
