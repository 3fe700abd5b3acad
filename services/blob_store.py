"""
Blob storage for payment proofs.

The order workflow only needs a small object-store surface: write a file at a
path without clobbering an existing one, turn a path into a public URL (and
back), and delete. ``LocalBlobStore`` keeps the files on disk below
``root_dir/bucket`` and relies on the web app (or any static file server) to
publish that directory under ``public_base_url``.
"""

from pathlib import Path, PurePosixPath
from typing import Optional
from utils.logger import get_logger

logger = get_logger(__name__)


class BlobExistsError(Exception):
    """Raised by ``upload`` when the path is taken and ``upsert`` is off."""


class BlobStore:

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream",
               upsert: bool = False) -> None:
        raise NotImplementedError

    def exists(self, path: str) -> bool:
        raise NotImplementedError

    def remove(self, path: str) -> None:
        raise NotImplementedError

    def list_folder(self, folder: str) -> list[str]:
        raise NotImplementedError

    def public_url(self, path: str) -> str:
        raise NotImplementedError

    def path_from_url(self, url: str) -> Optional[str]:
        raise NotImplementedError


class LocalBlobStore(BlobStore):

    def __init__(self, root_dir: str, bucket: str, public_base_url: str):
        self.bucket = bucket
        self.bucket_dir = Path(root_dir) / bucket
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValueError(f"Invalid blob path: {path!r}")
        return self.bucket_dir.joinpath(*relative.parts)

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream",
               upsert: bool = False) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        # "x" makes the existence check and the create one atomic step
        mode = "wb" if upsert else "xb"
        try:
            with open(target, mode) as fh:
                fh.write(data)
        except FileExistsError:
            raise BlobExistsError(path)

        logger.debug(
            "Blob written",
            extra={"bucket": self.bucket, "path": path, "size": len(data), "content_type": content_type}
        )

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def remove(self, path: str) -> None:
        self._resolve(path).unlink(missing_ok=True)

    def list_folder(self, folder: str) -> list[str]:
        """Paths of the files directly inside ``folder``, sorted."""
        directory = self._resolve(folder)
        if not directory.is_dir():
            return []
        return sorted(f"{folder}/{entry.name}" for entry in directory.iterdir() if entry.is_file())

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{path}"

    def path_from_url(self, url: str) -> Optional[str]:
        """Path of a URL produced by ``public_url``; None for foreign URLs."""
        prefix = f"{self.public_base_url}/{self.bucket}/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix):] or None
