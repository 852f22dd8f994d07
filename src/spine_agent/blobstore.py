"""Local content store.

Bundles are gzip tarballs stored under a directory and addressed by their
blobstore id::

    <blobstore_dir>/beefdad      (sha1 badcafe...)

``unpack`` verifies the SHA-1 before extracting, so a truncated or swapped
blob never reaches the install path. Extraction uses tarfile's ``data``
filter, which rejects absolute paths and members escaping the destination.
"""

from __future__ import annotations

import hashlib
import tarfile
from pathlib import Path

from spine_agent.core.errors import ContentStoreError
from spine_agent.core.logging import get_logger

logger = get_logger(__name__)

_CHUNK_SIZE = 1024 * 1024


def file_sha1(path: Path) -> str:
    """Hex SHA-1 of a file, read in chunks."""
    digest = hashlib.sha1()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class LocalBlobstore:
    """Content store backed by a local directory of bundle tarballs."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def blob_path(self, blobstore_id: str) -> Path:
        if not blobstore_id or "/" in blobstore_id or blobstore_id in (".", ".."):
            raise ContentStoreError(f"invalid blobstore id '{blobstore_id}'")
        return self.root / blobstore_id

    def unpack(self, blobstore_id: str, checksum: str, destination: Path) -> None:
        blob = self.blob_path(blobstore_id)
        if not blob.is_file():
            raise ContentStoreError(f"blob '{blobstore_id}' not found in {self.root}")

        actual = file_sha1(blob)
        if actual != checksum:
            raise ContentStoreError(f"Expected sha1: {checksum}, Downloaded sha1: {actual}")

        destination.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(blob, "r:*") as archive:
                archive.extractall(destination, filter="data")
        except (tarfile.TarError, OSError) as exc:
            raise ContentStoreError(f"unable to unpack blob '{blobstore_id}': {exc}", cause=exc) from exc

        logger.info("blob.unpacked", blobstore_id=blobstore_id, destination=str(destination))


__all__ = ["LocalBlobstore", "file_sha1"]
