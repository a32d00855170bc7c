"""Filesystem blob store used to archive uploaded documents.

Blobs live under ``<root>/<container>/<name>``.  A "public" container is
marked with a ``.public`` file so a static file server in front of the root
can decide what to expose; the store itself never serves files.
"""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_PUBLIC_MARKER = ".public"
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStore:
    def __init__(self, root: Path, container: str) -> None:
        self.root = Path(root)
        self.container = container
        self._container_path = self.root / container

    def _resolve(self, name: str) -> Path:
        safe = _UNSAFE_NAME_RE.sub("_", Path(name).name).lstrip(".")
        if not safe:
            raise ValueError(f"Invalid blob name: {name!r}")
        return self._container_path / safe

    def ensure_container_exists(self, make_public: bool = False) -> None:
        self._container_path.mkdir(parents=True, exist_ok=True)
        if make_public:
            (self._container_path / _PUBLIC_MARKER).touch()

    def upload(self, data: bytes, name: str) -> Path:
        """Write *data* as blob *name*, overwriting any existing blob."""
        self.ensure_container_exists()
        destination = self._resolve(name)
        destination.write_bytes(data)
        logger.info("Stored blob", extra={"blob": destination.name, "size": len(data)})
        return destination

    def download(self, name: str) -> bytes:
        path = self._resolve(name)
        if not path.is_file():
            raise FileNotFoundError(f"Blob not found: {name}")
        return path.read_bytes()

    def exists(self, name: str) -> bool:
        return self._resolve(name).is_file()
