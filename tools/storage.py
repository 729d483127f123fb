"""Object storage for audit copies of digest summaries.

The bucket is a directory tree rooted at BUCKET_DIR. Object paths use '/'
separators (``digest/{user_id}/{digest_id}/summaries.json``). Public
objects are written under ``public/``, private ones under ``private/``.
Content types are recorded next to the object in a ``.meta.json`` sidecar.
"""

import asyncio
import json
import logging
from pathlib import Path, PurePosixPath

from errors import PersistenceError

logger = logging.getLogger(__name__)


class ObjectStorage:
    """Filesystem-backed bucket."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _resolve(self, path: str, public: bool) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise PersistenceError(f"Invalid object path: {path}")
        return self.root / ("public" if public else "private") / Path(*relative.parts)

    async def put(self, path: str, data: bytes, content_type: str, public: bool = False) -> Path:
        """Store ``data`` at ``path``.

        Raises:
            PersistenceError: If the object cannot be written
        """
        target = self._resolve(path, public)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            meta = {"contentType": content_type, "public": public, "size": len(data)}
            target.with_name(target.name + ".meta.json").write_text(json.dumps(meta), encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise PersistenceError(f"Upload failed for {path}: {e}") from e

        logger.debug("Object stored | path=%s bytes=%d", path, len(data))
        return target
