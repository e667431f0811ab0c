import os
import tempfile
from pathlib import Path

import structlog

from .request_cache import RequestCache

logger = structlog.get_logger(__name__)


class CacheStore:
    """Persists request cache snapshots to a single file.

    Writes go to a temporary file in the same directory which then replaces
    the snapshot, so a crash never leaves a half-written snapshot behind.
    """

    def __init__(self, path: str | Path) -> None:
        """Initializes the store.

        Args:
            path: Location of the snapshot file (e.g. 'cache/requests.json').
        """
        self.path = Path(path)

    def load(self, cache: RequestCache) -> int:
        """Restores the snapshot into the cache.

        Returns:
            The number of restored entries; 0 if the file is missing or
            unreadable.
        """
        if not self.path.exists():
            logger.debug("cache_snapshot_missing", path=str(self.path))
            return 0

        try:
            data = self.path.read_bytes()
        except OSError as e:
            logger.warning("cache_snapshot_read_failed", path=str(self.path), error=str(e))
            return 0

        return cache.restore(data)

    def save(self, cache: RequestCache) -> None:
        """Writes a snapshot of the cache.

        Raises:
            OSError: If the snapshot cannot be written.
        """
        data = cache.snapshot()
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("cache_snapshot_saved", path=str(self.path), size=len(data))
