"""On-disk cache of downloaded PDF files, one file per paper id."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class StorageError(Exception):
    """Raised when a PDF cannot be written to the cache."""

    pass


@dataclass
class ClearResult:
    """Outcome of :meth:`ContentCache.clear_all`.

    Attributes:
        removed: File names that were deleted
        failed: File name -> error message for entries that could not be deleted
    """

    removed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True when every entry was deleted."""
        return not self.failed


class ContentCache:
    """Keyed blob store for PDF payloads.

    The file name is derived from the paper id, so the directory itself is the
    index. There is no eviction; the configured size limit is advisory.
    Concurrent writes for the same id are last-writer-wins.
    """

    def __init__(self, cache_dir: str | Path):
        """Initialize cache.

        Args:
            cache_dir: Directory holding the cached PDF files
        """
        self.cache_dir = Path(cache_dir)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cache directory {self.cache_dir} unavailable: {e}")

    def path_for(self, paper_id: str) -> Path:
        """Return the deterministic file path for a paper id.

        Old-style arXiv ids (``hep-th/9901001v1``) contain a slash, which is
        replaced so every entry stays directly inside the cache directory.

        Raises:
            ValueError: If the id is empty
        """
        if not paper_id or not paper_id.strip():
            raise ValueError("Paper id must not be empty")
        safe_id = paper_id.strip().replace("/", "_")
        return self.cache_dir / f"{safe_id}.pdf"

    def has(self, paper_id: str) -> bool:
        """Check whether a PDF is cached for the paper. Never raises."""
        try:
            return self.path_for(paper_id).is_file()
        except (OSError, ValueError):
            return False

    def get(self, paper_id: str) -> Path | None:
        """Return the cached file path, or None if not cached."""
        if not self.has(paper_id):
            return None
        return self.path_for(paper_id)

    def put(self, paper_id: str, data: bytes) -> Path:
        """Write a PDF to the cache, replacing any previous copy.

        Args:
            paper_id: The paper id
            data: Raw PDF bytes

        Returns:
            Path of the cached file

        Raises:
            StorageError: If the directory cannot be created or the file written
        """
        path = self.path_for(paper_id)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to cache PDF for {paper_id}: {e}") from e

        logger.info(f"Cached PDF for {paper_id} ({len(data)} bytes)")
        return path

    def clear_all(self) -> ClearResult:
        """Delete every cached file.

        Deletion is best-effort: a file that cannot be removed is recorded in
        the result and the remaining files are still processed.
        """
        result = ClearResult()
        try:
            entries = list(self.cache_dir.iterdir())
        except OSError as e:
            logger.error(f"Error listing cache directory {self.cache_dir}: {e}")
            return result

        for entry in entries:
            if entry.is_dir():
                continue
            try:
                entry.unlink()
                result.removed.append(entry.name)
            except OSError as e:
                logger.error(f"Error deleting cached file {entry.name}: {e}")
                result.failed[entry.name] = str(e)

        logger.info(f"Cache cleared: {len(result.removed)} removed, {len(result.failed)} failed")
        return result

    def total_size(self) -> int:
        """Return the total size of cached files in bytes (0 if unreadable)."""
        try:
            return sum(entry.stat().st_size for entry in self.cache_dir.iterdir() if entry.is_file())
        except OSError as e:
            logger.error(f"Error calculating cache size: {e}")
            return 0

    def total_size_mb(self) -> float:
        """Return the total size of cached files in megabytes."""
        return self.total_size() / BYTES_PER_MB

    def exceeds(self, limit_mb: int | float) -> bool:
        """Check the cache size against an advisory limit in megabytes."""
        return self.total_size_mb() > limit_mb
