"""Tests for arxiv_finder.cache module."""

from pathlib import Path
from unittest.mock import patch

import pytest

from arxiv_finder.cache import BYTES_PER_MB, ContentCache, StorageError


class TestContentCache:
    """Tests for the ContentCache class."""

    @pytest.fixture
    def cache(self, tmp_path: Path) -> ContentCache:
        """Create a cache in a temporary directory."""
        return ContentCache(tmp_path / "pdf_cache")

    def test_init_creates_directory(self, tmp_path: Path) -> None:
        """Test the cache directory is created."""
        cache_dir = tmp_path / "nested" / "cache"
        ContentCache(cache_dir)
        assert cache_dir.is_dir()

    def test_path_for_is_deterministic(self, cache: ContentCache) -> None:
        """Test the path is derived from the id."""
        assert cache.path_for("2025.001") == cache.cache_dir / "2025.001.pdf"
        assert cache.path_for("2025.001") == cache.path_for("2025.001")

    def test_path_for_old_style_id(self, cache: ContentCache) -> None:
        """Test slashes in old-style ids stay inside the cache directory."""
        path = cache.path_for("hep-th/9901001v1")
        assert path.parent == cache.cache_dir
        assert path.name == "hep-th_9901001v1.pdf"

    def test_path_for_empty_id(self, cache: ContentCache) -> None:
        """Test empty ids are rejected."""
        with pytest.raises(ValueError):
            cache.path_for("  ")

    def test_round_trip(self, cache: ContentCache) -> None:
        """Test put, get, has and clear_all together."""
        data = b"%PDF-1.4 payload"

        path = cache.put("2025.001", data)

        assert cache.has("2025.001") is True
        location = cache.get("2025.001")
        assert location == path
        assert location.read_bytes() == data

        result = cache.clear_all()

        assert result.ok
        assert result.removed == ["2025.001.pdf"]
        assert cache.has("2025.001") is False
        assert cache.get("2025.001") is None

    def test_put_overwrites(self, cache: ContentCache) -> None:
        """Test a second put replaces the first."""
        cache.put("2025.001", b"first")
        cache.put("2025.001", b"second")
        assert cache.get("2025.001").read_bytes() == b"second"
        assert len(list(cache.cache_dir.iterdir())) == 1

    def test_put_recreates_missing_directory(self, cache: ContentCache) -> None:
        """Test put works after the directory was removed."""
        cache.cache_dir.rmdir()
        cache.put("2025.001", b"data")
        assert cache.has("2025.001")

    def test_put_raises_storage_error(self, cache: ContentCache) -> None:
        """Test write failures propagate as StorageError."""
        with patch.object(Path, "write_bytes", side_effect=PermissionError("denied")):
            with pytest.raises(StorageError, match="2025.001"):
                cache.put("2025.001", b"data")

    def test_put_directory_blocked_by_file(self, tmp_path: Path) -> None:
        """Test an unusable cache directory raises StorageError on put."""
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        cache = ContentCache(blocker / "cache")

        with pytest.raises(StorageError):
            cache.put("2025.001", b"data")

    def test_has_never_raises(self, cache: ContentCache) -> None:
        """Test has degrades to False on errors."""
        assert cache.has("") is False
        with patch.object(Path, "is_file", side_effect=OSError("io error")):
            assert cache.has("2025.001") is False

    def test_total_size(self, cache: ContentCache) -> None:
        """Test sizes of all entries are summed."""
        assert cache.total_size() == 0
        cache.put("a", b"x" * 100)
        cache.put("b", b"y" * 50)
        assert cache.total_size() == 150

    def test_total_size_unreadable(self, tmp_path: Path) -> None:
        """Test a missing directory has size zero."""
        cache = ContentCache(tmp_path / "cache")
        cache.cache_dir.rmdir()
        assert cache.total_size() == 0

    def test_total_size_mb_and_exceeds(self, cache: ContentCache) -> None:
        """Test the megabyte helpers."""
        cache.put("a", b"x" * (BYTES_PER_MB // 2))
        assert cache.total_size_mb() == pytest.approx(0.5)
        assert cache.exceeds(1) is False
        assert cache.exceeds(0.25) is True

    def test_clear_all_best_effort(self, cache: ContentCache) -> None:
        """Test a failing delete is reported and the rest still deleted."""
        cache.put("a", b"1")
        cache.put("b", b"2")
        original_unlink = Path.unlink

        def flaky_unlink(self: Path, *args, **kwargs) -> None:
            if self.name == "a.pdf":
                raise PermissionError("locked")
            original_unlink(self, *args, **kwargs)

        with patch.object(Path, "unlink", flaky_unlink):
            result = cache.clear_all()

        assert result.ok is False
        assert result.removed == ["b.pdf"]
        assert "a.pdf" in result.failed
        assert cache.has("a") is True
        assert cache.has("b") is False

    def test_clear_all_skips_directories(self, cache: ContentCache) -> None:
        """Test subdirectories are left alone."""
        (cache.cache_dir / "subdir").mkdir()
        cache.put("a", b"1")
        result = cache.clear_all()
        assert result.removed == ["a.pdf"]
        assert (cache.cache_dir / "subdir").is_dir()

    def test_clear_all_missing_directory(self, cache: ContentCache) -> None:
        """Test clearing a missing directory does not raise."""
        cache.cache_dir.rmdir()
        result = cache.clear_all()
        assert result.removed == []
        assert result.ok
