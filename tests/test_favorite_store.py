"""Tests for arxiv_finder.favorite_store module."""

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from arxiv_finder.favorite_store import LocalFileFavoriteStore, PersistenceError
from conftest import make_paper


def favorite(paper_id: str, day: int = 1, title: str | None = None):
    """Build a favorited paper with a fixed favorited date."""
    return make_paper(
        paper_id,
        title,
        is_favorite=True,
        favorited_date=datetime(2024, 1, day, tzinfo=timezone.utc),
    )


class TestLocalFileFavoriteStore:
    """Tests for the LocalFileFavoriteStore class."""

    def test_init_creates_state_dir(self, tmp_path: Path) -> None:
        """Test state directory is created."""
        state_dir = tmp_path / "new_state"
        store = LocalFileFavoriteStore(state_dir)
        assert state_dir.exists()
        assert store.state_file == state_dir / "favorites.json"

    def test_init_unusable_dir(self, tmp_path: Path) -> None:
        """Test an unusable directory raises PersistenceError."""
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(PersistenceError):
            LocalFileFavoriteStore(blocker / "state")

    def test_empty_store(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test a store without a file has no favorites."""
        assert favorite_store.fetch_favorites() == []
        assert favorite_store.fetch_all() == []

    def test_upsert_inserts(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test inserting a new record."""
        favorite_store.upsert(favorite("A"))

        papers = favorite_store.fetch_favorites()
        assert [p.id for p in papers] == ["A"]
        assert papers[0].favorited_date == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_upsert_replaces_by_id(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test a second upsert replaces the record in place."""
        favorite_store.upsert(favorite("A"))
        favorite_store.upsert(favorite("B"))
        favorite_store.upsert(favorite("A", title="Renamed"))

        papers = favorite_store.fetch_all()
        assert [p.id for p in papers] == ["A", "B"]
        assert papers[0].title == "Renamed"

    def test_upsert_unfavorited_record_is_filtered(
        self, favorite_store: LocalFileFavoriteStore
    ) -> None:
        """Test records with is_favorite false are kept but not fetched as favorites."""
        paper = favorite("A")
        favorite_store.upsert(paper)
        paper.set_favorite(False)
        favorite_store.upsert(paper)

        assert favorite_store.fetch_favorites() == []
        assert [p.id for p in favorite_store.fetch_all()] == ["A"]

    def test_delete_removes_all_copies(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test delete removes every record with the id."""
        records = [favorite("A").to_dict(), favorite("B").to_dict(), favorite("A", 2).to_dict()]
        favorite_store.state_file.write_text(json.dumps({"papers": records}))

        assert favorite_store.delete("A") == 2
        assert [p.id for p in favorite_store.fetch_all()] == ["B"]

    def test_delete_missing_id(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test deleting an unknown id does nothing."""
        assert favorite_store.delete("missing") == 0
        assert not favorite_store.state_file.exists()

    def test_persists_across_instances(self, state_dir: Path) -> None:
        """Test records survive a new store instance."""
        LocalFileFavoriteStore(state_dir).upsert(favorite("A"))
        assert [p.id for p in LocalFileFavoriteStore(state_dir).fetch_favorites()] == ["A"]

    def test_corrupt_file_raises(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test a corrupt file is reported instead of treated as empty."""
        favorite_store.state_file.write_text("not valid json {{{")

        with pytest.raises(PersistenceError):
            favorite_store.fetch_favorites()
        with pytest.raises(PersistenceError):
            favorite_store.upsert(favorite("A"))

        # The user's data was not overwritten
        assert favorite_store.state_file.read_text() == "not valid json {{{"

    def test_unexpected_structure_raises(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test a file with the wrong shape is reported."""
        favorite_store.state_file.write_text(json.dumps(["A", "B"]))
        with pytest.raises(PersistenceError):
            favorite_store.fetch_all()

    def test_malformed_record_skipped(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test a single bad record does not hide the others."""
        records = [{"id": "bad"}, favorite("A").to_dict()]
        favorite_store.state_file.write_text(json.dumps({"papers": records}))

        assert [p.id for p in favorite_store.fetch_favorites()] == ["A"]

    def test_write_failure_raises(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test write errors become PersistenceError."""
        with patch.object(Path, "write_text", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError, match="disk full"):
                favorite_store.upsert(favorite("A"))

    def test_remove_duplicates(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test later copies of an id are dropped and the first stays in place."""
        records = [favorite("A", 1), favorite("B", 2), favorite("A", 3), favorite("A", 4)]
        favorite_store.state_file.write_text(
            json.dumps({"papers": [p.to_dict() for p in records]})
        )

        assert favorite_store.remove_duplicates() == {"A": 2}

        stored = favorite_store.fetch_all()
        assert [p.id for p in stored] == ["A", "B"]
        assert stored[0].favorited_date.day == 1

    def test_remove_duplicates_clean_store_not_rewritten(
        self, favorite_store: LocalFileFavoriteStore
    ) -> None:
        """Test nothing is written when there is nothing to remove."""
        favorite_store.upsert(favorite("A"))

        with patch.object(Path, "write_text") as write_text:
            assert favorite_store.remove_duplicates() == {}

        write_text.assert_not_called()

    def test_clear(self, favorite_store: LocalFileFavoriteStore) -> None:
        """Test clearing the store."""
        favorite_store.upsert(favorite("A"))
        favorite_store.clear()
        assert favorite_store.fetch_all() == []
