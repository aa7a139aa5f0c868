"""Durable storage for favorite papers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from .models import Paper

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the favorite store cannot be read or written."""

    pass


class FavoriteStore(Protocol):
    """Protocol for favorite persistence backends."""

    def upsert(self, paper: Paper) -> None:
        """Insert the paper, or replace the stored record with the same id.

        Raises:
            PersistenceError: If the write fails
        """
        ...

    def delete(self, paper_id: str) -> int:
        """Delete every record with the given id.

        Returns:
            Number of records deleted
        """
        ...

    def remove_duplicates(self) -> dict[str, int]:
        """Keep the first record of every id and drop the later ones.

        Returns:
            Paper id -> number of records removed, for ids that had duplicates

        Raises:
            PersistenceError: If the store cannot be read or written
        """
        ...

    def fetch_favorites(self) -> list[Paper]:
        """Return records with ``is_favorite`` set, in stored order."""
        ...

    def fetch_all(self) -> list[Paper]:
        """Return every stored record, in stored order."""
        ...


class LocalFileFavoriteStore:
    """Store favorite papers in a local JSON file.

    State is stored in .arxiv_finder/favorites.json by default. Records keep
    their insertion order; a file written by hand or by an older version may
    hold several records for one id, which callers clean up.
    """

    def __init__(self, state_dir: Path | str = ".arxiv_finder") -> None:
        """Initialize local file favorite store.

        Args:
            state_dir: Directory to store the favorites file
        """
        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / "favorites.json"
        self._ensure_state_dir()

    def _ensure_state_dir(self) -> None:
        """Create state directory if it doesn't exist."""
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create favorites directory {self.state_dir}: {e}") from e

    def _load_records(self) -> list[dict]:
        """Load raw records from file.

        A corrupt file is an error rather than an empty store: treating it as
        empty would overwrite the user's favorites on the next write.
        """
        if not self.state_file.exists():
            return []

        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            raise PersistenceError(f"Cannot read {self.state_file}: {e}") from e

        records = data.get("papers", []) if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise PersistenceError(f"Unexpected content in {self.state_file}")
        return records

    def _save_records(self, records: list[dict]) -> None:
        """Save raw records to file."""
        try:
            self.state_file.write_text(
                json.dumps({"papers": records}, indent=2), encoding="utf-8"
            )
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.state_file}: {e}") from e

    def _to_papers(self, records: list[dict]) -> list[Paper]:
        papers = []
        for record in records:
            try:
                papers.append(Paper.from_dict(record))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed favorite record {record.get('id')!r}: {e}")
        return papers

    def upsert(self, paper: Paper) -> None:
        """Insert or replace the record for ``paper.id``.

        The first record with that id is replaced in place and any later
        duplicates are dropped.
        """
        records = self._load_records()
        updated: list[dict] = []
        replaced = False
        for record in records:
            if record.get("id") != paper.id:
                updated.append(record)
            elif not replaced:
                updated.append(paper.to_dict())
                replaced = True

        if not replaced:
            updated.append(paper.to_dict())

        self._save_records(updated)

    def delete(self, paper_id: str) -> int:
        """Delete every record with the given id.

        Returns:
            Number of records deleted
        """
        records = self._load_records()
        kept = [record for record in records if record.get("id") != paper_id]
        removed = len(records) - len(kept)
        if removed:
            self._save_records(kept)
        return removed

    def remove_duplicates(self) -> dict[str, int]:
        """Keep the first record of every id and drop the later ones.

        The file is rewritten once, and only when something was removed, so
        the surviving record is never missing from disk.

        Returns:
            Paper id -> number of records removed
        """
        records = self._load_records()
        kept: list[dict] = []
        seen_ids: set[str] = set()
        removed: dict[str, int] = {}
        for record in records:
            paper_id = record.get("id")
            if paper_id in seen_ids:
                removed[paper_id] = removed.get(paper_id, 0) + 1
                continue
            seen_ids.add(paper_id)
            kept.append(record)

        if removed:
            self._save_records(kept)
        return removed

    def fetch_favorites(self) -> list[Paper]:
        """Return records marked as favorite, in stored order."""
        return [paper for paper in self.fetch_all() if paper.is_favorite]

    def fetch_all(self) -> list[Paper]:
        """Return every stored record, in stored order."""
        return self._to_papers(self._load_records())

    def clear(self) -> None:
        """Remove all records (useful for testing)."""
        self._save_records([])
