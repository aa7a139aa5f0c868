"""Favorite state shared by the durable store and the in-memory working sets."""

from __future__ import annotations

import logging

from .favorite_store import FavoriteStore, PersistenceError
from .models import Paper, sort_by_favorited_date
from .working_sets import FAVORITES, WorkingSets

logger = logging.getLogger(__name__)


class FavoriteIndex:
    """Keeps one favorite/unfavorite state per paper id.

    The ``favorites`` working set is the read model of the durable store.
    Without a store the index runs memory-only: favorites last for the
    session and no persistence call is ever made.
    """

    def __init__(self, working_sets: WorkingSets, store: FavoriteStore | None = None):
        """Initialize the index.

        Args:
            working_sets: Working sets shared with the library
            store: Durable favorite store, or None for memory-only mode
        """
        self.working_sets = working_sets
        self.store = store
        if store is None:
            logger.warning("No favorite store configured, favorites are kept in memory only")

    @property
    def persistent(self) -> bool:
        """True when favorites are written to a durable store."""
        return self.store is not None

    @property
    def favorites(self) -> list[Paper]:
        """Favorite papers, most recently favorited first."""
        return self.working_sets.get(FAVORITES)

    def is_favorite(self, paper_id: str) -> bool:
        """Check whether a paper id is in the favorites working set."""
        return self.working_sets.find(FAVORITES, paper_id) is not None

    def toggle(self, paper: Paper) -> Paper:
        """Flip the favorite state of a paper everywhere it is shown.

        The durable write happens once per toggle. If it fails, the in-memory
        transition is still completed before the error is raised.

        Args:
            paper: The paper to mark or unmark

        Returns:
            The updated paper

        Raises:
            PersistenceError: If the durable store rejected the write
        """
        paper.set_favorite(not paper.is_favorite)
        logger.info(f"Toggling favorite for {paper.id}: is_favorite={paper.is_favorite}")

        persist_error: PersistenceError | None = None
        if self.store is not None:
            try:
                self.store.upsert(paper)
            except PersistenceError as e:
                logger.error(f"Error saving favorite state for {paper.id}: {e}")
                persist_error = e

        favorites = self.favorites
        if paper.is_favorite:
            if not self.is_favorite(paper.id):
                favorites.append(paper)
                self.working_sets.replace(FAVORITES, sort_by_favorited_date(favorites))
                logger.info(f"Added {paper.id} to favorites. Total: {len(self.favorites)}")
        else:
            self.working_sets.replace(FAVORITES, [p for p in favorites if p.id != paper.id])
            logger.info(f"Removed {paper.id} from favorites. Total: {len(self.favorites)}")

        for key in self.working_sets.category_keys():
            self.working_sets.replace_paper(key, paper)

        if persist_error is not None:
            raise persist_error
        return paper

    def read_favorites(self) -> list[Paper]:
        """Clean up the durable store and read its favorites.

        Working sets are not touched, so this may run in a worker thread.
        Use :meth:`install_favorites` on the owning loop to show the result.

        Returns:
            Favorite papers, unique by id, most recently favorited first
            (the current favorites in memory-only mode)

        Raises:
            PersistenceError: If the store cannot be read or written
        """
        if self.store is None:
            return list(self.favorites)

        self.cleanup_duplicates()
        records = self.store.fetch_favorites()

        # Cleanup should have removed duplicates; keep the first of each id anyway
        unique: list[Paper] = []
        seen_ids: set[str] = set()
        for paper in records:
            if paper.id not in seen_ids:
                seen_ids.add(paper.id)
                unique.append(paper)

        return sort_by_favorited_date(unique)

    def install_favorites(self, papers: list[Paper]) -> list[Paper]:
        """Replace the favorites working set with papers from :meth:`read_favorites`."""
        self.working_sets.replace(FAVORITES, papers)
        logger.info(f"Loaded {len(self.favorites)} favorite papers")
        return list(self.favorites)

    def load_favorites(self) -> list[Paper]:
        """Rebuild the favorites working set from the durable store.

        In memory-only mode the current favorites are returned unchanged.

        Returns:
            Favorite papers, most recently favorited first

        Raises:
            PersistenceError: If the store cannot be read
        """
        if self.store is None:
            return list(self.favorites)
        return self.install_favorites(self.read_favorites())

    def synchronize(self, batch: list[Paper]) -> list[Paper]:
        """Stamp freshly fetched papers with the current favorite state.

        Call this before installing a batch into a working set, otherwise
        already-favorited papers show up as not favorite.

        Args:
            batch: Papers returned by the remote source

        Returns:
            The same papers, updated, as a new list
        """
        favorite_dates = {paper.id: paper.favorited_date for paper in self.favorites}

        for paper in batch:
            should_be_favorite = paper.id in favorite_dates
            if paper.is_favorite != should_be_favorite:
                paper.set_favorite(should_be_favorite, when=favorite_dates.get(paper.id))
                logger.debug(f"Synchronized favorite state for {paper.id}: {should_be_favorite}")

        return list(batch)

    def cleanup_duplicates(self) -> int:
        """Remove duplicate favorite records from the durable store.

        For each id stored more than once, the first record seen is kept.
        The store drops the later records in one write, so a failed write
        leaves every record in place.

        Returns:
            Number of records removed (0 in memory-only mode)

        Raises:
            PersistenceError: If the store cannot be read or written
        """
        if self.store is None:
            return 0

        removed = sum(self.store.remove_duplicates().values())
        if removed:
            logger.info(f"Removed {removed} duplicate favorites")
        return removed
