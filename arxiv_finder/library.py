"""Paper library: loads categories and searches into working sets."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable

from .cache import ClearResult, ContentCache
from .client import NetworkError, PaperSource
from .favorite_store import PersistenceError
from .favorites import FavoriteIndex
from .models import Category, LibraryState, Paper, SortOption, sort_papers, utcnow
from .notifications import LogNotifier, Notifier
from .scheduler import AutoRefreshScheduler
from .settings import SettingChange, SettingsStore
from .working_sets import FAVORITES, SEARCH, WORKING_SET_KEYS

logger = logging.getLogger(__name__)

# Seconds a load is shown as in progress, at minimum
MIN_LOADING_TIME = 1.0


async def ensure_minimum_duration(start: float, floor: float = MIN_LOADING_TIME) -> None:
    """Sleep until ``floor`` seconds have passed since ``start``.

    Args:
        start: Start time from the running loop's clock (``loop.time()``)
        floor: Minimum total duration in seconds
    """
    elapsed = asyncio.get_running_loop().time() - start
    if elapsed < floor:
        await asyncio.sleep(floor - elapsed)


class PaperLibrary:
    """Owns the working sets shown to the user and keeps them loaded.

    All mutations happen on the event loop that awaits these methods. Blocking
    cache I/O is moved to worker threads and its result applied back here.
    """

    def __init__(
        self,
        source: PaperSource,
        favorites: FavoriteIndex,
        settings: SettingsStore,
        cache: ContentCache | None = None,
        notifier: Notifier | None = None,
        min_loading_time: float = MIN_LOADING_TIME,
    ):
        """Initialize library.

        Args:
            source: Remote paper source
            favorites: FavoriteIndex; its working sets become the library's
            settings: Settings store to read and observe
            cache: PDF cache (optional)
            notifier: Notifier for auto-refresh messages (defaults to logging)
            min_loading_time: Minimum seconds a load reports as in progress
        """
        self.source = source
        self.favorites = favorites
        self.working_sets = favorites.working_sets
        self.settings = settings
        self.cache = cache
        self.notifier = notifier or LogNotifier()
        self.min_loading_time = min_loading_time
        self.state = LibraryState(current_category=settings.get("default_category"))
        self.sort_option = SortOption.DATE
        self.scheduler = AutoRefreshScheduler(
            self.perform_auto_refresh, settings.get("refresh_interval")
        )
        self._generations: dict[str, int] = {}
        self._in_flight: dict[str, int] = {}
        self._unsubscribe = settings.subscribe(self._on_setting_changed)

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Apply the auto-refresh setting. Call from a running event loop."""
        self._configure_auto_refresh()

    def close(self) -> None:
        """Stop auto-refresh and stop listening to settings."""
        self.scheduler.stop()
        self._unsubscribe()

    # -- loading -----------------------------------------------------------

    def _next_generation(self, key: str) -> int:
        self._generations[key] = self._generations.get(key, 0) + 1
        return self._generations[key]

    def _is_current(self, key: str, generation: int) -> bool:
        return self._generations.get(key) == generation

    def _begin(self, flag: str) -> None:
        self._in_flight[flag] = self._in_flight.get(flag, 0) + 1
        setattr(self.state, flag, True)

    def _end(self, flag: str) -> None:
        # The flag stays set while any load sharing it is still running
        self._in_flight[flag] = max(self._in_flight.get(flag, 0) - 1, 0)
        if self._in_flight[flag] == 0:
            setattr(self.state, flag, False)

    async def _load_into(
        self,
        key: str,
        fetch: Callable[[], Awaitable[list[Paper]]],
        flag: str,
        error_prefix: str,
    ) -> None:
        """Fetch papers into a working set.

        ``flag`` names the LibraryState attribute that is true while any load
        using it runs. A response for a load superseded by a newer one for the
        same key is dropped.
        """
        generation = self._next_generation(key)
        self._begin(flag)
        self.state.error_message = None
        start = asyncio.get_running_loop().time()

        try:
            try:
                papers = await fetch()
            except NetworkError as e:
                logger.error(f"Error loading {key}: {e}")
                if self._is_current(key, generation):
                    self.state.error_message = f"{error_prefix}{e}"
            else:
                if self._is_current(key, generation):
                    self.working_sets.replace(key, self.favorites.synchronize(papers))
                    self.state.last_loaded[key] = utcnow()
                    logger.info(f"Loaded {len(papers)} papers into {key}")
                else:
                    logger.warning(f"Discarding stale response for {key}")

            await ensure_minimum_duration(start, self.min_loading_time)
        finally:
            self._end(flag)

    async def load_category(self, tag: str) -> None:
        """Load the newest papers of a category into its working set.

        ``"favorites"`` reloads favorites from the store instead. On a network
        error the working set keeps its previous content.

        Raises:
            ValueError: If the tag is unknown
        """
        if tag == FAVORITES:
            await self.load_favorites()
            return

        category = Category.from_tag(tag)
        self.state.current_category = tag
        limit = self.settings.get("max_papers")
        logger.info(f"Loading {category.display_name} papers (max {limit})")

        await self._load_into(
            tag,
            lambda: self.source.fetch_by_category(category, limit=limit),
            "is_loading",
            "",
        )

    async def load_favorites(self) -> list[Paper]:
        """Reload favorites from the durable store and show them.

        The store is read in a worker thread; the result is installed here.
        """
        self.state.current_category = FAVORITES
        if not self.favorites.persistent:
            return self.favorites.load_favorites()

        generation = self._next_generation(FAVORITES)
        self._begin("is_loading")
        try:
            papers = await asyncio.to_thread(self.favorites.read_favorites)
        except PersistenceError as e:
            logger.error(f"Error loading favorites: {e}")
            self.state.error_message = f"Error loading favorites: {e}"
            return list(self.favorites.favorites)
        finally:
            self._end("is_loading")

        if not self._is_current(FAVORITES, generation):
            logger.warning("Discarding stale favorites read")
            return list(self.favorites.favorites)
        return self.favorites.install_favorites(papers)

    async def load_with_settings(self) -> None:
        """Load the category configured as default."""
        await self.load_category(self.settings.get("default_category"))

    # -- search ------------------------------------------------------------

    def _begin_search(self, query: str, category: str) -> str | None:
        terms = query.strip()
        if not terms:
            logger.warning("Empty search query, ignoring search request")
            return None

        self.state.search_query = terms
        self.state.search_category = category
        self.state.is_search_active = True
        self.state.current_category = SEARCH
        return terms

    async def search(self, query: str, category: str = "", sort_by_relevance: bool = True) -> None:
        """Search titles and show the results in the ``search`` working set.

        A blank query is ignored.
        """
        terms = self._begin_search(query, category)
        if terms is None:
            return

        limit = self.settings.get("max_papers")
        await self._load_into(
            SEARCH,
            lambda: self.source.search(
                terms,
                limit=limit,
                category=category or None,
                sort_by_relevance=sort_by_relevance,
            ),
            "is_searching",
            "Search error: ",
        )

    async def enhanced_search(self, query: str, category: str = "") -> None:
        """Search titles, abstracts and authors; see :meth:`search`."""
        terms = self._begin_search(query, category)
        if terms is None:
            return

        limit = self.settings.get("max_papers")
        await self._load_into(
            SEARCH,
            lambda: self.source.enhanced_search(terms, limit=limit),
            "is_searching",
            "Enhanced search error: ",
        )

    def clear_search(self) -> None:
        """Drop search results and return to the default category."""
        # Responses of searches still in flight are discarded
        self._next_generation(SEARCH)
        self.working_sets.replace(SEARCH, [])
        self.state.search_query = ""
        self.state.search_category = ""
        self.state.is_search_active = False
        self.state.is_searching = False
        self.state.error_message = None
        self.state.current_category = self.settings.get("default_category")

    # -- view helpers ------------------------------------------------------

    def change_category(self, tag: str) -> None:
        """Select the working set to display.

        Raises:
            ValueError: If the tag is not a working set key
        """
        if tag not in WORKING_SET_KEYS:
            raise ValueError(f"Unknown category: '{tag}'")
        self.state.current_category = tag

    def change_sort_option(self, option: SortOption | str) -> None:
        """Change how :meth:`filtered_papers` orders papers."""
        self.sort_option = SortOption(option)

    def filtered_papers(self, sort: SortOption | None = None) -> list[Paper]:
        """Return the current working set, sorted."""
        papers = self.working_sets.get(self.state.current_category)
        return sort_papers(papers, sort or self.sort_option)

    def find_paper(self, paper_id: str) -> Paper | None:
        """Look a paper up in favorites, search results and the category sets."""
        for key in (FAVORITES, SEARCH):
            index = self.working_sets.find(key, paper_id)
            if index is not None:
                return self.working_sets.get(key)[index]
        return next((p for p in self.working_sets.all_papers() if p.id == paper_id), None)

    # -- favorites ---------------------------------------------------------

    def toggle_favorite(self, paper: Paper) -> Paper:
        """Toggle a paper's favorite state.

        Raises:
            PersistenceError: If the state could not be saved; the in-memory
                change has already been applied
        """
        try:
            return self.favorites.toggle(paper)
        except PersistenceError as e:
            self.state.error_message = f"Error saving favorite: {e}"
            raise

    # -- PDF cache ---------------------------------------------------------

    async def open_pdf(self, paper: Paper) -> Path | None:
        """Return a local copy of the paper's PDF, downloading it if needed.

        Returns:
            Path of the cached PDF, or None when caching is disabled (the PDF
            is then viewed from ``paper.pdf_url``)

        Raises:
            NetworkError: If the download fails
            StorageError: If the PDF cannot be written to the cache
        """
        cache = self.cache
        if cache is None or not self.settings.get("enable_cache"):
            return None

        cached = cache.get(paper.id)
        if cached is not None:
            logger.info(f"Using cached PDF for {paper.id}")
            return cached

        data = await self.source.download_pdf(paper.pdf_url)
        return await asyncio.to_thread(cache.put, paper.id, data)

    async def cache_size_mb(self) -> float:
        """Return the PDF cache size in megabytes."""
        if self.cache is None:
            return 0.0
        return await asyncio.to_thread(self.cache.total_size_mb)

    async def cache_over_limit(self) -> bool:
        """Compare the cache size with the advisory ``cache_size_limit``."""
        return await self.cache_size_mb() > self.settings.get("cache_size_limit")

    async def clear_cache(self) -> ClearResult:
        """Delete every cached PDF."""
        if self.cache is None:
            return ClearResult()
        return await asyncio.to_thread(self.cache.clear_all)

    # -- auto refresh ------------------------------------------------------

    async def perform_auto_refresh(self) -> bool:
        """Reload whatever is currently displayed.

        Skipped when a load is already in progress at fire time.

        Returns:
            True if a refresh ran
        """
        if self.state.is_loading or self.state.is_searching:
            logger.info("Load in progress, skipping automatic refresh")
            return False

        current = self.state.current_category
        if current == SEARCH:
            if not self.state.search_query:
                return False
            await self.search(self.state.search_query, self.state.search_category)
        elif current == FAVORITES:
            await self.load_favorites()
        else:
            await self.load_category(current)

        if self.settings.get("show_notifications"):
            self.notifier.notify("ArXiv Finder", "Papers refreshed automatically")
        return True

    def _configure_auto_refresh(self) -> None:
        """Start, restart or stop the timer to match the settings."""
        if not self.settings.get("auto_refresh"):
            if self.scheduler.is_running:
                self.scheduler.stop()
            logger.info("Auto-refresh is disabled in settings")
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, auto-refresh will start with start()")
            return

        self.scheduler.restart(self.settings.get("refresh_interval"))

    def _on_setting_changed(self, change: SettingChange) -> None:
        if change.key in ("auto_refresh", "refresh_interval"):
            self._configure_auto_refresh()
        elif change.key == "default_category" and not change.reset:
            self.state.current_category = change.value

        if change.reset:
            self.state.current_category = "latest"
