"""Command line front-end for arxiv-finder.

Run with: python -m arxiv_finder.cli <command>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .cache import ContentCache, StorageError
from .client import ArxivClient, NetworkError
from .favorite_store import FavoriteStore, LocalFileFavoriteStore, PersistenceError
from .favorites import FavoriteIndex
from .library import PaperLibrary
from .models import Category, Paper, SortOption
from .settings import ConfigError, Settings, SettingsStore, load_settings_from_env
from .working_sets import WorkingSets

# Structured logging setup
logger = logging.getLogger("arxiv_finder")


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        for key in ("category", "paper_id", "paper_count", "error"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data)


def setup_logging(verbose: bool = False) -> None:
    """Set up structured JSON logging to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def log_info(message: str, **kwargs: Any) -> None:
    """Log info with extra structured fields."""
    logger.info(message, extra=kwargs)


def log_error(message: str, **kwargs: Any) -> None:
    """Log error with extra structured fields."""
    logger.error(message, extra=kwargs)


def build_library(settings: Settings) -> PaperLibrary:
    """Wire the client, stores and cache into a library.

    If the favorites directory cannot be created the library runs with
    memory-only favorites.
    """
    store: FavoriteStore | None
    try:
        store = LocalFileFavoriteStore(settings.state_dir)
    except PersistenceError as e:
        log_error("Favorite store unavailable, favorites are memory-only", error=str(e))
        store = None

    return PaperLibrary(
        source=ArxivClient(),
        favorites=FavoriteIndex(WorkingSets(), store),
        settings=SettingsStore(settings=settings),
        cache=ContentCache(settings.cache_dir),
        min_loading_time=0.0,
    )


def emit_papers(papers: list[Paper]) -> None:
    """Print one JSON line per paper to stdout."""
    for paper in papers:
        print(
            json.dumps(
                {
                    "id": paper.id,
                    "title": paper.title,
                    "authors": paper.authors_display,
                    "published": paper.published.date().isoformat(),
                    "categories": paper.categories,
                    "favorite": paper.is_favorite,
                }
            )
        )


async def resolve_paper(library: PaperLibrary, paper_id: str) -> Paper | None:
    """Find a paper among favorites, or fetch its metadata from arXiv."""
    await library.load_favorites()
    paper = library.find_paper(paper_id)
    if paper is None and isinstance(library.source, ArxivClient):
        paper = await library.source.fetch_by_id(paper_id)
        if paper is not None:
            library.favorites.synchronize([paper])
    return paper


async def run_command(args: argparse.Namespace, library: PaperLibrary) -> int:
    """Execute a parsed command.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if args.command == "fetch":
        await library.load_favorites()
        await library.load_category(args.category)
        if library.state.error_message:
            log_error("Failed to load papers", category=args.category, error=library.state.error_message)
            return 1
        papers = library.filtered_papers(SortOption(args.sort))
        log_info("Papers loaded", category=args.category, paper_count=len(papers))
        emit_papers(papers)
        return 0

    if args.command == "search":
        await library.load_favorites()
        if args.enhanced:
            await library.enhanced_search(args.query, args.category)
        else:
            await library.search(args.query, args.category, sort_by_relevance=not args.by_date)
        if library.state.error_message:
            log_error("Search failed", error=library.state.error_message)
            return 1
        emit_papers(library.filtered_papers(SortOption(args.sort)))
        return 0

    if args.command == "favorites":
        if args.action == "cleanup":
            removed = library.favorites.cleanup_duplicates()
            log_info(f"Removed {removed} duplicate favorites")
            return 0

        if args.action == "toggle":
            paper = await resolve_paper(library, args.paper_id)
            if paper is None:
                log_error("Paper not found", paper_id=args.paper_id)
                return 1
            try:
                library.toggle_favorite(paper)
            except PersistenceError as e:
                log_error("Favorite state not saved", paper_id=paper.id, error=str(e))
                return 1
            log_info("Favorite toggled", paper_id=paper.id)
            emit_papers([paper])
            return 0

        favorites = await library.load_favorites()
        if library.state.error_message:
            log_error("Failed to load favorites", error=library.state.error_message)
            return 1
        emit_papers(favorites)
        return 0

    if args.command == "cache":
        if args.action == "clear":
            result = await library.clear_cache()
            log_info(f"Removed {len(result.removed)} cached PDFs")
            for name, error in result.failed.items():
                log_error(f"Could not delete {name}", error=error)
            return 0 if result.ok else 1

        size = await library.cache_size_mb()
        limit = library.settings.get("cache_size_limit")
        print(json.dumps({"size_mb": round(size, 2), "limit_mb": limit, "over_limit": size > limit}))
        return 0

    if args.command == "pdf":
        paper = await resolve_paper(library, args.paper_id)
        if paper is None:
            log_error("Paper not found", paper_id=args.paper_id)
            return 1
        path = await library.open_pdf(paper)
        print(str(path) if path else paper.pdf_url)
        return 0

    log_error(f"Unknown command: {args.command}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(prog="arxiv-finder", description="Browse arXiv papers")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sort_choices = [option.value for option in SortOption]

    fetch = sub.add_parser("fetch", help="Fetch the newest papers of a category")
    fetch.add_argument("category", choices=Category.tags())
    fetch.add_argument("--sort", choices=sort_choices, default=SortOption.DATE.value)

    search = sub.add_parser("search", help="Search papers")
    search.add_argument("query")
    search.add_argument("--category", default="", help="Category filter, e.g. cs or math.CO")
    search.add_argument("--enhanced", action="store_true", help="Also search abstracts and authors")
    search.add_argument("--by-date", action="store_true", help="Sort by update date, not relevance")
    search.add_argument("--sort", choices=sort_choices, default=SortOption.DATE.value)

    favorites = sub.add_parser("favorites", help="Manage favorite papers")
    fav_sub = favorites.add_subparsers(dest="action", required=True)
    fav_sub.add_parser("list", help="List favorites")
    toggle = fav_sub.add_parser("toggle", help="Mark or unmark a paper as favorite")
    toggle.add_argument("paper_id")
    fav_sub.add_parser("cleanup", help="Remove duplicate favorite records")

    cache = sub.add_parser("cache", help="Inspect or clear the PDF cache")
    cache.add_argument("action", choices=["size", "clear"])

    pdf = sub.add_parser("pdf", help="Download a paper's PDF into the cache")
    pdf.add_argument("paper_id")

    return parser


async def async_main(argv: list[str] | None = None) -> int:
    """Async main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings_from_env()
    except ConfigError as e:
        log_error("Configuration error", error=str(e))
        return 1

    library = build_library(settings)
    try:
        return await run_command(args, library)
    except (NetworkError, StorageError, PersistenceError) as e:
        log_error("Command failed", error=str(e))
        return 1
    except ValueError as e:
        log_error("Invalid input", error=str(e))
        return 1
    finally:
        library.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    return asyncio.run(async_main(argv))


if __name__ == "__main__":
    sys.exit(main())
