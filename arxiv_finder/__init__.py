"""ArXiv Finder - browse, search and favorite arXiv papers with a local PDF cache."""

from .cache import ClearResult, ContentCache, StorageError
from .cli import main
from .client import ArxivClient, NetworkError, PaperSource
from .favorite_store import FavoriteStore, LocalFileFavoriteStore, PersistenceError
from .favorites import FavoriteIndex
from .library import PaperLibrary, ensure_minimum_duration
from .models import Category, LibraryState, Paper, SortOption, parse_categories, sort_papers
from .notifications import LogNotifier, Notifier, RecordingNotifier
from .scheduler import AutoRefreshScheduler
from .settings import (
    ConfigError,
    SettingChange,
    Settings,
    SettingsStore,
    load_settings_from_env,
)
from .working_sets import FAVORITES, SEARCH, WORKING_SET_KEYS, WorkingSets

__version__ = "0.1.0"

__all__ = [
    # Core
    "Category",
    "FavoriteIndex",
    "LibraryState",
    "Paper",
    "PaperLibrary",
    "SortOption",
    "WorkingSets",
    "FAVORITES",
    "SEARCH",
    "WORKING_SET_KEYS",
    "ensure_minimum_duration",
    "parse_categories",
    "sort_papers",
    # Remote source
    "ArxivClient",
    "NetworkError",
    "PaperSource",
    # Storage
    "ClearResult",
    "ContentCache",
    "FavoriteStore",
    "LocalFileFavoriteStore",
    "PersistenceError",
    "StorageError",
    # Settings and refresh
    "AutoRefreshScheduler",
    "ConfigError",
    "LogNotifier",
    "Notifier",
    "RecordingNotifier",
    "SettingChange",
    "Settings",
    "SettingsStore",
    "load_settings_from_env",
    # CLI
    "main",
]
