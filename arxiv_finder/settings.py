"""User settings: defaults, environment overrides and change notification."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable

from .models import Category
from .working_sets import FAVORITES

logger = logging.getLogger(__name__)

ENV_PREFIX = "ARXIV_FINDER_"

# Inclusive bounds offered by the settings screen
INT_RANGES: dict[str, tuple[int, int]] = {
    "max_papers": (5, 50),
    "refresh_interval": (5, 120),
    "cache_size_limit": (50, 500),
}


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@dataclass
class Settings:
    """Application settings with their defaults."""

    max_papers: int = 10
    refresh_interval: int = 30  # minutes
    auto_refresh: bool = False
    default_category: str = "latest"
    show_notifications: bool = True
    enable_cache: bool = True
    cache_size_limit: int = 100  # MB, advisory only
    cache_dir: str = ".arxiv_finder/pdf_cache"
    state_dir: str = ".arxiv_finder"


@dataclass(frozen=True)
class SettingChange:
    """A single setting that changed value."""

    key: str
    value: Any
    reset: bool = False


SettingsListener = Callable[[SettingChange], None]

SETTING_KEYS: tuple[str, ...] = tuple(f.name for f in fields(Settings))


def parse_bool(value: str) -> bool:
    """Parse boolean from string."""
    return value.strip().lower() in ("true", "1", "yes", "on")


def parse_int(key: str, value: str) -> int:
    """Parse an integer setting.

    Raises:
        ConfigError: If the value is not an integer
    """
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got '{value}'") from None


def validate_setting(key: str, value: Any) -> None:
    """Check a value against the rules for its setting.

    Raises:
        ConfigError: If the key is unknown or the value is out of range
    """
    if key not in SETTING_KEYS:
        raise ConfigError(f"Unknown setting: '{key}'")

    default = getattr(Settings(), key)
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{key} must be a boolean")
    elif isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{key} must be an integer")
        low, high = INT_RANGES[key]
        if not low <= value <= high:
            raise ConfigError(f"{key} must be between {low} and {high}, got {value}")
    elif not isinstance(value, str) or not value:
        raise ConfigError(f"{key} must be a non-empty string")

    if key == "default_category" and value != FAVORITES and value not in Category.tags():
        raise ConfigError(f"default_category must be one of {Category.tags() + [FAVORITES]}")


def load_settings_from_env(base: Settings | None = None) -> Settings:
    """Load settings, applying overrides from environment variables.

    Optional environment variables:
        ARXIV_FINDER_MAX_PAPERS: Papers fetched per load (default: 10)
        ARXIV_FINDER_REFRESH_INTERVAL: Auto-refresh interval in minutes (default: 30)
        ARXIV_FINDER_AUTO_REFRESH: Enable auto-refresh (default: false)
        ARXIV_FINDER_DEFAULT_CATEGORY: Category shown at startup (default: "latest")
        ARXIV_FINDER_SHOW_NOTIFICATIONS: Notify after auto-refresh (default: true)
        ARXIV_FINDER_ENABLE_CACHE: Cache downloaded PDFs (default: true)
        ARXIV_FINDER_CACHE_SIZE_LIMIT: Advisory cache limit in MB (default: 100)
        ARXIV_FINDER_CACHE_DIR, ARXIV_FINDER_STATE_DIR: Storage locations

    Args:
        base: Settings to start from (defaults to built-in defaults)

    Returns:
        Settings instance

    Raises:
        ConfigError: If any variable is invalid
    """
    settings = base or Settings()
    errors: list[str] = []
    overrides: dict[str, Any] = {}

    for key in SETTING_KEYS:
        raw = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
        if raw is None:
            continue

        default = getattr(settings, key)
        try:
            if isinstance(default, bool):
                value: Any = parse_bool(raw)
            elif isinstance(default, int):
                value = parse_int(f"{ENV_PREFIX}{key.upper()}", raw)
            else:
                value = raw.strip()
            validate_setting(key, value)
        except ConfigError as e:
            errors.append(str(e))
            continue
        overrides[key] = value

    if errors:
        raise ConfigError("Configuration errors:\n- " + "\n- ".join(errors))

    return replace(settings, **overrides)


class SettingsStore:
    """Key-value access to settings with typed change events.

    Listeners registered with :meth:`subscribe` receive a
    :class:`SettingChange` for every value that actually changed.
    """

    def __init__(self, path: Path | str | None = None, settings: Settings | None = None) -> None:
        """Initialize settings store.

        Args:
            path: Optional JSON file to persist settings to
            settings: Initial settings (defaults, or the file content if it exists)
        """
        self.path = Path(path) if path else None
        self._settings = settings or self._load() or Settings()
        self._listeners: list[SettingsListener] = []

    def _load(self) -> Settings | None:
        """Load settings from file, ignoring unknown or invalid entries."""
        if self.path is None or not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return None

        values = {}
        for key, value in (data.items() if isinstance(data, dict) else []):
            try:
                validate_setting(key, value)
            except ConfigError as e:
                logger.warning(f"Ignoring setting from {self.path}: {e}")
                continue
            values[key] = value
        return Settings(**values)

    def _save(self) -> None:
        """Save settings to file."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(self._settings), indent=2), encoding="utf-8")

    @property
    def settings(self) -> Settings:
        """Current settings (a copy; use :meth:`set` to change values)."""
        return replace(self._settings)

    def get(self, key: str) -> Any:
        """Return the value of a setting.

        Raises:
            ConfigError: If the key is unknown
        """
        if key not in SETTING_KEYS:
            raise ConfigError(f"Unknown setting: '{key}'")
        return getattr(self._settings, key)

    def set(self, key: str, value: Any) -> None:
        """Change a setting, persist it and notify listeners.

        Raises:
            ConfigError: If the key is unknown or the value invalid
        """
        validate_setting(key, value)
        if getattr(self._settings, key) == value:
            return

        self._settings = replace(self._settings, **{key: value})
        self._save()
        logger.info(f"Setting changed: {key}={value!r}")
        self._emit(SettingChange(key=key, value=value))

    def reset(self) -> None:
        """Restore every setting to its default and notify listeners."""
        defaults = Settings()
        changed = [
            key for key in SETTING_KEYS if getattr(self._settings, key) != getattr(defaults, key)
        ]
        self._settings = defaults
        self._save()
        logger.info(f"Settings reset ({len(changed)} changed)")
        for key in changed:
            self._emit(SettingChange(key=key, value=getattr(defaults, key), reset=True))

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register a change listener.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, change: SettingChange) -> None:
        for listener in list(self._listeners):
            listener(change)
