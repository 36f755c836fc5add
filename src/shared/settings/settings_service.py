"""
System settings store.

Admin-editable settings are grouped by category and persisted to a flat JSON file.
Reads go through an in-memory cache that is reloaded from disk after
`cache_ttl_seconds` or immediately after a write through this service.
"""

import copy
import json
import logging
import os
import time
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Optional

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "general": {
        "siteName": "SSM Technologies",
        "siteDescription": "Leading Coaching Institute for Technology Education",
        "contactEmail": "info@ssmtechnologies.co.in",
        "contactPhone": "+91 98765 43210",
        "address": "123 Education Street, Knowledge City, Chennai, Tamil Nadu 600001",
        "timezone": "Asia/Kolkata",
        "language": "en",
        "currency": "INR",
    },
    "email": {
        "fromEmail": "noreply@ssmtechnologies.co.in",
        "fromName": "SSM Technologies",
    },
    "notifications": {
        "enableEmailNotifications": True,
        "notifyOnContactMessage": True,
        "sendReplyEmails": True,
    },
}

PUBLIC_CATEGORIES = ("general",)


class UnknownSettingsCategory(KeyError):
    """Raised for a category that is not one of DEFAULT_SETTINGS."""


class SettingsService:
    """File-backed settings with a time-bounded read cache."""

    def __init__(self, path: str, cache_ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.path = Path(path)
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        self._cache: Optional[Dict[str, Dict[str, Any]]] = None
        self._loaded_at = 0.0
        self._lock = Lock()

    def load(self) -> Dict[str, Dict[str, Any]]:
        """Read settings from disk, filling in defaults for missing categories and keys."""
        settings = copy.deepcopy(DEFAULT_SETTINGS)
        if self.path.exists():
            try:
                stored = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logging.error(f"Failed to read settings file {self.path}: {str(e)}")
                stored = {}
            for category, values in stored.items():
                if category in settings and isinstance(values, dict):
                    settings[category].update(values)
        with self._lock:
            self._cache = settings
            self._loaded_at = self._clock()
        return copy.deepcopy(settings)

    def save(self, settings: Dict[str, Dict[str, Any]]) -> None:
        """Write all settings to disk atomically and refresh the cache."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(settings, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)
        with self._lock:
            self._cache = copy.deepcopy(settings)
            self._loaded_at = self._clock()
        logging.info(f"Settings saved to {self.path}")

    def _cached(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            fresh = self._cache is not None and (self._clock() - self._loaded_at) < self.cache_ttl_seconds
            if fresh:
                return copy.deepcopy(self._cache)
        return self.load()

    def get_all(self) -> Dict[str, Dict[str, Any]]:
        return self._cached()

    def get_category(self, category: str) -> Dict[str, Any]:
        if category not in DEFAULT_SETTINGS:
            raise UnknownSettingsCategory(category)
        return self._cached()[category]

    def get_value(self, category: str, key: str, default: Any = None) -> Any:
        return self.get_category(category).get(key, default)

    def update_category(self, category: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Merge values into a category and persist."""
        if category not in DEFAULT_SETTINGS:
            raise UnknownSettingsCategory(category)
        settings = self.load()
        settings[category].update(values)
        self.save(settings)
        return settings[category]

    def reset(self, category: Optional[str] = None) -> Dict[str, Any]:
        """Restore one category, or all of them, to defaults."""
        if category is not None and category not in DEFAULT_SETTINGS:
            raise UnknownSettingsCategory(category)
        settings = self.load()
        if category is None:
            settings = copy.deepcopy(DEFAULT_SETTINGS)
            self.save(settings)
            return settings
        settings[category] = copy.deepcopy(DEFAULT_SETTINGS[category])
        self.save(settings)
        return settings[category]


_settings_service: Optional[SettingsService] = None


def get_settings_service() -> SettingsService:
    """FastAPI dependency returning the process-wide settings service."""
    global _settings_service
    if _settings_service is None:
        _settings_service = SettingsService(
            path=os.environ.get("SETTINGS_FILE", "settings.json"),
            cache_ttl_seconds=float(os.environ.get("SETTINGS_CACHE_TTL", "60")),
        )
    return _settings_service
