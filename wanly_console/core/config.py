"""
Application configuration manager.
Stores settings in a JSON file under Application Support.
"""

import json
import logging
from pathlib import Path

from wanly_console.core.constants import (
    CONFIG_PATH, DEFAULT_API_URL, DEFAULT_REGISTRY_URL,
    DEFAULT_REQUEST_TIMEOUT_SEC, DEFAULT_ROWS_PER_PAGE, ROWS_PER_PAGE_OPTIONS,
    QUEUE_POLL_MS, REGISTRY_POLL_MS, LIVE_TICK_MS,
)

# Validation bounds (milliseconds unless noted)
_QUEUE_POLL_MIN = 1000
_QUEUE_POLL_MAX = 60000
_REGISTRY_POLL_MIN = 2000
_REGISTRY_POLL_MAX = 120000
_TICK_MIN = 250
_TICK_MAX = 5000
_TIMEOUT_MIN = 1      # seconds
_TIMEOUT_MAX = 120    # seconds

logger = logging.getLogger(__name__)

_DEFAULTS = {
    'api_url': DEFAULT_API_URL,
    'registry_url': DEFAULT_REGISTRY_URL,
    'api_token': None,
    'queue_poll_ms': QUEUE_POLL_MS,
    'registry_poll_ms': REGISTRY_POLL_MS,
    'tick_ms': LIVE_TICK_MS,
    'rows_per_page': DEFAULT_ROWS_PER_PAGE,
    'request_timeout_sec': DEFAULT_REQUEST_TIMEOUT_SEC,
}

# key -> (low, high, default)
_INT_RANGES = {
    'queue_poll_ms': (_QUEUE_POLL_MIN, _QUEUE_POLL_MAX, QUEUE_POLL_MS),
    'registry_poll_ms': (_REGISTRY_POLL_MIN, _REGISTRY_POLL_MAX, REGISTRY_POLL_MS),
    'tick_ms': (_TICK_MIN, _TICK_MAX, LIVE_TICK_MS),
    'request_timeout_sec': (_TIMEOUT_MIN, _TIMEOUT_MAX, DEFAULT_REQUEST_TIMEOUT_SEC),
}


class AppConfig:
    """Manages application configuration stored as JSON."""

    def __init__(self, config_path: Path | None = None):
        self.path = config_path or CONFIG_PATH
        self._data: dict = {}
        self.load()

    def load(self):
        """Load config from disk, merging with defaults."""
        self._data = dict(_DEFAULTS)
        if self.path.exists():
            try:
                with open(self.path, 'r') as f:
                    saved = json.load(f)
            except Exception as e:
                logger.warning("Failed to load config: %s", e)
                return
            if not isinstance(saved, dict):
                logger.warning("Ignoring config file %s: not a JSON object", self.path)
                return
            for key, value in saved.items():
                self._data[key] = self._validate(key, value)

    def save(self):
        """Persist config to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(self._data, f, indent=2)

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value):
        value = self._validate(key, value)
        self._data[key] = value
        self.save()

    def _validate(self, key: str, value):
        """Validate and coerce config values to safe ranges."""
        if key in _INT_RANGES:
            low, high, default = _INT_RANGES[key]
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning("Invalid %s %r — using default", key, value)
                return default
            return max(low, min(high, value))

        if key == 'rows_per_page':
            try:
                value = int(value)
            except (TypeError, ValueError):
                value = None
            if value not in ROWS_PER_PAGE_OPTIONS:
                logger.warning("Invalid rows_per_page %r — using %d",
                               value, DEFAULT_ROWS_PER_PAGE)
                return DEFAULT_ROWS_PER_PAGE
            return value

        if key in ('api_url', 'registry_url'):
            if not isinstance(value, str) or not value.strip():
                logger.warning("Invalid %s %r — using default", key, value)
                return _DEFAULTS[key]
            return value.strip().rstrip('/')

        if key == 'api_token':
            return value or None

        return value

    def as_dict(self) -> dict:
        return dict(self._data)

    @property
    def api_url(self) -> str:
        return self._data.get('api_url', DEFAULT_API_URL)

    @property
    def registry_url(self) -> str:
        return self._data.get('registry_url', DEFAULT_REGISTRY_URL)

    @property
    def api_token(self) -> str | None:
        return self._data.get('api_token')

    @api_token.setter
    def api_token(self, value: str | None):
        self.set('api_token', value)

    @property
    def queue_poll_ms(self) -> int:
        return self._data.get('queue_poll_ms', QUEUE_POLL_MS)

    @property
    def registry_poll_ms(self) -> int:
        return self._data.get('registry_poll_ms', REGISTRY_POLL_MS)

    @property
    def tick_ms(self) -> int:
        return self._data.get('tick_ms', LIVE_TICK_MS)

    @property
    def rows_per_page(self) -> int:
        return self._data.get('rows_per_page', DEFAULT_ROWS_PER_PAGE)

    @property
    def request_timeout_sec(self) -> int:
        return self._data.get('request_timeout_sec', DEFAULT_REQUEST_TIMEOUT_SEC)
