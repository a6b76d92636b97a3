# Overview: Service-layer operations for key/value settings such as the category depth limit.

from __future__ import annotations

from ..models import ConfigEntry
from ..validation import ValidationError
from .base import BaseService
from .concurrency import store_operation

MAX_CATEGORY_DEPTH_KEY = "max_category_depth"

DEFAULT_SETTINGS = {
    MAX_CATEGORY_DEPTH_KEY: "5",
}


class SettingsValidationError(ValidationError):
    pass


class SettingsService(BaseService):
    """Key/value settings stored in the `config` table."""

    @store_operation
    def get(self, key: str, default: str | None = None) -> str | None:
        row = self.session.get(ConfigEntry, key)
        if row is None:
            return default
        return row.value

    def get_int(self, key: str, default: int) -> int:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return int(raw.strip())
        except ValueError:
            raise SettingsValidationError(f"setting {key} must be an integer, got {raw!r}")

    @store_operation
    def set(self, key: str, value) -> ConfigEntry:
        if not key or not key.strip():
            raise SettingsValidationError("setting key is required")
        if value is None:
            raise SettingsValidationError(f"setting {key} cannot be null")
        if key == MAX_CATEGORY_DEPTH_KEY:
            self._check_depth(value)

        row = self.session.get(ConfigEntry, key)
        if row is None:
            row = ConfigEntry(key=key, value=str(value))
            self.session.add(row)
        else:
            row.value = str(value)
        self.session.commit()
        self.log.info("setting %s=%s", key, row.value)
        return row

    @store_operation
    def all(self) -> dict[str, str]:
        rows = self.session.query(ConfigEntry).order_by(ConfigEntry.key.asc()).all()
        return {r.key: r.value for r in rows}

    def max_category_depth(self) -> int:
        """
        Current depth bound for the category tree.

        Read on every call so a change to the config row takes effect on the
        next depth-affecting operation.
        """
        depth = self.get_int(MAX_CATEGORY_DEPTH_KEY, int(self.ctx.config.get("MAX_CATEGORY_DEPTH", 5)))
        if depth < 0:
            raise SettingsValidationError(f"{MAX_CATEGORY_DEPTH_KEY} cannot be negative")
        return depth

    @store_operation
    def ensure_defaults(self) -> int:
        """Insert missing default rows. Safe to call repeatedly (idempotent)."""
        existing = {k for (k,) in self.session.query(ConfigEntry.key).all()}
        to_add = [(k, v) for k, v in DEFAULT_SETTINGS.items() if k not in existing]
        for key, value in to_add:
            self.session.add(ConfigEntry(key=key, value=value))
        if to_add:
            self.session.commit()
        return len(to_add)

    @staticmethod
    def _check_depth(value) -> None:
        try:
            depth = int(str(value).strip())
        except ValueError:
            raise SettingsValidationError(f"{MAX_CATEGORY_DEPTH_KEY} must be an integer")
        if depth < 0:
            raise SettingsValidationError(f"{MAX_CATEGORY_DEPTH_KEY} cannot be negative")
