"""
User preferences persisted next to the notes.

Each preference is stored under its own key as a bare string, matching the
layout older stores already have. Unknown or damaged values fall back to
the default.
"""

from typing import Optional

from .kv_store import SHOW_CREATED_AT_KEY, THEME_KEY, WEEK_LENGTH_KEY, KeyValueStore

THEME_NAMES: tuple[str, ...] = ("latte", "frappe", "macchiato", "mocha")
DEFAULT_THEME = "mocha"

WEEK_LENGTHS: tuple[str, ...] = ("1", "5", "7")
DEFAULT_WEEK_LENGTH = "7"


class Preferences:
    """Theme, week length and created-at display settings."""

    def __init__(self, kv: KeyValueStore):
        self._kv = kv

    @property
    def theme(self) -> str:
        saved = self._kv.get(THEME_KEY)
        return saved if saved in THEME_NAMES else DEFAULT_THEME

    def set_theme(self, name: str) -> None:
        if name not in THEME_NAMES:
            raise ValueError(f"Unknown theme {name!r} (expected one of {', '.join(THEME_NAMES)})")
        self._kv.set(THEME_KEY, name)

    def cycle_theme(self) -> str:
        """Switch to the next theme in order, wrapping around. Returns it."""
        index = THEME_NAMES.index(self.theme)
        name = THEME_NAMES[(index + 1) % len(THEME_NAMES)]
        self._kv.set(THEME_KEY, name)
        return name

    @property
    def week_length(self) -> str:
        saved = self._kv.get(WEEK_LENGTH_KEY)
        return saved if saved in WEEK_LENGTHS else DEFAULT_WEEK_LENGTH

    def set_week_length(self, length: str) -> None:
        if length not in WEEK_LENGTHS:
            raise ValueError(f"Week length must be one of {', '.join(WEEK_LENGTHS)}, got {length!r}")
        self._kv.set(WEEK_LENGTH_KEY, length)

    @property
    def week_length_label(self) -> str:
        length = self.week_length
        return "1 day" if length == "1" else f"{length} days"

    @property
    def show_created_at(self) -> bool:
        return self._kv.get(SHOW_CREATED_AT_KEY) == "true"

    def set_show_created_at(self, value: bool) -> None:
        self._kv.set(SHOW_CREATED_AT_KEY, "true" if value else "false")

    def to_dict(self) -> dict[str, Optional[object]]:
        return {
            "theme": self.theme,
            "weekLength": self.week_length,
            "showCreatedAt": self.show_created_at,
        }
