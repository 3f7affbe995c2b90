"""
Tag registry.

Owns the flat set of user-defined labels. Notes refer to tags by id only,
so removing a tag runs the registered cascades (normally
NoteStore.remove_tag_from_all_notes) to clear dangling references.
"""

import logging
import secrets
import string
import threading
from typing import Callable, Iterable, Optional

from .events import ChangeEmitter
from .types import TAG_COLORS, Tag

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase
TAG_ID_LENGTH = 8


def generate_tag_id() -> str:
    """Random 8-character base-36 identifier."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(TAG_ID_LENGTH))


class TagRegistry(ChangeEmitter):
    """In-memory tag collection with change events."""

    def __init__(self, tags: Optional[Iterable[Tag]] = None):
        super().__init__()
        self._tags: list[Tag] = list(tags or [])
        self._lock = threading.RLock()
        self._on_remove: list[Callable[[str], None]] = []

    def on_remove(self, cascade: Callable[[str], None]) -> None:
        """Register a callback run with the tag id after a tag is removed."""
        self._on_remove.append(cascade)

    def add(self, name: str, color: str) -> Tag:
        """Create a tag. Raises ValueError for a color outside the palette."""
        if color not in TAG_COLORS:
            raise ValueError(f"Unknown tag color {color!r} (expected one of {', '.join(TAG_COLORS)})")
        with self._lock:
            existing = {t.id for t in self._tags}
            tag_id = generate_tag_id()
            while tag_id in existing:
                tag_id = generate_tag_id()
            tag = Tag(id=tag_id, name=name, color=color)
            self._tags.append(tag)
        logger.info("Added tag %s (%s)", tag.id, name)
        self._emit()
        return tag

    def remove(self, tag_id: str) -> bool:
        """Remove a tag and clear it from every note. Unknown ids are ignored."""
        with self._lock:
            index = next((i for i, t in enumerate(self._tags) if t.id == tag_id), None)
            if index is None:
                return False
            del self._tags[index]
        logger.info("Removed tag %s", tag_id)
        for cascade in self._on_remove:
            cascade(tag_id)
        self._emit()
        return True

    def find(self, tag_id: str) -> Optional[Tag]:
        with self._lock:
            return next((t for t in self._tags if t.id == tag_id), None)

    def find_by_name(self, name: str) -> Optional[Tag]:
        """First tag whose name matches, ignoring case."""
        folded = name.casefold()
        with self._lock:
            return next((t for t in self._tags if t.name.casefold() == folded), None)

    def all(self) -> list[Tag]:
        with self._lock:
            return list(self._tags)

    def to_list(self) -> list[dict]:
        with self._lock:
            return [t.to_dict() for t in self._tags]

    def __len__(self) -> int:
        return len(self._tags)
