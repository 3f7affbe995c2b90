"""
Core API for doto.

A Notebook owns one store directory: the key-value database, the tag
registry, the note store and the user preferences. Opening a notebook runs
the startup sequence:

1. load persisted notes (unreadable data -> empty collection)
2. run pending schema migrations (legacy todo status, legacy tags)
3. auto-advance stale notes to today
4. persist the migrated state

From then on every change event from the note store or tag registry is
saved through the configured policy (write-through by default).
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from .autosave import make_saver
from .backup import (
    BackupValidationError,
    ImportResult,
    dumps_backup,
    export_backup,
    normalize_note,
    parse_backup,
    validate_backup,
)
from .config import StoreConfig, get_default_store_path, load_or_create_config
from .dates import Clock, SystemClock
from .export import ExportFile, all_notes_to_markdown, export_notes_by_day
from .kv_store import (
    DB_FILENAME,
    META_KEY,
    NOTES_KEY,
    TAGS_KEY,
    KeyValueStore,
    SqliteKeyValueStore,
)
from .migrations import MigrationContext, dump_meta, read_schema_version, run_migrations
from .note_store import NoteStore
from .preferences import Preferences
from .tags import TagRegistry
from .types import Note, Tag, note_from_dict

logger = logging.getLogger(__name__)

# Raw text of unreadable notes is parked here instead of being overwritten
RECOVERED_NOTES_KEY = "doto-notes-recovered"


class Notebook:
    """
    A doto store: notes, tags and preferences with persistence.

    Example:
        with Notebook() as nb:
            note_id = nb.notes.add_task_note("Today")
            nb.notes.add_todo(note_id, "Write report")
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        kv: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """
        Open (or create) a notebook.

        Args:
            store_path: Store directory. Uses DOTO_STORE_PATH or ~/.doto if
                not specified.
            config: Pre-loaded StoreConfig (skips filesystem config discovery).
            kv: Injected key-value store (skips the SQLite database and the
                ops log; used by tests).
            clock: Source of today/now (defaults to the system clock).
        """
        self.clock: Clock = clock or SystemClock()
        self._ops_log_handler = None

        # --- Config resolution ---
        if config is not None:
            self._config = config
        elif kv is not None and store_path is None:
            self._config = StoreConfig(path=Path("."))
        else:
            path = Path(store_path).expanduser().resolve() if store_path is not None else get_default_store_path()
            self._config = load_or_create_config(path)
        self._store_path = self._config.path

        # --- Storage ---
        if kv is not None:
            self._kv = kv
        else:
            from .logging_config import configure_ops_log
            self._ops_log_handler = configure_ops_log(self._store_path)
            self._kv = SqliteKeyValueStore(self._store_path / DB_FILENAME)

        # --- Startup sequence ---
        self.tags = TagRegistry(self._load_tags())
        raw_notes = self._load_raw_notes()
        stored_version = read_schema_version(self._kv.get(META_KEY))
        ctx = MigrationContext(notes=raw_notes, tags=self.tags, now=self.clock.now())
        self._schema_version = run_migrations(ctx, stored_version)
        self.notes = NoteStore(self._parse_notes(raw_notes), clock=self.clock)
        self.notes.auto_advance()

        try:
            self._save_tags()
            self._save_notes()
            self._kv.set(META_KEY, dump_meta(self._schema_version))
        except Exception as e:
            logger.warning("Could not persist startup state (kept in memory): %s", e)
        logger.info(
            "Opened notebook at %s: %d notes, %d tags (schema v%d)",
            self._store_path, len(self.notes), len(self.tags), self._schema_version,
        )

        # --- Wiring ---
        self.tags.on_remove(self.notes.remove_tag_from_all_notes)
        self._notes_saver = make_saver(self._save_notes, self._config.debounce_ms)
        self._tags_saver = make_saver(self._save_tags, self._config.debounce_ms)
        self._unsubscribe = [
            self.notes.subscribe(self._notes_saver.trigger),
            self.tags.subscribe(self._tags_saver.trigger),
        ]
        self.preferences = Preferences(self._kv)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _load_json(self, key: str) -> Optional[Any]:
        text = self._kv.get(key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Persisted %s is not valid JSON (%s); starting empty", key, e)
            if key == NOTES_KEY:
                self._kv.set(RECOVERED_NOTES_KEY, text)
            return None

    def _load_tags(self) -> list[Tag]:
        data = self._load_json(TAGS_KEY)
        if not isinstance(data, list):
            return []
        tags = []
        for entry in data:
            try:
                tags.append(Tag.from_dict(entry))
            except (KeyError, TypeError) as e:
                logger.warning("Dropping unreadable tag %r: %s", entry, e)
        return tags

    def _load_raw_notes(self) -> list:
        data = self._load_json(NOTES_KEY)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Persisted notes are not a list; starting empty")
            self._kv.set(RECOVERED_NOTES_KEY, json.dumps(data))
            return []
        return data

    def _parse_notes(self, raw_notes: list) -> list[Note]:
        """Build notes from migrated dicts, skipping any that are invalid."""
        now = self.clock.now()
        notes: list[Note] = []
        seen: set[int] = set()
        dropped = []
        for i, raw in enumerate(raw_notes):
            try:
                normalized = normalize_note(raw, f"Note {i}", now)
            except BackupValidationError as e:
                logger.warning("Dropping persisted note: %s", e)
                dropped.append(raw)
                continue
            if normalized["id"] in seen:
                logger.warning("Dropping persisted note %d: duplicate id %d", i, normalized["id"])
                dropped.append(raw)
                continue
            seen.add(normalized["id"])
            notes.append(note_from_dict(normalized))
        if dropped:
            self._kv.set(RECOVERED_NOTES_KEY, json.dumps(dropped, ensure_ascii=False))
        return notes

    # -------------------------------------------------------------------------
    # Saving
    # -------------------------------------------------------------------------

    def _save_notes(self) -> None:
        self._kv.set(NOTES_KEY, json.dumps(self.notes.to_list(), ensure_ascii=False))

    def _save_tags(self) -> None:
        self._kv.set(TAGS_KEY, json.dumps(self.tags.to_list(), ensure_ascii=False))

    def flush(self) -> None:
        """Write out any debounced changes now."""
        self._notes_saver.save_now()
        self._tags_saver.save_now()

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def delete_tag(self, tag_id: str) -> bool:
        """Remove a tag from the registry and from every note using it."""
        return self.tags.remove(tag_id)

    # -------------------------------------------------------------------------
    # Data Export / Import
    # -------------------------------------------------------------------------

    def export_data(self) -> dict:
        """Backup document (version 1) for the whole collection."""
        return export_backup(self.notes.notes, exported_at=self.clock.now())

    def export_json(self) -> str:
        return dumps_backup(self.notes.notes, exported_at=self.clock.now())

    def import_data(self, data: Any) -> ImportResult:
        """
        Replace the collection with a decoded backup document.

        Nothing is changed unless the whole backup validates.
        """
        result = validate_backup(data, now=self.clock.now())
        return self._apply_import(result)

    def import_json(self, text: str) -> ImportResult:
        """Like import_data() but from JSON text; bad JSON is a failed result."""
        result = parse_backup(text, now=self.clock.now())
        return self._apply_import(result)

    def _apply_import(self, result: ImportResult) -> ImportResult:
        if not result.ok:
            logger.info("Import rejected: %s", result.error)
            return result
        self.notes.replace_all_notes(result.notes)
        logger.info("Imported %d notes", len(result.notes))
        return result

    def export_markdown(self) -> str:
        """Whole collection as Markdown, most recent date first."""
        return all_notes_to_markdown(
            self.notes.notes,
            exported_on=self.clock.today(),
            title=self._config.export_title,
        )

    def export_by_day(self) -> Optional[ExportFile]:
        """Legacy per-day export (one .md, or a .zip of several)."""
        return export_notes_by_day(self.notes.notes, title=self._config.export_title)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def store_path(self) -> Path:
        return self._store_path

    @property
    def schema_version(self) -> int:
        return self._schema_version

    def close(self) -> None:
        """Flush pending saves and release the database."""
        if self._kv is None:
            return
        self.flush()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._kv.close()
        self._kv = None
        if self._ops_log_handler is not None:
            logging.getLogger("doto").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
