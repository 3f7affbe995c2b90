"""
Schema migrations for persisted notes.

Migrations run on the raw persisted data (plain dicts, before validation)
as an ordered list of steps keyed by schema version. The stored version
lives in the meta document; a step runs when its version is newer than the
stored one, and the stored version is then advanced to SCHEMA_VERSION.
Steps marked ``every_load`` also run on every load. Every step is
idempotent.

History:
    v1: todo ``completed`` boolean replaced by the three-state ``status``
    v2: literal "work"/"personal" note tags replaced by registry tag ids
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .tags import TagRegistry
from .types import TodoStatus

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# legacy literal tag -> (registry name, color)
LEGACY_TAGS: dict[str, tuple[str, str]] = {
    "work": ("Work", "blue"),
    "personal": ("Personal", "green"),
}


@dataclass
class MigrationContext:
    """Mutable state handed to each migration step."""
    notes: list[Any]
    tags: TagRegistry
    now: str


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    apply: Callable[[MigrationContext], int]
    every_load: bool = False


def _task_todos(note: Any) -> list[dict]:
    if not isinstance(note, dict) or note.get("type") != "task":
        return []
    todos = note.get("todos")
    if not isinstance(todos, list):
        return []
    return [t for t in todos if isinstance(t, dict)]


def migrate_todo_status(ctx: MigrationContext) -> int:
    """Translate legacy ``completed`` booleans into ``status``.

    Only todos with a boolean ``completed`` and no ``status`` are touched;
    the boolean is dropped afterwards. Returns the number of todos changed.
    """
    changed = 0
    for note in ctx.notes:
        for todo in _task_todos(note):
            if "status" in todo or not isinstance(todo.get("completed"), bool):
                continue
            completed = todo.pop("completed")
            if completed:
                todo["status"] = TodoStatus.COMPLETED.value
                todo.setdefault("completedAt", ctx.now)
            else:
                todo["status"] = TodoStatus.INCOMPLETE.value
                todo.pop("completedAt", None)
            changed += 1
    return changed


def _is_legacy_tag(value: Any) -> bool:
    # raw persisted values may be unhashable; validation drops those notes later
    return isinstance(value, str) and value in LEGACY_TAGS


def migrate_legacy_tags(ctx: MigrationContext) -> int:
    """Replace literal "work"/"personal" note tags with registry tag ids.

    Registry tags are matched by name and only created when some note
    still uses the literal. Returns the number of notes rewritten.
    """
    changed = 0
    for note in ctx.notes:
        if not isinstance(note, dict):
            continue
        tags = note.get("tags")
        if not isinstance(tags, list) or not any(_is_legacy_tag(t) for t in tags):
            continue
        rewritten: list = []
        for value in tags:
            if _is_legacy_tag(value):
                name, color = LEGACY_TAGS[value]
                tag = ctx.tags.find_by_name(name) or ctx.tags.add(name, color)
                value = tag.id
            if value not in rewritten:
                rewritten.append(value)
        note["tags"] = rewritten
        changed += 1
    return changed


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "todo-status", migrate_todo_status, every_load=True),
    Migration(2, "legacy-tags", migrate_legacy_tags),
)


def run_migrations(ctx: MigrationContext, stored_version: int) -> int:
    """
    Apply pending migrations in order.

    Args:
        ctx: Raw notes and the tag registry (both modified in place)
        stored_version: Schema version recorded in the meta document

    Returns:
        The schema version to record afterwards
    """
    if stored_version > SCHEMA_VERSION:
        logger.warning(
            "Stored schema version %d is newer than supported (%d); skipping migrations",
            stored_version, SCHEMA_VERSION,
        )
        return stored_version
    for migration in MIGRATIONS:
        if migration.version > stored_version or migration.every_load:
            count = migration.apply(ctx)
            if count:
                logger.info("Migration %s (v%d): %d changes", migration.name, migration.version, count)
    return SCHEMA_VERSION


def read_schema_version(meta_text: Optional[str]) -> int:
    """Schema version from the meta document; 0 if absent or unreadable."""
    if not meta_text:
        return 0
    try:
        meta = json.loads(meta_text)
    except json.JSONDecodeError:
        logger.warning("Unreadable meta document, assuming schema version 0")
        return 0
    version = meta.get("schemaVersion") if isinstance(meta, dict) else None
    if isinstance(version, int) and not isinstance(version, bool) and version >= 0:
        return version
    return 0


def dump_meta(version: int) -> str:
    return json.dumps({"schemaVersion": version})
