"""
Backup codec: validation and (de)serialization of note collections.

Backups are untrusted JSON documents of the form::

    {"version": 1, "exportedAt": "...", "notes": [...]}

Validation is fail-fast: the first violation is reported with the index of
the offending note (and todo) and the field at fault. Entry points never
raise; they return an ImportResult.

Todos may carry either the current ``status`` field or the legacy boolean
``completed``; both are accepted on read and only ``status`` is written.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .dates import is_valid_date, local_now
from .types import NOTE_TYPE_TASK, NOTE_TYPES, STATUS_VALUES, Note, TodoStatus, note_from_dict

BACKUP_VERSION = 1


class BackupValidationError(ValueError):
    """Raised internally when backup data fails validation."""


@dataclass
class ImportResult:
    """Outcome of parsing or validating a backup."""
    ok: bool
    notes: list[Note] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def success(cls, notes: list[Note]) -> "ImportResult":
        return cls(ok=True, notes=notes)

    @classmethod
    def failure(cls, error: str) -> "ImportResult":
        return cls(ok=False, error=error)


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _check_optional_str(d: dict, key: str, where: str) -> None:
    if key in d and d[key] is not None and not isinstance(d[key], str):
        raise BackupValidationError(f"{where}: '{key}' must be a string, got {_type_name(d[key])}")


def _check_optional_bool(d: dict, key: str, where: str) -> None:
    if key in d and not isinstance(d[key], bool):
        raise BackupValidationError(f"{where}: '{key}' must be a boolean, got {_type_name(d[key])}")


def normalize_todo(raw: dict, where: str, now: str) -> dict:
    """Validate one todo and return it with a ``status`` field.

    The input dict is not modified.
    """
    if not isinstance(raw, dict):
        raise BackupValidationError(f"{where}: expected an object, got {_type_name(raw)}")
    if not _is_int(raw.get("id")):
        raise BackupValidationError(f"{where}: 'id' must be an integer")
    if not isinstance(raw.get("title"), str):
        raise BackupValidationError(f"{where}: 'title' must be a string")

    todo = dict(raw)
    if "status" in todo:
        if not isinstance(todo["status"], str) or todo["status"] not in STATUS_VALUES:
            raise BackupValidationError(
                f"{where}: 'status' must be one of {', '.join(sorted(STATUS_VALUES))}, "
                f"got {todo['status']!r}"
            )
        todo.pop("completed", None)
    elif isinstance(todo.get("completed"), bool):
        completed = todo.pop("completed")
        todo["status"] = (TodoStatus.COMPLETED if completed else TodoStatus.INCOMPLETE).value
    else:
        raise BackupValidationError(f"{where}: missing 'status' (or legacy boolean 'completed')")

    _check_optional_str(todo, "createdAt", where)
    _check_optional_str(todo, "completedAt", where)
    if todo["status"] == TodoStatus.COMPLETED.value:
        if not todo.get("completedAt"):
            todo["completedAt"] = now
    else:
        todo.pop("completedAt", None)
    return todo


def normalize_note(raw: dict, where: str, now: str) -> dict:
    """Validate one note dict and return a normalized copy."""
    if not isinstance(raw, dict):
        raise BackupValidationError(f"{where}: expected an object, got {_type_name(raw)}")
    if not _is_int(raw.get("id")):
        raise BackupValidationError(f"{where}: 'id' must be an integer")
    if not isinstance(raw.get("name"), str):
        raise BackupValidationError(f"{where}: 'name' must be a string")
    note_type = raw.get("type")
    if not isinstance(note_type, str) or note_type not in NOTE_TYPES:
        raise BackupValidationError(f"{where}: 'type' must be 'task' or 'text', got {note_type!r}")

    _check_optional_str(raw, "createdAt", where)
    current_date = raw.get("currentDate")
    if current_date is not None and not is_valid_date(current_date):
        raise BackupValidationError(f"{where}: 'currentDate' must be a YYYY-MM-DD date, got {current_date!r}")
    tags = raw.get("tags")
    if tags is not None and (not isinstance(tags, list) or not all(isinstance(t, str) for t in tags)):
        raise BackupValidationError(f"{where}: 'tags' must be a list of strings")
    _check_optional_bool(raw, "autoAdvance", where)
    _check_optional_bool(raw, "archived", where)

    note = {k: v for k, v in raw.items() if k not in ("todos", "content")}
    if note_type == NOTE_TYPE_TASK:
        todos = raw.get("todos")
        if not isinstance(todos, list):
            raise BackupValidationError(f"{where}: 'todos' must be a list")
        seen: set[int] = set()
        normalized = []
        for j, todo in enumerate(todos):
            item = normalize_todo(todo, f"{where}, todo {j}", now)
            if item["id"] in seen:
                raise BackupValidationError(f"{where}, todo {j}: duplicate todo id {item['id']}")
            seen.add(item["id"])
            normalized.append(item)
        note["todos"] = normalized
    else:
        if not isinstance(raw.get("content"), str):
            raise BackupValidationError(f"{where}: 'content' must be a string")
        note["content"] = raw["content"]
    return note


def parse_notes(raw_notes: Any, *, now: Optional[str] = None) -> list[Note]:
    """Validate a list of note dicts and build Note objects.

    Raises:
        BackupValidationError: on the first invalid note or todo
    """
    if not isinstance(raw_notes, list):
        raise BackupValidationError(f"'notes' must be a list, got {_type_name(raw_notes)}")
    now = now or local_now()
    seen: set[int] = set()
    notes: list[Note] = []
    for i, raw in enumerate(raw_notes):
        where = f"Note {i}"
        normalized = normalize_note(raw, where, now)
        if normalized["id"] in seen:
            raise BackupValidationError(f"{where}: duplicate note id {normalized['id']}")
        seen.add(normalized["id"])
        notes.append(note_from_dict(normalized))
    return notes


def validate_backup(raw: Any, *, now: Optional[str] = None) -> ImportResult:
    """
    Validate a decoded backup document.

    Args:
        raw: Decoded JSON value (untrusted)
        now: Timestamp used for legacy completed todos that lack one

    Returns:
        ImportResult with the parsed notes, or the first validation error
    """
    if not isinstance(raw, dict):
        return ImportResult.failure(f"Invalid backup: expected a JSON object, got {_type_name(raw)}")
    version = raw.get("version")
    if not _is_int(version) or version != BACKUP_VERSION:
        return ImportResult.failure(
            f"Unsupported version: {version!r} (this version supports {BACKUP_VERSION})"
        )
    try:
        notes = parse_notes(raw.get("notes"), now=now)
    except BackupValidationError as e:
        return ImportResult.failure(f"Invalid backup: {e}")
    return ImportResult.success(notes)


def parse_backup(text: str, *, now: Optional[str] = None) -> ImportResult:
    """Decode and validate backup JSON text. Never raises."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        return ImportResult.failure(f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})")
    except (TypeError, ValueError) as e:
        return ImportResult.failure(f"Invalid JSON: {e}")
    return validate_backup(raw, now=now)


# -----------------------------------------------------------------------------
# Serialization
# -----------------------------------------------------------------------------

def notes_to_list(notes: Iterable[Note]) -> list[dict]:
    return [note.to_dict() for note in notes]


def export_backup(notes: Iterable[Note], *, exported_at: Optional[str] = None) -> dict:
    """Build a version-1 backup document for the given notes."""
    return {
        "version": BACKUP_VERSION,
        "exportedAt": exported_at or local_now(),
        "notes": notes_to_list(notes),
    }


def dumps_backup(notes: Iterable[Note], *, exported_at: Optional[str] = None) -> str:
    """Backup document as pretty-printed JSON text."""
    return json.dumps(export_backup(notes, exported_at=exported_at), indent=2, ensure_ascii=False)
