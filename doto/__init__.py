"""
doto

A local note and task store: dated task lists and text notes with tags,
auto-advance of unfinished work, JSON backups and Markdown export.

Quick Start:
    from doto import Notebook

    with Notebook() as nb:               # uses ~/.doto/ by default
        note_id = nb.notes.add_task_note("Today")
        todo_id = nb.notes.add_todo(note_id, "Write report")
        nb.notes.toggle_todo(note_id, todo_id)   # -> in-progress

CLI Usage:
    doto note add "Today"
    doto todo add 1 "Write report"
    doto md all -

Environment Variables:
    DOTO_STORE_PATH  - Override default store location
    DOTO_VERBOSE     - Set to 1 for debug logging
"""

from .api import Notebook
from .backup import ImportResult, parse_backup, validate_backup
from .dates import FixedClock, SystemClock, local_now, local_today
from .note_store import NoteStore
from .tags import TagRegistry
from .types import Note, Tag, TaskNote, TextNote, Todo, TodoStatus

__version__ = "0.1.0"
__all__ = [
    "Notebook",
    "NoteStore",
    "TagRegistry",
    "Note",
    "TaskNote",
    "TextNote",
    "Todo",
    "TodoStatus",
    "Tag",
    "ImportResult",
    "parse_backup",
    "validate_backup",
    "FixedClock",
    "SystemClock",
    "local_today",
    "local_now",
]
