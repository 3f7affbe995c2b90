"""
The note store: the ordered collection of notes and every operation on it.

Contract shared by all operations:

- Operations are synchronous and atomic; a single re-entrant lock guards
  the whole collection.
- Unknown note/todo ids, out-of-range indices and notes of the wrong type
  are silent no-ops. Nothing here raises for bad arguments.
- Every operation that changes state publishes exactly one change event
  (after the lock is released); no-ops publish nothing.
- Note ids and todo ids come from two running counters seeded from the
  highest ids present at construction. Ids are never handed out twice
  within a session, even after the owning note or todo is removed.
"""

import logging
import threading
from typing import Iterable, Optional

from .dates import Clock, SystemClock, is_valid_date
from .events import ChangeEmitter
from .types import Note, TaskNote, TextNote, Todo, TodoStatus

logger = logging.getLogger(__name__)


def _move_item(seq: list, from_index: int, to_index: int) -> bool:
    """Relocate seq[from_index] to to_index. False (and no change) if invalid."""
    if from_index == to_index:
        return False
    if not (0 <= from_index < len(seq)) or not (0 <= to_index < len(seq)):
        return False
    item = seq.pop(from_index)
    seq.insert(to_index, item)
    return True


class NoteStore(ChangeEmitter):
    """
    In-memory note collection with change events.

    Example:
        store = NoteStore()
        note_id = store.add_task_note("Groceries")
        todo_id = store.add_todo(note_id, "Milk")
        store.toggle_todo(note_id, todo_id)   # -> in-progress
    """

    def __init__(self, notes: Optional[Iterable[Note]] = None, *, clock: Optional[Clock] = None):
        super().__init__()
        self._clock: Clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._notes: list[Note] = list(notes or [])
        self._next_note_id = 1
        self._next_todo_id = 1
        self._reseed_ids()

    # -------------------------------------------------------------------------
    # Id management
    # -------------------------------------------------------------------------

    def _reseed_ids(self) -> None:
        self._next_note_id = max((n.id for n in self._notes), default=0) + 1
        self._next_todo_id = max(
            (t.id for n in self._notes if isinstance(n, TaskNote) for t in n.todos),
            default=0,
        ) + 1

    def _allocate_note_id(self) -> int:
        nid = self._next_note_id
        self._next_note_id += 1
        return nid

    def _allocate_todo_id(self) -> int:
        tid = self._next_todo_id
        self._next_todo_id += 1
        return tid

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def notes(self) -> list[Note]:
        """Snapshot of the collection order (the notes themselves are live)."""
        with self._lock:
            return list(self._notes)

    def get_note(self, note_id: int) -> Optional[Note]:
        with self._lock:
            return self._find(note_id)

    def find_notes_by_date(self, date: str) -> list[Note]:
        with self._lock:
            return [n for n in self._notes if n.current_date == date]

    def to_list(self) -> list[dict]:
        """Collection as plain dicts, in order (the persisted form)."""
        with self._lock:
            return [n.to_dict() for n in self._notes]

    def __len__(self) -> int:
        with self._lock:
            return len(self._notes)

    def _find(self, note_id: int) -> Optional[Note]:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def _find_task_note(self, note_id: int) -> Optional[TaskNote]:
        note = self._find(note_id)
        return note if isinstance(note, TaskNote) else None

    def _index_of(self, note_id: int) -> Optional[int]:
        for i, note in enumerate(self._notes):
            if note.id == note_id:
                return i
        return None

    def _changed(self, action: str) -> None:
        logger.debug("Notes changed: %s", action)
        self._emit()

    # -------------------------------------------------------------------------
    # Note operations
    # -------------------------------------------------------------------------

    def _resolve_date(self, date: Optional[str]) -> str:
        if date is None:
            return self._clock.today()
        if not is_valid_date(date):
            logger.warning("Ignoring invalid date %r, using today", date)
            return self._clock.today()
        return date

    def add_task_note(self, name: str, date: Optional[str] = None) -> int:
        """Append a task note dated ``date`` (default today). Returns its id."""
        with self._lock:
            note = TaskNote(
                id=self._allocate_note_id(),
                name=name,
                created_at=self._clock.now(),
                current_date=self._resolve_date(date),
                auto_advance=True,
            )
            self._notes.append(note)
        self._changed(f"add task note {note.id}")
        return note.id

    def add_text_note(self, name: str, date: Optional[str] = None) -> int:
        """Append a text note dated ``date`` (default today). Returns its id."""
        with self._lock:
            note = TextNote(
                id=self._allocate_note_id(),
                name=name,
                created_at=self._clock.now(),
                current_date=self._resolve_date(date),
                auto_advance=True,
            )
            self._notes.append(note)
        self._changed(f"add text note {note.id}")
        return note.id

    def rename_note(self, note_id: int, name: str) -> None:
        with self._lock:
            note = self._find(note_id)
            if note is None:
                return
            note.name = name
        self._changed(f"rename note {note_id}")

    def update_note_date(self, note_id: int, date: str) -> None:
        with self._lock:
            note = self._find(note_id)
            if note is None or not is_valid_date(date):
                return
            note.current_date = date
        self._changed(f"date note {note_id}")

    def update_note_tag(self, note_id: int, tag_id: Optional[str]) -> None:
        """Set the note's single tag, or clear it with None."""
        with self._lock:
            note = self._find(note_id)
            if note is None:
                return
            note.tags = [tag_id] if tag_id else []
        self._changed(f"tag note {note_id}")

    def update_note_content(self, note_id: int, content: str) -> None:
        with self._lock:
            note = self._find(note_id)
            if not isinstance(note, TextNote):
                return
            note.content = content
        self._changed(f"edit note {note_id}")

    def toggle_auto_advance(self, note_id: int) -> None:
        with self._lock:
            note = self._find(note_id)
            if note is None:
                return
            note.auto_advance = not note.auto_advance
        self._changed(f"toggle auto-advance {note_id}")

    def remove_note(self, note_id: int) -> None:
        """Remove a note and its todos. Its id is not reclaimed."""
        with self._lock:
            index = self._index_of(note_id)
            if index is None:
                return
            del self._notes[index]
        self._changed(f"remove note {note_id}")

    def move_note(self, from_index: int, to_index: int) -> None:
        with self._lock:
            moved = _move_item(self._notes, from_index, to_index)
        if moved:
            self._changed(f"move note {from_index} -> {to_index}")

    def move_note_by_id(self, from_id: int, to_id: int) -> None:
        """Move note ``from_id`` to the position currently held by ``to_id``."""
        with self._lock:
            from_index = self._index_of(from_id)
            to_index = self._index_of(to_id)
            if from_index is None or to_index is None:
                return
            moved = _move_item(self._notes, from_index, to_index)
        if moved:
            self._changed(f"move note {from_id} -> position of {to_id}")

    def duplicate_task_note(self, note_id: int, target_date: str) -> Optional[int]:
        """
        Carry a task note's unfinished work forward to ``target_date``.

        The source is archived in place (``archived`` on, ``auto_advance``
        off). The new note keeps the name and tags and receives copies of the
        non-completed todos with fresh ids and timestamps.

        Returns:
            Id of the new note, or None if nothing was done
        """
        if not is_valid_date(target_date):
            return None
        with self._lock:
            source = self._find_task_note(note_id)
            if source is None:
                return None
            now = self._clock.now()
            todos = [
                Todo(
                    id=self._allocate_todo_id(),
                    title=t.title,
                    status=t.status,
                    created_at=now,
                )
                for t in source.todos
                if t.is_open
            ]
            source.archived = True
            source.auto_advance = False
            copy = TaskNote(
                id=self._allocate_note_id(),
                name=source.name,
                created_at=now,
                current_date=target_date,
                tags=list(source.tags),
                auto_advance=True,
                todos=todos,
            )
            self._notes.append(copy)
        self._changed(f"duplicate note {note_id} as {copy.id}")
        return copy.id

    def remove_tag_from_all_notes(self, tag_id: str) -> None:
        """Clear a deleted tag from every note that references it."""
        with self._lock:
            touched = 0
            for note in self._notes:
                if tag_id in note.tags:
                    note.tags = [t for t in note.tags if t != tag_id]
                    touched += 1
        if touched:
            self._changed(f"remove tag {tag_id} from {touched} notes")

    def replace_all_notes(self, new_notes: Iterable[Note]) -> None:
        """Swap in a whole collection (import). Ids are taken verbatim."""
        with self._lock:
            self._notes = list(new_notes)
            self._reseed_ids()
            count = len(self._notes)
        logger.info("Replaced collection with %d notes", count)
        self._changed("replace all")

    def auto_advance(self, today: Optional[str] = None) -> int:
        """
        Roll stale notes forward to today.

        A note advances when auto-advance is on, it is not archived, its date
        is strictly before today and it still has open content.

        Returns:
            Number of notes advanced
        """
        today = today or self._clock.today()
        with self._lock:
            advanced = 0
            for note in self._notes:
                if not note.auto_advance or note.archived:
                    continue
                if note.current_date is None or note.current_date >= today:
                    continue
                if not note.has_open_content():
                    continue
                note.current_date = today
                advanced += 1
        if advanced:
            logger.info("Auto-advanced %d notes to %s", advanced, today)
            self._changed("auto-advance")
        return advanced

    # -------------------------------------------------------------------------
    # Todo operations
    # -------------------------------------------------------------------------

    def add_todo(self, note_id: int, title: str) -> Optional[int]:
        """Append an incomplete todo. Returns its id, or None for a bad note."""
        with self._lock:
            note = self._find_task_note(note_id)
            if note is None:
                return None
            todo = Todo(
                id=self._allocate_todo_id(),
                title=title,
                status=TodoStatus.INCOMPLETE,
                created_at=self._clock.now(),
            )
            note.todos.append(todo)
        self._changed(f"add todo {todo.id} to note {note_id}")
        return todo.id

    def remove_todo(self, note_id: int, todo_id: int) -> None:
        with self._lock:
            note = self._find_task_note(note_id)
            if note is None:
                return
            todo = note.find_todo(todo_id)
            if todo is None:
                return
            note.todos.remove(todo)
        self._changed(f"remove todo {todo_id}")

    def toggle_todo(self, note_id: int, todo_id: int) -> None:
        """Advance incomplete -> in-progress -> completed -> incomplete."""
        with self._lock:
            note = self._find_task_note(note_id)
            todo = note.find_todo(todo_id) if note else None
            if todo is None:
                return
            todo.status = todo.status.next()
            if todo.status == TodoStatus.COMPLETED:
                todo.completed_at = self._clock.now()
            else:
                todo.completed_at = None
        self._changed(f"toggle todo {todo_id} -> {todo.status.value}")

    def rename_todo(self, note_id: int, todo_id: int, title: str) -> None:
        with self._lock:
            note = self._find_task_note(note_id)
            todo = note.find_todo(todo_id) if note else None
            if todo is None:
                return
            todo.title = title
        self._changed(f"rename todo {todo_id}")

    def move_todo(self, note_id: int, from_index: int, to_index: int) -> None:
        with self._lock:
            note = self._find_task_note(note_id)
            if note is None:
                return
            moved = _move_item(note.todos, from_index, to_index)
        if moved:
            self._changed(f"move todo in note {note_id}")

    def move_todo_between_notes(
        self,
        from_note_id: int,
        to_note_id: int,
        from_index: int,
        to_index: int,
    ) -> None:
        """Move a todo to another task note, clamping the insert position."""
        with self._lock:
            source = self._find_task_note(from_note_id)
            target = self._find_task_note(to_note_id)
            if source is None or target is None:
                return
            if not (0 <= from_index < len(source.todos)):
                return
            todo = source.todos.pop(from_index)
            target.todos.insert(max(0, min(to_index, len(target.todos))), todo)
        self._changed(f"move todo {todo.id} from note {from_note_id} to {to_note_id}")

    def move_todo_to_date(self, from_note_id: int, todo_index: int, target_date: str) -> Optional[int]:
        """
        Move a todo onto the task list for ``target_date``.

        The first non-archived task note dated ``target_date`` receives the
        todo at its end. If there is none, a task note named after the date
        is created for it.

        Returns:
            Id of the receiving note, or None if nothing was done
        """
        if not is_valid_date(target_date):
            return None
        with self._lock:
            source = self._find_task_note(from_note_id)
            if source is None or not (0 <= todo_index < len(source.todos)):
                return None
            todo = source.todos.pop(todo_index)
            target = next(
                (
                    n for n in self._notes
                    if isinstance(n, TaskNote) and not n.archived and n.current_date == target_date
                ),
                None,
            )
            if target is None:
                target = TaskNote(
                    id=self._allocate_note_id(),
                    name=target_date,
                    created_at=self._clock.now(),
                    current_date=target_date,
                    auto_advance=True,
                )
                self._notes.append(target)
            target.todos.append(todo)
        self._changed(f"move todo {todo.id} to {target_date}")
        return target.id
