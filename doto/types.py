"""
Data types for doto.

A note is either a task list (TaskNote) or free text (TextNote). The two are
separate dataclasses so a text note never carries todos and a task note
never carries content. Persisted and exported dicts use camelCase keys
(createdAt, currentDate, autoAdvance...) for compatibility with existing
stores.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union


class TodoStatus(str, Enum):
    """Three-state completion status of a todo."""
    INCOMPLETE = "incomplete"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    def next(self) -> "TodoStatus":
        """Next status in the cycle incomplete -> in-progress -> completed."""
        return _STATUS_CYCLE[self]


_STATUS_CYCLE = {
    TodoStatus.INCOMPLETE: TodoStatus.IN_PROGRESS,
    TodoStatus.IN_PROGRESS: TodoStatus.COMPLETED,
    TodoStatus.COMPLETED: TodoStatus.INCOMPLETE,
}

STATUS_VALUES = frozenset(s.value for s in TodoStatus)

NOTE_TYPE_TASK = "task"
NOTE_TYPE_TEXT = "text"
NOTE_TYPES = frozenset({NOTE_TYPE_TASK, NOTE_TYPE_TEXT})

# Theme accent roles usable as tag colors
TAG_COLORS: tuple[str, ...] = (
    "rosewater",
    "flamingo",
    "pink",
    "mauve",
    "red",
    "maroon",
    "peach",
    "yellow",
    "green",
    "teal",
    "sky",
    "sapphire",
    "blue",
    "lavender",
)


@dataclass
class Todo:
    """A single task item.

    ``completed_at`` is set if and only if ``status`` is COMPLETED.
    """
    id: int
    title: str
    status: TodoStatus = TodoStatus.INCOMPLETE
    created_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status != TodoStatus.COMPLETED

    def to_dict(self) -> dict:
        d: dict = {"id": self.id, "title": self.title, "status": self.status.value}
        if self.created_at is not None:
            d["createdAt"] = self.created_at
        if self.completed_at is not None:
            d["completedAt"] = self.completed_at
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Todo":
        """Build from an already-validated dict (status already migrated)."""
        status = TodoStatus(d["status"])
        completed_at = d.get("completedAt")
        if status != TodoStatus.COMPLETED:
            completed_at = None
        return cls(
            id=d["id"],
            title=d["title"],
            status=status,
            created_at=d.get("createdAt"),
            completed_at=completed_at,
        )


@dataclass
class NoteBase:
    """Fields shared by every note."""
    id: int
    name: str
    created_at: Optional[str] = None
    current_date: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    auto_advance: bool = True
    archived: bool = False

    type: ClassVar[str] = ""

    @property
    def tag_id(self) -> Optional[str]:
        """The effective tag; only the first entry of ``tags`` counts."""
        return self.tags[0] if self.tags else None

    def has_open_content(self) -> bool:
        raise NotImplementedError

    def _base_dict(self) -> dict:
        d: dict = {"id": self.id, "type": self.type, "name": self.name}
        if self.created_at is not None:
            d["createdAt"] = self.created_at
        if self.current_date is not None:
            d["currentDate"] = self.current_date
        d["tags"] = list(self.tags)
        d["autoAdvance"] = self.auto_advance
        d["archived"] = self.archived
        return d


@dataclass
class TaskNote(NoteBase):
    """A note holding an ordered list of todos."""
    todos: list[Todo] = field(default_factory=list)

    type: ClassVar[str] = NOTE_TYPE_TASK

    def has_open_content(self) -> bool:
        """True while at least one todo is not completed."""
        return any(t.is_open for t in self.todos)

    def find_todo(self, todo_id: int) -> Optional[Todo]:
        for todo in self.todos:
            if todo.id == todo_id:
                return todo
        return None

    def to_dict(self) -> dict:
        d = self._base_dict()
        d["todos"] = [t.to_dict() for t in self.todos]
        return d


@dataclass
class TextNote(NoteBase):
    """A note holding free text."""
    content: str = ""

    type: ClassVar[str] = NOTE_TYPE_TEXT

    def has_open_content(self) -> bool:
        """True while the content is not blank."""
        return bool(self.content.strip())

    def to_dict(self) -> dict:
        d = self._base_dict()
        d["content"] = self.content
        return d


Note = Union[TaskNote, TextNote]


def note_from_dict(d: dict) -> Note:
    """Build a note from an already-validated dict.

    Missing optional fields take the defaults a freshly created note would
    have (``autoAdvance`` true, not archived, no tags).
    """
    common = dict(
        id=d["id"],
        name=d["name"],
        created_at=d.get("createdAt"),
        current_date=d.get("currentDate"),
        tags=list(d.get("tags") or []),
        auto_advance=d.get("autoAdvance", True),
        archived=d.get("archived", False),
    )
    if d["type"] == NOTE_TYPE_TASK:
        return TaskNote(todos=[Todo.from_dict(t) for t in d.get("todos", [])], **common)
    return TextNote(content=d.get("content", ""), **common)


@dataclass
class Tag:
    """A user-defined label referenced from notes by id."""
    id: str
    name: str
    color: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_dict(cls, d: dict) -> "Tag":
        return cls(id=str(d["id"]), name=str(d["name"]), color=str(d["color"]))
