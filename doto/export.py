"""
Markdown export.

Pure projections from notes to Markdown text. Nothing here touches the
store; writing files or the clipboard is left to the caller.

Two date orderings exist:
- all_notes_to_markdown() groups by date, most recent first (canonical)
- export_notes_by_day() writes one file per day, oldest first (legacy)
In both, notes without a date go to the "undated" group, which is always
last.
"""

import io
import re
import zipfile
from dataclasses import dataclass
from typing import Iterable, Optional

from .dates import local_today
from .types import Note, TaskNote, TodoStatus

UNDATED = "undated"
DEFAULT_TITLE = "Doto Notes"

CHECKBOXES = {
    TodoStatus.COMPLETED: "[x]",
    TodoStatus.IN_PROGRESS: "[-]",
    TodoStatus.INCOMPLETE: "[ ]",
}


def checkbox(status: TodoStatus) -> str:
    return CHECKBOXES[status]


def _body_lines(note: Note) -> list[str]:
    if isinstance(note, TaskNote):
        return [f"- {checkbox(t.status)} {t.title}" for t in note.todos]
    return [note.content or ""]


def note_to_markdown(note: Note) -> str:
    """Single note: ``# name``, a blank line, then checkboxes or the text."""
    lines = [f"# {note.name}", ""]
    lines.extend(_body_lines(note))
    return "\n".join(lines)


def note_filename(note: Note) -> str:
    """File name for a single-note export, e.g. "Work: plan" -> "work--plan.md"."""
    stem = re.sub(r"[^a-z0-9]", "-", note.name, flags=re.IGNORECASE).lower()
    return f"{stem or 'note'}.md"


def group_notes_by_date(notes: Iterable[Note]) -> dict[str, list[Note]]:
    """Group notes by ``current_date``, keeping collection order within a group."""
    grouped: dict[str, list[Note]] = {}
    for note in notes:
        grouped.setdefault(note.current_date or UNDATED, []).append(note)
    return grouped


def sort_date_keys(keys: Iterable[str], *, descending: bool = True) -> list[str]:
    """Sort date group keys; "undated" goes last in either direction."""
    keys = list(keys)
    dated = sorted((k for k in keys if k != UNDATED), reverse=descending)
    if UNDATED in keys:
        dated.append(UNDATED)
    return dated


def _group_heading(key: str) -> str:
    return "Undated" if key == UNDATED else key


def all_notes_to_markdown(
    notes: Iterable[Note],
    *,
    exported_on: Optional[str] = None,
    title: str = DEFAULT_TITLE,
) -> str:
    """
    Whole collection as one Markdown document, grouped by date.

    Groups are ordered most recent first with undated notes at the end.
    Each group gets a ``##`` heading and each note a ``###`` heading.
    """
    grouped = group_notes_by_date(notes)
    lines = [f"# {title}", "", f"Exported on {exported_on or local_today()}"]
    for key in sort_date_keys(list(grouped), descending=True):
        lines.extend(["", "---", "", f"## {_group_heading(key)}"])
        for note in grouped[key]:
            lines.extend(["", f"### {note.name}", ""])
            lines.extend(_body_lines(note))
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Legacy per-day export
# -----------------------------------------------------------------------------

def notes_for_day_to_markdown(date: str, notes: Iterable[Note], *, title: str = DEFAULT_TITLE) -> str:
    """One day's notes, each under a ``##`` heading separated by rules."""
    heading = f"{title} - Undated" if date == UNDATED else f"{title} - {date}"
    lines = [f"# {heading}"]
    for note in notes:
        lines.extend(["", "---", "", f"## {note.name}", ""])
        lines.extend(_body_lines(note))
    return "\n".join(lines)


def day_filename(date: str) -> str:
    return "doto-notes-undated.md" if date == UNDATED else f"doto-notes-{date}.md"


@dataclass
class ExportFile:
    """A rendered export ready to be written somewhere."""
    filename: str
    data: bytes
    media_type: str


def export_notes_by_day(notes: Iterable[Note], *, title: str = DEFAULT_TITLE) -> Optional[ExportFile]:
    """
    Per-day export, oldest day first.

    A single day produces one Markdown file; several days produce a zip
    archive holding one Markdown file per day. Returns None when there are
    no notes.
    """
    grouped = group_notes_by_date(notes)
    dates = sort_date_keys(list(grouped), descending=False)
    if not dates:
        return None

    if len(dates) == 1:
        date = dates[0]
        markdown = notes_for_day_to_markdown(date, grouped[date], title=title)
        return ExportFile(day_filename(date), markdown.encode("utf-8"), "text/markdown")

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for date in dates:
            zf.writestr(day_filename(date), notes_for_day_to_markdown(date, grouped[date], title=title))

    dated = [d for d in dates if d != UNDATED]
    start = dated[0] if dated else UNDATED
    end = dated[-1] if dated else UNDATED
    name = f"doto-notes-{start}.zip" if start == end else f"doto-notes-{start}-to-{end}.zip"
    return ExportFile(name, buf.getvalue(), "application/zip")
