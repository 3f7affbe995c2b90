"""
CLI interface for doto.

Usage:
    doto note add "Groceries"
    doto todo add 1 "Milk"
    doto todo toggle 1 1
    doto list
    doto data export backup.json
"""

import json
import os
import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer
from typing_extensions import Annotated

from .api import Notebook
from .dates import is_valid_date
from .export import checkbox, note_filename, note_to_markdown
from .logging_config import configure_quiet_mode, enable_debug_mode
from .preferences import THEME_NAMES, WEEK_LENGTHS
from .types import TAG_COLORS, Note, TaskNote


# Configure quiet mode by default
# Set DOTO_VERBOSE=1 to enable debug mode via environment
if os.environ.get("DOTO_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"doto {version('doto')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None
_notebook: Optional[Notebook] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _store_callback(value: Optional[Path]):
    global _store_override
    _store_override = value


app = typer.Typer(
    name="doto",
    help="Dated task lists and notes.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="DOTO_STORE_PATH",
        help="Path to the store directory (default: ~/.doto/)",
        callback=_store_callback,
    )] = None,
    json_output: Annotated[bool, typer.Option(
        "--json", "-j", help="Output as JSON", callback=_json_callback,
    )] = False,
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v", help="Enable debug-level logging to stderr",
        callback=_verbose_callback, is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version", help="Show version and exit",
        callback=_version_callback, is_eager=True,
    )] = None,
):
    """Dated task lists and notes."""
    ctx.call_on_close(_close_notebook)


def _get_notebook() -> Notebook:
    """Open the notebook for this invocation; closed when the command ends."""
    global _notebook
    if _notebook is None:
        _notebook = Notebook(_store_override)
    return _notebook


def _close_notebook() -> None:
    global _notebook
    if _notebook is not None:
        _notebook.close()
        _notebook = None


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _require_date(value: str) -> str:
    if not is_valid_date(value):
        _fail(f"invalid date {value!r} (expected YYYY-MM-DD)")
    return value


def _require_note(nb: Notebook, note_id: int) -> Note:
    note = nb.notes.get_note(note_id)
    if note is None:
        _fail(f"no note with id {note_id}")
    return note


def _require_task_note(nb: Notebook, note_id: int) -> TaskNote:
    note = _require_note(nb, note_id)
    if not isinstance(note, TaskNote):
        _fail(f"note {note_id} is a text note")
    return note


# -----------------------------------------------------------------------------
# Output Formatting
# -----------------------------------------------------------------------------

def _format_note(nb: Notebook, note: Note) -> str:
    date = note.current_date or "undated"
    flags = []
    if note.archived:
        flags.append("archived")
    if not note.auto_advance:
        flags.append("no-advance")
    tag = nb.tags.find(note.tag_id) if note.tag_id else None
    line = f"{note.id:>4}  {date}  [{note.type}] {note.name}"
    if tag is not None:
        line += f"  #{tag.name}"
    if flags:
        line += f"  ({', '.join(flags)})"
    lines = [line]
    if isinstance(note, TaskNote):
        for index, todo in enumerate(note.todos):
            lines.append(f"        {index}. {checkbox(todo.status)} {todo.title}  (#{todo.id})")
    elif note.content:
        for text_line in note.content.splitlines():
            lines.append(f"        {text_line}")
    return "\n".join(lines)


def _emit_note(nb: Notebook, note: Note) -> None:
    if _json_output:
        typer.echo(json.dumps(note.to_dict(), indent=2, ensure_ascii=False))
    else:
        typer.echo(_format_note(nb, note))


# -----------------------------------------------------------------------------
# Listing
# -----------------------------------------------------------------------------

@app.command("list")
def list_notes(
    date: Annotated[Optional[str], typer.Option(
        "--date", "-d", help="Only notes dated YYYY-MM-DD",
    )] = None,
    include_archived: Annotated[bool, typer.Option(
        "--archived", "-a", help="Include archived notes",
    )] = False,
):
    """List notes in collection order."""
    nb = _get_notebook()
    notes = nb.notes.find_notes_by_date(_require_date(date)) if date else nb.notes.notes
    if not include_archived:
        notes = [n for n in notes if not n.archived]
    if _json_output:
        typer.echo(json.dumps([n.to_dict() for n in notes], indent=2, ensure_ascii=False))
        return
    if not notes:
        typer.echo("No notes.")
        return
    for note in notes:
        typer.echo(_format_note(nb, note))


# -----------------------------------------------------------------------------
# Notes
# -----------------------------------------------------------------------------

note_app = typer.Typer(name="note", help="Create and edit notes.", rich_markup_mode=None)
app.add_typer(note_app)


@note_app.command("add")
def note_add(
    name: Annotated[str, typer.Argument(help="Note name")],
    text: Annotated[bool, typer.Option("--text", "-t", help="Create a text note instead of a task list")] = False,
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date YYYY-MM-DD (default: today)")] = None,
):
    """Add a task note (or a text note with --text)."""
    nb = _get_notebook()
    if date is not None:
        _require_date(date)
    note_id = nb.notes.add_text_note(name, date) if text else nb.notes.add_task_note(name, date)
    _emit_note(nb, nb.notes.get_note(note_id))


@note_app.command("show")
def note_show(note_id: Annotated[int, typer.Argument(help="Note id")]):
    """Show one note."""
    nb = _get_notebook()
    _emit_note(nb, _require_note(nb, note_id))


@note_app.command("rename")
def note_rename(
    note_id: Annotated[int, typer.Argument(help="Note id")],
    name: Annotated[str, typer.Argument(help="New name")],
):
    """Rename a note."""
    nb = _get_notebook()
    _require_note(nb, note_id)
    nb.notes.rename_note(note_id, name)
    _emit_note(nb, nb.notes.get_note(note_id))


@note_app.command("date")
def note_date(
    note_id: Annotated[int, typer.Argument(help="Note id")],
    date: Annotated[str, typer.Argument(help="New date YYYY-MM-DD")],
):
    """Move a note to another date."""
    nb = _get_notebook()
    _require_note(nb, note_id)
    nb.notes.update_note_date(note_id, _require_date(date))
    _emit_note(nb, nb.notes.get_note(note_id))


@note_app.command("tag")
def note_tag(
    note_id: Annotated[int, typer.Argument(help="Note id")],
    tag_id: Annotated[Optional[str], typer.Argument(help="Tag id (omit to clear)")] = None,
):
    """Set or clear a note's tag."""
    nb = _get_notebook()
    _require_note(nb, note_id)
    if tag_id is not None and nb.tags.find(tag_id) is None:
        _fail(f"no tag with id {tag_id}")
    nb.notes.update_note_tag(note_id, tag_id)
    _emit_note(nb, nb.notes.get_note(note_id))


@note_app.command("content")
def note_content(
    note_id: Annotated[int, typer.Argument(help="Text note id")],
    content: Annotated[str, typer.Argument(help="New text ('-' reads stdin)")],
):
    """Replace the text of a text note."""
    nb = _get_notebook()
    note = _require_note(nb, note_id)
    if isinstance(note, TaskNote):
        _fail(f"note {note_id} is a task note")
    if content == "-":
        content = sys.stdin.read()
    nb.notes.update_note_content(note_id, content)
    _emit_note(nb, nb.notes.get_note(note_id))


@note_app.command("auto-advance")
def note_auto_advance(note_id: Annotated[int, typer.Argument(help="Note id")]):
    """Toggle auto-advance for a note."""
    nb = _get_notebook()
    _require_note(nb, note_id)
    nb.notes.toggle_auto_advance(note_id)
    state = "on" if nb.notes.get_note(note_id).auto_advance else "off"
    typer.echo(f"Auto-advance {state} for note {note_id}")


@note_app.command("rm")
def note_rm(note_id: Annotated[int, typer.Argument(help="Note id")]):
    """Delete a note and its todos."""
    nb = _get_notebook()
    _require_note(nb, note_id)
    nb.notes.remove_note(note_id)
    typer.echo(f"Removed note {note_id}")


@note_app.command("move")
def note_move(
    source: Annotated[int, typer.Argument(help="Current position (0-based), or note id with --by-id")],
    target: Annotated[int, typer.Argument(help="New position (0-based), or the id of the note to take the place of")],
    by_id: Annotated[bool, typer.Option("--by-id", help="Arguments are note ids, not positions")] = False,
):
    """Reorder notes by position (or by note id with --by-id)."""
    nb = _get_notebook()
    if by_id:
        _require_note(nb, source)
        _require_note(nb, target)
        nb.notes.move_note_by_id(source, target)
    else:
        nb.notes.move_note(source, target)
    for note in nb.notes.notes:
        typer.echo(f"{note.id:>4}  {note.name}")


@note_app.command("duplicate")
def note_duplicate(
    note_id: Annotated[int, typer.Argument(help="Task note id")],
    date: Annotated[str, typer.Argument(help="Target date YYYY-MM-DD")],
):
    """Archive a task note and carry its open todos to DATE."""
    nb = _get_notebook()
    _require_task_note(nb, note_id)
    new_id = nb.notes.duplicate_task_note(note_id, _require_date(date))
    _emit_note(nb, nb.notes.get_note(new_id))


# -----------------------------------------------------------------------------
# Todos
# -----------------------------------------------------------------------------

todo_app = typer.Typer(name="todo", help="Edit todos in task notes.", rich_markup_mode=None)
app.add_typer(todo_app)


@todo_app.command("add")
def todo_add(
    note_id: Annotated[int, typer.Argument(help="Task note id")],
    title: Annotated[str, typer.Argument(help="Todo title")],
):
    """Append a todo to a task note."""
    nb = _get_notebook()
    _require_task_note(nb, note_id)
    nb.notes.add_todo(note_id, title)
    _emit_note(nb, nb.notes.get_note(note_id))


@todo_app.command("toggle")
def todo_toggle(
    note_id: Annotated[int, typer.Argument(help="Task note id")],
    todo_id: Annotated[int, typer.Argument(help="Todo id")],
):
    """Cycle a todo: incomplete -> in-progress -> completed."""
    nb = _get_notebook()
    note = _require_task_note(nb, note_id)
    if note.find_todo(todo_id) is None:
        _fail(f"no todo {todo_id} in note {note_id}")
    nb.notes.toggle_todo(note_id, todo_id)
    _emit_note(nb, note)


@todo_app.command("rename")
def todo_rename(
    note_id: Annotated[int, typer.Argument(help="Task note id")],
    todo_id: Annotated[int, typer.Argument(help="Todo id")],
    title: Annotated[str, typer.Argument(help="New title")],
):
    """Rename a todo."""
    nb = _get_notebook()
    note = _require_task_note(nb, note_id)
    if note.find_todo(todo_id) is None:
        _fail(f"no todo {todo_id} in note {note_id}")
    nb.notes.rename_todo(note_id, todo_id, title)
    _emit_note(nb, note)


@todo_app.command("rm")
def todo_rm(
    note_id: Annotated[int, typer.Argument(help="Task note id")],
    todo_id: Annotated[int, typer.Argument(help="Todo id")],
):
    """Delete a todo."""
    nb = _get_notebook()
    note = _require_task_note(nb, note_id)
    nb.notes.remove_todo(note_id, todo_id)
    _emit_note(nb, note)


@todo_app.command("move")
def todo_move(
    note_id: Annotated[int, typer.Argument(help="Task note id")],
    from_index: Annotated[int, typer.Argument(help="Current position (0-based)")],
    to_index: Annotated[int, typer.Argument(help="New position (0-based)")],
):
    """Reorder todos within a task note."""
    nb = _get_notebook()
    note = _require_task_note(nb, note_id)
    nb.notes.move_todo(note_id, from_index, to_index)
    _emit_note(nb, note)


@todo_app.command("transfer")
def todo_transfer(
    from_note_id: Annotated[int, typer.Argument(help="Source task note id")],
    to_note_id: Annotated[int, typer.Argument(help="Destination task note id")],
    from_index: Annotated[int, typer.Argument(help="Position in the source (0-based)")],
    to_index: Annotated[int, typer.Argument(help="Position in the destination (0-based)")] = 0,
):
    """Move a todo into another task note."""
    nb = _get_notebook()
    _require_task_note(nb, from_note_id)
    target = _require_task_note(nb, to_note_id)
    nb.notes.move_todo_between_notes(from_note_id, to_note_id, from_index, to_index)
    _emit_note(nb, target)


@todo_app.command("to-date")
def todo_to_date(
    note_id: Annotated[int, typer.Argument(help="Source task note id")],
    index: Annotated[int, typer.Argument(help="Position of the todo (0-based)")],
    date: Annotated[str, typer.Argument(help="Target date YYYY-MM-DD")],
):
    """Move a todo onto the task list for DATE (created if missing)."""
    nb = _get_notebook()
    _require_task_note(nb, note_id)
    target_id = nb.notes.move_todo_to_date(note_id, index, _require_date(date))
    if target_id is None:
        _fail(f"no todo at position {index} in note {note_id}")
    _emit_note(nb, nb.notes.get_note(target_id))


# -----------------------------------------------------------------------------
# Tags
# -----------------------------------------------------------------------------

tag_app = typer.Typer(name="tag", help="Manage tags.", rich_markup_mode=None)
app.add_typer(tag_app)


@tag_app.command("add")
def tag_add(
    name: Annotated[str, typer.Argument(help="Tag name")],
    color: Annotated[str, typer.Option(
        "--color", "-c", help=f"One of: {', '.join(TAG_COLORS)}",
    )] = "blue",
):
    """Create a tag."""
    if color not in TAG_COLORS:
        _fail(f"unknown color {color!r} (expected one of {', '.join(TAG_COLORS)})")
    nb = _get_notebook()
    tag = nb.tags.add(name, color)
    if _json_output:
        typer.echo(json.dumps(tag.to_dict()))
    else:
        typer.echo(f"{tag.id}  {tag.name}  ({tag.color})")


@tag_app.command("rm")
def tag_rm(tag_id: Annotated[str, typer.Argument(help="Tag id")]):
    """Delete a tag and clear it from every note."""
    nb = _get_notebook()
    if not nb.delete_tag(tag_id):
        _fail(f"no tag with id {tag_id}")
    typer.echo(f"Removed tag {tag_id}")


@tag_app.command("list")
def tag_list():
    """List tags."""
    nb = _get_notebook()
    tags = nb.tags.all()
    if _json_output:
        typer.echo(json.dumps([t.to_dict() for t in tags], indent=2))
        return
    if not tags:
        typer.echo("No tags.")
    for tag in tags:
        typer.echo(f"{tag.id}  {tag.name}  ({tag.color})")


# -----------------------------------------------------------------------------
# Data Management
# -----------------------------------------------------------------------------

data_app = typer.Typer(name="data", help="Export and import JSON backups.", rich_markup_mode=None)
app.add_typer(data_app)


@data_app.command("export")
def data_export(
    output: Annotated[str, typer.Argument(help="Output file path (use '-' for stdout)")],
):
    """Export all notes to a JSON backup."""
    nb = _get_notebook()
    text = nb.export_json()
    if output == "-":
        typer.echo(text)
        return
    Path(output).write_text(text + "\n", encoding="utf-8")
    typer.echo(f"Exported {len(nb.notes)} notes to {output}", err=True)


@data_app.command("import")
def data_import(
    file: Annotated[str, typer.Argument(help="JSON backup file to import ('-' for stdin)")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
):
    """Replace all notes with the contents of a JSON backup."""
    if file == "-":
        text = sys.stdin.read()
    else:
        path = Path(file)
        if not path.exists():
            _fail(f"file not found: {file}")
        text = path.read_text(encoding="utf-8")

    nb = _get_notebook()
    if not yes and len(nb.notes) and not typer.confirm(
        f"This will replace all {len(nb.notes)} existing notes with the contents of {file}. Continue?"
    ):
        raise typer.Exit(0)

    result = nb.import_json(text)
    if not result.ok:
        _fail(result.error)
    typer.echo(f"Imported {len(result.notes)} notes.", err=True)


# -----------------------------------------------------------------------------
# Markdown Export
# -----------------------------------------------------------------------------

md_app = typer.Typer(name="md", help="Export notes as Markdown.", rich_markup_mode=None)
app.add_typer(md_app)


def _write_text(output: str, text: str) -> None:
    if output == "-":
        typer.echo(text)
    else:
        Path(output).write_text(text + "\n", encoding="utf-8")
        typer.echo(f"Wrote {output}", err=True)


@md_app.command("all")
def md_all(output: Annotated[str, typer.Argument(help="Output file ('-' for stdout)")] = "-"):
    """All notes in one document, grouped by date (newest first)."""
    nb = _get_notebook()
    _write_text(output, nb.export_markdown())


@md_app.command("note")
def md_note(
    note_id: Annotated[int, typer.Argument(help="Note id")],
    output: Annotated[Optional[str], typer.Argument(
        help="Output file ('-' for stdout; default: derived from the note name)",
    )] = None,
):
    """One note as Markdown."""
    nb = _get_notebook()
    note = _require_note(nb, note_id)
    _write_text(output or note_filename(note), note_to_markdown(note))


@md_app.command("by-day")
def md_by_day(
    directory: Annotated[Path, typer.Argument(help="Directory to write into")] = Path("."),
):
    """One file per day (oldest first); several days are zipped."""
    nb = _get_notebook()
    export = nb.export_by_day()
    if export is None:
        typer.echo("No notes to export.", err=True)
        return
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / export.filename
    target.write_bytes(export.data)
    typer.echo(f"Wrote {target}", err=True)


# -----------------------------------------------------------------------------
# Preferences
# -----------------------------------------------------------------------------

prefs_app = typer.Typer(name="prefs", help="Show or change preferences.", rich_markup_mode=None)
app.add_typer(prefs_app)


@prefs_app.command("show")
def prefs_show():
    """Show current preferences."""
    nb = _get_notebook()
    prefs = nb.preferences.to_dict()
    if _json_output:
        typer.echo(json.dumps(prefs))
        return
    typer.echo(f"theme: {prefs['theme']}")
    typer.echo(f"week length: {nb.preferences.week_length_label}")
    typer.echo(f"show created at: {'yes' if prefs['showCreatedAt'] else 'no'}")


@prefs_app.command("theme")
def prefs_theme(
    name: Annotated[Optional[str], typer.Argument(
        help=f"One of: {', '.join(THEME_NAMES)} (omit to cycle)",
    )] = None,
):
    """Set the theme, or cycle to the next one."""
    nb = _get_notebook()
    if name is None:
        name = nb.preferences.cycle_theme()
    elif name not in THEME_NAMES:
        _fail(f"unknown theme {name!r}")
    else:
        nb.preferences.set_theme(name)
    typer.echo(f"theme: {name}")


@prefs_app.command("week")
def prefs_week(length: Annotated[str, typer.Argument(help=f"One of: {', '.join(WEEK_LENGTHS)}")]):
    """Set how many days the week view shows."""
    if length not in WEEK_LENGTHS:
        _fail(f"week length must be one of {', '.join(WEEK_LENGTHS)}")
    nb = _get_notebook()
    nb.preferences.set_week_length(length)
    typer.echo(f"week length: {nb.preferences.week_length_label}")


@prefs_app.command("created-at")
def prefs_created_at(show: Annotated[bool, typer.Argument(help="true or false")]):
    """Show or hide creation timestamps."""
    nb = _get_notebook()
    nb.preferences.set_show_created_at(show)
    typer.echo(f"show created at: {'yes' if show else 'no'}")


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback next to the store, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, store_path=_store_override, context="doto CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
