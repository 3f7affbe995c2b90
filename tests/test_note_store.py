"""Tests for the in-memory note store."""

import threading

import pytest

from doto.dates import FixedClock
from doto.note_store import NoteStore
from doto.types import TaskNote, TextNote, Todo, TodoStatus


def _task(id, date="2025-03-10", todos=(), **kw):
    return TaskNote(id=id, name=f"note {id}", current_date=date, todos=list(todos), **kw)


def _todo(id, status=TodoStatus.INCOMPLETE, title=None):
    completed_at = "2025-03-01T00:00:00" if status == TodoStatus.COMPLETED else None
    return Todo(id=id, title=title or f"todo {id}", status=status, completed_at=completed_at)


def _all_todo_ids(store):
    return [t.id for n in store.notes if isinstance(n, TaskNote) for t in n.todos]


class TestAddNotes:
    """Creating notes and allocating ids."""

    def test_add_task_note_defaults(self, store):
        """New task notes are dated today, timestamped now and auto-advance."""
        note_id = store.add_task_note("Groceries")
        note = store.get_note(note_id)
        assert isinstance(note, TaskNote)
        assert note.name == "Groceries"
        assert note.current_date == "2025-03-10"
        assert note.created_at == "2025-03-10T09:30:00"
        assert note.auto_advance is True
        assert note.archived is False
        assert note.todos == []

    def test_add_text_note_with_date(self, store):
        note_id = store.add_text_note("Journal", "2025-02-01")
        note = store.get_note(note_id)
        assert isinstance(note, TextNote)
        assert note.current_date == "2025-02-01"
        assert note.content == ""

    def test_invalid_date_falls_back_to_today(self, store):
        note_id = store.add_task_note("Plan", "2025-2-1")
        assert store.get_note(note_id).current_date == "2025-03-10"

    def test_ids_are_sequential(self, store):
        assert [store.add_task_note(n) for n in "abc"] == [1, 2, 3]

    def test_note_id_not_reused_after_remove(self, store):
        """Removing the newest note does not hand its id out again."""
        store.add_task_note("a")
        second = store.add_task_note("b")
        store.remove_note(second)
        assert store.add_task_note("c") == second + 1

    def test_counters_seeded_from_loaded_notes(self, clock):
        store = NoteStore([_task(7, todos=[_todo(40)]), _task(3)], clock=clock)
        assert store.add_text_note("next") == 8
        assert store.add_todo(3, "next") == 41

    def test_todo_ids_unique_across_notes(self, store):
        """Todo ids come from one counter shared by every note."""
        first = store.add_task_note("a")
        second = store.add_task_note("b")
        for i in range(3):
            store.add_todo(first, f"a{i}")
            store.add_todo(second, f"b{i}")
        store.remove_todo(first, 1)
        store.add_todo(first, "again")
        ids = _all_todo_ids(store)
        assert len(ids) == len(set(ids))
        assert 1 not in ids


class TestNoteEdits:
    """Renaming, dating, tagging and removing notes."""

    def test_rename(self, store, events):
        note_id = store.add_task_note("old")
        store.rename_note(note_id, "new")
        assert store.get_note(note_id).name == "new"
        assert len(events) == 2

    def test_unknown_id_is_noop(self, store, events):
        """Unknown ids change nothing and publish nothing."""
        store.rename_note(99, "x")
        store.update_note_date(99, "2025-01-01")
        store.update_note_tag(99, "tag")
        store.toggle_auto_advance(99)
        store.remove_note(99)
        assert events == []

    def test_update_date(self, store):
        note_id = store.add_task_note("n")
        store.update_note_date(note_id, "2025-04-01")
        assert store.get_note(note_id).current_date == "2025-04-01"

    def test_update_date_rejects_invalid(self, store, events):
        note_id = store.add_task_note("n")
        store.update_note_date(note_id, "2025-02-30")
        assert store.get_note(note_id).current_date == "2025-03-10"
        assert len(events) == 1

    def test_update_tag_set_and_clear(self, store):
        note_id = store.add_task_note("n")
        store.update_note_tag(note_id, "abc12345")
        assert store.get_note(note_id).tags == ["abc12345"]
        assert store.get_note(note_id).tag_id == "abc12345"
        store.update_note_tag(note_id, None)
        assert store.get_note(note_id).tags == []

    def test_update_content_only_for_text_notes(self, store):
        text_id = store.add_text_note("t")
        task_id = store.add_task_note("k")
        store.update_note_content(text_id, "hello")
        store.update_note_content(task_id, "ignored")
        assert store.get_note(text_id).content == "hello"
        assert not hasattr(store.get_note(task_id), "content")

    def test_toggle_auto_advance(self, store):
        note_id = store.add_task_note("n")
        store.toggle_auto_advance(note_id)
        assert store.get_note(note_id).auto_advance is False
        store.toggle_auto_advance(note_id)
        assert store.get_note(note_id).auto_advance is True

    def test_remove_keeps_other_ids(self, store):
        ids = [store.add_task_note(n) for n in "abc"]
        store.remove_note(ids[1])
        assert [n.id for n in store.notes] == [ids[0], ids[2]]

    def test_find_notes_by_date(self, store):
        store.add_task_note("a", "2025-03-01")
        b = store.add_text_note("b", "2025-03-02")
        c = store.add_task_note("c", "2025-03-02")
        assert [n.id for n in store.find_notes_by_date("2025-03-02")] == [b, c]


class TestMoveNotes:
    """Reordering notes by index and by id."""

    def test_move_note(self, store):
        ids = [store.add_task_note(n) for n in "abcd"]
        store.move_note(0, 2)
        assert [n.id for n in store.notes] == [ids[1], ids[2], ids[0], ids[3]]

    @pytest.mark.parametrize("from_index,to_index", [(1, 1), (-1, 0), (0, 3), (5, 0)])
    def test_move_note_invalid_is_noop(self, store, from_index, to_index):
        ids = [store.add_task_note(n) for n in "abc"]
        received = []
        store.subscribe(received.append)
        store.move_note(from_index, to_index)
        assert [n.id for n in store.notes] == ids
        assert received == []

    def test_move_note_by_id(self, store):
        ids = [store.add_task_note(n) for n in "abc"]
        store.move_note_by_id(ids[2], ids[0])
        assert [n.id for n in store.notes] == [ids[2], ids[0], ids[1]]

    def test_move_note_by_missing_id_is_noop(self, store):
        ids = [store.add_task_note(n) for n in "ab"]
        store.move_note_by_id(ids[0], 42)
        assert [n.id for n in store.notes] == ids


class TestTodos:
    """Todo CRUD inside a single task note."""

    def test_add_todo(self, store):
        note_id = store.add_task_note("n")
        todo_id = store.add_todo(note_id, "Milk")
        todo = store.get_note(note_id).find_todo(todo_id)
        assert todo.title == "Milk"
        assert todo.status == TodoStatus.INCOMPLETE
        assert todo.created_at == "2025-03-10T09:30:00"
        assert todo.completed_at is None

    def test_add_todo_to_text_note_is_noop(self, store, events):
        note_id = store.add_text_note("t")
        assert store.add_todo(note_id, "x") is None
        assert store.add_todo(99, "x") is None
        assert len(events) == 1

    def test_toggle_cycle(self, store):
        """incomplete -> in-progress -> completed -> incomplete."""
        store = NoteStore(
            [TaskNote(id=1, name="n", todos=[Todo(id=1, title="A")])],
            clock=store.clock,
        )
        todo = store.get_note(1).find_todo(1)

        store.toggle_todo(1, 1)
        assert todo.status == TodoStatus.IN_PROGRESS
        assert todo.completed_at is None

        store.toggle_todo(1, 1)
        assert todo.status == TodoStatus.COMPLETED
        assert todo.completed_at == "2025-03-10T09:30:00"

        store.toggle_todo(1, 1)
        assert todo.status == TodoStatus.INCOMPLETE
        assert todo.completed_at is None

    def test_completed_at_invariant_over_many_toggles(self, store):
        note_id = store.add_task_note("n")
        todo_id = store.add_todo(note_id, "x")
        todo = store.get_note(note_id).find_todo(todo_id)
        for _ in range(10):
            store.toggle_todo(note_id, todo_id)
            assert (todo.completed_at is not None) == (todo.status == TodoStatus.COMPLETED)

    def test_toggle_unknown_todo_is_noop(self, store, events):
        note_id = store.add_task_note("n")
        store.toggle_todo(note_id, 99)
        store.toggle_todo(99, 1)
        assert len(events) == 1

    def test_rename_and_remove(self, store):
        note_id = store.add_task_note("n")
        a = store.add_todo(note_id, "a")
        b = store.add_todo(note_id, "b")
        store.rename_todo(note_id, a, "A")
        store.remove_todo(note_id, b)
        assert [(t.id, t.title) for t in store.get_note(note_id).todos] == [(a, "A")]

    def test_move_todo(self, store):
        note_id = store.add_task_note("n")
        ids = [store.add_todo(note_id, t) for t in "abc"]
        store.move_todo(note_id, 2, 0)
        assert [t.id for t in store.get_note(note_id).todos] == [ids[2], ids[0], ids[1]]
        store.move_todo(note_id, 0, 7)
        assert [t.id for t in store.get_note(note_id).todos] == [ids[2], ids[0], ids[1]]


class TestMoveTodoBetweenNotes:
    """Cross-note todo moves."""

    def test_move_and_clamp(self, store):
        src = store.add_task_note("src")
        dst = store.add_task_note("dst")
        moving = store.add_todo(src, "moving")
        existing = store.add_todo(dst, "existing")
        store.move_todo_between_notes(src, dst, 0, 10)
        assert store.get_note(src).todos == []
        assert [t.id for t in store.get_note(dst).todos] == [existing, moving]

    def test_insert_at_front(self, store):
        src = store.add_task_note("src")
        dst = store.add_task_note("dst")
        moving = store.add_todo(src, "moving")
        existing = store.add_todo(dst, "existing")
        store.move_todo_between_notes(src, dst, 0, 0)
        assert [t.id for t in store.get_note(dst).todos] == [moving, existing]

    def test_invalid_targets_are_noops(self, store, events):
        src = store.add_task_note("src")
        text = store.add_text_note("text")
        store.add_todo(src, "stay")
        before = len(events)
        store.move_todo_between_notes(src, text, 0, 0)
        store.move_todo_between_notes(src, 99, 0, 0)
        store.move_todo_between_notes(src, src, 3, 0)
        assert len(store.get_note(src).todos) == 1
        assert len(events) == before


class TestMoveTodoToDate:
    """Upsert-by-date todo moves."""

    def test_creates_note_for_date(self, clock):
        store = NoteStore(
            [TaskNote(id=1, name="today", current_date="2025-03-10",
                      todos=[Todo(id=1, title="A")])],
            clock=clock,
        )
        target_id = store.move_todo_to_date(1, 0, "2025-03-01")
        target = store.get_note(target_id)
        assert target_id == 2
        assert isinstance(target, TaskNote)
        assert target.name == "2025-03-01"
        assert target.current_date == "2025-03-01"
        assert target.auto_advance is True
        assert [t.title for t in target.todos] == ["A"]
        assert store.get_note(1).todos == []

    def test_first_match_wins(self, store):
        src = store.add_task_note("src")
        todo_id = store.add_todo(src, "x")
        first = store.add_task_note("first", "2025-03-12")
        store.add_task_note("second", "2025-03-12")
        assert store.move_todo_to_date(src, 0, "2025-03-12") == first
        assert store.get_note(first).find_todo(todo_id) is not None

    def test_skips_archived_and_text_notes(self, store):
        src = store.add_task_note("src")
        store.add_todo(src, "x")
        archived = store.add_task_note("archived", "2025-03-12")
        store.get_note(archived).archived = True
        store.add_text_note("text", "2025-03-12")
        live = store.add_task_note("live", "2025-03-12")
        assert store.move_todo_to_date(src, 0, "2025-03-12") == live

    def test_appends_to_end(self, store):
        src = store.add_task_note("src")
        moving = store.add_todo(src, "moving")
        dst = store.add_task_note("dst", "2025-03-12")
        existing = store.add_todo(dst, "existing")
        store.move_todo_to_date(src, 0, "2025-03-12")
        assert [t.id for t in store.get_note(dst).todos] == [existing, moving]

    def test_invalid_arguments(self, store, events):
        src = store.add_task_note("src")
        store.add_todo(src, "x")
        before = len(events)
        assert store.move_todo_to_date(src, 5, "2025-03-12") is None
        assert store.move_todo_to_date(src, 0, "soon") is None
        assert store.move_todo_to_date(99, 0, "2025-03-12") is None
        assert len(events) == before
        assert len(store) == 1


class TestDuplicateTaskNote:
    """Carrying unfinished work forward."""

    def test_duplicate(self, store):
        src = store.add_task_note("Sprint")
        store.update_note_tag(src, "tag1")
        done = store.add_todo(src, "done")
        doing = store.add_todo(src, "doing")
        todo = store.add_todo(src, "todo")
        store.toggle_todo(src, done)
        store.toggle_todo(src, done)
        store.toggle_todo(src, doing)

        new_id = store.duplicate_task_note(src, "2025-03-11")

        source = store.get_note(src)
        assert source.archived is True
        assert source.auto_advance is False
        assert len(source.todos) == 3

        copy = store.get_note(new_id)
        assert copy.name == "Sprint"
        assert copy.tags == ["tag1"]
        assert copy.current_date == "2025-03-11"
        assert copy.auto_advance is True
        assert copy.archived is False
        assert [(t.title, t.status) for t in copy.todos] == [
            ("doing", TodoStatus.IN_PROGRESS),
            ("todo", TodoStatus.INCOMPLETE),
        ]
        assert not {t.id for t in copy.todos} & {done, doing, todo}

    def test_duplicate_text_note_is_noop(self, store):
        text = store.add_text_note("t")
        assert store.duplicate_task_note(text, "2025-03-11") is None
        assert store.get_note(text).archived is False

    def test_duplicate_invalid_date_is_noop(self, store):
        src = store.add_task_note("s")
        assert store.duplicate_task_note(src, "tomorrow") is None
        assert len(store) == 1


class TestTagCascadeAndReplace:

    def test_remove_tag_from_all_notes(self, store, events):
        a = store.add_task_note("a")
        b = store.add_text_note("b")
        c = store.add_task_note("c")
        store.update_note_tag(a, "t1")
        store.update_note_tag(b, "t1")
        store.update_note_tag(c, "t2")
        before = len(events)
        store.remove_tag_from_all_notes("t1")
        assert store.get_note(a).tags == []
        assert store.get_note(b).tags == []
        assert store.get_note(c).tags == ["t2"]
        assert len(events) == before + 1

    def test_remove_unused_tag_publishes_nothing(self, store, events):
        store.add_task_note("a")
        store.remove_tag_from_all_notes("nope")
        assert len(events) == 1

    def test_replace_all_reseeds_counters(self, store):
        store.add_task_note("old")
        store.replace_all_notes([_task(20, todos=[_todo(100), _todo(5)]), _task(4)])
        assert [n.id for n in store.notes] == [20, 4]
        assert store.add_task_note("new") == 21
        assert store.add_todo(4, "new") == 101

    def test_replace_all_with_empty(self, store):
        store.add_task_note("a")
        store.replace_all_notes([])
        assert len(store) == 0
        assert store.add_task_note("b") == 1


class TestAutoAdvance:
    """Rolling unfinished notes forward to today."""

    def test_completed_note_stays(self, clock):
        store = NoteStore([_task(1, "2025-03-09", [_todo(1, TodoStatus.COMPLETED)])], clock=clock)
        assert store.auto_advance() == 0
        assert store.get_note(1).current_date == "2025-03-09"

    def test_open_todo_advances(self, clock):
        store = NoteStore(
            [_task(1, "2025-03-09", [_todo(1, TodoStatus.COMPLETED), _todo(2)])],
            clock=clock,
        )
        assert store.auto_advance() == 1
        assert store.get_note(1).current_date == "2025-03-10"

    def test_in_progress_counts_as_open(self, clock):
        store = NoteStore([_task(1, "2025-01-01", [_todo(1, TodoStatus.IN_PROGRESS)])], clock=clock)
        store.auto_advance()
        assert store.get_note(1).current_date == "2025-03-10"

    def test_empty_task_note_stays(self, clock):
        store = NoteStore([_task(1, "2025-03-01")], clock=clock)
        assert store.auto_advance() == 0

    def test_text_notes(self, clock):
        store = NoteStore(
            [
                TextNote(id=1, name="blank", current_date="2025-03-01", content="  \n "),
                TextNote(id=2, name="full", current_date="2025-03-01", content="remember"),
            ],
            clock=clock,
        )
        assert store.auto_advance() == 1
        assert store.get_note(1).current_date == "2025-03-01"
        assert store.get_note(2).current_date == "2025-03-10"

    def test_skips_disabled_archived_future_and_undated(self, clock):
        store = NoteStore(
            [
                _task(1, "2025-03-01", [_todo(1)], auto_advance=False),
                _task(2, "2025-03-01", [_todo(2)], archived=True),
                _task(3, "2025-03-20", [_todo(3)]),
                _task(4, None, [_todo(4)]),
            ],
            clock=clock,
        )
        assert store.auto_advance() == 0
        assert [n.current_date for n in store.notes] == [
            "2025-03-01", "2025-03-01", "2025-03-20", None,
        ]

    def test_idempotent(self, clock):
        store = NoteStore([_task(1, "2025-03-01", [_todo(1)])], clock=clock)
        store.auto_advance()
        received = []
        store.subscribe(received.append)
        assert store.auto_advance() == 0
        assert received == []

    def test_follows_the_clock(self):
        clock = FixedClock("2025-03-10")
        store = NoteStore(clock=clock)
        note_id = store.add_task_note("n")
        store.add_todo(note_id, "x")
        clock.set("2025-03-11")
        store.auto_advance()
        assert store.get_note(note_id).current_date == "2025-03-11"


class TestEventsAndThreads:

    def test_one_event_per_change(self, store, events):
        note_id = store.add_task_note("n")
        store.add_todo(note_id, "x")
        store.rename_note(note_id, "m")
        assert events == [store, store, store]

    def test_listener_failure_does_not_break_operation(self, store):
        def broken(_):
            raise RuntimeError("disk full")

        store.subscribe(broken)
        note_id = store.add_task_note("n")
        assert store.get_note(note_id) is not None

    def test_unsubscribe(self, store):
        received = []
        unsubscribe = store.subscribe(received.append)
        unsubscribe()
        store.add_task_note("n")
        assert received == []

    def test_concurrent_adds_allocate_unique_ids(self, store):
        note_id = store.add_task_note("shared")
        results = []

        def worker():
            for i in range(50):
                results.append(store.add_todo(note_id, f"t{i}"))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 200
        assert len(set(results)) == 200
        assert len(store.get_note(note_id).todos) == 200

    def test_len_waits_for_in_flight_mutation(self, store):
        store.add_task_note("n")
        sizes = []
        reader = threading.Thread(target=lambda: sizes.append(len(store)))
        with store._lock:
            reader.start()
            reader.join(timeout=0.2)
            assert reader.is_alive()
            store.add_task_note("m")
        reader.join()
        assert sizes == [2]
