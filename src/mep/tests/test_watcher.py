import dataclasses
import tempfile
from os import path
from pathlib import Path
from queue import Empty, Queue

import pytest
from watchdog.events import (
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
)

from mep.watcher import (
    Created,
    Debouncer,
    Modified,
    Removed,
    ScriptEventHandler,
    ScriptWatcher,
    WatchError,
    classify,
)


@dataclasses.dataclass
class TestCase:
    name: str
    event: FileSystemEvent
    expected: list


def test_classify():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = path.realpath(temp_dir)
        a = path.join(root, "a.py")
        b = path.join(root, "b.py")
        swap = path.join(root, ".a.py.swp")
        nested = path.join(root, "sub", "c.py")

        test_cases: list[TestCase] = [
            TestCase("Script written", FileModifiedEvent(a), [Modified(a)]),
            TestCase("Script closed after writing", FileClosedEvent(a), [Modified(a)]),
            TestCase("Script created", FileCreatedEvent(b), [Created(b)]),
            TestCase("Script deleted", FileDeletedEvent(a), [Removed(a)]),
            TestCase(
                "Script renamed to another script",
                FileMovedEvent(a, b),
                [Removed(a, renamed_to=b)],
            ),
            TestCase(
                "Script renamed to something else",
                FileMovedEvent(a, path.join(root, "a.txt")),
                [Removed(a)],
            ),
            TestCase(
                "Temporary file moved over a script",
                FileMovedEvent(swap, a),
                [Modified(a)],
            ),
            TestCase("Other file written", FileModifiedEvent(swap), []),
            TestCase("Script in a sub folder", FileModifiedEvent(nested), []),
            TestCase("Folder listing changed", DirModifiedEvent(root), []),
            TestCase(
                "Scripts folder deleted",
                DirDeletedEvent(root),
                [WatchError(f"{root} was removed or moved", root)],
            ),
            TestCase(
                "Scripts folder moved",
                DirMovedEvent(root, root + "_old"),
                [WatchError(f"{root} was removed or moved", root)],
            ),
            TestCase(
                "Sub folder deleted", DirDeletedEvent(path.join(root, "sub")), []
            ),
        ]
        for t in test_cases:
            assert classify(t.event, root, "py") == t.expected, t.name
            print("Passed ", t.name)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_debouncer_coalesces_bursts():
    clock = FakeClock()
    debouncer = Debouncer(0.1, clock)

    for _ in range(3):
        assert debouncer.push(Modified("/s/a.py")) == []
        clock.now += 0.03
    assert debouncer.flush() == []

    clock.now += 0.1
    assert debouncer.flush() == [Modified("/s/a.py")]
    assert debouncer.flush() == []


def test_debouncer_keeps_paths_apart():
    clock = FakeClock()
    debouncer = Debouncer(0.1, clock)
    debouncer.push(Modified("/s/a.py"))
    clock.now = 0.05
    debouncer.push(Modified("/s/b.py"))
    clock.now = 0.12
    assert debouncer.flush() == [Modified("/s/a.py")]
    clock.now = 0.2
    assert debouncer.flush() == [Modified("/s/b.py")]


def test_debouncer_passes_other_events_through():
    clock = FakeClock()
    debouncer = Debouncer(0.1, clock)
    debouncer.push(Modified("/s/a.py"))

    assert debouncer.push(Created("/s/b.py")) == [Created("/s/b.py")]
    # a removal drops the pending write of the same file
    assert debouncer.push(Removed("/s/a.py")) == [Removed("/s/a.py")]
    clock.now = 1.0
    assert debouncer.flush() == []

    error = WatchError("gone")
    assert debouncer.push(error) == [error]


def test_handler_queues_classified_events():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = path.realpath(temp_dir)
        clock = FakeClock()
        events: Queue = Queue()
        handler = ScriptEventHandler(root, "py", Debouncer(0.1, clock), events)
        a = path.join(root, "a.py")

        handler.dispatch(FileCreatedEvent(a))
        handler.dispatch(FileModifiedEvent(a))
        handler.dispatch(FileModifiedEvent(path.join(root, "a.txt")))

        assert events.get_nowait() == Created(a)
        assert events.empty()
        clock.now = 0.5
        assert handler.debouncer.flush() == [Modified(a)]


def test_watcher_reports_one_change_per_burst_of_writes():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(path.realpath(temp_dir))
        script = root / "a.py"
        script.write_text("")
        events: Queue = Queue()
        watcher = ScriptWatcher(str(root), "py", events, debounce=0.2)
        watcher.start()
        try:
            script.write_text("x = 1\n")
            script.write_text("x = 2\n")
            assert events.get(timeout=5) == Modified(str(script))
            with pytest.raises(Empty):
                events.get(timeout=0.6)
        finally:
            watcher.stop()


def test_watcher_reports_dead_observer():
    with tempfile.TemporaryDirectory() as temp_dir:
        events: Queue = Queue()
        watcher = ScriptWatcher(temp_dir, "py", events, debounce=0.05)
        watcher.start()
        try:
            watcher.observer.stop()
            watcher.observer.join()
            assert isinstance(events.get(timeout=5), WatchError)
        finally:
            watcher.stop()


def test_watcher_reports_missing_folder():
    with tempfile.TemporaryDirectory() as temp_dir:
        events: Queue = Queue()
        watcher = ScriptWatcher(path.join(temp_dir, "missing"), "py", events)
        watcher.start()
        try:
            error = events.get(timeout=5)
            assert isinstance(error, WatchError)
            assert error.path == watcher.scripts_root
        finally:
            watcher.stop()
