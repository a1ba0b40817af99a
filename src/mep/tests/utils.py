from os import mkdir, path
from pathlib import Path
from queue import Empty, Queue
from typing import Callable

from mep.classes.session_manager import SessionManager
from mep.classes.catalog import list_scripts
from mep.midi_io import MidiOutput, make_send

PASSTHROUGH = "def listen(message):\n    midi.send(message)\n\nmidi.listen = listen\n"
TRANSPOSE = (
    "def listen(message):\n"
    "    midi.send([message[0], message[1] + 12, message[2]])\n\n"
    "midi.listen = listen\n"
)
BROKEN_SYNTAX = "def listen(message)\n    midi.send(message)\n"
RAISES_AT_TOP = "midi.listen = None\nraise RuntimeError('boom')\n"
LISTENER_RAISES = (
    "def listen(message):\n    raise ValueError('bad listener')\n\nmidi.listen = listen\n"
)
SENDS_OUT_OF_RANGE = (
    "def listen(message):\n    midi.send([0x90, 256, 1])\n\nmidi.listen = listen\n"
)
LATIN_1 = b"# caf\xe9\n" + PASSTHROUGH.encode()
NOTE_ON = [0x90, 60, 100]


# Let the exceptions roam wild
def setup_test_dir(*args: Path):
    for dir in args:
        mkdir(dir)


# Let the exceptions roam wild
def setup_scripts(folder: Path, scripts: dict[str, str]) -> dict[str, str]:
    """Write scripts into a folder, return their real paths by file name."""
    paths = {}
    for name, source in scripts.items():
        (folder / name).write_text(source)
        paths[name] = path.realpath(folder / name)
    return paths


def make_session(folder: Path, name: str, sort_by: str = "name") -> SessionManager:
    catalog = list_scripts(str(folder), "py", sort_by)
    index = next(script.index for script in catalog if script.display_name == name)
    return SessionManager(str(folder), catalog, index, "py", sort_by)


class FakeTui:
    """Records what would have been shown."""

    def __init__(self, folder: str = "~/.mep") -> None:
        self.folder = folder
        self.calls: list[tuple] = []

    def named(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    def render_catalog(self, catalog, active_index=None) -> None:
        self.calls.append(("render_catalog", [s.display_name for s in catalog], active_index))

    def show_error(self, context, message, clear=True) -> None:
        self.calls.append(("show_error", context, message))

    def acknowledge_invalid_input(self) -> None:
        self.calls.append(("acknowledge_invalid_input",))

    def prompt(self) -> None:
        self.calls.append(("prompt",))

    def fatal(self, message) -> None:
        self.calls.append(("fatal", message))

    def scripts_folder_not_found(self) -> None:
        self.calls.append(("scripts_folder_not_found",))

    def removed_scripts_folder(self) -> None:
        self.calls.append(("removed_scripts_folder",))

    def reset_scripts_folder(self) -> None:
        self.calls.append(("reset_scripts_folder",))


class FakePort:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[list[int]] = []
        self.fail = fail
        self.closed = False

    def send(self, message) -> None:
        if self.fail:
            raise OSError("port is gone")
        self.sent.append(message.bytes())

    def close(self) -> None:
        self.closed = True


def fake_send_factory(port: FakePort, failures: Queue) -> Callable:
    output = MidiOutput(port)
    return lambda script_path, program: make_send(output, failures, script_path, program)


class ScriptedQueue(Queue):
    """A watch event queue that runs each step's side effect as it hands the event out.

    Steps are `(action, event)` pairs, `action` may be None. Blocking on an
    empty queue fails the test instead of hanging it.
    """

    def __init__(self, steps=()) -> None:
        super().__init__()
        for step in steps:
            self.put(step)

    def add(self, event, action: Callable | None = None) -> None:
        self.put((action, event))

    def get(self, block=True, timeout=None):
        try:
            action, event = super().get(False)
        except Empty:
            if block:
                raise AssertionError("waited for a watch event that never comes")
            raise
        if action is not None:
            action()
        return event
