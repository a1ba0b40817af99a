"""The main loop, the only place that changes the session or calls scripts"""

import logging
import sys
from os import path
from queue import Empty, Queue
from threading import Thread
from time import sleep
from typing import Callable

from .classes.catalog import ScriptDescriptor, find_path, list_scripts
from .classes.session_manager import SessionManager
from .engine import CompileRunEngine, RecoveryAborted
from .errors import FatalError, ProtocolError
from .midi_io import MidiInputRelay
from .runtime import ScriptRuntime
from .tui import Tui
from .variables.constants import EXIT_NO_SCRIPTS, Messages
from .watcher import Created, Modified, Removed, WatchError, WatchEvent

logger = logging.getLogger(__name__)


def parse_choice(line: str, size: int) -> int | None:
    """The index typed by the user, or None if it doesn't name a script."""
    try:
        index = int(line.strip())
    except ValueError:
        return None
    if 0 <= index < size:
        return index
    return None


def spawn_stdin_reader(lines: Queue, stream=None) -> Thread:
    """
    Read lines in a daemon thread so the main loop can poll for them.

    A None is queued once the stream is closed.
    """

    def read() -> None:
        source = stream if stream is not None else sys.stdin
        for line in iter(source.readline, ""):
            lines.put(line)
        lines.put(None)

    thread = Thread(target=read, name="mep-stdin", daemon=True)
    thread.start()
    return thread


class Application:
    """
    Serialises everything that happens to the session.

    Each step handles at most one item of every source, in this order:
    inbound midi, rejected outbound midi, a line typed by the user, a
    watch event.

    Args:
        scripts_root (str): The scripts folder.
        tui (Tui): Terminal output.
        make_send (Callable): Builds `midi.send` for a script path and program id.
        midi_input (MidiInputRelay): Inbound messages.
        watch_events (Queue): Classified watch events.
        stdin_lines (Queue): Lines typed by the user, None once stdin closes.
        failures (Queue): ProtocolErrors from `midi.send`.
        extension (str): Extension of script files.
        sort_by (str): Catalog order, "none" or "name".
        poll_interval (float): Seconds slept between steps.
    """

    def __init__(
        self,
        scripts_root: str,
        tui: Tui,
        make_send: Callable,
        midi_input: MidiInputRelay,
        watch_events: Queue,
        stdin_lines: Queue,
        failures: Queue,
        extension: str = "py",
        sort_by: str = "none",
        poll_interval: float = 0.001,
    ) -> None:
        self.scripts_root = scripts_root
        self.tui = tui
        self.midi_input = midi_input
        self.watch_events = watch_events
        self.stdin_lines = stdin_lines
        self.failures = failures
        self.extension = extension
        self.sort_by = sort_by
        self.poll_interval = poll_interval
        self.runtime = ScriptRuntime(make_send)
        self.engine = CompileRunEngine(
            self.runtime, watch_events, tui, midi_input, tick=poll_interval
        )
        self.session: SessionManager | None = None

    def run(self) -> None:
        self.choose_initial_script()
        while True:
            self.step()
            sleep(self.poll_interval)

    def list_catalog(self) -> list[ScriptDescriptor]:
        try:
            catalog = list_scripts(self.scripts_root, self.extension, self.sort_by)
        except OSError as e:
            raise FatalError(f"Couldn't read {self.scripts_root}: {e}") from e
        if not catalog:
            raise FatalError(
                Messages.no_scripts.format(folder=self.tui.folder), EXIT_NO_SCRIPTS
            )
        return catalog

    def render(self) -> None:
        self.tui.render_catalog(self.session.catalog, self.session.active_index)

    def choose_initial_script(self) -> None:
        """List the scripts and wait until the user picks one, then load it.

        The list follows scripts being added or removed while waiting.
        """
        catalog = self.list_catalog()
        self.tui.render_catalog(catalog)
        while self.session is None:
            try:
                line = self.stdin_lines.get(timeout=self.poll_interval)
            except Empty:
                line = ""
            if line is None:
                raise FatalError(Messages.stdin_closed)
            if line:
                self.session = self._start_session(catalog, line)
                continue
            match self.engine.poll_watch_event():
                case WatchError(error=message):
                    raise FatalError(self._watch_failed(message))
                case Created() | Removed():
                    catalog = self.list_catalog()
                    self.tui.render_catalog(catalog)
                case Modified(path=location) if find_path(catalog, location) is None:
                    catalog = self.list_catalog()
                    self.tui.render_catalog(catalog)

        self.engine.session = self.session
        logger.info("starting with %s", self.session.active_path)
        self._guard(self.engine.load_and_run)
        self.render()

    def _start_session(
        self, catalog: list[ScriptDescriptor], line: str
    ) -> SessionManager | None:
        index = parse_choice(line, len(catalog))
        if index is None:
            self.tui.acknowledge_invalid_input()
            return None
        try:
            return SessionManager(
                self.scripts_root, catalog, index, self.extension, self.sort_by
            )
        except OSError as e:
            self.tui.show_error(catalog[index].path, str(e))
            self.tui.prompt()
            return None

    def _watch_failed(self, message: str) -> str:
        return f"Watching of {self.tui.folder} failed: {message}"

    def step(self) -> None:
        message = self.midi_input.pop()
        if message is not None:
            if self._guard(self.engine.invoke_listener, message):
                self.render()

        try:
            failure = self.failures.get_nowait()
        except Empty:
            pass
        else:
            self.handle_failure(failure)

        try:
            line = self.stdin_lines.get_nowait()
        except Empty:
            pass
        else:
            self.handle_choice(line)

        event = self.engine.poll_watch_event()
        if event is not None:
            self.handle_watch_event(event)

    def handle_failure(self, failure: ProtocolError) -> None:
        if failure.program is not None and failure.program == self.runtime.program:
            self._guard(self.engine.recover, failure)
            self.render()
        else:
            # sent by a program that is no longer loaded
            self.engine.report(failure, clear=False)

    def handle_choice(self, line: str | None) -> None:
        if line is None:
            raise FatalError(Messages.stdin_closed)
        index = parse_choice(line, len(self.session.catalog))
        if index is None:
            logger.debug("ignored choice %r", line)
            self.tui.acknowledge_invalid_input()
            return
        try:
            self.session.select(index)
        except OSError as e:
            self.tui.show_error(self.session.catalog[index].path, str(e))
            self.tui.prompt()
            return
        self._guard(self.engine.load_and_run)
        self.render()

    def handle_watch_event(self, event: WatchEvent) -> None:
        logger.debug("handling %s", event)
        match event:
            case WatchError(error=message):
                raise FatalError(self._watch_failed(message))
            case Modified(path=location) if self.session.is_active(location):
                try:
                    self.session.reload_source()
                except OSError as e:
                    # a Removed follows when the file is really gone
                    logger.warning("couldn't read %s: %s", location, e)
                    return
                self._guard(self.engine.load_and_run)
                self.render()
            case Modified(path=location):
                if find_path(self.session.catalog, location) is None:
                    self.rebuild()
            case Removed(path=location) if self.session.is_active(location):
                self.fall_back(event.renamed_to)
            case Created() | Removed():
                self.rebuild()

    def rebuild(self) -> None:
        previous = self.session.catalog
        catalog = self.session.rebuild_catalog()
        if not catalog:
            raise FatalError(
                Messages.no_scripts.format(folder=self.tui.folder), EXIT_NO_SCRIPTS
            )
        if not self.session.has_active():
            self.fall_back(None, previous)
            return
        self.render()

    def successor(
        self,
        previous: list[ScriptDescriptor],
        catalog: list[ScriptDescriptor],
        renamed_to: str | None,
    ) -> int:
        """
        Index of the script that takes over from the vanished active one.

        In order: the rename target, the same path if it came back, the only
        script that wasn't listed before, the first script.
        """
        if renamed_to:
            index = find_path(catalog, renamed_to)
            if index is not None:
                return index
        # editors that save by delete and create bring the file right back
        index = find_path(catalog, self.session.active_path)
        if index is not None:
            return index
        listed = {script.path for script in previous}
        appeared = [script.index for script in catalog if script.path not in listed]
        # a rename reported as a delete and a create
        if len(appeared) == 1:
            return appeared[0]
        return 0

    def fall_back(
        self,
        renamed_to: str | None,
        previous: list[ScriptDescriptor] | None = None,
    ) -> None:
        """Pick another script after the active one disappeared and load it.

        Keeps picking while the chosen script vanishes before it loads.

        Args:
            renamed_to (str | None): Where the active script was moved to.
            previous (list[ScriptDescriptor] | None): The catalog from before
                the script vanished, the session's catalog by default.
        """
        if previous is None:
            previous = self.session.catalog
        while True:
            catalog = self.session.rebuild_catalog()
            if not catalog:
                raise FatalError(
                    Messages.no_scripts.format(folder=self.tui.folder), EXIT_NO_SCRIPTS
                )
            index = self.successor(previous, catalog, renamed_to)
            chosen = catalog[index].path
            logger.info("%s is gone, switching to %s", self.session.active_path, chosen)
            previous = catalog
            try:
                self.session.select(index)
            except OSError as e:
                if path.exists(chosen):
                    raise FatalError(f"Couldn't read {chosen}: {e}") from e
                # removed before it could be read
                renamed_to = None
                continue
            try:
                self.engine.load_and_run()
            except RecoveryAborted as aborted:
                # removed while broken
                renamed_to = aborted.event.renamed_to
                continue
            self.render()
            return

    def _guard(self, operation, *args) -> bool:
        """Run an engine operation, handling the active script's removal.

        Returns:
            bool: True if the operation went through a recovery.
        """
        try:
            return operation(*args)
        except RecoveryAborted as aborted:
            self.handle_watch_event(aborted.event)
            return True
