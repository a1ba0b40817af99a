"""Loads the active script and keeps it alive through errors.

Every failure ends up in the same recovery loop: the error is shown, then
the engine blocks until the active script file is written again, re-reads
it and tries once more. Nothing but a successful load, a fatal watch error
or the process ending leaves that loop.

While blocked, watch events that are not the awaited fix are kept in
`deferred` and handed back to the main loop afterwards in arrival order.
Stdin lines stay in their own queue. Inbound midi is served by the
previously loaded program when there is one and the failure happened while
loading, otherwise it waits in the relay.
"""

import logging
from collections import deque
from queue import Empty, Queue

from .classes.session_manager import SessionManager
from .errors import FatalError, ListenerNotFound, ScriptError
from .midi_io import MidiInputRelay
from .runtime import ScriptRuntime
from .tui import Tui
from .watcher import Modified, Removed, WatchError, WatchEvent

logger = logging.getLogger(__name__)


class RecoveryAborted(Exception):
    """The active script went away while waiting for it to be fixed."""

    def __init__(self, event: Removed) -> None:
        super().__init__(event.path)
        self.event = event


class CompileRunEngine:
    """
    Args:
        runtime (ScriptRuntime): Hosts the loaded program.
        watch_events (Queue): Classified watch events, shared with the main loop.
        tui (Tui): Where errors are shown.
        midi_input (MidiInputRelay | None): Inbound messages, served to the
            previous program during a failed reload.
        tick (float): Seconds to wait for a watch event before serving midi.
    """

    def __init__(
        self,
        runtime: ScriptRuntime,
        watch_events: Queue,
        tui: Tui,
        midi_input: MidiInputRelay | None = None,
        tick: float = 0.001,
    ) -> None:
        self.runtime = runtime
        self.watch_events = watch_events
        self.tui = tui
        self.midi_input = midi_input
        self.tick = tick
        self.session: SessionManager | None = None
        self.deferred: deque[WatchEvent] = deque()
        # Running or Broken, Broken means waiting for a fix
        self.broken = False

    def poll_watch_event(self) -> WatchEvent | None:
        """Next watch event for the main loop, deferred ones first."""
        if self.deferred:
            return self.deferred.popleft()
        try:
            return self.watch_events.get_nowait()
        except Empty:
            return None

    def load_and_run(self) -> bool:
        """
        Compile and run the active script, staying in recovery until it loads.

        Returns:
            bool: True if a recovery happened on the way.

        Raises:
            RecoveryAborted: When the script is removed while broken.
            FatalError: When the watcher fails while broken.
        """
        return self._load(serve_previous=self.runtime.has_program)

    def _load(self, serve_previous: bool) -> bool:
        recovered = False
        while True:
            try:
                self.runtime.load(self.session.active_source, self.session.active_path)
            except ScriptError as error:
                self.report(error)
                self.wait_for_fix(serve_previous)
                recovered = True
                continue
            self.broken = False
            return recovered

    def invoke_listener(self, message: list[int]) -> bool:
        """
        Hand a message to the script, replaying it once after every fix.

        Returns:
            bool: True if a recovery happened on the way.
        """
        recovered = False
        while True:
            try:
                self.runtime.call_listener(message)
                return recovered
            except ListenerNotFound as error:
                self.report(error)
                return recovered
            except ScriptError as error:
                self.report(error)
                self.wait_for_fix()
                self._load(serve_previous=False)
                recovered = True

    def recover(self, error: ScriptError) -> bool:
        """Report an error raised outside the engine and wait for its fix."""
        self.report(error)
        self.wait_for_fix()
        self._load(serve_previous=False)
        return True

    def report(self, error: ScriptError, clear: bool = True) -> None:
        location = error.path or (self.session.active_path if self.session else "")
        logger.warning("%s in %s: %s", type(error).__name__, location, error.detail)
        self.tui.show_error(location, error.detail, clear=clear)

    def wait_for_fix(self, serve_previous: bool = False) -> None:
        """Block until the active script is written again and re-read it."""
        self.broken = True
        logger.info("waiting for a fix of %s", self.session.active_path)
        while True:
            if serve_previous:
                self._serve_previous()
            try:
                event = self.watch_events.get(timeout=self.tick)
            except Empty:
                continue
            match event:
                case WatchError(error=message):
                    raise FatalError(message)
                case Modified(path=location) if self.session.is_active(location):
                    try:
                        self.session.reload_source()
                    except OSError as e:
                        logger.warning("couldn't read %s: %s", location, e)
                        continue
                    logger.info("fix attempt on %s", location)
                    return
                case Removed(path=location) if self.session.is_active(location):
                    raise RecoveryAborted(event)
                case _:
                    self.deferred.append(event)

    def _serve_previous(self) -> None:
        if self.midi_input is None or not self.runtime.has_program:
            return
        while (message := self.midi_input.pop()) is not None:
            try:
                self.runtime.call_listener(message)
            except ScriptError as error:
                # no nested recovery, the message is dropped
                self.report(error, clear=False)
