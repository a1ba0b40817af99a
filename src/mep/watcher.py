"""Watches the scripts folder and turns filesystem notifications into script events"""

import logging
import os
from dataclasses import dataclass
from os import path
from queue import Queue
from threading import Event, Lock, Thread
from time import monotonic, sleep
from typing import Callable, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .classes.catalog import is_script

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Modified:
    path: str


@dataclass(frozen=True)
class Removed:
    path: str
    # set when the script was renamed to another script name
    renamed_to: str | None = None


@dataclass(frozen=True)
class Created:
    path: str


@dataclass(frozen=True)
class WatchError:
    error: str
    path: str | None = None


WatchEvent = Union[Modified, Removed, Created, WatchError]


def _normalise(location) -> str:
    return path.realpath(os.fsdecode(location))


def classify(
    event: FileSystemEvent, scripts_root: str, extension: str
) -> list[WatchEvent]:
    """
    Turn one watchdog event into the script events it stands for.

    Args:
        event (FileSystemEvent): The raw notification.
        scripts_root (str): The watched folder, already a real path.
        extension (str): Extension of script files.

    Returns:
        list[WatchEvent]: Usually zero or one event.
    """
    src = _normalise(event.src_path)
    dest = _normalise(event.dest_path) if getattr(event, "dest_path", "") else ""

    def watched_script(location: str) -> bool:
        return (
            bool(location)
            and path.dirname(location) == scripts_root
            and is_script(location, extension)
        )

    if event.is_directory:
        if event.event_type in ("deleted", "moved") and src == scripts_root:
            return [WatchError(f"{scripts_root} was removed or moved", src)]
        return []

    match event.event_type:
        case "modified" | "closed" if watched_script(src):
            return [Modified(src)]
        case "created" if watched_script(src):
            return [Created(src)]
        case "deleted" if watched_script(src):
            return [Removed(src)]
        case "moved":
            match (watched_script(src), watched_script(dest)):
                case (True, True):
                    return [Removed(src, renamed_to=dest)]
                case (True, False):
                    return [Removed(src)]
                case (False, True):
                    # editors save by writing a temporary file and moving it over
                    return [Modified(dest)]
    return []


class Debouncer:
    """Coalesces bursts of writes to one path into a single `Modified`."""

    def __init__(self, interval: float, clock: Callable[[], float] = monotonic) -> None:
        self.interval = interval
        self.clock = clock
        self._pending: dict[str, float] = {}
        self._lock = Lock()

    def push(self, event: WatchEvent) -> list[WatchEvent]:
        """Take an event in, return whatever can be emitted right away."""
        with self._lock:
            match event:
                case Modified(path=location):
                    self._pending[location] = self.clock()
                    return []
                case Removed(path=location):
                    self._pending.pop(location, None)
            return [event]

    def flush(self) -> list[WatchEvent]:
        """Return `Modified` events for paths that have been quiet long enough."""
        now = self.clock()
        with self._lock:
            due = [
                location
                for location, last_write in self._pending.items()
                if now - last_write >= self.interval
            ]
            for location in due:
                del self._pending[location]
        return [Modified(location) for location in due]


class ScriptEventHandler(FileSystemEventHandler):
    def __init__(
        self, scripts_root: str, extension: str, debouncer: Debouncer, events: Queue
    ) -> None:
        super().__init__()
        self.scripts_root = scripts_root
        self.extension = extension
        self.debouncer = debouncer
        self.events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        for classified in classify(event, self.scripts_root, self.extension):
            for ready in self.debouncer.push(classified):
                logger.debug("watch event %s", ready)
                self.events.put(ready)


class ScriptWatcher:
    """Runs a watchdog observer on the scripts folder.

    Classified events land in `events`. Only this watcher and the observer
    thread write to it.
    """

    def __init__(
        self,
        scripts_root: str,
        extension: str,
        events: Queue,
        debounce: float = 0.1,
        stop: Event | None = None,
    ) -> None:
        self.scripts_root = path.realpath(scripts_root)
        self.events = events
        self.debouncer = Debouncer(debounce)
        self.stop_event = stop if stop is not None else Event()
        self.handler = ScriptEventHandler(
            self.scripts_root, extension, self.debouncer, events
        )
        self.observer = None
        self._thread = None

    def start(self) -> None:
        self.observer = Observer()
        try:
            self.observer.schedule(self.handler, path=self.scripts_root, recursive=False)
            self.observer.start()
        except OSError as e:
            logger.error("watching %s failed: %s", self.scripts_root, e)
            self.events.put(
                WatchError(
                    f"Watching of {self.scripts_root} failed: {e}", self.scripts_root
                )
            )
            return
        self._thread = Thread(target=self._watch, name="mep-watcher", daemon=True)
        self._thread.start()
        logger.info("watching %s", self.scripts_root)

    def _watch(self) -> None:
        tick = max(self.debouncer.interval / 2, 0.01)
        while not self.stop_event.is_set():
            sleep(tick)
            for event in self.debouncer.flush():
                logger.debug("watch event %s", event)
                self.events.put(event)
            if not self.observer.is_alive() and not self.stop_event.is_set():
                self.events.put(
                    WatchError(
                        "The filesystem observer stopped unexpectedly.",
                        self.scripts_root,
                    )
                )
                return

    def stop(self) -> None:
        self.stop_event.set()
        if self.observer is not None and self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
