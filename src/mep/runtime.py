"""Compiles and runs the user's scripts"""

import builtins
import itertools
import logging
import random
import traceback
from dataclasses import dataclass
from types import CodeType
from typing import Any, Callable

import mido

from .errors import ListenerNotFound, ScriptCompileError, ScriptRuntimeError
from .variables.constants import LISTENER_PATH

logger = logging.getLogger(__name__)


class MidiModule:
    """The `midi` object every script finds in its globals.

    Attributes:
        send (Callable): Sends a list of bytes to the output port.
        listen (Callable | None): Set by the script, called with every
            inbound message as a list of bytes.
    """

    def __init__(self, send: Callable[[Any], None]) -> None:
        self.send = send
        self.listen = None

    @staticmethod
    def message(type_: str, **fields) -> list[int]:
        """Build a message, e.g. `midi.message("note_on", note=60, velocity=100)`."""
        return mido.Message(type_, **fields).bytes()

    @staticmethod
    def parse(message) -> mido.Message:
        """Turn a list of bytes into a mido message with named fields."""
        return mido.Message.from_bytes(message)


@dataclass
class CompiledUnit:
    path: str
    code: CodeType


def format_script_error(error: BaseException, script_path: str) -> str:
    """Format an exception showing only the frames that belong to the script."""
    frames = [
        frame
        for frame in traceback.extract_tb(error.__traceback__)
        if frame.filename == script_path
    ]
    lines = []
    if frames:
        lines.append("Traceback (most recent call last):\n")
        lines.extend(traceback.format_list(frames))
    lines.extend(traceback.format_exception_only(type(error), error))
    return "".join(lines).rstrip()


class ScriptRuntime:
    """Hosts one loaded script program at a time.

    A program replaces the loaded one only after it compiled and its top
    level ran without raising, so a broken edit never unloads a working script.

    Args:
        make_send: Builds the `midi.send` function from a script path and
            the id of the program being loaded.
    """

    def __init__(
        self, make_send: Callable[[str, int], Callable[[Any], None]]
    ) -> None:
        self.make_send = make_send
        self.namespace: dict | None = None
        self.program: int | None = None
        self._programs = itertools.count(1)
        self.path: str | None = None

    @property
    def has_program(self) -> bool:
        return self.namespace is not None

    def compile(self, source: str | bytes, path: str) -> CompiledUnit:
        try:
            code = compile(source, path, "exec")
        except (SyntaxError, ValueError) as e:
            raise ScriptCompileError(path, format_script_error(e, path)) from e
        return CompiledUnit(path=path, code=code)

    def run(self, unit: CompiledUnit) -> None:
        program = next(self._programs)
        namespace = {
            "__name__": "__mep__",
            "__file__": unit.path,
            "__builtins__": builtins,
            "midi": MidiModule(self.make_send(unit.path, program)),
            "random": random,
        }
        try:
            exec(unit.code, namespace)
        except (Exception, SystemExit) as e:
            detail = format_script_error(e, unit.path)
            raise ScriptRuntimeError(unit.path, detail) from e
        self.namespace = namespace
        self.path = unit.path
        self.program = program
        logger.info("loaded %s", unit.path)

    def load(self, source: str | bytes, path: str) -> None:
        """Compile and run `source`, raising a ScriptError if either fails."""
        self.run(self.compile(source, path))

    def lookup(self, dotted_path: str) -> Any | None:
        """Find a value like `midi.listen` in the loaded program."""
        if self.namespace is None:
            return None
        head, *rest = dotted_path.split(".")
        value = self.namespace.get(head)
        for name in rest:
            if value is None:
                return None
            value = getattr(value, name, None)
        return value

    def call(self, function: Callable, *args) -> Any:
        try:
            return function(*args)
        except (Exception, SystemExit) as e:
            path = self.path or ""
            raise ScriptRuntimeError(path, format_script_error(e, path)) from e

    def call_listener(self, message: list[int]) -> None:
        """
        Hand one inbound message to the script's `midi.listen`.

        Raises:
            ListenerNotFound: When there is nothing callable to hand it to.
            ScriptRuntimeError: When the listener raised.
        """
        if self.namespace is None:
            raise ListenerNotFound("", "No script is loaded.")
        if not isinstance(self.namespace.get("midi"), MidiModule):
            raise ListenerNotFound(
                self.path,
                '"midi" has been found but it is not the midi module. '
                'Do not use the name "midi" for anything else in your script.',
            )
        listener = self.lookup(LISTENER_PATH)
        if listener is None:
            raise ListenerNotFound(self.path, 'Try defining a function as "midi.listen"')
        if not callable(listener):
            raise ListenerNotFound(
                self.path, '"midi.listen" is defined but it is not a function'
            )
        self.call(listener, list(message))
