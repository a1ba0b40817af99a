"""Errors raised while hosting scripts"""

from .variables.constants import EXIT_FATAL


class FatalError(Exception):
    """Ends the process after being shown once."""

    def __init__(self, message: str, exit_code: int = EXIT_FATAL) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class ScriptError(Exception):
    """A script failed. Fixed by the user editing the file."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(detail)
        self.path = path
        self.detail = detail


class ScriptCompileError(ScriptError):
    pass


class ScriptRuntimeError(ScriptError):
    pass


class ProtocolError(ScriptError):
    """The script tried to send something that is not a midi message.

    `program` identifies the loaded program that sent it, so failures of a
    program that has since been replaced are only reported.
    """

    def __init__(self, path: str, detail: str, program: int | None = None) -> None:
        super().__init__(path, detail)
        self.program = program


class ListenerNotFound(ScriptError):
    """`midi.listen` is missing or unusable. Reported, never retried."""
