"""Virtual midi ports, the inbound relay and the outbound send primitive"""

import logging
from collections import deque
from queue import Queue
from threading import Lock

import mido

from .errors import ProtocolError

logger = logging.getLogger(__name__)

SEND_ERROR_MESSAGE = (
    "send requires a list of bytes [0 - 255], you may still send malformed "
    "messages with this restriction. There will be no problem if you obey the "
    "protocol ;)"
)


def port_names(
    prefix: str | None, input_default: str, output_default: str
) -> tuple[str, str]:
    """Names of the virtual ports, `<prefix>_in` and `<prefix>_out` with a prefix."""
    if prefix:
        return f"{prefix}_in", f"{prefix}_out"
    return input_default, output_default


class MidiInputRelay:
    """Callback for the input port, copies every message onto a bounded queue.

    It runs on the backend's real time thread so it only copies bytes, the
    script is called later from the main loop. When the queue is full the
    oldest message is dropped.
    """

    def __init__(self, maxlen: int = 1024) -> None:
        self._messages: deque[list[int]] = deque(maxlen=maxlen)
        self.dropped = 0

    def __call__(self, message: mido.Message) -> None:
        self.push(message.bytes())

    def push(self, data) -> None:
        if len(self._messages) == self._messages.maxlen:
            self.dropped += 1
        self._messages.append(list(data))

    def pop(self) -> list[int] | None:
        try:
            return self._messages.popleft()
        except IndexError:
            return None

    def __len__(self) -> int:
        return len(self._messages)


def validate_message(value, script_path: str = "") -> bytes:
    """
    Check that a script handed over a list of bytes that parses as midi.

    Args:
        value: Whatever the script passed to `midi.send`.
        script_path (str): The script that sent it, for the error.

    Returns:
        bytes: The message, ready for the port.

    Raises:
        ProtocolError: When the value isn't a list of bytes or isn't midi.
    """
    if not isinstance(value, (list, tuple, bytes, bytearray)):
        raise ProtocolError(script_path, SEND_ERROR_MESSAGE)
    for byte in value:
        if isinstance(byte, bool) or not isinstance(byte, int) or not 0 <= byte <= 255:
            raise ProtocolError(script_path, SEND_ERROR_MESSAGE)
    data = bytes(value)
    try:
        mido.Message.from_bytes(data)
    except (ValueError, TypeError) as e:
        raise ProtocolError(
            script_path, f"{data.hex(' ')} is not a midi message: {e}"
        ) from e
    return data


class MidiOutput:
    """Outbound port shared by every script invocation.

    Only the main loop sends today, the lock keeps it safe if that changes.
    """

    def __init__(self, port) -> None:
        self.port = port
        self._lock = Lock()

    def send(self, data: bytes) -> None:
        message = mido.Message.from_bytes(data)
        with self._lock:
            self.port.send(message)

    def close(self) -> None:
        with self._lock:
            self.port.close()


def make_send(output: MidiOutput, failures: Queue, script_path: str, program: int):
    """
    Build the `midi.send` function handed to one loaded program.

    Failures never raise into the script, they are queued for the main loop
    which reports them and waits for a fix.

    Args:
        output (MidiOutput): Where valid messages go.
        failures (Queue): Receives a ProtocolError per rejected message.
        script_path (str): The script the function belongs to.
        program (int): Id of the loaded program, copied onto failures.
    """

    def send(message) -> None:
        try:
            data = validate_message(message, script_path)
            output.send(data)
        except ProtocolError as e:
            logger.warning("rejected message from %s: %s", script_path, e.detail)
            e.program = program
            failures.put(e)
        except OSError as e:
            logger.error("sending from %s failed: %s", script_path, e)
            failures.put(
                ProtocolError(
                    script_path, f"Error when trying to send midi message: {e}", program
                )
            )

    return send


def open_ports(input_name: str, output_name: str, relay: MidiInputRelay):
    """
    Open the virtual input and output ports.

    Returns:
        tuple: The input port and a MidiOutput wrapping the output port.

    Raises:
        OSError: When the backend can't create a port.
    """
    try:
        output_port = mido.open_output(output_name, virtual=True)
    except (OSError, NotImplementedError) as e:
        raise OSError(
            f"Couldn't create virtual midi output port named {output_name}.\nError: {e}"
        ) from e
    try:
        input_port = mido.open_input(input_name, virtual=True, callback=relay)
    except (OSError, NotImplementedError) as e:
        output_port.close()
        raise OSError(
            f"Couldn't create virtual midi input port named {input_name}.\nError: {e}"
        ) from e
    logger.info("opened virtual ports %s and %s", input_name, output_name)
    return input_port, MidiOutput(output_port)
