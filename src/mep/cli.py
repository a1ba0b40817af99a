"""Command line entry point: finds the scripts folder, opens ports, starts the threads"""

import argparse
import logging
import shutil
import sys
from functools import partial
from os import path
from queue import Queue
from threading import Event

from send2trash import send2trash

from . import __version__, state
from .app import Application, spawn_stdin_reader
from .errors import FatalError
from .maps import VAR_TO_DIR
from .midi_io import MidiInputRelay, make_send, open_ports, port_names
from .state import get_nested_value
from .tui import Tui
from .variables.constants import EXIT_FATAL, EXIT_NO_SCRIPTS, EXIT_OK, Messages
from .watcher import ScriptWatcher

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mep",
        description="Run a script from your scripts folder against virtual midi "
        "ports, reloading it whenever you save it.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-p",
        "--port",
        metavar="name",
        help="You may give a name to your midi io ports, "
        "they become <name>_in and <name>_out",
    )
    parser.add_argument(
        "--home",
        metavar="path",
        help='If "mep" couldn\'t determine your home directory, run it with '
        '"--home <absolute-path-to-your-home-directory>"',
    )
    maintenance = parser.add_mutually_exclusive_group()
    maintenance.add_argument(
        "--clean", action="store_true", help="Remove the scripts folder and exit."
    )
    maintenance.add_argument(
        "--reset",
        action="store_true",
        help="Replace the scripts folder's contents with the example scripts and exit.",
    )
    parser.add_argument(
        "--log-level",
        metavar="level",
        help="Logging level of the log file, e.g. DEBUG.",
    )
    return parser


def discover_home(override: str | None) -> str | None:
    """The home directory, None when it can't be determined."""
    if override:
        return path.abspath(path.expanduser(override))
    home = VAR_TO_DIR["HOME"]
    if not home or home == "~":
        return None
    return home


def display_folder(folder: str) -> str:
    home = VAR_TO_DIR["HOME"]
    if home and home != "~" and path.dirname(folder) == path.normpath(home):
        return "~/" + path.basename(folder)
    return folder


def copy_examples(scripts_folder: str) -> None:
    """Fill the scripts folder with the bundled example scripts."""
    shutil.copytree(
        VAR_TO_DIR["EXAMPLES"],
        scripts_folder,
        dirs_exist_ok=True,
        ignore=shutil.ignore_patterns("__pycache__"),
    )
    logger.info("copied example scripts to %s", scripts_folder)


def remove_scripts_folder(scripts_folder: str, use_recycle_bin: bool = False) -> None:
    if not path.exists(scripts_folder):
        return
    if use_recycle_bin:
        send2trash(scripts_folder)
    else:
        shutil.rmtree(scripts_folder)
    logger.info("removed %s", scripts_folder)


def run(argv: list[str] | None = None, tui: Tui | None = None) -> int:
    """
    Run mep and return the exit code.

    Args:
        argv (list[str] | None): Arguments, `sys.argv[1:]` by default.
        tui (Tui | None): Terminal output, built from the config by default.
    """
    args = build_parser().parse_args(argv)

    state.config_setup()
    config = state.load_config()
    log_path = state.setup_logging(args.log_level)
    logger.info("mep %s starting, logging to %s", __version__, log_path)

    home = discover_home(args.home)
    folder_name = get_nested_value(config, ["scripts", "folder_name"])
    scripts_folder = path.join(home, folder_name) if home else folder_name
    if tui is None:
        tui = Tui(
            folder=display_folder(scripts_folder),
            clear_screen=get_nested_value(config, ["interface", "clear_screen"]),
            emoji=get_nested_value(config, ["interface", "emoji"]),
        )
    if home is None:
        tui.fatal(Messages.no_home)
        return EXIT_FATAL

    try:
        if args.clean:
            remove_scripts_folder(
                scripts_folder,
                get_nested_value(config, ["scripts", "use_recycle_bin"]),
            )
            tui.removed_scripts_folder()
            return EXIT_OK

        if args.reset:
            remove_scripts_folder(scripts_folder)
            copy_examples(scripts_folder)
            tui.reset_scripts_folder()
            return EXIT_OK
    except OSError as e:
        logger.error("maintenance of %s failed: %s", scripts_folder, e)
        tui.fatal(str(e))
        return EXIT_FATAL

    if not path.isdir(scripts_folder):
        tui.scripts_folder_not_found()
        try:
            copy_examples(scripts_folder)
        except OSError as e:
            logger.error("couldn't provision %s: %s", scripts_folder, e)
            tui.fatal(str(e))
            return EXIT_NO_SCRIPTS

    return serve(scripts_folder, config, tui, args.port)


def serve(scripts_folder: str, config: dict, tui: Tui, port_prefix: str | None) -> int:
    """Open the ports, start the threads and hand over to the main loop."""
    midi_config = config["midi"]
    input_name, output_name = port_names(
        port_prefix, midi_config["input_port"], midi_config["output_port"]
    )
    relay = MidiInputRelay(midi_config["queue_size"])
    watch_events: Queue = Queue()
    stdin_lines: Queue = Queue()
    failures: Queue = Queue()
    stop = Event()

    try:
        input_port, output = open_ports(input_name, output_name, relay)
    except OSError as e:
        logger.error("%s", e)
        tui.fatal(str(e))
        return EXIT_FATAL

    watcher = ScriptWatcher(
        scripts_folder,
        config["scripts"]["extension"],
        watch_events,
        debounce=config["watcher"]["debounce"],
        stop=stop,
    )
    app = Application(
        scripts_folder,
        tui,
        partial(make_send, output, failures),
        relay,
        watch_events,
        stdin_lines,
        failures,
        extension=config["scripts"]["extension"],
        sort_by=config["scripts"]["sort_by"],
        poll_interval=config["dispatcher"]["poll_interval"],
    )
    try:
        watcher.start()
        spawn_stdin_reader(stdin_lines)
        app.run()
    except FatalError as e:
        logger.error("fatal: %s", e.message)
        tui.fatal(e.message)
        return e.exit_code
    except KeyboardInterrupt:
        logger.info("interrupted")
        return EXIT_OK
    finally:
        stop.set()
        watcher.stop()
        input_port.close()
        output.close()
        if relay.dropped:
            logger.warning("dropped %d inbound messages", relay.dropped)
    return EXIT_OK


def main() -> None:
    sys.exit(run())
