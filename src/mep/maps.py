from os import path

from platformdirs import PlatformDirs

dirs = PlatformDirs("mep", appauthor=False)

VAR_TO_DIR = {
    "CONFIG": dirs.user_config_dir.replace("\\", "/"),
    "LOG": dirs.user_log_dir.replace("\\", "/"),
    "HOME": path.expanduser("~").replace("\\", "/"),
    "EXAMPLES": path.join(path.dirname(__file__), "example_scripts").replace(
        "\\", "/"
    ),
}

# ansi colors used by the terminal ui, keyed by what they paint
COLORS = {
    "intro": "blue",
    "index": "yellow",
    "active_index": "green",
    "name": "red",
    "prompt": "green",
    "error_title": "magenta",
    "hint": "blue",
    "notice": "yellow",
    "removed": "red",
}

BULB = "\U0001f4a1"
