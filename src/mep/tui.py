"""Terminal output, nothing here holds state about scripts"""

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from .classes.catalog import ScriptDescriptor
from .maps import BULB, COLORS
from .variables.constants import Messages


class Tui:
    """Writes the script list, prompts and errors to the terminal.

    Args:
        folder (str): The scripts folder as shown to the user.
        console (Console): Where to write, stdout by default.
        clear_screen (bool): Clear the screen before listing scripts.
        emoji (bool): Prefix notices with a light bulb.
    """

    def __init__(
        self,
        folder: str = "~/.mep",
        console: Console | None = None,
        clear_screen: bool = True,
        emoji: bool = True,
    ) -> None:
        self.folder = folder
        self.console = console if console is not None else Console(highlight=False)
        self.clear_screen = clear_screen
        self.emoji = emoji

    def _notice(self, message: str, color: str) -> None:
        prefix = f"{BULB} " if self.emoji else ""
        self.console.print(Text(prefix + message, style=color))

    def clear(self) -> None:
        if self.clear_screen:
            self.console.clear()

    def intro(self) -> None:
        self.console.print(Text(Messages.intro, style=COLORS["intro"]))

    def prompt(self) -> None:
        self.console.print(Text(Messages.prompt, style=COLORS["prompt"]), end=" ")

    def render_catalog(
        self, catalog: list[ScriptDescriptor], active_index: int | None = None
    ) -> None:
        """List the scripts, highlighting the active one, then prompt."""
        self.clear()
        self.intro()
        for script in catalog:
            line = Text()
            line.append(
                f"{script.index:<3}",
                style=COLORS["active_index"]
                if script.index == active_index
                else COLORS["index"],
            )
            line.append(script.display_name, style=COLORS["name"])
            self.console.print(line)
        self.prompt()

    def acknowledge_invalid_input(self) -> None:
        self.prompt()

    def show_error(self, context: str, message: str, clear: bool = True) -> None:
        if clear:
            self.clear()
        self._notice(Messages.error_in.format(context=context), COLORS["error_title"])
        self.console.print(
            Text(Messages.fix_hint.format(folder=self.folder), style=COLORS["hint"])
        )
        self.console.print(Panel(Text(message), border_style="white", expand=False))

    def scripts_folder_not_found(self) -> None:
        self._notice(Messages.folder_not_found.format(folder=self.folder), COLORS["notice"])

    def removed_scripts_folder(self) -> None:
        self._notice(Messages.folder_removed.format(folder=self.folder), COLORS["removed"])

    def reset_scripts_folder(self) -> None:
        self._notice(Messages.folder_reset.format(folder=self.folder), COLORS["removed"])

    def fatal(self, message: str) -> None:
        self.console.print()
        self._notice(message, COLORS["hint"])
