import logging
from os import path

from .catalog import ScriptDescriptor, find_path, list_scripts

logger = logging.getLogger(__name__)


def read_script(location: str) -> bytes:
    """Raw contents of a script, the compiler decodes them."""
    with open(location, "rb") as f:
        return f.read()


class SessionManager:
    """Holds the script that is currently active.

    Only the main loop touches a session, every other thread talks to it
    through queues.

    Attributes:
        scripts_root (str): The folder being watched.
        extension (str): Extension of script files.
        sort_by (str): How the catalog is ordered, see `list_scripts`.
        catalog (list[ScriptDescriptor]): The scripts as of the last listing.
        active_index (int): Index of the active script in the catalog.
            Between 0 and the length of the catalog - 1, inclusive.
        active_path (str): Path of the active script.
        active_source (bytes): The active script as last read from disk, undecoded
            so a bad encoding surfaces as a compile error.
    """

    def __init__(
        self,
        scripts_root: str,
        catalog: list[ScriptDescriptor],
        index: int,
        extension: str = "py",
        sort_by: str = "none",
    ) -> None:
        if not 0 <= index < len(catalog):
            raise IndexError(f"no script at index {index}")
        self.scripts_root: str = path.realpath(scripts_root)
        self.extension: str = extension
        self.sort_by: str = sort_by
        self.catalog: list[ScriptDescriptor] = catalog
        self.active_index: int = index
        self.active_path: str = catalog[index].path
        self.active_source: bytes = read_script(self.active_path)

    def select(self, index: int) -> None:
        """Make the script at `index` the active one.

        Nothing changes if the index is out of range or the file can't be read.

        Raises:
            IndexError: When `index` is outside the catalog.
            OSError: When the script can't be read.
        """
        if not 0 <= index < len(self.catalog):
            raise IndexError(f"no script at index {index}")
        script = self.catalog[index]
        source = read_script(script.path)
        self.active_index = index
        self.active_path = script.path
        self.active_source = source
        logger.info("selected %s", script.path)

    def reload_source(self) -> bytes:
        """Read the active script again, the runtime never sees stale text."""
        self.active_source = read_script(self.active_path)
        return self.active_source

    def rebuild_catalog(self) -> list[ScriptDescriptor]:
        """List the scripts folder again and re-point `active_index`.

        The active index is left untouched when the active script is gone,
        the caller decides what to fall back to.
        """
        self.catalog = list_scripts(self.scripts_root, self.extension, self.sort_by)
        index = find_path(self.catalog, self.active_path)
        if index is not None:
            self.active_index = index
        logger.debug("catalog rebuilt with %d scripts", len(self.catalog))
        return self.catalog

    def is_active(self, location: str) -> bool:
        return path.realpath(location) == self.active_path

    def has_active(self) -> bool:
        """Whether the active script is still part of the catalog."""
        return find_path(self.catalog, self.active_path) is not None
