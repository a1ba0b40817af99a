import os
from dataclasses import dataclass
from os import path
from typing import Literal


@dataclass(frozen=True)
class ScriptDescriptor:
    """A selectable script.

    Attributes:
        index (int): Position in the catalog, what the user types to choose it.
        path (str): Absolute path of the script file.
        display_name (str): The file name shown in the list.
    """

    index: int
    path: str
    display_name: str


def is_script(location: str, extension: str) -> bool:
    """Whether a path names a script file, judged by its extension only."""
    return path.splitext(location)[1].lower() == "." + extension.lower().lstrip(".")


def list_scripts(
    scripts_root: str,
    extension: str = "py",
    sort_by: Literal["none", "name"] = "none",
) -> list[ScriptDescriptor]:
    """List the script files of a folder.

    Args:
        scripts_root (str): The folder to list.
        extension (str): Extension of script files, without the dot.
        sort_by (str): "none" keeps directory order, "name" sorts by file name.

    Returns:
        list[ScriptDescriptor]: The catalog, empty if there are no scripts.

    Raises:
        OSError: When the folder can't be read.
    """
    scripts_root = path.realpath(scripts_root)
    found = []
    with os.scandir(scripts_root) as entries:
        for entry in entries:
            if entry.is_file() and is_script(entry.name, extension):
                found.append((entry.name, path.join(scripts_root, entry.name)))
    if sort_by == "name":
        found.sort(key=lambda item: item[0].lower())
    return [
        ScriptDescriptor(index=index, path=location, display_name=name)
        for index, (name, location) in enumerate(found)
    ]


def find_path(catalog: list[ScriptDescriptor], location: str) -> int | None:
    """Index of `location` in the catalog, or None if it isn't listed."""
    location = path.realpath(location)
    for script in catalog:
        if script.path == location:
            return script.index
    return None
