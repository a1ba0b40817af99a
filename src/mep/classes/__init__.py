from .catalog import ScriptDescriptor, find_path, is_script, list_scripts
from .session_manager import SessionManager

__all__ = [
    "ScriptDescriptor",
    "SessionManager",
    "find_path",
    "is_script",
    "list_scripts",
]
