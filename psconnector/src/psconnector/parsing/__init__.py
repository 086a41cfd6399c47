"""PowerShell source parsing: command signatures and return shapes."""

from .commands import CommandParser, ParseDefect, map_ps_type, parse_commands
from .return_shape import find_field, infer_return_shape

__all__ = [
    "CommandParser",
    "ParseDefect",
    "map_ps_type",
    "parse_commands",
    "infer_return_shape",
    "find_field",
]
