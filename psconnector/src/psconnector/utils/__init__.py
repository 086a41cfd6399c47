"""Utility functions for common operations."""

from .ir_io import (
    commands_to_json,
    load_project_from_json,
    read_text_file,
    save_project_to_json,
    write_text_file,
)

__all__ = [
    "commands_to_json",
    "load_project_from_json",
    "read_text_file",
    "save_project_to_json",
    "write_text_file",
]
