"""Utilities for loading and saving connector projects and sources."""

import json
from pathlib import Path
from typing import List
from pydantic import TypeAdapter
from psconnector.ir.command import Command
from psconnector.ir.project import ConnectorProject


def load_project_from_json(project_path: Path) -> ConnectorProject:
    """
    Load a ConnectorProject from a JSON file.

    Args:
        project_path: Path to the JSON file

    Returns:
        Loaded ConnectorProject instance

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is empty or does not hold a valid project
    """
    project_path = Path(project_path)
    if not project_path.exists():
        raise FileNotFoundError(f"Project file not found: {project_path}")

    file_content = project_path.read_text(encoding="utf-8").strip()
    if not file_content:
        raise ValueError(f"Project file is empty: {project_path}")

    try:
        return TypeAdapter(ConnectorProject).validate_json(file_content)
    except Exception as e:
        raise ValueError(f"Failed to load project from {project_path}: {e}") from e


def save_project_to_json(project: ConnectorProject, project_path: Path) -> None:
    """
    Save a ConnectorProject to a JSON file.

    Note:
        Creates parent directories if they don't exist.
    """
    project_path = Path(project_path)
    project_path.parent.mkdir(parents=True, exist_ok=True)
    project_path.write_text(project.model_dump_json(indent=2), encoding="utf-8")


def commands_to_json(commands: List[Command]) -> str:
    """Serialize parsed commands, without their bodies."""
    return json.dumps([c.model_dump(exclude={"body"}) for c in commands], indent=2)


def read_text_file(path: Path) -> str:
    """
    Read a UTF-8 text file (PowerShell source or descriptor).

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_text(encoding="utf-8-sig")


def write_text_file(text: str, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
