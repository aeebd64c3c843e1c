"""Project discovery and file output helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

import aiofiles
import structlog

from doko_runtime.core.exceptions import ProjectNotFoundError

logger = structlog.get_logger()

PROJECT_MARKERS = ("pyproject.toml", "aleo-config.yaml")


def find_root_directory(starting_dir: Union[str, Path]) -> Optional[Path]:
    """Walk up from starting_dir to the first directory holding every project marker."""
    current_dir = Path(starting_dir).resolve()

    while True:
        if all((current_dir / marker).exists() for marker in PROJECT_MARKERS):
            return current_dir

        parent_dir = current_dir.parent
        if parent_dir == current_dir:
            return None
        current_dir = parent_dir


def get_project_root(starting_dir: Optional[Union[str, Path]] = None) -> Path:
    """Return the project root or raise ProjectNotFoundError."""
    root = find_root_directory(starting_dir or os.getcwd())
    if root is None:
        raise ProjectNotFoundError("Aleo project initialization not found")

    logger.info("Found project root", path=str(root))
    return root


async def write_to_file(filename: Union[str, Path], data: str) -> Path:
    """Write text to filename, creating parent directories."""
    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(data)
    logger.info("Generated file", filename=str(path))
    return path
