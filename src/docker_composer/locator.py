"""Locate a compose file by walking up from a starting directory."""

from __future__ import annotations

import glob
import logging
from pathlib import Path

from docker_composer.config import DEFAULT_COMPOSE_FILE
from docker_composer.exceptions import ComposeFileNotFoundError

logger = logging.getLogger(__name__)


def _match(directory: Path, file_name: str) -> Path | None:
    if glob.has_magic(file_name):
        matches = sorted(p for p in directory.glob(file_name) if p.is_file())
        return matches[0] if matches else None
    candidate = directory / file_name
    return candidate if candidate.is_file() else None


def find_compose_file(
    file_name: str = DEFAULT_COMPOSE_FILE,
    start_dir: Path | str = ".",
) -> Path:
    """Return the absolute path of the nearest *file_name*.

    Searches *start_dir*, then each parent up to the file-system root.

    Args:
        file_name: Compose file name, or a glob pattern such as ``*.yml``.
        start_dir: Directory the search starts from.

    Returns:
        Absolute path to the compose file.

    Raises:
        ComposeFileNotFoundError: If no directory on the way to the root
            holds a matching file.
    """
    if Path(file_name).is_absolute():
        if Path(file_name).is_file():
            return Path(file_name)
        raise ComposeFileNotFoundError(file_name, Path(file_name).parent)

    start = Path(start_dir).resolve()
    for directory in (start, *start.parents):
        found = _match(directory, file_name)
        if found is not None:
            logger.debug("Found %s in %s", file_name, directory)
            return found
    raise ComposeFileNotFoundError(file_name, start)
