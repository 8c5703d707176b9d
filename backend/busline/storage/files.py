"""
File primitives for the line-oriented stores.

Writes go to a temporary file in the target's directory, are fsynced and
then swapped into place with os.replace, so readers see either the old or
the new contents and never a truncated file.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_text(path: PathLike) -> str:
    """Return the file contents, or an empty string when the file does not exist."""
    path = Path(path)
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""
    except OSError as e:
        raise PersistenceError(f"Could not read {path}: {e}") from e


def write_synced(path: PathLike, text: str) -> None:
    """Write text to path and fsync it before returning."""
    path = Path(path)
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(text)
        handle.flush()
        os.fsync(handle.fileno())


def fsync_directory(directory: PathLike) -> None:
    """Persist a rename inside directory. No-op where directories cannot be opened."""
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def atomic_write_text(path: PathLike, text: str) -> None:
    """
    Replace path with text atomically.

    Raises:
        PersistenceError: If the temporary file cannot be written or swapped in
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
        fsync_directory(path.parent)
    except OSError as e:
        raise PersistenceError(f"Could not write {path}: {e}") from e
    finally:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
