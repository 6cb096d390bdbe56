"""TOML file storage shared by the registry and the permission store.

Each entity lives in its own human-readable TOML document. Writes go
to a temporary file in the same directory which then replaces the
target, so readers never observe a partially written document.
"""

import os
import tomllib
from contextlib import contextmanager
from pathlib import Path
from typing import Any, BinaryIO, Dict, Generator

import tomli_w


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class NotFoundError(StorageError):
    """Raised when a requested document does not exist."""

    pass


class ParseError(StorageError):
    """Raised when a document exists but cannot be understood."""

    pass


def read_document(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML document.

    Args:
        path: File to read

    Returns:
        Parsed document

    Raises:
        NotFoundError: If the file does not exist
        ParseError: If the file is not valid UTF-8 TOML
        OSError: For other filesystem errors
    """
    try:
        with open(path, "rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as e:
        raise NotFoundError(f"No such document: {path}") from e
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"Malformed document {path}: {e}") from e


@contextmanager
def _atomic_target(path: Path) -> Generator[BinaryIO, None, None]:
    """Open a temporary sibling of ``path`` and move it into place on success.

    Yields:
        Binary file handle of the temporary file
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    try:
        with open(tmp_path, "wb") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise


def write_document(path: Path, document: Dict[str, Any]) -> None:
    """Serialize ``document`` as TOML and write it atomically.

    Raises:
        OSError: If the file cannot be written
    """
    with _atomic_target(path) as handle:
        tomli_w.dump(document, handle)


def delete_document(path: Path) -> bool:
    """Delete a document; a missing file is not an error.

    Returns:
        True if a file was removed
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
