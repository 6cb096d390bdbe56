"""Web app registry.

One TOML document per webapp under ``config/apps/<id>.toml``, following
the Repository pattern: the rest of the application only sees
WebAppDefinition objects.
"""

from typing import List, Union
from uuid import UUID

from ..utils.logger import get_logger
from ..utils.xdg import AppPaths
from .models import ModelError, WebAppDefinition
from .storage import (
    NotFoundError,
    ParseError,
    StorageError,
    delete_document,
    read_document,
    write_document,
)

logger = get_logger(__name__)

RegistryError = StorageError

__all__ = [
    "AppRegistry",
    "NotFoundError",
    "ParseError",
    "RegistryError",
]


class AppRegistry:
    """Durable store of webapp definitions."""

    def __init__(self, paths: AppPaths) -> None:
        """Initialize registry.

        Args:
            paths: Resolved application paths
        """
        self.paths = paths

    def _path_for(self, webapp_id: Union[UUID, str]):
        return self.paths.apps_dir() / f"{webapp_id}.toml"

    def list(self) -> List[WebAppDefinition]:
        """Return every readable definition.

        Files without a ``.toml`` extension are ignored; documents that
        cannot be read or parsed are skipped with a warning.

        Returns:
            List of definitions (unordered)
        """
        apps_dir = self.paths.apps_dir()
        if not apps_dir.is_dir():
            return []

        definitions: List[WebAppDefinition] = []
        for entry in sorted(apps_dir.iterdir()):
            if entry.suffix != ".toml" or not entry.is_file():
                continue
            try:
                definitions.append(self._parse(entry))
            except (StorageError, OSError) as e:
                logger.warning("Skipping unreadable webapp file %s: %s", entry, e)

        return definitions

    def load(self, webapp_id: Union[UUID, str]) -> WebAppDefinition:
        """Load one definition.

        Args:
            webapp_id: UUID of the webapp

        Returns:
            The stored definition

        Raises:
            NotFoundError: If no document exists for the id
            ParseError: If the document is malformed
        """
        return self._parse(self._path_for(webapp_id))

    def _parse(self, path) -> WebAppDefinition:
        document = read_document(path)
        try:
            return WebAppDefinition.from_dict(document)
        except ModelError as e:
            raise ParseError(f"Invalid webapp definition in {path}: {e}") from e

    def save(self, definition: WebAppDefinition) -> None:
        """Write a definition, replacing any previous version.

        Raises:
            OSError: If the document cannot be written
        """
        write_document(self._path_for(definition.id), definition.to_dict())
        logger.debug(f"Saved webapp definition {definition.id}")

    def delete(self, webapp_id: Union[UUID, str]) -> None:
        """Delete a definition; deleting a missing one is a no-op."""
        if delete_document(self._path_for(webapp_id)):
            logger.debug(f"Deleted webapp definition {webapp_id}")

    def exists(self, webapp_id: Union[UUID, str]) -> bool:
        return self._path_for(webapp_id).is_file()
