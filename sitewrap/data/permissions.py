"""Per-webapp permission store.

One TOML document per webapp under ``config/permissions/<id>.toml``,
mapping each origin to its four permission decisions::

    ["https://example.com"]
    notifications = "ask"
    camera = "ask"
    microphone = "ask"
    location = "ask"
"""

from pathlib import Path
from typing import Union
from uuid import UUID

from ..utils.logger import get_logger
from ..utils.xdg import AppPaths
from .models import ModelError, PermissionStore
from .storage import NotFoundError, ParseError, delete_document, read_document, write_document

logger = get_logger(__name__)


class PermissionRepository:
    """Loads and saves PermissionStore documents."""

    def __init__(self, paths: AppPaths) -> None:
        self.paths = paths

    def _path_for(self, webapp_id: Union[UUID, str]) -> Path:
        return self.paths.permissions_dir() / f"{webapp_id}.toml"

    def load(self, webapp_id: Union[UUID, str]) -> PermissionStore:
        """Load the permission store of a webapp.

        Args:
            webapp_id: UUID of the webapp

        Returns:
            Stored permissions, or an empty store if none were saved yet

        Raises:
            ParseError: If the document is malformed
        """
        path = self._path_for(webapp_id)
        try:
            document = read_document(path)
        except NotFoundError:
            return PermissionStore()

        try:
            return PermissionStore.from_dict(document)
        except ModelError as e:
            raise ParseError(f"Invalid permission store in {path}: {e}") from e

    def save(self, webapp_id: Union[UUID, str], store: PermissionStore) -> None:
        """Write the permission store of a webapp.

        Raises:
            OSError: If the document cannot be written
        """
        write_document(self._path_for(webapp_id), store.to_dict())
        logger.debug("Saved permissions for %s (%d origins)", webapp_id, len(store.origins))

    def delete(self, webapp_id: Union[UUID, str]) -> None:
        """Delete the permission store; a missing one is a no-op."""
        if delete_document(self._path_for(webapp_id)):
            logger.debug("Deleted permissions for %s", webapp_id)

    def exists(self, webapp_id: Union[UUID, str]) -> bool:
        return self._path_for(webapp_id).is_file()
