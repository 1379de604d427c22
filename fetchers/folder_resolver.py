"""Folder breadcrumb resolution by walking parent references."""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from errors import AuthenticationError
from models import FolderNode

PATH_SEPARATOR = ' > '
UNKNOWN_LOCATION = 'Unknown Location'

_MISSING = object()


class FolderPathResolver:
    """
    Resolves the root-first folder path of a template.

    Any failed lookup along the chain yields an empty path rather than an
    error. Lookups are cached for the lifetime of the resolver and the
    cache is shared safely between worker threads.
    """

    def __init__(self, client, logger=None):
        self.client = client
        self.logger = logger or logging.getLogger('marketo_template_exporter.folders')
        self._cache: Dict[Tuple[str, str], Optional[FolderNode]] = {}
        self._cache_lock = threading.Lock()
        self.lookups = 0

    def resolve_path(self, folder_id: Any, folder_type: str = 'Folder') -> List[FolderNode]:
        """
        Walk from a folder up to its root.

        Args:
            folder_id: Starting folder id (None yields an empty path)
            folder_type: "Folder" or "Program"

        Returns:
            Root-first list of FolderNode, or [] when the chain cannot be resolved

        Raises:
            AuthenticationError: Credentials were rejected during a lookup
        """
        if folder_id is None or folder_id == '':
            return []

        path: List[FolderNode] = []
        visited = set()
        current_id, current_type = folder_id, folder_type or 'Folder'

        while current_id is not None:
            key = (str(current_id), current_type)
            if key in visited:
                self.logger.warning(f"Folder cycle detected at {current_type} {current_id}; "
                                    f"returning empty path")
                return []
            visited.add(key)

            node = self._lookup(current_id, current_type)
            if node is None:
                return []

            path.append(node)
            current_id = node.parent_id
            current_type = node.parent_type or 'Folder'

        path.reverse()
        return path

    def resolve_path_string(self, folder_id: Any, folder_type: str = 'Folder') -> str:
        return self.format_path(self.resolve_path(folder_id, folder_type))

    @staticmethod
    def format_path(path: List[FolderNode]) -> str:
        """Join folder names with " > ", or "Unknown Location" for an empty path."""
        if not path:
            return UNKNOWN_LOCATION
        return PATH_SEPARATOR.join(node.name for node in path)

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def _lookup(self, folder_id: Any, folder_type: str) -> Optional[FolderNode]:
        key = (str(folder_id), folder_type)

        with self._cache_lock:
            cached = self._cache.get(key, _MISSING)
            if cached is _MISSING:
                self.lookups += 1
        if cached is not _MISSING:
            return cached

        try:
            data = self.client.get_folder(folder_id, folder_type)
        except AuthenticationError:
            raise
        except Exception as e:
            # Transient failures are not cached
            self.logger.warning(f"Folder lookup failed for {folder_type} {folder_id}: {str(e)}")
            return None

        if data is None:
            self.logger.debug(f"Folder {folder_type} {folder_id} not found")
            node = None
        else:
            node = FolderNode.from_api(data)

        with self._cache_lock:
            self._cache[key] = node
        return node
