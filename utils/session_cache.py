"""
In-memory file cache scoped to one staging session
"""

from datetime import datetime
from typing import Dict, Iterator, Optional, Tuple
from loguru import logger


class SessionFileCache:
    """
    Key-value store of uploaded image buffers

    Created when a session starts and cleared on reset. Core modules never
    look anything up here; the orchestrating layer passes plain buffers.
    """

    def __init__(self):
        """
        Initialize an empty cache
        """
        self._files: Dict[str, bytes] = {}
        self.created_at = datetime.now()
        logger.info("📂 Session cache initialized")

    def add(self, file_id: str, data: bytes) -> None:
        """
        Store (or replace) a buffer

        Args:
            file_id: Opaque identifier
            data: Encoded image bytes
        """
        if not file_id:
            raise ValueError("file_id must be a non-empty string")
        if file_id in self._files:
            logger.debug(f"📝 Replacing cached file: {file_id}")
        self._files[file_id] = bytes(data)
        logger.debug(f"📝 Cached {file_id} ({len(data)} bytes)")

    def get(self, file_id: str) -> Optional[bytes]:
        """
        Get a cached buffer

        Returns:
            Bytes or None if not found
        """
        return self._files.get(file_id)

    def remove(self, file_id: str) -> bool:
        """Drop one entry; returns whether it existed"""
        return self._files.pop(file_id, None) is not None

    def all(self) -> Iterator[Tuple[str, bytes]]:
        """Iterate (file_id, data) pairs in insertion order"""
        return iter(list(self._files.items()))

    def clear(self) -> int:
        """
        Drop every entry

        Returns:
            Number of entries removed
        """
        count = len(self._files)
        self._files.clear()
        logger.info(f"🧹 Session cache cleared ({count} files)")
        return count

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._files
