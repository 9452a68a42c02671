"""Object Storage Interface

Durable storage for generated artifacts, scoped per user by path prefix.
"""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """An object store operation failed"""


class ObjectStorage(ABC):

    @abstractmethod
    async def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """
        Store bytes under bucket/path

        Returns:
            Public URL of the stored object

        Raises:
            StorageError: If the upload fails
        """
        pass

    @abstractmethod
    async def delete(self, bucket: str, path: str) -> None:
        """
        Raises:
            StorageError: If the delete fails
        """
        pass
