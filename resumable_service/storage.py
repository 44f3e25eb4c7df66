import logging
import posixpath
import shutil
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Iterator, Union
from uuid import uuid4

from fsspec.core import url_to_fs

from .exceptions import ObjectAlreadyExistsException, StorageFailureException

logger = logging.getLogger("resumable_service")

COPY_BUFFER_SIZE = 1024 * 1024
STAGING_SUFFIX = ".part"


class ChunkStorage(ABC):
    """Byte-addressable key store used by the upload engine.

    Keys are ``/``-separated and relative to the storage root. Every method
    reports I/O errors as `StorageFailureException`.
    """

    @abstractmethod
    def has(self, key: str) -> bool: ...

    @abstractmethod
    def write(self, key: str, data: Union[bytes, BinaryIO]) -> None: ...

    @abstractmethod
    def create_exclusive(self, key: str) -> Any:
        """Context manager yielding a writable stream for a key that must not exist.

        Raises `ObjectAlreadyExistsException` if the key is already present.
        """

    @abstractmethod
    def read_stream(self, key: str) -> Any:
        """Context manager yielding a readable stream."""

    @abstractmethod
    def list_keys(self, prefix: str) -> list[str]: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...


@dataclass
class ChunkStorageConfig:
    storage_url: str
    storage_options: dict[str, Any] = field(default_factory=dict)


class FsspecChunkStorage(ChunkStorage):
    client: Any = None

    def __init__(self, config: ChunkStorageConfig) -> None:
        self.client, root = url_to_fs(config.storage_url, **config.storage_options)
        self.root: str = root.rstrip("/")
        logger.info(
            "Initiated chunk storage",
            extra={"storage_url": config.storage_url, "root": self.root},
        )

    def _path(self, key: str) -> str:
        key = key.strip("/")
        if not self.root:
            return key
        return f"{self.root}/{key}" if key else self.root

    def _key(self, path: str) -> str:
        path = path.rstrip("/")
        if self.root and path.startswith(self.root + "/"):
            return path[len(self.root) + 1 :]
        return path

    def _makedirs(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent:
            self.client.makedirs(parent, exist_ok=True)

    def has(self, key: str) -> bool:
        try:
            return bool(self.client.exists(self._path(key)))
        except OSError as exception:
            logger.exception("Failed to check key", extra={"key": key})
            raise StorageFailureException(f"Cannot check {key}") from exception

    def write(self, key: str, data: Union[bytes, BinaryIO]) -> None:
        path = self._path(key)
        # unique per writer, concurrent re-deliveries of a slot never share one
        staging_path = f"{path}.{uuid4().hex}{STAGING_SUFFIX}"
        try:
            logger.debug("Writing object", extra={"key": key})
            self._makedirs(path)
            with self.client.open(staging_path, mode="wb") as fobj:
                if isinstance(data, (bytes, bytearray, memoryview)):
                    fobj.write(data)
                else:
                    shutil.copyfileobj(data, fobj, COPY_BUFFER_SIZE)
            self.client.mv(staging_path, path)
            logger.debug("Object written", extra={"key": key})
        except (OSError, ValueError) as exception:
            logger.exception("Failed to write object", extra={"key": key})
            self._discard(staging_path)
            raise StorageFailureException(f"Cannot write {key}") from exception

    @contextmanager
    def create_exclusive(self, key: str) -> Iterator[BinaryIO]:
        path = self._path(key)
        try:
            if self.client.exists(path):
                raise ObjectAlreadyExistsException(f"{key} already exists")
            self._makedirs(path)
            fobj = self.client.open(path, mode="xb")
        except FileExistsError as exception:
            raise ObjectAlreadyExistsException(f"{key} already exists") from exception
        except OSError as exception:
            logger.exception("Failed to create object", extra={"key": key})
            raise StorageFailureException(f"Cannot create {key}") from exception

        try:
            with fobj:
                yield fobj
                fobj.flush()
        except OSError as exception:
            logger.exception("Failed to write object", extra={"key": key})
            raise StorageFailureException(f"Cannot write {key}") from exception

    @contextmanager
    def read_stream(self, key: str) -> Iterator[BinaryIO]:
        try:
            fobj = self.client.open(self._path(key), mode="rb")
        except OSError as exception:
            logger.exception("Failed to open object", extra={"key": key})
            raise StorageFailureException(f"Cannot read {key}") from exception

        try:
            with fobj:
                yield fobj
        except OSError as exception:
            logger.exception("Failed to read object", extra={"key": key})
            raise StorageFailureException(f"Cannot read {key}") from exception

    def list_keys(self, prefix: str) -> list[str]:
        path = self._path(prefix)
        try:
            if not self.client.exists(path):
                return []
            return sorted(self._key(found) for found in self.client.find(path))
        except OSError as exception:
            logger.exception("Failed to list keys", extra={"prefix": prefix})
            raise StorageFailureException(f"Cannot list {prefix}") from exception

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            if self.client.exists(path):
                self.client.rm(path, recursive=True)
                logger.debug("Object deleted", extra={"key": key})
        except OSError as exception:
            logger.exception("Failed to delete object", extra={"key": key})
            raise StorageFailureException(f"Cannot delete {key}") from exception

    def _discard(self, path: str) -> None:
        try:
            if self.client.exists(path):
                self.client.rm(path)
        except OSError:
            logger.warning("Failed to discard staging object", extra={"path": path})
