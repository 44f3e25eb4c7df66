class ChunkRequestException(Exception):
    """Base for protocol requests that are rejected before touching storage."""


class MissingParameterException(ChunkRequestException):
    """A required protocol parameter is absent from the request."""


class InvalidParameterException(MissingParameterException):
    """A numeric protocol parameter is present but cannot be read as an integer."""


class InvalidChunkSizeException(ChunkRequestException):
    """Declared chunk size must be greater than zero."""


class InvalidChunkNumberException(ChunkRequestException):
    """Chunk numbers start at 1 and cannot exceed the total chunk count."""


class StorageFailureException(Exception):
    """I/O error while opening, reading, writing or deleting a stored object."""


class ObjectAlreadyExistsException(StorageFailureException):
    """Exclusive create was refused because the key already exists."""
