from enum import Enum


class UploadError(Enum):
    MISSING_PARAMETER = "missing_parameter"
    INVALID_PARAMETER = "invalid_parameter"
    INVALID_CHUNK_SIZE = "invalid_chunk_size"
    INVALID_CHUNK_NUMBER = "invalid_chunk_number"
    STORAGE_FAILURE = "storage_failure"
