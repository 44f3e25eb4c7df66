from enum import Enum


class UploadStatus(Enum):
    HAVE_CHUNK = "have_chunk"
    NEED_CHUNK = "need_chunk"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    REJECTED = "rejected"
    STORAGE_FAILURE = "storage_failure"
