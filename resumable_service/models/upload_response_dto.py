from dataclasses import dataclass
from typing import Optional

from .upload_error import UploadError  # pylint: disable=relative-beyond-top-level
from .upload_status import UploadStatus  # pylint: disable=relative-beyond-top-level


@dataclass
# pylint: disable=too-many-instance-attributes
class UploadResponseDto:
    status: UploadStatus
    message: Optional[str] = None
    error: Optional[UploadError] = None
    identifier: Optional[str] = None
    file_name: Optional[str] = None
    chunk_number: Optional[int] = None
    total_chunks: Optional[int] = None
    file_path: Optional[str] = None
