from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
# pylint: disable=too-many-instance-attributes
class ChunkRequest:
    identifier: str
    filename: str
    chunk_number: int
    total_chunks: Optional[int] = None
    chunk_size: Optional[int] = None
    total_size: Optional[int] = None
    relative_path: Optional[str] = None
