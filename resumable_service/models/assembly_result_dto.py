from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AssemblyStatus(Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    STORAGE_FAILURE = "storage_failure"


@dataclass
class AssemblyResultDto:
    status: AssemblyStatus
    key: str
    message: Optional[str] = None
