from enum import Enum
from typing import Dict

from pydantic import BaseModel, Field


class FileState(str, Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    FAILED = "Failed"

    @classmethod
    def from_provider(cls, state: str) -> "FileState":
        """Map a Files API state (PROCESSING, ACTIVE, FAILED, ...) onto ours."""
        normalized = (state or "").strip().upper()
        if normalized == "ACTIVE":
            return cls.ACTIVE
        if normalized == "FAILED":
            return cls.FAILED
        return cls.PENDING


class MediaReference(BaseModel):
    """Direct media location produced by the resolver; lives for one request."""
    source_url: str
    direct_url: str
    http_headers: Dict[str, str] = Field(default_factory=dict)


class UploadedFile(BaseModel):
    name: str
    uri: str
    mime_type: str
    state: FileState = FileState.PENDING

    @property
    def is_active(self) -> bool:
        return self.state is FileState.ACTIVE

    @property
    def is_failed(self) -> bool:
        return self.state is FileState.FAILED
