from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class FetchMediaRequest(BaseModel):
    """Request body for /api/fetch-media. Checked by hand so bad input maps to 400."""
    url: Any = None


class FetchMediaResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    download_url: str = Field(alias="downloadUrl")
    headers: Dict[str, str] = Field(default_factory=dict)


class AnalyzeRequest(BaseModel):
    """Request body for /api/analyze."""
    model_config = ConfigDict(populate_by_name=True)

    video_url: Any = Field(default=None, alias="videoUrl")
    original_url: Any = Field(default=None, alias="originalUrl")
    headers: Optional[Dict[str, Any]] = None
