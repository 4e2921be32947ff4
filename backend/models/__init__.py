from .media import (
    FileState,
    MediaReference,
    UploadedFile,
)
from .analysis import (
    VerdictType,
    Source,
    AnalysisResult,
)
from .requests import (
    FetchMediaRequest,
    FetchMediaResponse,
    AnalyzeRequest,
)

__all__ = [
    "FileState",
    "MediaReference",
    "UploadedFile",

    "VerdictType",
    "Source",
    "AnalysisResult",

    "FetchMediaRequest",
    "FetchMediaResponse",
    "AnalyzeRequest",
]
