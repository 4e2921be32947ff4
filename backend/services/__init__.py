from .resolver import resolve_media, ensure_binary
from .gemini import upload_file, get_file, generate_with_fallback, extract_text
from .orchestrator import AnalysisOrchestrator, wait_until_active, fallback_result

__all__ = [
    "resolve_media",
    "ensure_binary",
    "upload_file",
    "get_file",
    "generate_with_fallback",
    "extract_text",
    "AnalysisOrchestrator",
    "wait_until_active",
    "fallback_result",
]
