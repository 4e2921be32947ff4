from typing import Optional, Dict, Any

class CureFactException(Exception):
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "type": self.__class__.__name__,
            "details": self.details
        }

class InputValidationError(CureFactException):
    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"{field} {reason}",
            {"field": field, "reason": reason}
        )

class ResolutionError(CureFactException):
    """yt-dlp could not produce a usable direct media URL."""
    status_code = 422

    def __init__(self, reason: str, diagnostics: str = ""):
        super().__init__(
            reason,
            {"diagnostics": diagnostics[-2000:]} if diagnostics else {}
        )

class UpstreamAuthError(CureFactException):
    status_code = 422

    def __init__(self, service: str = "Gemini"):
        super().__init__(
            f"{service} API key not configured",
            {"service": service}
        )

class UpstreamError(CureFactException):
    status_code = 422

    def __init__(self, service: str, reason: str, upstream_status: Optional[int] = None):
        self.upstream_status = upstream_status
        super().__init__(
            f"{service} request failed: {reason}",
            {"service": service, "reason": reason, "upstream_status": upstream_status}
        )

    @property
    def is_client_error(self) -> bool:
        return self.upstream_status is not None and 400 <= self.upstream_status < 500

class ParseError(CureFactException):
    """Model output did not contain a parseable JSON object."""

    def __init__(self, reason: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(
            f"Could not parse model output: {reason}",
            {"reason": reason}
        )
