import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from exceptions import InputValidationError

class InputValidator:
    
    CONTROL_CHARS_PATTERN = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]')
    ALLOWED_SCHEMES = ("http", "https")
    MAX_URL_LENGTH = 4096

    @staticmethod
    def is_absolute_http_url(value: Any) -> bool:
        if not isinstance(value, str):
            return False
        parsed = urlparse(value)
        return parsed.scheme in InputValidator.ALLOWED_SCHEMES and bool(parsed.netloc)
    
    @staticmethod
    def require_url(value: Any, field: str) -> str:
        """Validate a request URL field and return it stripped.

        Only server-reachable http(s) URLs pass; a device-local file path
        is rejected.
        """
        if value is None:
            raise InputValidationError(field, "is required")
        if not isinstance(value, str):
            raise InputValidationError(field, "must be a string")
        
        url = InputValidator.CONTROL_CHARS_PATTERN.sub('', value).strip()
        
        if not url:
            raise InputValidationError(field, "is required")
        
        if len(url) > InputValidator.MAX_URL_LENGTH:
            raise InputValidationError(field, f"cannot exceed {InputValidator.MAX_URL_LENGTH} characters")
        
        if not InputValidator.is_absolute_http_url(url):
            raise InputValidationError(field, "must be an absolute http(s) URL")
        
        return url
    
    @staticmethod
    def sanitize_headers(headers: Optional[Dict[str, Any]]) -> Dict[str, str]:
        if not headers:
            return {}
        
        clean: Dict[str, str] = {}
        for key, value in headers.items():
            if value is None or not isinstance(key, str):
                continue
            key = InputValidator.CONTROL_CHARS_PATTERN.sub('', key).strip()
            if not key:
                continue
            clean[key] = InputValidator.CONTROL_CHARS_PATTERN.sub('', str(value)).strip()
        
        return clean
