import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("curefact")

from .settings import settings, Settings
from .constants import (
    RESOLVER_CONFIG,
    UPLOAD_CONFIG,
    LLM_CONFIG,
    HTTP_TIMEOUTS,
    MEDIA_HEADERS,
    VERDICT_CONFIG,
)

REQUIRED_KEYS = ["GEMINI_API_KEY"]

def check_api_keys_on_startup():
    """Check for required API keys on startup."""
    missing_keys = [key for key in REQUIRED_KEYS if not getattr(settings, key, None)]

    if missing_keys:
        logger.warning(f"Missing API keys: {', '.join(missing_keys)}. /api/analyze will fail closed.")
    else:
        logger.info("All required API keys are configured.")
    logger.info(
        "Primary model %s (%s), fallback model %s (%s)",
        settings.GEMINI_MODEL, settings.GEMINI_API_VERSION,
        settings.GEMINI_FALLBACK_MODEL, settings.GEMINI_FALLBACK_API_VERSION,
    )

__all__ = [
    "logger",
    "settings",
    "Settings",
    "check_api_keys_on_startup",
    "RESOLVER_CONFIG",
    "UPLOAD_CONFIG",
    "LLM_CONFIG",
    "HTTP_TIMEOUTS",
    "MEDIA_HEADERS",
    "VERDICT_CONFIG",
]
