from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class ResolverConfig:
    BINARY_NAME: str = "yt-dlp"
    FORMAT: str = "best[ext=mp4]/best"
    BINARY_DOWNLOAD_TIMEOUT: float = 120.0

    def build_args(self, target_url: str) -> Tuple[str, ...]:
        # "--" keeps a URL starting with "-" from being read as a flag
        return ("-j", "-f", self.FORMAT, "--no-playlist", "--no-warnings", "--", target_url)


@dataclass(frozen=True)
class UploadConfig:
    """Media upload and readiness polling for the Gemini Files API."""
    MIME_TYPE: str = "video/mp4"
    TEMP_PREFIX: str = "video_"
    TEMP_SUFFIX: str = ".mp4"
    MAX_ATTEMPTS: int = 2
    RETRY_DELAY: float = 1.0
    POLL_INTERVAL: float = 1.5
    POLL_TIMEOUT: float = 60.0


@dataclass(frozen=True)
class LLMConfig:
    TEMPERATURE: float = 0.3
    TOP_K: int = 40
    TOP_P: float = 0.95
    MAX_OUTPUT_TOKENS: int = 2048

    def generation_config(self) -> Dict[str, float]:
        return {
            "temperature": self.TEMPERATURE,
            "topK": self.TOP_K,
            "topP": self.TOP_P,
            "maxOutputTokens": self.MAX_OUTPUT_TOKENS,
        }


@dataclass(frozen=True)
class HTTPTimeouts:
    """Timeout configurations for outbound HTTP calls."""
    MEDIA_DOWNLOAD: float = 60.0
    UPLOAD: float = 120.0
    FILE_STATUS: float = 15.0
    GENERATE: float = 90.0


@dataclass(frozen=True)
class MediaHeaders:
    USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    )
    REFERER: str = "https://www.instagram.com/"
    ACCEPT: str = "*/*"

    def merged(self, overrides: Dict[str, str]) -> Dict[str, str]:
        """Default browser headers, overridden by anything the CDN asked for."""
        headers = {"User-Agent": self.USER_AGENT, "Referer": self.REFERER, "Accept": self.ACCEPT}
        lowered = {k.lower(): k for k in headers}
        for key, value in (overrides or {}).items():
            if value is None:
                continue
            existing = lowered.get(key.lower())
            if existing:
                del headers[existing]
            headers[key] = str(value)
        return headers


@dataclass(frozen=True)
class VerdictConfig:
    VALID_VERDICTS: frozenset = frozenset({"Accurate", "Misleading", "False", "Unverified"})
    DEFAULT_VERDICT: str = "Unverified"
    MAX_EXPLANATION_SENTENCES: int = 3


RESOLVER_CONFIG = ResolverConfig()
UPLOAD_CONFIG = UploadConfig()
LLM_CONFIG = LLMConfig()
HTTP_TIMEOUTS = HTTPTimeouts()
MEDIA_HEADERS = MediaHeaders()
VERDICT_CONFIG = VerdictConfig()
