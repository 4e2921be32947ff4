from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKEND_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Loads all environment variables into a single, accessible object."""
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    GEMINI_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )

    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_API_VERSION: str = "v1beta"
    GEMINI_FALLBACK_MODEL: str = "gemini-1.5-flash"
    GEMINI_FALLBACK_API_VERSION: str = "v1beta"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"

    YTDLP_BIN_DIR: Path = BACKEND_DIR / "bin"
    YTDLP_DOWNLOAD_URL: str = "https://github.com/yt-dlp/yt-dlp/releases/latest/download/yt-dlp"

    PORT: int = 3001

    def generate_endpoint(self, model: str, api_version: str) -> str:
        return f"{self.GEMINI_BASE_URL}/{api_version}/models/{model}:generateContent"

    @property
    def GEMINI_UPLOAD_ENDPOINT(self) -> str:
        return f"{self.GEMINI_BASE_URL}/upload/{self.GEMINI_API_VERSION}/files"

    def file_endpoint(self, name: str) -> str:
        return f"{self.GEMINI_BASE_URL}/{self.GEMINI_API_VERSION}/{name}"


settings = Settings()
