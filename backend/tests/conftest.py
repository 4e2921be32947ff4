import pytest
import os
import sys
from pathlib import Path
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("GEMINI_API_KEY", "test_gemini_key")


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    """Pin settings for every test and keep the yt-dlp bin dir out of the repo."""
    from config import settings
    from services import resolver

    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test_gemini_key")
    monkeypatch.setattr(settings, "GEMINI_MODEL", "gemini-2.5-flash")
    monkeypatch.setattr(settings, "GEMINI_API_VERSION", "v1beta")
    monkeypatch.setattr(settings, "GEMINI_FALLBACK_MODEL", "gemini-1.5-flash")
    monkeypatch.setattr(settings, "GEMINI_FALLBACK_API_VERSION", "v1")
    monkeypatch.setattr(settings, "YTDLP_BIN_DIR", tmp_path / "bin")
    resolver.reset_binary_cache()
    yield settings
    resolver.reset_binary_cache()


@pytest.fixture
def missing_api_key(monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "GEMINI_API_KEY", None)


@pytest.fixture
def test_client():
    """Create a TestClient for FastAPI app."""
    import main
    return TestClient(main.app)


def make_response(status_code=200, json_data=None, content=b"", text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.content = content
    response.text = text
    response.raise_for_status = MagicMock()
    return response


@pytest.fixture
def mock_httpx_client():
    """Mock httpx.AsyncClient for API calls."""
    mock_client = MagicMock()
    mock_client.get = AsyncMock()
    mock_client.post = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


def gemini_text_response(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def sample_analysis_json():
    return (
        '{"mainClaim": "Apple cider vinegar melts belly fat", "verdict": "False", '
        '"explanation": "No clinical trial shows targeted fat loss from vinegar.", "confidence": 0.9, '
        '"sources": [{"title": "NIH: Vinegar and weight", "url": "https://www.nih.gov/", "publisher": "NIH"}]}'
    )


@pytest.fixture
def sample_gemini_response(sample_analysis_json):
    """Sample Gemini API response wrapping the analysis in a code fence."""
    return gemini_text_response(f"```json\n{sample_analysis_json}\n```")


@pytest.fixture
def sample_ytdlp_output():
    return (
        '{"id": "ABC", "url": "https://scontent.cdninstagram.com/v/t50/video.mp4?oh=1", '
        '"ext": "mp4", "http_headers": {"User-Agent": "Mozilla/5.0 test", "Referer": "https://www.instagram.com/"}}\n'
    )
