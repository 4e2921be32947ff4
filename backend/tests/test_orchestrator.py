import asyncio
import glob
import os
import tempfile
import time

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from conftest import make_response, gemini_text_response
from exceptions import ParseError, ResolutionError, UpstreamAuthError, UpstreamError
from models import FileState, MediaReference, UploadedFile
from services.orchestrator import (
    AnalysisOrchestrator,
    parse_analysis_text,
    summarize_unparsed_text,
    wait_until_active,
)

VIDEO_URL = "https://cdn.example/video.mp4"
ORIGINAL_URL = "https://instagram.com/reel/ABC"


def _file(state=FileState.PENDING):
    return UploadedFile(name="files/abc", uri="https://g/files/abc", mime_type="video/mp4", state=state)


def _temp_videos():
    return set(glob.glob(os.path.join(tempfile.gettempdir(), "video_*.mp4")))


class TestParseAnalysisText:

    def test_fenced_json_round_trip(self, sample_analysis_json):
        result = parse_analysis_text(f"```json\n{sample_analysis_json}\n```")
        body = result.to_response()
        assert body["mainClaim"] == "Apple cider vinegar melts belly fat"
        assert body["verdict"] == "False"
        assert body["explanation"] == "No clinical trial shows targeted fat loss from vinegar."
        assert body["confidence"] == 0.9
        assert body["sources"] == [{"title": "NIH: Vinegar and weight", "url": "https://www.nih.gov/", "publisher": "NIH"}]
        assert body["kind"] == "fact_check"

    def test_object_after_plain_fence_is_found(self):
        text = (
            "Here is what the video says:\n"
            "```\nGarlic water every morning cures the flu.\n```\n"
            "And the fact-check:\n"
            '```json\n{"mainClaim": "Garlic cures flu", "verdict": "False", '
            '"explanation": "No trial supports it.", "confidence": 0.8, "sources": []}\n```'
        )
        result = parse_analysis_text(text)
        assert result.main_claim == "Garlic cures flu"
        assert result.verdict == "False"
        assert result.confidence == 0.8

    def test_unknown_verdict_becomes_unverified(self):
        result = parse_analysis_text('{"mainClaim": "x", "verdict": "Partly true", "confidence": 2}')
        assert result.verdict == "Unverified"
        assert result.confidence == 1.0

    def test_verdict_case_is_normalized(self):
        assert parse_analysis_text('{"mainClaim": "x", "verdict": "misleading"}').verdict == "Misleading"

    def test_sources_always_a_list(self):
        result = parse_analysis_text('{"mainClaim": "x", "verdict": "False", "sources": "WHO"}')
        assert result.sources == []

    def test_malformed_sources_are_dropped(self):
        text = '{"mainClaim": "x", "sources": [{"title": "CDC", "url": "https://cdc.gov"}, "junk", {}]}'
        result = parse_analysis_text(text)
        assert [s.title for s in result.sources] == ["CDC"]

    def test_prose_raises_parse_error(self):
        with pytest.raises(ParseError):
            parse_analysis_text("The video talks about smoothies.")


class TestSummarizeUnparsedText:

    def test_prose_fallback(self):
        text = "The creator says turmeric cures arthritis. They show a recipe. Then they sell a course. Follow for more."
        result = summarize_unparsed_text(text)
        assert result.main_claim == "The creator says turmeric cures arthritis."
        assert result.explanation == "The creator says turmeric cures arthritis. They show a recipe. Then they sell a course."
        assert result.verdict == "Unverified"
        assert result.confidence == 0
        assert result.sources == []

    def test_empty_text(self):
        result = summarize_unparsed_text("")
        assert result.verdict == "Unverified"
        assert result.main_claim


@pytest.mark.asyncio
class TestWaitUntilActive:

    async def test_already_active_does_not_poll(self):
        with patch("services.orchestrator.gemini.get_file", AsyncMock()) as get_file:
            current = await wait_until_active(_file(FileState.ACTIVE))
        assert current.is_active
        get_file.assert_not_called()

    async def test_polls_until_active(self):
        get_file = AsyncMock(side_effect=[_file(FileState.PENDING), _file(FileState.ACTIVE)])
        with patch("services.orchestrator.gemini.get_file", get_file):
            current = await wait_until_active(_file(), deadline=time.monotonic() + 5, interval=0.01)
        assert current.is_active
        assert get_file.call_count == 2

    async def test_deadline_returns_pending_file(self):
        get_file = AsyncMock(return_value=_file(FileState.PENDING))
        with patch("services.orchestrator.gemini.get_file", get_file):
            current = await wait_until_active(_file(), deadline=time.monotonic() + 0.05, interval=0.01)
        assert current.state is FileState.PENDING

    async def test_cancel_event_short_circuits(self):
        cancel = asyncio.Event()
        cancel.set()
        with patch("services.orchestrator.gemini.get_file", AsyncMock()) as get_file:
            current = await wait_until_active(_file(), deadline=time.monotonic() + 60, cancel_event=cancel)
        assert current.state is FileState.PENDING
        get_file.assert_not_called()

    async def test_failed_state_stops_polling(self):
        get_file = AsyncMock(return_value=_file(FileState.FAILED))
        with patch("services.orchestrator.gemini.get_file", get_file):
            current = await wait_until_active(_file(), deadline=time.monotonic() + 5, interval=0.01)
        assert current.is_failed
        assert get_file.call_count == 1


@pytest.mark.asyncio
class TestAnalysisOrchestrator:

    @pytest.fixture
    def orchestrator(self):
        return AnalysisOrchestrator(poll_timeout=0.05, poll_interval=0.01)

    @pytest.fixture
    def no_reresolve(self):
        with patch("services.orchestrator.resolve_media", AsyncMock(side_effect=ResolutionError("offline"))) as m:
            yield m

    async def test_happy_path_with_upload(self, orchestrator, no_reresolve, sample_gemini_response):
        generate = AsyncMock(return_value=(sample_gemini_response, "gemini-2.5-flash", "v1beta"))
        with patch.object(AnalysisOrchestrator, "_download_media", AsyncMock(return_value=b"mp4-bytes")), \
             patch("services.orchestrator.gemini.upload_file", AsyncMock(return_value=_file(FileState.ACTIVE))), \
             patch("services.orchestrator.gemini.generate_with_fallback", generate):
            result = await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {})

        assert result.verdict == "False"
        assert result.model == "gemini-2.5-flash"
        assert result.api_version == "v1beta"
        parts = generate.call_args.args[0]["contents"][0]["parts"]
        assert parts[0]["fileData"]["fileUri"] == "https://g/files/abc"

    async def test_temp_file_removed_after_upload(self, orchestrator, no_reresolve, sample_gemini_response):
        seen_paths = []

        async def fake_upload(path, mime_type, content=None):
            assert path.exists()
            assert path.read_bytes() == b"mp4-bytes"
            assert content == b"mp4-bytes"
            seen_paths.append(path)
            return _file(FileState.ACTIVE)

        before = _temp_videos()
        with patch.object(AnalysisOrchestrator, "_download_media", AsyncMock(return_value=b"mp4-bytes")), \
             patch("services.orchestrator.gemini.upload_file", fake_upload), \
             patch("services.orchestrator.gemini.generate_with_fallback",
                   AsyncMock(return_value=(sample_gemini_response, "m", "v"))):
            await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {})

        assert seen_paths and not seen_paths[0].exists()
        assert seen_paths[0].name.startswith("video_")
        assert _temp_videos() == before

    async def test_temp_file_removed_when_upload_fails(self, orchestrator, no_reresolve, sample_gemini_response):
        before = _temp_videos()
        generate = AsyncMock(return_value=(sample_gemini_response, "m", "v"))
        with patch.object(AnalysisOrchestrator, "_download_media", AsyncMock(return_value=b"mp4-bytes")), \
             patch("services.orchestrator.gemini.upload_file", AsyncMock(side_effect=UpstreamError("Gemini Files", "HTTP 500", 500))), \
             patch("services.orchestrator.gemini.generate_with_fallback", generate):
            result = await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {})

        assert _temp_videos() == before
        assert result.verdict == "False"
        parts = generate.call_args.args[0]["contents"][0]["parts"]
        assert len(parts) == 1 and "text" in parts[0]

    async def test_download_failure_skips_upload(self, orchestrator, no_reresolve, mock_httpx_client, sample_gemini_response):
        mock_httpx_client.get.return_value = make_response(403)
        upload = AsyncMock()
        with patch("services.orchestrator.httpx.AsyncClient", return_value=mock_httpx_client), \
             patch("services.orchestrator.gemini.upload_file", upload), \
             patch("services.orchestrator.gemini.generate_with_fallback",
                   AsyncMock(return_value=(sample_gemini_response, "m", "v"))):
            result = await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {"User-Agent": "cdn-agent"})

        upload.assert_not_called()
        assert result.verdict == "False"
        sent_headers = mock_httpx_client.get.call_args.kwargs["headers"]
        assert sent_headers["User-Agent"] == "cdn-agent"
        assert sent_headers["Referer"] == "https://www.instagram.com/"

    async def test_reresolved_reference_is_used(self, orchestrator, sample_gemini_response):
        fresh = MediaReference(source_url=ORIGINAL_URL, direct_url="https://cdn.example/fresh.mp4",
                               http_headers={"Referer": "https://fresh.example/"})
        download = AsyncMock(return_value=None)
        with patch("services.orchestrator.resolve_media", AsyncMock(return_value=fresh)), \
             patch.object(AnalysisOrchestrator, "_download_media", download), \
             patch("services.orchestrator.gemini.generate_with_fallback",
                   AsyncMock(return_value=(sample_gemini_response, "m", "v"))):
            await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {})

        assert download.call_args.args == ("https://cdn.example/fresh.mp4", {"Referer": "https://fresh.example/"})

    async def test_prose_response_is_summarized(self, orchestrator, no_reresolve):
        prose = gemini_text_response("This reel shows a morning routine. It mentions cold showers. Nothing else.")
        with patch.object(AnalysisOrchestrator, "_download_media", AsyncMock(return_value=None)), \
             patch("services.orchestrator.gemini.generate_with_fallback", AsyncMock(return_value=(prose, "m", "v"))):
            result = await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {})

        assert result.verdict == "Unverified"
        assert result.confidence == 0
        assert result.sources == []
        assert result.main_claim == "This reel shows a morning routine."

    async def test_generation_failure_returns_fallback(self, orchestrator, no_reresolve):
        with patch.object(AnalysisOrchestrator, "_download_media", AsyncMock(return_value=None)), \
             patch("services.orchestrator.gemini.generate_with_fallback",
                   AsyncMock(side_effect=httpx.ConnectError("unreachable"))):
            result = await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {})

        assert result.verdict == "Misleading"
        assert result.main_claim == "Drinking lemon water prevents viral infections"
        assert len(result.sources) == 2

    async def test_missing_key_fails_closed(self, orchestrator, missing_api_key):
        with patch("services.orchestrator.resolve_media", AsyncMock()) as resolve:
            with pytest.raises(UpstreamAuthError):
                await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {})
        resolve.assert_not_called()

    async def test_poll_error_proceeds_with_upload(self, orchestrator, no_reresolve, sample_gemini_response):
        generate = AsyncMock(return_value=(sample_gemini_response, "m", "v"))
        with patch.object(AnalysisOrchestrator, "_download_media", AsyncMock(return_value=b"mp4-bytes")), \
             patch("services.orchestrator.gemini.upload_file", AsyncMock(return_value=_file(FileState.PENDING))), \
             patch("services.orchestrator.gemini.get_file", AsyncMock(side_effect=httpx.ConnectError("flaky"))), \
             patch("services.orchestrator.gemini.generate_with_fallback", generate):
            result = await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {})

        assert result.verdict == "False"
        parts = generate.call_args.args[0]["contents"][0]["parts"]
        assert "fileData" in parts[0]

    async def test_failed_file_falls_back_to_url_only(self, orchestrator, no_reresolve, sample_gemini_response):
        generate = AsyncMock(return_value=(sample_gemini_response, "m", "v"))
        with patch.object(AnalysisOrchestrator, "_download_media", AsyncMock(return_value=b"mp4-bytes")), \
             patch("services.orchestrator.gemini.upload_file", AsyncMock(return_value=_file(FileState.PENDING))), \
             patch("services.orchestrator.gemini.get_file", AsyncMock(return_value=_file(FileState.FAILED))), \
             patch("services.orchestrator.gemini.generate_with_fallback", generate):
            await orchestrator.analyze(VIDEO_URL, ORIGINAL_URL, {})

        parts = generate.call_args.args[0]["contents"][0]["parts"]
        assert len(parts) == 1
        assert "could not be attached" in parts[0]["text"]
