import asyncio
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, Any, List, Optional

import httpx

from config import settings, logger, MEDIA_HEADERS, HTTP_TIMEOUTS, UPLOAD_CONFIG, VERDICT_CONFIG
from exceptions import ParseError, UpstreamAuthError
from models import AnalysisResult, Source, UploadedFile
from prompts import build_fact_check_prompt
from utils.parsing import extract_greedy_json, strip_code_fences, split_sentences, parse_confidence
from . import gemini
from .resolver import resolve_media

FALLBACK_RESULT = {
    "mainClaim": "Drinking lemon water prevents viral infections",
    "verdict": "Misleading",
    "explanation": (
        "There is no strong clinical evidence that lemon water prevents viral infections. "
        "Hydration is helpful, and vitamin C supports immunity, but it does not prevent infection."
    ),
    "confidence": 0.62,
    "sources": [
        {"title": "WHO: Nutrition and immunity", "url": "https://www.who.int/", "publisher": "WHO"},
        {"title": "CDC: Preventing Viral Infections", "url": "https://www.cdc.gov/", "publisher": "CDC"},
    ],
}

EMPTY_TEXT_CLAIM = "Unable to extract specific claim from video"


def fallback_result() -> AnalysisResult:
    return AnalysisResult.model_validate(FALLBACK_RESULT)


def summarize_unparsed_text(text: str) -> AnalysisResult:
    """Build an Unverified result from prose the model returned instead of JSON."""
    sentences = split_sentences(text)
    if not sentences:
        return AnalysisResult(
            main_claim=EMPTY_TEXT_CLAIM,
            verdict="Unverified",
            explanation="The AI analysis returned no usable text. Please review manually.",
            confidence=0.0,
        )
    return AnalysisResult(
        main_claim=sentences[0],
        verdict="Unverified",
        explanation=" ".join(sentences[:VERDICT_CONFIG.MAX_EXPLANATION_SENTENCES]),
        confidence=0.0,
        sources=[],
    )


def _normalize_verdict(value: Any) -> str:
    if isinstance(value, str):
        for verdict in VERDICT_CONFIG.VALID_VERDICTS:
            if value.strip().lower() == verdict.lower():
                return verdict
    return VERDICT_CONFIG.DEFAULT_VERDICT


def _normalize_sources(value: Any) -> List[Source]:
    if not isinstance(value, list):
        return []
    sources = []
    for item in value:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        url = str(item.get("url") or "").strip()
        if not title and not url:
            continue
        publisher = item.get("publisher")
        sources.append(Source(
            title=title or url,
            url=url,
            publisher=str(publisher).strip() if publisher else None,
        ))
    return sources


def parse_analysis_text(text: str) -> AnalysisResult:
    """Parse model text into an AnalysisResult. Raises ParseError when no JSON object is found."""
    parsed = extract_greedy_json(strip_code_fences(text))
    if parsed is None:
        raise ParseError("no JSON object found", text)

    main_claim = parsed.get("mainClaim") or parsed.get("main_claim") or parsed.get("summary")
    if not isinstance(main_claim, str) or not main_claim.strip():
        main_claim = EMPTY_TEXT_CLAIM
    explanation = parsed.get("explanation")
    return AnalysisResult(
        main_claim=main_claim.strip(),
        verdict=_normalize_verdict(parsed.get("verdict")),
        explanation=explanation.strip() if isinstance(explanation, str) else "",
        confidence=parse_confidence(parsed.get("confidence")),
        sources=_normalize_sources(parsed.get("sources")),
    )


async def wait_until_active(
    uploaded: UploadedFile,
    deadline: Optional[float] = None,
    interval: float = UPLOAD_CONFIG.POLL_INTERVAL,
    cancel_event: Optional[asyncio.Event] = None,
) -> UploadedFile:
    """Poll the file status until it is Active or Failed.

    `deadline` is a monotonic timestamp; reaching it, or `cancel_event`
    being set, returns the last known state instead of raising.
    """
    if deadline is None:
        deadline = time.monotonic() + UPLOAD_CONFIG.POLL_TIMEOUT

    current = uploaded
    while not current.is_active and not current.is_failed:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Polling for %s cancelled", current.name)
            break
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning("File %s not active before deadline; proceeding anyway", current.name)
            break
        if cancel_event is not None:
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=min(interval, remaining))
                continue
            except asyncio.TimeoutError:
                pass
        else:
            await asyncio.sleep(min(interval, remaining))
        current = await gemini.get_file(current.name)
    return current


def _write_fd(fd: int, content: bytes) -> None:
    with os.fdopen(fd, "wb") as handle:
        handle.write(content)


class AnalysisOrchestrator:

    def __init__(self, poll_timeout: float = UPLOAD_CONFIG.POLL_TIMEOUT,
                 poll_interval: float = UPLOAD_CONFIG.POLL_INTERVAL):
        self.poll_timeout = poll_timeout
        self.poll_interval = poll_interval

    async def analyze(
        self,
        direct_url: str,
        source_url: str,
        cdn_headers: Optional[Dict[str, str]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AnalysisResult:
        """Run the whole fact-check chain for one video.

        Only a missing credential escapes; every other failure degrades to
        a synthesized summary or the canned fallback result.
        """
        if not settings.GEMINI_API_KEY:
            logger.critical("GEMINI_API_KEY not configured; refusing to analyze.")
            raise UpstreamAuthError()

        start_time = time.monotonic()
        try:
            direct_url, cdn_headers = await self._refresh_reference(direct_url, source_url, cdn_headers or {})
            uploaded = await self._acquire_and_upload(direct_url, cdn_headers)
            if uploaded is not None:
                uploaded = await self._await_ready(uploaded, cancel_event)
                if uploaded.is_failed:
                    logger.warning("Uploaded file %s failed processing; using URL-only mode", uploaded.name)
                    uploaded = None

            prompt = build_fact_check_prompt(direct_url, source_url, media_attached=uploaded is not None)
            body = gemini.build_request_body(prompt, uploaded)
            data, model, api_version = await gemini.generate_with_fallback(body)
            text = gemini.extract_text(data)

            try:
                result = parse_analysis_text(text)
            except ParseError as e:
                logger.error("Failed to parse Gemini response as JSON (%s): %s", e.details.get("reason"), text[:500])
                result = summarize_unparsed_text(text)

            result.model = model
            result.api_version = api_version
            logger.info(
                "Analysis for %s finished in %.2fs with verdict %s (model %s)",
                source_url, time.monotonic() - start_time, result.verdict, model,
            )
            return result

        except UpstreamAuthError:
            raise
        except Exception:
            logger.exception("Analysis chain failed for %s; returning fallback result.", source_url)
            return fallback_result()

    async def _refresh_reference(self, direct_url: str, source_url: str,
                                 cdn_headers: Dict[str, str]):
        try:
            reference = await resolve_media(source_url)
            return reference.direct_url, reference.http_headers
        except Exception as e:
            logger.warning("Re-resolving %s failed, using supplied media URL: %s", source_url, e)
            return direct_url, cdn_headers

    async def _await_ready(self, uploaded: UploadedFile,
                           cancel_event: Optional[asyncio.Event]) -> UploadedFile:
        try:
            return await wait_until_active(
                uploaded,
                deadline=time.monotonic() + self.poll_timeout,
                interval=self.poll_interval,
                cancel_event=cancel_event,
            )
        except UpstreamAuthError:
            raise
        except Exception as e:
            logger.warning("Polling %s failed, proceeding with last known state: %s", uploaded.name, e)
            return uploaded

    async def _download_media(self, direct_url: str, cdn_headers: Dict[str, str]) -> Optional[bytes]:
        headers = MEDIA_HEADERS.merged(cdn_headers)
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUTS.MEDIA_DOWNLOAD, follow_redirects=True) as client:
                response = await client.get(direct_url, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Media download request error for %s: %s", direct_url[:120], e)
            return None
        if not 200 <= response.status_code < 300:
            logger.warning("Media download failed with status %s; continuing without upload", response.status_code)
            return None
        return response.content

    async def _acquire_and_upload(self, direct_url: str, cdn_headers: Dict[str, str]) -> Optional[UploadedFile]:
        content = await self._download_media(direct_url, cdn_headers)
        if not content:
            return None

        fd, temp_name = tempfile.mkstemp(
            prefix=f"{UPLOAD_CONFIG.TEMP_PREFIX}{int(time.time() * 1000)}_",
            suffix=UPLOAD_CONFIG.TEMP_SUFFIX,
        )
        temp_path = Path(temp_name)
        try:
            await asyncio.to_thread(_write_fd, fd, content)
            return await gemini.upload_file(temp_path, UPLOAD_CONFIG.MIME_TYPE, content=content)
        except UpstreamAuthError:
            raise
        except Exception as e:
            logger.warning("Upload failed, continuing in URL-only mode: %s", e)
            return None
        finally:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
