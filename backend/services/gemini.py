import asyncio
import json
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import httpx

from config import settings, LLM_CONFIG, HTTP_TIMEOUTS, UPLOAD_CONFIG, logger
from exceptions import UpstreamAuthError, UpstreamError
from models import FileState, UploadedFile
from utils.retry import async_retry


def _auth_headers() -> Dict[str, str]:
    if not settings.GEMINI_API_KEY:
        logger.critical("GEMINI_API_KEY not configured.")
        raise UpstreamAuthError()
    return {"x-goog-api-key": settings.GEMINI_API_KEY}


def _file_from_payload(payload: Dict[str, Any]) -> UploadedFile:
    # upload responses wrap the file in {"file": {...}}, status responses do not
    data = payload.get("file", payload) if isinstance(payload, dict) else {}
    name = data.get("name")
    uri = data.get("uri")
    if not name or not uri:
        raise UpstreamError("Gemini Files", f"response missing file name/uri: {json.dumps(payload)[:300]}")
    return UploadedFile(
        name=name,
        uri=uri,
        mime_type=data.get("mimeType") or UPLOAD_CONFIG.MIME_TYPE,
        state=FileState.from_provider(data.get("state", "")),
    )


@async_retry(
    max_attempts=UPLOAD_CONFIG.MAX_ATTEMPTS,
    base_delay=UPLOAD_CONFIG.RETRY_DELAY,
    exceptions=(httpx.TransportError,),
)
async def upload_file(
    path: Path,
    mime_type: str = UPLOAD_CONFIG.MIME_TYPE,
    content: Optional[bytes] = None,
) -> UploadedFile:
    """POST raw media bytes to the Files API. Transport failures are retried once.

    `content` skips re-reading `path` when the caller already holds the bytes.
    """
    headers = _auth_headers()
    headers.update({
        "Content-Type": mime_type,
        "X-Goog-Upload-Protocol": "raw",
        "X-Goog-Upload-File-Name": path.name,
    })
    if content is None:
        content = await asyncio.to_thread(path.read_bytes)
    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUTS.UPLOAD) as client:
            response = await client.post(
                settings.GEMINI_UPLOAD_ENDPOINT,
                params={"uploadType": "media"},
                headers=headers,
                content=content,
            )
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPStatusError as e:
        logger.error("Gemini upload HTTP error %s: %s", e.response.status_code, e.response.text)
        raise UpstreamError("Gemini Files", f"HTTP {e.response.status_code}", e.response.status_code)

    uploaded = _file_from_payload(payload)
    logger.info("Uploaded %s (%d bytes) as %s, state %s", path.name, len(content), uploaded.name, uploaded.state.value)
    return uploaded


async def get_file(name: str) -> UploadedFile:
    headers = _auth_headers()
    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUTS.FILE_STATUS) as client:
            response = await client.get(settings.file_endpoint(name), headers=headers)
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPStatusError as e:
        logger.error("Gemini file status HTTP error %s for %s", e.response.status_code, name)
        raise UpstreamError("Gemini Files", f"HTTP {e.response.status_code}", e.response.status_code)
    return _file_from_payload(payload)


def build_request_body(prompt: str, uploaded: Optional[UploadedFile] = None) -> Dict[str, Any]:
    parts = []
    if uploaded is not None:
        parts.append({"fileData": {"mimeType": uploaded.mime_type, "fileUri": uploaded.uri}})
    parts.append({"text": prompt})
    return {
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": LLM_CONFIG.generation_config(),
    }


async def generate_content(body: Dict[str, Any], model: str, api_version: str) -> Dict[str, Any]:
    """One generateContent call. Non-2xx becomes UpstreamError with the status attached."""
    headers = _auth_headers()
    headers["Content-Type"] = "application/json"
    endpoint = settings.generate_endpoint(model, api_version)
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUTS.GENERATE) as client:
        response = await client.post(endpoint, headers=headers, json=body)
    if response.status_code >= 400:
        logger.error("Gemini HTTP error %s for model %s (%s): %s",
                     response.status_code, model, api_version, response.text[:500])
        raise UpstreamError("Gemini", f"HTTP {response.status_code} from {model}", response.status_code)
    return response.json()


async def generate_with_fallback(body: Dict[str, Any]) -> Tuple[Dict[str, Any], str, str]:
    """Try the primary model; on a 4xx retry the same body against the fallback model.

    Returns (response data, model used, api version used). 5xx and network
    errors are not retried here.
    """
    model, api_version = settings.GEMINI_MODEL, settings.GEMINI_API_VERSION
    try:
        return await generate_content(body, model, api_version), model, api_version
    except UpstreamError as e:
        if not e.is_client_error:
            raise
        logger.warning(
            "Primary model %s returned %s, falling back to %s (%s)",
            model, e.upstream_status, settings.GEMINI_FALLBACK_MODEL, settings.GEMINI_FALLBACK_API_VERSION,
        )

    model, api_version = settings.GEMINI_FALLBACK_MODEL, settings.GEMINI_FALLBACK_API_VERSION
    return await generate_content(body, model, api_version), model, api_version


def extract_text(data: Dict[str, Any]) -> str:
    """First text part of the first candidate."""
    try:
        candidates = data.get("candidates", [])
        if isinstance(candidates, list) and candidates:
            parts = candidates[0].get("content", {}).get("parts", [])
            for part in parts if isinstance(parts, list) else []:
                if isinstance(part, dict) and part.get("text"):
                    return part["text"]
    except (AttributeError, IndexError, TypeError) as e:
        logger.error("Error parsing Gemini response structure: %s. Response: %s", e, data)
    raise UpstreamError("Gemini", "response contained no text candidate")
