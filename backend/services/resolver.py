import asyncio
import json
import os
import shutil
import stat
import sys
from pathlib import Path
from typing import Optional

import httpx

from config import settings, RESOLVER_CONFIG, logger
from exceptions import ResolutionError
from models import MediaReference
from utils.validation import InputValidator

_binary_lock = asyncio.Lock()
_binary_task: Optional["asyncio.Task[Path]"] = None


def bundled_binary_path() -> Path:
    name = RESOLVER_CONFIG.BINARY_NAME + (".exe" if sys.platform == "win32" else "")
    return Path(settings.YTDLP_BIN_DIR) / name


async def _install_binary() -> Path:
    path = bundled_binary_path()
    if path.exists():
        return path

    path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading yt-dlp from %s to %s", settings.YTDLP_DOWNLOAD_URL, path)
    partial = path.with_suffix(path.suffix + ".part")
    try:
        async with httpx.AsyncClient(timeout=RESOLVER_CONFIG.BINARY_DOWNLOAD_TIMEOUT, follow_redirects=True) as client:
            response = await client.get(settings.YTDLP_DOWNLOAD_URL)
            response.raise_for_status()
            await asyncio.to_thread(partial.write_bytes, response.content)
        partial.chmod(partial.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        os.replace(partial, path)
    finally:
        if partial.exists():
            partial.unlink()
    return path


async def ensure_binary() -> Path:
    """Return the bundled yt-dlp path, installing it on first use.

    Every concurrent caller awaits the same install task; a failed
    install is forgotten so the next call can try again.
    """
    global _binary_task
    async with _binary_lock:
        if _binary_task is None:
            _binary_task = asyncio.ensure_future(_install_binary())
        task = _binary_task

    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        raise
    except Exception:
        async with _binary_lock:
            if _binary_task is task:
                _binary_task = None
        raise


def reset_binary_cache() -> None:
    global _binary_task
    _binary_task = None


async def run_ytdlp(binary: str, target_url: str) -> str:
    """Run yt-dlp once and return stdout. Raises OSError if it cannot start."""
    args = RESOLVER_CONFIG.build_args(target_url)
    logger.info("yt-dlp try: %s", binary)
    process = await asyncio.create_subprocess_exec(
        binary,
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        diagnostics = stderr.decode("utf-8", errors="replace").strip()
        raise ResolutionError(
            diagnostics.splitlines()[-1] if diagnostics else f"{binary} exit {process.returncode}",
            diagnostics,
        )
    return stdout.decode("utf-8", errors="replace")


def parse_ytdlp_output(source_url: str, stdout: str) -> MediaReference:
    lines = [line for line in stdout.splitlines() if line.strip()]
    if not lines:
        raise ResolutionError("No output from yt-dlp")
    try:
        info = json.loads(lines[0])
    except json.JSONDecodeError as e:
        raise ResolutionError("yt-dlp output is not JSON", lines[0][:500]) from e
    if not isinstance(info, dict):
        raise ResolutionError("yt-dlp output is not a JSON object", lines[0][:500])

    direct_url = info.get("url")
    if not direct_url:
        raise ResolutionError("No URL found in yt-dlp output")
    if not InputValidator.is_absolute_http_url(direct_url):
        raise ResolutionError("yt-dlp returned a non-http media URL", str(direct_url)[:500])

    headers = info.get("http_headers") or {}
    if not isinstance(headers, dict):
        headers = {}
    return MediaReference(
        source_url=source_url,
        direct_url=direct_url,
        http_headers={str(k): str(v) for k, v in headers.items() if v is not None},
    )


async def resolve_media(source_url: str) -> MediaReference:
    """Resolve a post URL to a direct media URL plus the headers its CDN wants.

    Tries the bundled yt-dlp first and falls back to the one on PATH. When
    the system binary cannot even start, the bundled binary's error is the
    one reported.
    """
    try:
        binary = await ensure_binary()
        stdout = await run_ytdlp(str(binary), source_url)
    except (OSError, httpx.HTTPError, ResolutionError) as e:
        bundled_error = e
        logger.warning("Bundled yt-dlp failed, falling back to system yt-dlp: %s", e)
        system_binary = shutil.which(RESOLVER_CONFIG.BINARY_NAME) or RESOLVER_CONFIG.BINARY_NAME
        try:
            stdout = await run_ytdlp(system_binary, source_url)
        except OSError as exc:
            fallback_reason = f"Failed to run {system_binary}: {exc}"
            if isinstance(bundled_error, ResolutionError):
                bundled_error.details["fallback_error"] = fallback_reason
                raise bundled_error from exc
            raise ResolutionError(fallback_reason, str(bundled_error)) from exc

    reference = parse_ytdlp_output(source_url, stdout)
    logger.info("Resolved %s to %s", source_url, reference.direct_url[:120])
    return reference
