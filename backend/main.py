from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse

from config import logger, settings, check_api_keys_on_startup
from exceptions import CureFactException
from middleware.context import RequestContextMiddleware, get_request_id
from models import AnalyzeRequest, FetchMediaRequest, FetchMediaResponse
from services import AnalysisOrchestrator, resolve_media
from utils.validation import InputValidator

app = FastAPI(title="CureFact relay")

@app.on_event("startup")
async def startup_event():
    check_api_keys_on_startup()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)

orchestrator = AnalysisOrchestrator()


@app.exception_handler(CureFactException)
async def curefact_exception_handler(request: Request, exc: CureFactException):
    logger.error("%s on %s: %s", exc.__class__.__name__, request.url.path, exc.message,
                 extra={"request_id": get_request_id()})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
    message = f"{location}: {first.get('msg', 'invalid request')}"
    return JSONResponse(status_code=400, content={"error": message, "type": "InputValidationError"})


@app.get("/health")
async def health_check():
    return {"ok": True}


@app.post("/api/fetch-media")
async def fetch_media(req: FetchMediaRequest):
    """Resolve a social-media post URL to a direct media URL and CDN headers."""
    url = InputValidator.require_url(req.url, "url")
    logger.info("Processing URL: %s", url)
    reference = await resolve_media(url)
    return FetchMediaResponse(
        download_url=reference.direct_url,
        headers=reference.http_headers,
    ).model_dump(by_alias=True)


@app.post("/api/analyze")
async def analyze(req: AnalyzeRequest):
    """Fact-check the health claims in a resolved video."""
    video_url = InputValidator.require_url(req.video_url, "videoUrl")
    original_url = InputValidator.require_url(req.original_url, "originalUrl")
    cdn_headers = InputValidator.sanitize_headers(req.headers)

    try:
        result = await orchestrator.analyze(video_url, original_url, cdn_headers)
        return result.to_response()
    except CureFactException:
        raise
    except Exception as e:
        logger.exception("Error in /api/analyze")
        return JSONResponse(status_code=422, content={"error": str(e) or "Failed to analyze video"})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
