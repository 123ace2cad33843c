import time
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import AddonError, InternalError, NotFoundError
from app.core.logging import setup_logging
from app.api.stremio import router as stremio_router
from app.services.torbox import torbox_service

setup_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# --- Middleware ---

@app.middleware("http")
async def addon_cors(request: Request, call_next):
    """
    Stremio clients call from anywhere: every response is CORS-open and
    OPTIONS never reaches the router.
    """
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)

    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception(f"Handler error on {request.url.path}")
        response = addon_error_response(request, InternalError(str(e)))

    response.headers.update(CORS_HEADERS)
    duration_ms = (time.perf_counter() - start) * 1000.0
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f}ms)")
    return response

# --- Error handlers ---

@app.exception_handler(AddonError)
async def addon_error_handler(request: Request, exc: AddonError):
    return addon_error_response(request, exc)


def addon_error_response(request: Request, exc: AddonError) -> JSONResponse:
    path = request.url.path.lstrip("/")
    if isinstance(exc, NotFoundError):
        logger.info(f"Not found: {exc}")
        return JSONResponse(status_code=404, content={"error": str(exc), "path": path})
    # Never leak internals to the client
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    path = request.url.path.lstrip("/")
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Endpoint not found", "path": path})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail, "path": path})

# --- Lifecycle ---

@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
    if not settings.TORBOX_API_KEY:
        logger.warning("TORBOX_API_KEY is not set: every stream request will return no streams")

@app.on_event("shutdown")
async def shutdown_event():
    await torbox_service.aclose()

app.include_router(stremio_router)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
