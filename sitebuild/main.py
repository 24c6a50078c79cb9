import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sitebuild import __version__
from sitebuild.config import get_settings
from sitebuild.logging_config import configure_logging
from sitebuild.routers.build import limiter, router as build_router

configure_logging(get_settings().log_level)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="sitebuild – CMS static-site builder",
    description="Rebuilds the multilingual static site (JSON indices, detail pages, sitemap) on demand.",
    version=__version__,
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(build_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from sitebuild"}
