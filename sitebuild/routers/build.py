import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from sitebuild.config import get_settings
from sitebuild.models.build_report import BuildReport
from sitebuild.models.build_request import BuildRequest
from sitebuild.services.fetcher import ContentFetchError
from sitebuild.services.pipeline import run_build
from sitebuild.services.site_writer import SiteWriteError

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()

# One build at a time; both locale passes and the sitemap share the output dir
_build_lock = asyncio.Lock()


@router.post(
    "/build",
    response_model=BuildReport,
    summary="Rebuild the site from the CMS",
    description=(
        "Fetches all entries, regenerates the JSON indices and detail pages, "
        "and merges the newly published URLs into the persisted sitemap.  "
        "Intended as the target of the CMS publish webhook."
    ),
)
@limiter.limit("2/minute")
async def build_site(
    request: Request,
    body: Optional[BuildRequest] = None,
    x_build_token: Optional[str] = Header(default=None),
) -> BuildReport:
    settings = get_settings()
    if settings.build_token and x_build_token != settings.build_token:
        logger.warning("Rejected build request with invalid token from %s", get_remote_address(request))
        raise HTTPException(status_code=401, detail="Invalid build token.")

    if _build_lock.locked():
        raise HTTPException(status_code=409, detail="A build is already running.")

    overrides = body.model_dump(exclude_none=True) if body else {}
    if overrides:
        settings = settings.model_copy(update=overrides)
    logger.info("Build request received", extra={"overrides": overrides})

    async with _build_lock:
        try:
            return await run_build(settings)
        except ContentFetchError as exc:
            logger.error("Build aborted, content fetch failed: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc))
        except SiteWriteError as exc:
            logger.error("Build aborted, site could not be written: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc))
