"""
URL Validation API Routes
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from sandbox_proxy.services.site_shims import FORM_SHIMS, enabled
from sandbox_proxy.services.url_validator import validate_url

router = APIRouter()


@router.post("/validate-url")
async def validate_url_route(request: Request):
    """Advisory safety verdict for an address the user is about to open"""

    try:
        payload = await request.json()
    except ValueError:
        payload = None

    url = payload.get("url") if isinstance(payload, dict) else None
    if not url or not isinstance(url, str):
        return JSONResponse(status_code=400, content={"error": "URL is required"})

    settings = request.app.state.settings
    form_shims = enabled(FORM_SHIMS, settings.disabled_site_shims)
    verdict = validate_url(url, settings.search_engine_url, form_shims)
    logger.debug(f"Validated {url}: {verdict}")
    return JSONResponse(content=verdict.to_dict())
