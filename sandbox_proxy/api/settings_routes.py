"""
Security Settings API Routes
Read and replace the caller's security policy
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from sandbox_proxy.api.proxy_routes import resolve_identity
from sandbox_proxy.models import SecurityPolicy

router = APIRouter()


@router.get("")
async def get_security_settings(request: Request):
    """Current policy for the caller, defaults when none was saved"""

    store = request.app.state.settings_store
    policy = await store.get(resolve_identity(request))
    return JSONResponse(content=policy.model_dump(by_alias=True))


@router.put("")
async def update_security_settings(request: Request):
    """Replace the caller's policy"""

    store = request.app.state.settings_store

    try:
        payload = await request.json()
        policy = SecurityPolicy.model_validate(payload)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Invalid security settings payload: {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid security settings data"})

    policy = await store.update(resolve_identity(request), policy)
    return JSONResponse(content=policy.model_dump(by_alias=True))
