from __future__ import annotations

from fastapi import APIRouter, Depends

from bedrock_bridge.config import Settings
from bedrock_bridge.dependencies import get_settings

router = APIRouter(prefix="/internal", tags=["internal"])


@router.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    return {
        "status": "ok",
        "region": settings.aws_region,
        "default_model": settings.default_bedrock_model,
    }
