from __future__ import annotations

from fastapi import APIRouter, Depends

from bedrock_bridge.dependencies import require_api_key
from bedrock_bridge.openai.adapter import model_cards

router = APIRouter(prefix="/v1", tags=["openai"], dependencies=[Depends(require_api_key)])


@router.get("/models")
async def list_models() -> dict:
    return {
        "object": "list",
        "data": model_cards(),
    }
