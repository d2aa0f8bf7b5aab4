from __future__ import annotations

import logging

from fastapi import FastAPI

from bedrock_bridge.config import Settings
from bedrock_bridge.core.gateway import BedrockGateway, InferenceGateway, create_bedrock_client
from bedrock_bridge.core.model_resolver import ModelResolver
from bedrock_bridge.dependencies import register_exception_handlers
from bedrock_bridge.internal import admin
from bedrock_bridge.routers import anthropic, chat, models

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    gateway: InferenceGateway | None = None,
) -> FastAPI:
    settings = settings or Settings()
    if gateway is None:
        gateway = BedrockGateway(create_bedrock_client(settings))

    app = FastAPI(
        title="bedrock-bridge",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.model_resolver = ModelResolver(settings.default_bedrock_model)
    app.state.gateway = gateway

    register_exception_handlers(app)

    app.include_router(models.router)
    app.include_router(chat.router)
    app.include_router(anthropic.router)
    app.include_router(admin.router)

    _log_startup(settings)
    return app


def _log_startup(settings: Settings) -> None:
    logger.info("AWS region: %s", settings.aws_region)
    if settings.bedrock_api_key is not None:
        logger.info("Bedrock auth: API key (bearer token)")
    elif settings.aws_profile is not None:
        logger.info("Bedrock auth: AWS profile '%s'", settings.aws_profile)
    else:
        logger.info("Bedrock auth: default AWS credential chain")
    logger.info("Default Bedrock model: %s", settings.default_bedrock_model)

    if settings.proxy_api_key is None:
        logger.warning("API key authentication: DISABLED (set PROXY_API_KEY to enable)")
    else:
        logger.info("API key authentication: enabled")
        if len(settings.proxy_api_key) < 16:
            logger.warning(
                "PROXY_API_KEY is shorter than 16 characters; use a longer random key"
            )
