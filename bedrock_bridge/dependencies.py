from __future__ import annotations

import logging
import secrets

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bedrock_bridge.anthropic.errors import AnthropicCompatError, map_anthropic_error
from bedrock_bridge.config import Settings
from bedrock_bridge.core.errors import BackendFailure
from bedrock_bridge.core.gateway import InferenceGateway
from bedrock_bridge.core.model_resolver import ModelResolver
from bedrock_bridge.openai.errors import OpenAICompatError, map_openai_error

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_model_resolver(request: Request) -> ModelResolver:
    return request.app.state.model_resolver


def get_gateway(request: Request) -> InferenceGateway:
    return request.app.state.gateway


async def require_api_key(request: Request) -> None:
    """Checks ``x-api-key`` or ``Authorization: Bearer`` against PROXY_API_KEY."""

    required_key = get_settings(request).proxy_api_key
    if required_key is None:
        return

    api_key = request.headers.get("x-api-key")
    if api_key is not None and _matches(api_key, required_key):
        return

    authorization = request.headers.get("authorization", "")
    if authorization.startswith("Bearer ") and _matches(
        authorization.removeprefix("Bearer "), required_key
    ):
        return

    raise OpenAICompatError(
        status_code=401,
        message="Invalid or missing API key",
        error_type="authentication_error",
        code="invalid_api_key",
    )


def _matches(candidate: str, required_key: str) -> bool:
    # compare_digest only accepts ASCII str.
    return secrets.compare_digest(candidate.encode("utf-8"), required_key.encode("utf-8"))


def _is_anthropic_route(request: Request) -> bool:
    return request.url.path.startswith("/v1/messages")


def _openai_response(error: OpenAICompatError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content={"error": error.to_error()})


def _anthropic_response(error: AnthropicCompatError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_error())


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(OpenAICompatError)
    async def handle_openai_error(
        _request: Request,
        exc: OpenAICompatError,
    ) -> JSONResponse:
        return _openai_response(exc)

    @app.exception_handler(AnthropicCompatError)
    async def handle_anthropic_error(
        _request: Request,
        exc: AnthropicCompatError,
    ) -> JSONResponse:
        return _anthropic_response(exc)

    @app.exception_handler(BackendFailure)
    async def handle_backend_failure(
        request: Request,
        exc: BackendFailure,
    ) -> JSONResponse:
        logger.error("Unhandled inference backend failure: %r", exc)
        if _is_anthropic_route(request):
            return _anthropic_response(map_anthropic_error(exc))
        return _openai_response(map_openai_error(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"

        if _is_anthropic_route(request):
            return _anthropic_response(AnthropicCompatError(status_code=400, message=message))

        return _openai_response(
            OpenAICompatError(status_code=400, message=message, code="invalid_request")
        )
