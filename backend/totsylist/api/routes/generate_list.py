"""Generate-list endpoint: free-text request in, shopping list out.

POST always answers with JSON. Failures use the fallback body, with the status
code taken from the error class (503 configuration, 502 provider or model
output). GET is a cheap introspection check for the web client.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from totsylist.config import settings
from totsylist.errors import ShoppingListError
from totsylist.models.contracts import (
    FallbackShoppingList,
    GenerateListRequest,
    GenerateListStatus,
    ShoppingList,
)
from totsylist.services.shopping_list import build_fallback, generate_shopping_list
from totsylist.utils.gemini_client import GenerationClient

logger = structlog.get_logger()

router = APIRouter(tags=["generate-list"])

GENERATE_LIST_PATH = "/api/generate-list"


def get_generation_client(request: Request) -> GenerationClient:
    """Return the shared client built at startup, building it on first use.

    Raises ConfigurationError when the API key is missing; no SDK client is
    created in that case.
    """
    client = getattr(request.app.state, "generation_client", None)
    if client is None:
        client = GenerationClient.from_settings(settings)
        request.app.state.generation_client = client
    return client


def fallback_response(error: ShoppingListError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content=build_fallback(error).model_dump(),
    )


@router.get(GENERATE_LIST_PATH, response_model=GenerateListStatus)
async def generate_list_status() -> GenerateListStatus:
    return GenerateListStatus(
        where=GENERATE_LIST_PATH,
        has_api_key=bool(settings.gemini_api_key),
        model=settings.gemini_model,
    )


@router.post(
    GENERATE_LIST_PATH,
    response_model=ShoppingList,
    responses={
        502: {"model": FallbackShoppingList},
        503: {"model": FallbackShoppingList},
    },
)
async def generate_list(body: GenerateListRequest, request: Request) -> ShoppingList | JSONResponse:
    try:
        client = get_generation_client(request)
        return await generate_shopping_list(client, body.user_input)
    except ShoppingListError as exc:
        logger.error(
            "generate_list_failed",
            error=exc.code,
            status=exc.status_code,
            retryable=exc.retryable,
            reason=exc.message,
        )
        return fallback_response(exc)
