import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from generate_proxy.shared.config import Settings
from generate_proxy.shared.dependencies import get_http_client, get_settings

from .client import OpenAIClient
from .handler import GenerateHandler

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

router = APIRouter()


def get_generate_handler(
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> GenerateHandler:
    return GenerateHandler(settings, OpenAIClient(http_client, settings.openai))


@router.api_route("/generate", methods=ALL_METHODS, response_class=Response)
async def generate(
    request: Request,
    handler: GenerateHandler = Depends(get_generate_handler),
) -> Response:
    """
    Generates content through the OpenAI chat-completion API.
    Accepts POST with a JSON body carrying `prompt` or `messages`; answers
    OPTIONS preflights and rejects every other method with 405.
    """
    result = await handler.handle(request.method, await request.body())
    return Response(
        content=result.body_text(),
        status_code=result.status_code,
        headers=result.headers,
    )
