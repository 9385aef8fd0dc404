import logging

from fastapi import FastAPI, Request, Response

from .models import DEFAULT_NAME, ResponsePayload
from .serialization import JsonSerializer

logger = logging.getLogger(__name__)

UNKNOWN_ADDRESS = "0.0.0.0:0"


def remote_address(request: Request) -> str:
    client = request.client
    if client is None:
        return UNKNOWN_ADDRESS
    return f"{client.host}:{client.port}"


def query_name(request: Request) -> str:
    # First occurrence wins when the parameter is repeated
    values = request.query_params.getlist("name")
    return (values[0] if values else "") or DEFAULT_NAME


def build_payload(request: Request) -> ResponsePayload:
    return ResponsePayload.greet(query_name(request), remote_address(request))


def create_app(serializer: JsonSerializer | None = None) -> FastAPI:
    app = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)
    json_serializer = serializer or JsonSerializer()

    async def greet(request: Request) -> Response:
        payload = build_payload(request)
        logger.debug("%s %s from %s", request.method, request.url.path, payload.address)
        return Response(
            content=json_serializer.dumps(payload),
            status_code=200,
            media_type=json_serializer.media_type,
        )

    # Single catch-all route; no method list, so every method matches
    app.add_route("/{path:path}", greet)

    return app
