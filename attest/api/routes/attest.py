"""
Attestation API Routes

- POST      {prefix}/place          Issue and push a token to the calling device
- GET|HEAD  {prefix}/files/{path}   Staged payload packages (GET consumes)
- GET       {prefix}/hello          Example route protected by an attestation token
"""
import logging

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import JSONResponse

from attest.api.schemas import HelloResponse
from attest.api.service import AttestationService, get_identifier

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "/v1/attest"


async def hello(request: Request) -> JSONResponse:
    """Greet the attested device by identifier."""
    body = HelloResponse(msg=f"Hello, {get_identifier(request)}!")
    return JSONResponse(body.model_dump())


def get_attest_router(service: AttestationService, prefix: str = DEFAULT_PREFIX) -> APIRouter:
    """
    Create the attestation router for service.

    The place route should be rate limited (see PlaceRateLimitMiddleware).
    """
    router = APIRouter(tags=["attest"])
    router.add_route(f"{prefix}/place", service.place_endpoint(), methods=["POST"])
    router.add_route(f"{prefix}/files/{{path:path}}", service.file_endpoint, methods=["GET", "HEAD"])
    router.add_route(f"{prefix}/hello", service.json_middleware(hello), methods=["GET"])
    return router
