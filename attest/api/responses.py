"""
JSON Responses

Return-handler plumbing shared by the attestation endpoints.

A return handler is `async (request) -> (status_code, body)`. with_json_response
turns it into a Starlette endpoint:
- STATUS_CODE_SKIP: body is a Response some delegated endpoint already built;
  it is returned untouched
- body is an exception or None: rendered as {"code": ..., "description": ...}
  and the exception logged (INFO below 500, ERROR from 500)
- anything else: serialized as JSON
"""
import logging
import re
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from attest.api.schemas import ErrorResponse

error_logger = logging.getLogger("attest.errors")

# Returned by a return handler when the response must not be written by the wrapper
STATUS_CODE_SKIP = -1

ReturnHandler = Callable[[Request], Awaitable[Tuple[int, Any]]]
Endpoint = Callable[[Request], Awaitable[Response]]

ModelT = TypeVar("ModelT", bound=BaseModel)


class RequestParseError(ValueError):
    """The request body could not be parsed."""
    pass


def status_description(code: int) -> str:
    """HTTP reason phrase for code."""
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown Status"


def error_envelope(code: int) -> JSONResponse:
    """Uniform JSON error response for code."""
    body = ErrorResponse(code=code, description=status_description(code))
    return JSONResponse(status_code=code, content=body.model_dump())


def sanitize_error_message(message: str) -> str:
    """
    Scrub bearer tokens from messages before logging.

    Redacts JWTs and Authorization header values.
    """
    sanitized = re.sub(r'eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+', '[REDACTED_JWT]', message)
    sanitized = re.sub(r'(Bearer)\s+\S+', r'\1 [REDACTED]', sanitized, flags=re.IGNORECASE)
    return sanitized


def log_error(request: Request, code: int, error: BaseException) -> None:
    """Log a handler error once: INFO for client errors, ERROR (with cause) for server errors."""
    message = f"{request.method} {request.url.path} -> {code}: {sanitize_error_message(str(error))}"
    if code >= 500:
        error_logger.error(message, exc_info=error)
    else:
        error_logger.info(message)


def with_json_response(handler: ReturnHandler) -> Endpoint:
    """Wrap a return handler into an endpoint that renders JSON responses."""

    async def endpoint(request: Request) -> Response:
        code, body = await handler(request)
        if code == STATUS_CODE_SKIP:
            return body

        if body is None or isinstance(body, BaseException):
            if body is not None:
                log_error(request, code, body)
            return error_envelope(code)

        if isinstance(body, BaseModel):
            body = body.model_dump()

        return JSONResponse(status_code=code, content=body)

    return endpoint


async def parse_json(request: Request, model: Type[ModelT]) -> ModelT:
    """
    Parse a JSON request body into model.

    Raises:
        RequestParseError: If the Content-Type isn't application/json or the body is invalid
    """
    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if not media_type:
        raise RequestParseError("could not parse Content-Type: missing header")
    if media_type != "application/json":
        raise RequestParseError("Content-Type not application/json")

    body = await request.body()
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        raise RequestParseError(f"could not parse request body: {e.error_count()} validation error(s)") from e
