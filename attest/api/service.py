"""
Attestation Service

HTTP handlers that let a macOS client prove it has root access on the device
with a given identifier:

- place: issue a token and push it to the device through the transport
- files: serve staged files (HEAD peeks, GET consumes)
- middleware: require a valid bearer token and expose the identifier it was
  issued for to the wrapped endpoint
"""
import inspect
import logging
from datetime import timedelta
from pathlib import PurePosixPath
from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from attest.api.responses import (
    STATUS_CODE_SKIP,
    Endpoint,
    RequestParseError,
    ReturnHandler,
    error_logger,
    parse_json,
    sanitize_error_message,
    with_json_response,
)
from attest.api.schemas import PlaceRequest, PlaceResponse
from attest.core.cache import TTLCache
from attest.core.config import Settings
from attest.core.files import FileStore, MemoryFileStore, StagedFileNotFoundError
from attest.core.mdm import MicroMDM
from attest.core.package import SignedPackageBuilder, load_signing_identity
from attest.core.placement import PlacementError, PlacementService
from attest.core.tokens import (
    InvalidTokenError,
    JWTTokenStore,
    MemoryTokenStore,
    TokenStore,
    TokenStoreError,
)
from attest.core.transport import MDMTransport, Transport

logger = logging.getLogger(__name__)


class RequestError(Exception):
    """The client sent a malformed request."""
    pass


def get_identifier(request: Request) -> Optional[str]:
    """Identifier set by AttestationService.middleware, or None outside it."""
    return getattr(request.state, "identifier", None)


class AttestationService:
    """
    Attestation HTTP service.

    Endpoints are plain Starlette endpoints so they can be mounted on any
    FastAPI or Starlette router.
    """

    def __init__(
        self,
        token_store: TokenStore,
        transport: Transport,
        file_store: FileStore,
        token_directory: str = "/tmp",
        invalid_token_status_code: int = 500,
    ):
        """
        Args:
            token_store: Issues and authenticates tokens
            transport: Delivers tokens to devices
            file_store: Store served by the files endpoint
            token_directory: Device directory tokens are written to
            invalid_token_status_code: Status for requests with an invalid bearer token
        """
        self.token_store = token_store
        self.transport = transport
        self.file_store = file_store
        self.placement = PlacementService(token_store, transport, token_directory)
        self.invalid_token_status_code = invalid_token_status_code

    @classmethod
    def from_settings(cls, settings: Settings) -> "AttestationService":
        """Build the service with a MicroMDM transport from settings."""
        sweep = settings.cache_sweep_interval_seconds
        if settings.token_store == "memory":
            token_store = MemoryTokenStore(
                settings.token_cache_size,
                settings.token_ttl_seconds,
                single_use=settings.token_single_use,
                cache=TTLCache(
                    settings.token_cache_size, settings.token_ttl_seconds, sweep_interval=sweep, name="tokens"
                ),
            )
        else:
            token_store = JWTTokenStore(
                settings.jwt_key,
                issuer=settings.jwt_issuer,
                audience=settings.jwt_audience_list,
                duration=timedelta(seconds=settings.token_ttl_seconds),
            )

        missing = [
            name for name in ("mdm_url", "mdm_api_token", "files_url_prefix", "signing_identity_path")
            if not getattr(settings, name)
        ]
        if missing:
            raise ValueError(f"missing required settings: {', '.join(m.upper() for m in missing)}")

        file_store = MemoryFileStore(
            settings.file_cache_size,
            settings.file_ttl_seconds,
            cache=TTLCache(settings.file_cache_size, settings.file_ttl_seconds, sweep_interval=sweep, name="files"),
        )
        mdm = MicroMDM(
            settings.mdm_url,
            settings.mdm_api_token,
            cache_size=settings.mdm_cache_size,
            timeout=settings.mdm_timeout_seconds,
        )
        key, cert = load_signing_identity(
            settings.signing_identity_path, settings.signing_identity_password
        )
        builder = SignedPackageBuilder(settings.package_identifier, settings.package_version, key, cert)
        transport = MDMTransport(mdm, settings.files_url_prefix, file_store, builder)

        return cls(
            token_store,
            transport,
            file_store,
            token_directory=settings.token_directory,
            invalid_token_status_code=settings.invalid_token_status_code,
        )

    def start(self) -> None:
        """Start cache housekeeping."""
        self.token_store.start()
        self.file_store.start()

    def stop(self) -> None:
        self.token_store.stop()
        self.file_store.stop()

    # ------------------------------------------------------------------
    # Place
    # ------------------------------------------------------------------

    async def place_return_handler(self, request: Request):
        try:
            req = await parse_json(request, PlaceRequest)
        except RequestParseError as e:
            return 400, RequestError(f"attest place: could not parse request: {e}")

        if not req.identifier:
            return 400, RequestError("attest place: empty identifier")

        try:
            path = await run_in_threadpool(self.placement.place, req.identifier)
        except PlacementError as e:
            return e.status_code, e

        return 200, PlaceResponse(path=path)

    def place_endpoint(self) -> Endpoint:
        """Token placing endpoint, called by the attestation client."""
        return with_json_response(self.place_return_handler)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def file_endpoint(self, request: Request) -> Response:
        """
        Serve a staged file. Expects the "path" path parameter ("<id>/<name>").

        HEAD peeks without consuming the file; every other method consumes it.
        """
        path = request.path_params["path"]
        try:
            if request.method == "HEAD":
                data = self.file_store.peek(path)
            else:
                data = self.file_store.get(path)
        except StagedFileNotFoundError:
            return PlainTextResponse("404 Not Found", status_code=404)
        except Exception as e:
            error_logger.error(
                f"{request.method} {request.url.path} -> 500: {sanitize_error_message(str(e))}",
                exc_info=e,
            )
            return PlainTextResponse("500 Internal Server Error", status_code=500)

        filename = PurePosixPath(path).name or "payload.pkg"
        return Response(
            content=data,
            media_type="application/octet-stream",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------

    def middleware(self, next_endpoint) -> ReturnHandler:
        """
        Require a valid "Authorization: Bearer <token>" header.

        On success the token's identifier is set on request.state.identifier,
        next_endpoint builds the response and STATUS_CODE_SKIP is returned.
        Wrap the result with with_json_response (see json_middleware).
        """
        is_async = inspect.iscoroutinefunction(next_endpoint)

        async def handler(request: Request):
            header = request.headers.get("authorization", "").split(" ")
            if len(header) != 2 or header[0] != "Bearer" or not header[1]:
                return 400, RequestError("attest middleware: invalid header")

            try:
                identifier = self.token_store.authenticate(header[1])
            except InvalidTokenError as e:
                return self.invalid_token_status_code, e
            except TokenStoreError as e:
                return 500, e

            request.state.identifier = identifier

            if is_async:
                response = await next_endpoint(request)
            else:
                response = await run_in_threadpool(next_endpoint, request)
            return STATUS_CODE_SKIP, response

        return handler

    def json_middleware(self, next_endpoint) -> Endpoint:
        """middleware with errors returned to the client as JSON, e.g. {"code":400,"description":"Bad Request"}."""
        return with_json_response(self.middleware(next_endpoint))
