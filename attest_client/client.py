"""
Attestation Client

Runs on the device (as root). Retrieves an attestation token:

1. Send the device serial number to the placement endpoint
2. The server pushes a package through the MDM that writes a token to the
   returned path
3. Poll that path with exponential backoff until the token appears

The token is then sent as "Authorization: Bearer <token>".
"""
import dataclasses
import logging
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import httpx

from attest_client.backoff import ExponentialBackoff, RetryError, retry
from attest_client.identity import get_serial

logger = logging.getLogger(__name__)

# Wait before the first read; the push-install chain never completes instantly
GRACE_PERIOD_SECONDS = 5.0

# First polling interval
INITIAL_INTERVAL_SECONDS = 1.0

# Upper bound for the placement request
PLACE_REQUEST_TIMEOUT_SECONDS = 30.0


class AttestClientError(Exception):
    """The token could not be retrieved."""
    pass


class TokenNotReadyError(Exception):
    """The token file is absent or still empty."""
    pass


def read_token_bytes(path: str) -> bytes:
    """
    Read the raw token file.

    Raises:
        TokenNotReadyError: If the file is empty
        OSError: If the file can't be read (e.g. it doesn't exist yet)
    """
    data = Path(path).read_bytes()
    if not data:
        raise TokenNotReadyError(f"token file empty: {path}")
    return data


def read_token(path: str) -> str:
    """
    Read the token file as text.

    Raises:
        TokenNotReadyError: If the file is empty
        OSError: If the file can't be read
        UnicodeDecodeError: If the file is not ASCII
    """
    return read_token_bytes(path).decode("ascii")


def request_placement(
    url: str,
    identifier: str,
    http_client: Optional[httpx.Client] = None,
    timeout: float = PLACE_REQUEST_TIMEOUT_SECONDS,
) -> str:
    """
    Ask the server to place a token for identifier.

    Returns:
        Path the token will be written to

    Raises:
        AttestClientError: If the request failed or the response is invalid
    """
    try:
        if http_client is not None:
            response = http_client.post(url, json={"identifier": identifier}, timeout=timeout)
        else:
            response = httpx.post(url, json={"identifier": identifier}, timeout=timeout)
        response.raise_for_status()
        path = response.json()["path"]
    except httpx.HTTPStatusError as e:
        raise AttestClientError(f"placement request failed with {e.response.status_code}: {e.response.text}") from e
    except httpx.RequestError as e:
        raise AttestClientError(f"could not perform request: {e}") from e
    except (ValueError, KeyError, TypeError) as e:
        raise AttestClientError(f"could not parse response: {e}") from e

    if not isinstance(path, str) or not path:
        raise AttestClientError("could not parse response: empty path")
    return path


def get_token(
    url: str,
    timeout: float = 120.0,
    *,
    grace_period: float = GRACE_PERIOD_SECONDS,
    get_identifier: Callable[[], str] = get_serial,
    http_client: Optional[httpx.Client] = None,
    backoff: Optional[ExponentialBackoff] = None,
    cancel: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Optional[Callable[[float], None]] = None,
) -> str:
    """
    Retrieve a token from the attestation service.

    timeout bounds the whole call, grace period included. It can take a
    couple of minutes for the MDM to install the payload package.

    Args:
        url: Placement endpoint, e.g. https://attest.example.com/v1/attest/place
        timeout: Seconds before giving up
        grace_period: Seconds to wait before the first read
        get_identifier: Returns the local device identifier
        http_client: httpx client for the placement request
        backoff: Polling schedule (copied with max_elapsed_time set to the time left)
        cancel: Set to abort polling
        clock: Monotonic time source (for tests)
        sleep: Sleep function (for tests)

    Raises:
        AttestClientError: If the token could not be retrieved
    """
    cancel = cancel or threading.Event()
    if sleep is None:
        sleep = cancel.wait
    start = clock()

    try:
        identifier = get_identifier()
    except (OSError, ValueError, subprocess.SubprocessError) as e:
        raise AttestClientError(f"could not get serial: {e}") from e
    if not identifier:
        raise AttestClientError("could not get serial: serial is empty")

    remaining = max(0.0, timeout - (clock() - start))
    path = request_placement(
        url,
        identifier,
        http_client=http_client,
        timeout=min(PLACE_REQUEST_TIMEOUT_SECONDS, remaining),
    )
    logger.info(f"Token will be placed at {path}")

    sleep(max(0.0, min(grace_period, timeout - (clock() - start))))

    schedule = dataclasses.replace(
        backoff or ExponentialBackoff(initial_interval=INITIAL_INTERVAL_SECONDS),
        max_elapsed_time=max(0.0, timeout - (clock() - start)),
    )

    try:
        data = retry(lambda: read_token_bytes(path), schedule, cancel=cancel, clock=clock, sleep=sleep)
    except RetryError as e:
        raise AttestClientError(f"could not get token: {e}") from e

    try:
        return data.decode("ascii")
    except UnicodeDecodeError as e:
        raise AttestClientError(f"token file is not ASCII: {path}") from e


def set_token(request: httpx.Request, token: str) -> None:
    """Set the Authorization header of request."""
    request.headers["Authorization"] = f"Bearer {token}"


class BearerAuth(httpx.Auth):
    """httpx auth sending an attestation token."""

    def __init__(self, token: str):
        self.token = token

    def auth_flow(self, request: httpx.Request):
        set_token(request, self.token)
        yield request
