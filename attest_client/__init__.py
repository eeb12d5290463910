"""
Device Attestation Client

Retrieves an attestation token on a managed Mac and attaches it to requests.
"""
from attest_client.backoff import ExponentialBackoff, RetryError, retry
from attest_client.client import (
    AttestClientError,
    BearerAuth,
    TokenNotReadyError,
    get_token,
    read_token,
    read_token_bytes,
    request_placement,
    set_token,
)
from attest_client.identity import get_serial

__all__ = [
    'AttestClientError',
    'BearerAuth',
    'ExponentialBackoff',
    'RetryError',
    'TokenNotReadyError',
    'get_serial',
    'get_token',
    'read_token',
    'read_token_bytes',
    'request_placement',
    'retry',
    'set_token',
]
