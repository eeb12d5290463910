"""
Attestation client entry point.

Usage (as root, on a managed Mac):
    python -m attest_client --url https://attest.example.com/v1/attest
    python -m attest_client --url https://attest.example.com/v1/attest --hello
"""
import argparse
import logging
import os
import sys

import httpx
from dotenv import load_dotenv

from attest_client.client import AttestClientError, BearerAuth, get_token

load_dotenv()

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger("attest_client")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Retrieve a device attestation token')
    parser.add_argument('--url', default=os.getenv('ATTEST_URL'),
                        help='Attestation API base URL, e.g. https://host/v1/attest (env: ATTEST_URL)')
    parser.add_argument('--timeout', type=float, default=float(os.getenv('ATTEST_TIMEOUT', '120')),
                        help='Seconds to wait for the token (env: ATTEST_TIMEOUT, default 120)')
    parser.add_argument('--hello', action='store_true',
                        help='Call the hello endpoint with the token instead of printing it')
    args = parser.parse_args(argv)

    if not args.url:
        parser.error('--url or ATTEST_URL is required')
    base_url = args.url.rstrip('/')

    try:
        token = get_token(f"{base_url}/place", args.timeout)
    except AttestClientError as e:
        logger.error(str(e))
        return 1

    if not args.hello:
        print(token)
        return 0

    try:
        response = httpx.get(f"{base_url}/hello", auth=BearerAuth(token), timeout=30.0)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(f"hello failed with {e.response.status_code}: {e.response.text}")
        return 1
    except httpx.RequestError as e:
        logger.error(f"could not perform request: {e}")
        return 1

    print(response.json().get("msg", ""))
    return 0


if __name__ == "__main__":
    sys.exit(main())
