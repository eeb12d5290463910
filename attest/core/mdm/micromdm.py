"""
MicroMDM Client

Talks to the MicroMDM HTTP API:
- POST /v1/devices  (serial -> UDID lookup)
- POST /v1/commands (InstallEnterpriseApplication)

Serial-to-UDID lookups are cached in an LRU cache.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from attest.core.cache import TTLCache
from attest.core.mdm.base import MDM, DeviceNotFoundError, MDMError

logger = logging.getLogger(__name__)

# MicroMDM expects basic auth with this user and the API token as password
MICROMDM_USER = "micromdm"


class MicroMDM(MDM):
    """
    MicroMDM API client.

    Thread-safe; the underlying httpx.Client and lookup cache may be shared
    between request threads.
    """

    def __init__(
        self,
        url_prefix: str,
        api_token: str,
        cache_size: int = 100,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            url_prefix: MicroMDM base URL without trailing slash, e.g. https://mdm.example.com
            api_token: MicroMDM API token
            cache_size: Number of serial -> UDID lookups to cache
            timeout: Request timeout in seconds
            client: Pre-built httpx client (for tests)
        """
        self.url_prefix = url_prefix.rstrip("/")
        self._cache = TTLCache(size_limit=cache_size, name="mdm-udids")
        self._client = client or httpx.Client(
            auth=(MICROMDM_USER, api_token),
            timeout=timeout,
        )

    def close(self) -> None:
        self._client.close()

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST JSON to the MDM and return the decoded response."""
        url = f"{self.url_prefix}{endpoint}"
        try:
            response = self._client.post(url, json=body)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise MDMError(f"MDM returned {e.response.status_code} for {endpoint}") from e
        except httpx.RequestError as e:
            raise MDMError(f"could not complete request to {endpoint}: {e}") from e
        except ValueError as e:
            raise MDMError(f"could not parse response from {endpoint}: {e}") from e

    def serial_to_udid(self, serial: str) -> str:
        """
        Look up the UDID for a serial number.

        Raises:
            DeviceNotFoundError: If no single device matches
            MDMError: If the lookup failed
        """
        try:
            return self._cache.get(serial)
        except KeyError:
            pass

        resp = self._post("/v1/devices", {"filter_serial": [serial]})

        if resp.get("error"):
            raise MDMError(f"could not query devices: {resp['error']}")

        devices = resp.get("devices") or []
        if len(devices) != 1 or not devices[0].get("udid"):
            raise DeviceNotFoundError(f"device not found: {serial}")

        udid = devices[0]["udid"]
        self._cache.set(serial, udid)
        logger.debug(f"Resolved serial {serial} to UDID {udid}")
        return udid

    def transform(self, serial: str) -> str:
        return self.serial_to_udid(serial)

    def install_enterprise_application(self, udid: str, manifest: Dict[str, Any]) -> None:
        command = {
            "request_type": "InstallEnterpriseApplication",
            "udid": udid,
            "manifest": manifest,
        }

        resp = self._post("/v1/commands", command)

        if resp.get("error"):
            raise MDMError(f"could not execute command: {resp['error']}")

        logger.info(f"Queued InstallEnterpriseApplication for {udid}")
