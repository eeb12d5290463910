"""
Base MDM Interface

The device-management operations the MDM transport needs.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class DeviceNotFoundError(Exception):
    """The MDM has no enrolled device matching the identifier."""
    pass


class MDMError(Exception):
    """The MDM request failed (network, HTTP status, or an error reported by the MDM)."""
    pass


class MDM(ABC):
    """Base interface for MDM servers."""

    @abstractmethod
    def transform(self, serial: str) -> str:
        """
        Return the MDM UDID for the given serial number.

        Raises:
            DeviceNotFoundError: If the serial is not enrolled
            MDMError: If the lookup failed
        """

    @abstractmethod
    def install_enterprise_application(self, udid: str, manifest: Dict[str, Any]) -> None:
        """
        Queue an InstallEnterpriseApplication command for the device.

        Raises:
            MDMError: If the command could not be submitted
        """
