"""
MDM Clients

Device-management backends used by the MDM transport.
"""

from attest.core.mdm.base import MDM, DeviceNotFoundError, MDMError
from attest.core.mdm.micromdm import MicroMDM

__all__ = ["MDM", "DeviceNotFoundError", "MDMError", "MicroMDM"]
