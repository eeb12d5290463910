"""
Local Device Identity

Reads the hardware serial number of the Mac the client runs on.
"""
import logging
import re
import subprocess

logger = logging.getLogger(__name__)

IOREG_COMMAND = ["ioreg", "-c", "IOPlatformExpertDevice", "-d", "2"]
SERIAL_PATTERN = re.compile(r'"IOPlatformSerialNumber"\s*=\s*"([^"]*)"')


def parse_ioreg_serial(output: str) -> str:
    """Extract IOPlatformSerialNumber from ioreg output ("" if absent)."""
    match = SERIAL_PATTERN.search(output)
    return match.group(1).strip() if match else ""


def get_serial(timeout: float = 10.0) -> str:
    """
    Return this device's serial number.

    Raises:
        OSError: If ioreg is unavailable (not macOS)
        subprocess.CalledProcessError: If ioreg fails
    """
    result = subprocess.run(
        IOREG_COMMAND,
        capture_output=True,
        text=True,
        check=True,
        timeout=timeout,
    )
    return parse_ioreg_serial(result.stdout)
