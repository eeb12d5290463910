"""
Install Manifest

Builds the manifest passed to the MDM InstallEnterpriseApplication command.
The device downloads the package from the manifest URL and checks it against
the chunked SHA-256 hashes.
"""

import hashlib
from typing import Any, Dict, List

# Size of each hashed chunk
MANIFEST_CHUNK_SIZE = 10 * 1024 * 1024


def chunk_hashes(data: bytes, chunk_size: int = MANIFEST_CHUNK_SIZE) -> List[str]:
    """Hex SHA-256 digests of consecutive chunk_size slices of data."""
    if not data:
        return [hashlib.sha256(b"").hexdigest()]
    return [
        hashlib.sha256(data[offset:offset + chunk_size]).hexdigest()
        for offset in range(0, len(data), chunk_size)
    ]


def build_manifest(
    package: bytes,
    url: str,
    bundle_identifier: str,
    bundle_version: str,
    title: str = "Device Attestation",
) -> Dict[str, Any]:
    """
    Build an InstallEnterpriseApplication manifest for a package.

    Args:
        package: Signed package bytes
        url: Fully qualified URL the device downloads the package from
        bundle_identifier: Package identifier
        bundle_version: Package version
        title: Display title
    """
    return {
        "items": [
            {
                "assets": [
                    {
                        "kind": "software-package",
                        "sha256-size": MANIFEST_CHUNK_SIZE,
                        "sha256s": chunk_hashes(package),
                        "url": url,
                    }
                ],
                "metadata": {
                    "bundle-identifier": bundle_identifier,
                    "bundle-version": bundle_version,
                    "kind": "software",
                    "title": title,
                    "sizeInBytes": len(package),
                },
            }
        ]
    }
