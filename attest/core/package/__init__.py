"""
Payload Packages

Installer package construction, signing and install manifests.
"""

from attest.core.package.builder import (
    PackageBuilder,
    PackageError,
    SignedPackageBuilder,
    load_signing_identity,
    read_package,
    verify_package,
)
from attest.core.package.manifest import build_manifest
from attest.core.package.scripts import render_postinstall

__all__ = [
    "PackageBuilder",
    "PackageError",
    "SignedPackageBuilder",
    "load_signing_identity",
    "read_package",
    "verify_package",
    "build_manifest",
    "render_postinstall",
]
