"""
Payload Package Builder

Builds the installer package that deposits a token on the device and signs it
with an installer identity (RSA key + certificate, loaded from PKCS#12).

Package layout (tar archive):
- payload.tar.gz   PackageInfo + Scripts/postinstall
- signature        RSA PKCS#1 v1.5 / SHA-256 signature over payload.tar.gz
- certificate.der  Signing certificate

Building is deterministic: the same token and path always produce the same bytes.
"""

import gzip
import io
import logging
import tarfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from attest.core.package.scripts import render_postinstall

logger = logging.getLogger(__name__)

PAYLOAD_MEMBER = "payload.tar.gz"
SIGNATURE_MEMBER = "signature"
CERTIFICATE_MEMBER = "certificate.der"

PACKAGE_INFO_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<pkg-info format-version="2" identifier="{identifier}" version="{version}" install-location="/" auth="root">
    <scripts>
        <postinstall file="./postinstall"/>
    </scripts>
</pkg-info>
"""


class PackageError(Exception):
    """The package could not be built, signed or verified."""
    pass


class PackageBuilder(ABC):
    """Builds a signed, installable package that writes token to path."""

    identifier: str
    version: str

    @abstractmethod
    def build(self, token: str, path: str) -> bytes:
        """
        Return signed package bytes.

        Raises:
            PackageError: If the package could not be built or signed
        """


def _add_member(tar: tarfile.TarFile, name: str, data: bytes, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = mode
    info.mtime = 0
    info.uname = info.gname = "root"
    tar.addfile(info, io.BytesIO(data))


def _tar(members: Dict[str, Tuple[bytes, int]]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.USTAR_FORMAT) as tar:
        for name, (data, mode) in members.items():
            _add_member(tar, name, data, mode)
    return buf.getvalue()


def load_signing_identity(
    path: Path, password: Optional[str] = None
) -> Tuple[rsa.RSAPrivateKey, x509.Certificate]:
    """
    Load an installer signing identity from a PKCS#12 file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        PackageError: If the file has no RSA key and certificate
    """
    data = Path(path).read_bytes()
    try:
        key, cert, _ = pkcs12.load_key_and_certificates(
            data, password.encode("utf-8") if password else None
        )
    except ValueError as e:
        raise PackageError(f"could not decode identity {path}: {e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise PackageError(f"identity {path} does not contain an RSA private key")
    if cert is None:
        raise PackageError(f"identity {path} does not contain a certificate")

    return key, cert


class SignedPackageBuilder(PackageBuilder):
    """Default package builder signing with an RSA installer identity."""

    def __init__(
        self,
        identifier: str,
        version: str,
        private_key: rsa.RSAPrivateKey,
        certificate: x509.Certificate,
    ):
        self.identifier = identifier
        self.version = version
        self._key = private_key
        self._cert = certificate

    def _payload(self, token: str, path: str) -> bytes:
        postinstall = render_postinstall(token, path, self.identifier)
        package_info = PACKAGE_INFO_TEMPLATE.format(
            identifier=self.identifier, version=self.version
        ).encode("utf-8")

        archive = _tar({
            "PackageInfo": (package_info, 0o644),
            "Scripts/postinstall": (postinstall, 0o755),
        })
        return gzip.compress(archive, mtime=0)

    def build(self, token: str, path: str) -> bytes:
        try:
            payload = self._payload(token, path)
            signature = self._key.sign(payload, padding.PKCS1v15(), hashes.SHA256())
            certificate = self._cert.public_bytes(serialization.Encoding.DER)
        except ValueError as e:
            raise PackageError(f"could not create payload package: {e}") from e

        return _tar({
            PAYLOAD_MEMBER: (payload, 0o644),
            SIGNATURE_MEMBER: (signature, 0o644),
            CERTIFICATE_MEMBER: (certificate, 0o644),
        })


def read_package(package: bytes) -> Dict[str, bytes]:
    """Return the members of a package (or payload) archive by name."""
    members = {}
    try:
        with tarfile.open(fileobj=io.BytesIO(package), mode="r:*") as tar:
            for info in tar.getmembers():
                if info.isfile():
                    members[info.name] = tar.extractfile(info).read()
    except tarfile.TarError as e:
        raise PackageError(f"could not read package: {e}") from e
    return members


def verify_package(package: bytes) -> Dict[str, bytes]:
    """
    Verify a package signature against its embedded certificate.

    Returns:
        Members of the verified payload archive

    Raises:
        PackageError: If the package is malformed or the signature is invalid
    """
    members = read_package(package)
    try:
        payload = members[PAYLOAD_MEMBER]
        signature = members[SIGNATURE_MEMBER]
        cert = x509.load_der_x509_certificate(members[CERTIFICATE_MEMBER])
    except KeyError as e:
        raise PackageError(f"package is missing {e}") from e
    except ValueError as e:
        raise PackageError(f"invalid package certificate: {e}") from e

    try:
        cert.public_key().verify(signature, payload, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature as e:
        raise PackageError("package signature does not verify") from e

    return read_package(payload)
