"""
Postinstall Script

The script the installer runs as root on the device. It writes the token to
the server-chosen path, readable by root only, then forgets the package receipt.
"""

import shlex
from string import Template

POSTINSTALL_TEMPLATE = Template("""#!/bin/sh
set -e
umask 077

TOKEN_PATH=$path
rm -f "$$TOKEN_PATH"
printf '%s' $token > "$$TOKEN_PATH"
chown root:wheel "$$TOKEN_PATH"
chmod 600 "$$TOKEN_PATH"

pkgutil --forget $package_identifier >/dev/null 2>&1 || true
exit 0
""")


def render_postinstall(token: str, path: str, package_identifier: str) -> bytes:
    """
    Render the postinstall script for token and path.

    All values are shell-quoted; the token and path are never interpreted by the shell.
    """
    if not path.startswith("/"):
        raise ValueError(f"token path must be absolute: {path!r}")

    script = POSTINSTALL_TEMPLATE.substitute(
        token=shlex.quote(token),
        path=shlex.quote(path),
        package_identifier=shlex.quote(package_identifier),
    )
    return script.encode("utf-8")
