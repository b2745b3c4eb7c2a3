"""Building TLS contexts from certificate files."""

from __future__ import annotations

import enum
import ssl


class CAType(enum.Enum):
    """Which side's certificates the CA file validates."""

    CLIENT = "client"
    SERVER = "server"


class TlsError(Exception):
    """Raised when TLS material cannot be loaded."""


_PEM_CERT_MARKER = "-----BEGIN CERTIFICATE-----"


def _read_file(name: str) -> str:
    try:
        with open(name, "rb") as handle:
            return handle.read().decode("ascii", errors="replace")
    except OSError as exc:
        raise TlsError(f"failed to read file: {name}: {exc}") from exc


def tls_config_from_files(
    cert_file: str,
    key_file: str,
    ca_cert_file: str,
    ca_type: CAType,
    skip_hostname_verification: bool,
) -> ssl.SSLContext:
    """Return an SSL context built from the given files.

    A ``CAType.CLIENT`` CA validates client certificates, so a server-side
    context is built; ``CAType.SERVER`` builds a client-side context that
    validates servers. Empty file names are ignored.
    """
    if ca_type is CAType.CLIENT:
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    else:
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
        if skip_hostname_verification:
            # The chain is still verified; only the host name check is dropped.
            context.check_hostname = False

    if cert_file and key_file:
        try:
            context.load_cert_chain(cert_file, key_file)
        except OSError as exc:
            raise TlsError(
                f"failed to load TLS key pair ({cert_file},{key_file}): {exc}"
            ) from exc

    if ca_cert_file:
        pem = _read_file(ca_cert_file)
        failure = f"failed to load the provided TLS CA certificate: {ca_cert_file}"
        if _PEM_CERT_MARKER not in pem:
            raise TlsError(failure)
        try:
            context.load_verify_locations(cadata=pem)
        except (ssl.SSLError, ValueError) as exc:
            raise TlsError(failure) from exc

    return context