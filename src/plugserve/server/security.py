# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""Transport security for plugin servers.

:class:`TLSConfig` holds PEM material. :func:`resolve_server_credentials`
turns an optional config into the credentials grpcio attaches to a bound
port. ``None`` means plaintext, which is a normal, supported mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import grpc

from ..utils import get_logger


@dataclass(frozen=True, slots=True)
class TLSConfig:
    """Server-side TLS material.

    Attributes:
        certificate_chain: PEM certificate chain presented to clients.
        private_key: PEM private key for ``certificate_chain``.
        client_ca: PEM roots used to verify client certificates, if any.
        require_client_auth: Reject clients that do not present a certificate
            signed by ``client_ca``.
    """

    certificate_chain: bytes
    private_key: bytes
    client_ca: bytes | None = None
    require_client_auth: bool = False

    def __post_init__(self) -> None:
        if not self.certificate_chain:
            raise ValueError("certificate_chain must be non-empty")
        if not self.private_key:
            raise ValueError("private_key must be non-empty")
        if self.require_client_auth and not self.client_ca:
            raise ValueError("require_client_auth needs client_ca")

    @classmethod
    def from_files(
        cls,
        cert_file: str | Path,
        key_file: str | Path,
        *,
        client_ca_file: str | Path | None = None,
        require_client_auth: bool = False,
    ) -> TLSConfig:
        client_ca = Path(client_ca_file).read_bytes() if client_ca_file is not None else None
        return cls(
            certificate_chain=Path(cert_file).read_bytes(),
            private_key=Path(key_file).read_bytes(),
            client_ca=client_ca,
            require_client_auth=require_client_auth,
        )


def resolve_server_credentials(tls: TLSConfig | None) -> grpc.ServerCredentials | None:
    """Return server credentials for *tls*, or ``None`` for plaintext."""
    logger = get_logger("plugserve.security")
    if tls is None:
        logger.debug("No TLS configuration; serving plaintext")
        return None

    mode = "mTLS" if tls.require_client_auth else "TLS"
    logger.debug("Serving with %s transport credentials", mode)
    return grpc.ssl_server_credentials(
        [(tls.private_key, tls.certificate_chain)],
        root_certificates=tls.client_ca,
        require_client_auth=tls.require_client_auth,
    )


__all__ = ["TLSConfig", "resolve_server_credentials"]
