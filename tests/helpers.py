# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""Shared test helpers for plugin server tests."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import datetime
import ipaddress
from typing import Any

import anyio
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
import grpc
import grpc.aio


ECHO_SERVICE = "plugserve.test.Echo"
ECHO_METHOD = f"/{ECHO_SERVICE}/Say"


class EchoPlugin:
    """Real gRPC plugin answering ``Say`` with the raw request bytes, prefixed."""

    def __init__(self, prefix: bytes = b"") -> None:
        self.prefix = prefix

    def attach_to_server(self, server: grpc.aio.Server) -> None:
        async def say(request: bytes, _context: grpc.aio.ServicerContext) -> bytes:
            return self.prefix + request

        handler = grpc.method_handlers_generic_handler(
            ECHO_SERVICE, {"Say": grpc.unary_unary_rpc_method_handler(say)}
        )
        server.add_generic_rpc_handlers((handler,))


class RecordingPlugin:
    """Plugin that records its attachment on a :class:`FakeServer`."""

    def __init__(self, name: str) -> None:
        self.name = name

    def attach_to_server(self, server: Any) -> None:
        server.registered.append(self.name)


class FailingPlugin:
    def attach_to_server(self, server: Any) -> None:
        raise RuntimeError("servicer exploded")


class NotAPlugin:
    """Handle without the attach capability."""

    def serve(self) -> None:  # pragma: no cover - never called
        raise AssertionError("not a plugin")


class FakeServer:
    """In-memory stand-in for ``grpc.aio.Server``.

    Like grpcio, ``wait_for_termination`` awaits the shutdown future directly and
    ``stop`` awaits that same future, so cancelling a waiter breaks a later stop.
    """

    def __init__(
        self,
        options: Sequence[tuple[str, Any]] = (),
        *,
        port: int = 50051,
        start_error: Exception | None = None,
    ) -> None:
        self.options = list(options)
        self.registered: list[str] = []
        self.ports: list[tuple[str, object | None]] = []
        self.started = False
        self.stop_calls: list[float | None] = []
        self._port = port
        self._start_error = start_error
        self._shutdown_completed: asyncio.Future[None] | None = None

    def add_insecure_port(self, address: str) -> int:
        self.ports.append((address, None))
        return self._port

    def add_secure_port(self, address: str, credentials: object) -> int:
        self.ports.append((address, credentials))
        return self._port

    async def start(self) -> None:
        if self._start_error is not None:
            raise self._start_error
        self.started = True

    def _termination(self) -> asyncio.Future[None]:
        if self._shutdown_completed is None:
            self._shutdown_completed = asyncio.get_running_loop().create_future()
        return self._shutdown_completed

    async def wait_for_termination(self, timeout: float | None = None) -> bool:
        await self._termination()
        return True

    async def stop(self, grace: float | None) -> None:
        self.stop_calls.append(grace)
        termination = self._termination()
        if not termination.done():
            termination.set_result(None)
        await termination


class FakeServerFactory:
    """Server factory that hands out :class:`FakeServer` instances and remembers them."""

    def __init__(self, *, port: int = 50051, start_error: Exception | None = None) -> None:
        self.port = port
        self.start_error = start_error
        self.servers: list[FakeServer] = []

    def __call__(self, options: Sequence[tuple[str, Any]]) -> FakeServer:
        server = FakeServer(options, port=self.port, start_error=self.start_error)
        self.servers.append(server)
        return server


async def call_echo(
    target: str,
    payload: bytes,
    *,
    credentials: grpc.ChannelCredentials | None = None,
    timeout: float = 5.0,
) -> bytes:
    """Invoke the echo RPC on *target* and return the reply bytes."""
    if credentials is None:
        channel = grpc.aio.insecure_channel(target)
    else:
        channel = grpc.aio.secure_channel(
            target, credentials, options=[("grpc.ssl_target_name_override", "localhost")]
        )
    async with channel:
        say = channel.unary_unary(ECHO_METHOD)
        return await say(payload, timeout=timeout, wait_for_ready=True)


async def wait_for_state(bootstrap: Any, state: Any, *, timeout: float = 5.0) -> None:
    with anyio.fail_after(timeout):
        while bootstrap.state is not state:
            await anyio.sleep(0.01)


def self_signed_certificate(common_name: str = "localhost") -> tuple[bytes, bytes]:
    """Return ``(cert_pem, key_pem)`` for a throwaway certificate valid for localhost."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName(common_name), x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]
            ),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert_pem, key_pem
