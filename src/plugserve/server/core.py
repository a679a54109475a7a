# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""gRPC server bootstrap for plugin child processes.

:class:`GRPCServer` constructs a ``grpc.aio`` server through an injected
factory, registers every named plugin on it, exposes the handshake line the
host reads to find the relayed output streams, and serves until its done
event is set::

    server = GRPCServer({"kv": ServicerPlugin(KVServicer(), add_KVServicer_to_server)})
    server.init()
    server.announce()
    await server.serve(Listener.tcp())

Lifecycle: ``UNCONFIGURED -> INITIALIZED -> SERVING -> DONE``. A failed
:meth:`GRPCServer.init`, bind or ``start()`` moves to ``FAILED``; nothing restarts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from enum import Enum
import sys
from typing import IO, TYPE_CHECKING, Any, BinaryIO, Protocol, runtime_checkable

import anyio
import grpc
import grpc.aio

from .handshake import GRPCServerConfig, encode_config
from .listener import Listener
from .security import TLSConfig, resolve_server_credentials
from ..errors import BootstrapStateError, ListenerBindError
from ..plugin import register_plugins
from ..settings import ServerSettings, ShutdownMode
from ..utils import get_logger


if TYPE_CHECKING:  # pragma: no cover - typing only
    from logging import Logger


ChannelOption = tuple[str, Any]


@runtime_checkable
class ServerFactory(Protocol):
    """Callable that builds the server plugins are registered on."""

    def __call__(self, options: Sequence[ChannelOption]) -> grpc.aio.Server:  # pragma: no cover - protocol
        ...


def default_grpc_server(options: Sequence[ChannelOption]) -> grpc.aio.Server:
    """Build a ``grpc.aio`` server with *options* and nothing else.

    Must run inside the event loop that will serve it.
    """
    return grpc.aio.server(options=list(options))


class BootstrapState(str, Enum):
    UNCONFIGURED = "unconfigured"
    INITIALIZED = "initialized"
    SERVING = "serving"
    DONE = "done"
    FAILED = "failed"


class GRPCServer:
    """Serve a set of named plugins over gRPC.

    Args:
        plugins: Unique name to plugin handle. Each handle must implement
            :class:`plugserve.plugin.GRPCPlugin`.
        server_factory: Builds the server from gRPC channel options.
        tls: Transport security. ``None`` serves plaintext.
        done: Event whose setting ends :meth:`serve`. Created on first access
            when omitted; only the controlling party should set it.
        stdout: Byte stream an external relay forwards to ``stdout_addr``.
        stderr: Byte stream an external relay forwards to ``stderr_addr``.
        settings: Channel and shutdown tunables. Defaults to
            :meth:`ServerSettings.from_env`.
        options: Extra channel options appended after the settings-derived ones.
    """

    def __init__(
        self,
        plugins: Mapping[str, object],
        *,
        server_factory: ServerFactory = default_grpc_server,
        tls: TLSConfig | None = None,
        done: anyio.Event | None = None,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
        settings: ServerSettings | None = None,
        options: Sequence[ChannelOption] | None = None,
    ) -> None:
        self.plugins: Mapping[str, object] = plugins
        self.tls = tls
        self.stdout = stdout
        self.stderr = stderr
        self._server_factory = server_factory
        self._done = done
        self._settings = settings if settings is not None else ServerSettings.from_env()
        self._extra_options: list[ChannelOption] = list(options or ())
        self._config = GRPCServerConfig()
        self._server: grpc.aio.Server | None = None
        self._credentials: grpc.ServerCredentials | None = None
        self._state = BootstrapState.UNCONFIGURED
        self._logger: Logger = get_logger("plugserve.server")

    # //////////////////////////////////////////////////////////////////
    # Accessors
    # //////////////////////////////////////////////////////////////////

    @property
    def state(self) -> BootstrapState:
        return self._state

    @property
    def server(self) -> grpc.aio.Server | None:
        """The constructed server, or ``None`` until :meth:`init` succeeds."""
        return self._server

    @property
    def settings(self) -> ServerSettings:
        return self._settings

    @property
    def secure(self) -> bool:
        return self.tls is not None

    @property
    def done(self) -> anyio.Event:
        if self._done is None:
            self._done = anyio.Event()
        return self._done

    @property
    def config(self) -> GRPCServerConfig:
        return self._config

    # //////////////////////////////////////////////////////////////////
    # Initialization
    # //////////////////////////////////////////////////////////////////

    def init(self) -> None:
        """Construct the server and register every plugin on it.

        Raises:
            BootstrapStateError: ``init`` was already called, or the default
                factory is used outside a running event loop.
            PluginCapabilityError: a plugin lacks ``attach_to_server``.
            PluginAttachError: a plugin failed to attach.
        """
        if self._state is not BootstrapState.UNCONFIGURED:
            raise BootstrapStateError(f"init() called on a server in state {self._state.value!r}")

        if self._server_factory is default_grpc_server:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                self._state = BootstrapState.FAILED
                raise BootstrapStateError(
                    "init() with the default server factory must run inside the event loop that will serve it"
                ) from None

        try:
            self._credentials = resolve_server_credentials(self.tls)
            options = [*self._settings.channel_options(), *self._extra_options]
            server = self._server_factory(options)
            attached = register_plugins(server, self.plugins)
        except Exception:
            self._state = BootstrapState.FAILED
            self._logger.error("Plugin server initialization failed", exc_info=True)
            raise

        self._server = server
        self._state = BootstrapState.INITIALIZED
        self._logger.info("Registered %d plugin(s): %s", len(attached), ", ".join(attached) or "-")

    # //////////////////////////////////////////////////////////////////
    # Handshake
    # //////////////////////////////////////////////////////////////////

    def advertise_stdio(self, *, stdout_addr: str = "", stderr_addr: str = "") -> None:
        """Record where the relayed stdout/stderr streams can be reached."""
        self._config = GRPCServerConfig(stdout_addr=stdout_addr, stderr_addr=stderr_addr)

    def config_line(self) -> str:
        """Handshake payload for the current stream addresses. Pure."""
        return encode_config(self._config)

    def announce(self, stream: IO[str] | None = None) -> None:
        """Write :meth:`config_line` to *stream* (default ``sys.stdout``) and flush."""
        out = stream if stream is not None else sys.stdout
        out.write(self.config_line() + "\n")
        out.flush()

    # //////////////////////////////////////////////////////////////////
    # Serving
    # //////////////////////////////////////////////////////////////////

    async def serve(self, listener: Listener) -> None:
        """Accept connections on *listener* until :attr:`done` is set.

        What happens to the server afterwards depends on
        ``settings.shutdown_mode``.

        Raises:
            BootstrapStateError: the server is not in the ``INITIALIZED`` state.
            ListenerBindError: grpcio could not bind *listener*.
        """
        if self._state is not BootstrapState.INITIALIZED or self._server is None:
            raise BootstrapStateError(f"serve() called on a server in state {self._state.value!r}")

        server = self._server
        self._bind(server, listener)
        self._state = BootstrapState.SERVING
        try:
            await server.start()
        except Exception:
            self._state = BootstrapState.FAILED
            self._logger.error("gRPC server failed to start on %s", listener.address, exc_info=True)
            raise

        self._logger.info(
            "Serving %d plugin(s) on %s (%s)",
            len(self.plugins),
            listener.addr,
            "tls" if self.secure else "plaintext",
        )
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._accept_loop, server)
                try:
                    await self.done.wait()
                except anyio.get_cancelled_exc_class():
                    with anyio.CancelScope(shield=True):
                        await self._shutdown(server, reason="Serve cancelled")
                    raise
                await self._shutdown(server, reason="Done signal received")
                tg.cancel_scope.cancel()
        finally:
            self._state = BootstrapState.DONE

    async def stop(self, grace: float | None = None) -> None:
        """Stop the server. Needed after :meth:`serve` returns in ``DETACH`` mode."""
        if self._server is None:
            raise BootstrapStateError("stop() called before init()")
        await self._server.stop(grace)

    def _bind(self, server: grpc.aio.Server, listener: Listener) -> None:
        if listener.consumed:
            raise BootstrapStateError(f"listener {listener.address} was already used")

        try:
            if self._credentials is not None:
                port = server.add_secure_port(listener.address, self._credentials)
            else:
                port = server.add_insecure_port(listener.address)
        except RuntimeError as exc:
            self._state = BootstrapState.FAILED
            raise ListenerBindError(f"could not bind {listener.address}: {exc}") from exc

        if listener.network == "tcp" and port == 0:
            self._state = BootstrapState.FAILED
            raise ListenerBindError(f"could not bind {listener.address}")

        listener.mark_bound(port)

    async def _accept_loop(self, server: grpc.aio.Server) -> None:
        # grpc awaits its own shutdown future here; cancelling it unshielded breaks a later stop().
        await asyncio.shield(server.wait_for_termination())
        self._logger.debug("gRPC server terminated")

    async def _shutdown(self, server: grpc.aio.Server, *, reason: str) -> None:
        mode = self._settings.shutdown_mode
        if mode is ShutdownMode.DETACH:
            self._logger.info("%s; leaving server running", reason)
            return

        grace = self._settings.shutdown_grace if mode is ShutdownMode.GRACEFUL else None
        self._logger.info("%s; stopping server (%s)", reason, mode.value)
        await server.stop(grace)


__all__ = [
    "BootstrapState",
    "ChannelOption",
    "GRPCServer",
    "ServerFactory",
    "default_grpc_server",
]
