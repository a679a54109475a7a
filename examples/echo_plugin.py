"""Minimal plugin process served with plugserve.

Run it the way a host would spawn it::

    python examples/echo_plugin.py

Two lines go to stdout: first the gRPC address the host should dial, then
the handshake line with the relayed stream addresses. Logs go to stderr and
the server runs until SIGINT/SIGTERM. Call it with grpcurl-style raw bytes on
``/example.Echo/Say``.
"""

from __future__ import annotations

import signal
import sys
from typing import IO

import anyio
import grpc
import grpc.aio

from plugserve import GRPCServer, Listener
from plugserve.utils import get_logger


log = get_logger("examples.echo_plugin")


class EchoPlugin:
    def attach_to_server(self, server: grpc.aio.Server) -> None:
        async def say(request: bytes, _context: grpc.aio.ServicerContext) -> bytes:
            return request

        handler = grpc.method_handlers_generic_handler(
            "example.Echo", {"Say": grpc.unary_unary_rpc_method_handler(say)}
        )
        server.add_generic_rpc_handlers((handler,))


async def _wait_for_signal(done: anyio.Event) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            log.info("Received %s", signal.Signals(signum).name)
            done.set()
            return


async def run(server: GRPCServer, listener: Listener, out: IO[str] = sys.stdout) -> None:
    """Serve *server* on *listener*, writing the address and handshake lines once bound."""
    async with anyio.create_task_group() as tg:
        tg.start_soon(server.serve, listener)
        while not listener.consumed:
            await anyio.sleep(0.01)
        log.info("Plugin listening on %s", listener.addr)
        out.write(listener.addr + "\n")
        server.announce(out)


async def main() -> None:
    server = GRPCServer({"echo": EchoPlugin()})
    server.init()

    async with anyio.create_task_group() as tg:
        tg.start_soon(_wait_for_signal, server.done)
        await run(server, Listener.tcp("127.0.0.1", 0))


if __name__ == "__main__":
    anyio.run(main)
