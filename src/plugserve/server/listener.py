# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""Listening endpoints for plugin servers.

grpcio binds sockets itself, so a :class:`Listener` names the endpoint to
bind rather than wrapping an open socket. Once a server has bound it, the
listener records the resolved port and cannot be reused.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal


Network = Literal["tcp", "unix"]


@dataclass(slots=True)
class Listener:
    """A gRPC bind target such as ``127.0.0.1:0`` or ``unix:/tmp/plugin.sock``."""

    address: str
    bound_port: int | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        if not self.address:
            raise ValueError("address must be non-empty")

    @classmethod
    def tcp(cls, host: str = "127.0.0.1", port: int = 0) -> Listener:
        if not 0 <= port <= 65535:
            raise ValueError(f"port out of range: {port}")
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return cls(f"{host}:{port}")

    @classmethod
    def unix(cls, path: str | Path) -> Listener:
        return cls(f"unix:{path}")

    @property
    def network(self) -> Network:
        return "unix" if self.address.startswith(("unix:", "unix-abstract:")) else "tcp"

    @property
    def consumed(self) -> bool:
        return self.bound_port is not None

    @property
    def addr(self) -> str:
        """Connectable address once bound.

        For TCP listeners bound to port ``0`` this substitutes the port grpcio
        picked; unix listeners return the socket path.
        """
        if self.network == "unix":
            return self.address.split(":", 1)[1]
        if self.bound_port is None:
            return self.address
        host, _, _ = self.address.rpartition(":")
        return f"{host}:{self.bound_port}"

    def mark_bound(self, port: int) -> None:
        if self.bound_port is not None:
            raise RuntimeError(f"listener {self.address} was already bound")
        self.bound_port = port


__all__ = ["Listener", "Network"]
