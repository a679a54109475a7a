# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""Plugin attach capability and registration onto a gRPC server.

A plugin is any object. To be served over gRPC it must also satisfy
:class:`GRPCPlugin`, a one-method protocol that mounts the plugin's services
onto a ``grpc.aio.Server``. :func:`register_plugins` walks the named plugins
in mapping order and stops at the first one that cannot be attached.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .errors import PluginAttachError, PluginCapabilityError
from .utils import get_logger


if TYPE_CHECKING:  # pragma: no cover - typing only
    import grpc.aio


@runtime_checkable
class GRPCPlugin(Protocol):
    """Capability required of every plugin served by :class:`GRPCServer`.

    ``attach_to_server`` registers the plugin's servicers on *server* and
    raises on failure.
    """

    def attach_to_server(self, server: grpc.aio.Server) -> None:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class ServicerPlugin:
    """Adapt a generated ``add_<Name>Servicer_to_server`` helper to :class:`GRPCPlugin`.

    ``grpcio-tools`` emits one helper per service::

        ServicerPlugin(KVServicer(), kv_pb2_grpc.add_KVServicer_to_server)
    """

    servicer: Any
    add_to_server: Callable[[Any, Any], None]

    def attach_to_server(self, server: grpc.aio.Server) -> None:
        self.add_to_server(self.servicer, server)


def register_plugins(server: grpc.aio.Server, plugins: Mapping[str, object]) -> list[str]:
    """Attach every plugin in *plugins* to *server*.

    Fails fast: the first plugin that lacks the capability, or whose attach
    raises, aborts registration. Plugins attached before it stay attached.

    Returns:
        Names of the attached plugins, in iteration order.

    Raises:
        PluginCapabilityError: a plugin does not implement :class:`GRPCPlugin`.
        PluginAttachError: a plugin's ``attach_to_server`` raised.
    """
    logger = get_logger("plugserve.plugin")
    attached: list[str] = []
    for name, raw in plugins.items():
        if not isinstance(raw, GRPCPlugin):
            raise PluginCapabilityError(name)

        try:
            raw.attach_to_server(server)
        except Exception as exc:
            raise PluginAttachError(name, exc) from exc

        logger.debug("Attached plugin %r (%s)", name, type(raw).__name__)
        attached.append(name)

    return attached


__all__ = ["GRPCPlugin", "ServicerPlugin", "register_plugins"]
