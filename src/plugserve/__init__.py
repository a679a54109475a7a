# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""plugserve: serve host plugins over gRPC."""

from __future__ import annotations

from .errors import (
    BootstrapStateError,
    HandshakeEncodingError,
    ListenerBindError,
    PluginAttachError,
    PluginCapabilityError,
    PluginRegistrationError,
    PlugserveError,
)
from .plugin import GRPCPlugin, ServicerPlugin, register_plugins
from .server import (
    BootstrapState,
    GRPCServer,
    GRPCServerConfig,
    Listener,
    TLSConfig,
    decode_config,
    default_grpc_server,
    encode_config,
)
from .settings import ServerSettings, ShutdownMode


__all__ = [
    "BootstrapState",
    "BootstrapStateError",
    "GRPCPlugin",
    "GRPCServer",
    "GRPCServerConfig",
    "HandshakeEncodingError",
    "Listener",
    "ListenerBindError",
    "PluginAttachError",
    "PluginCapabilityError",
    "PluginRegistrationError",
    "PlugserveError",
    "ServerSettings",
    "ServicerPlugin",
    "ShutdownMode",
    "TLSConfig",
    "decode_config",
    "default_grpc_server",
    "encode_config",
    "register_plugins",
]
