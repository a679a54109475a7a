# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""Public server-side surface for plugserve.

The bootstrap lives in :mod:`plugserve.server.core`; this module re-exports
what plugin processes are expected to import.
"""

from __future__ import annotations

from .core import BootstrapState, ChannelOption, GRPCServer, ServerFactory, default_grpc_server
from .handshake import GRPCServerConfig, decode_config, encode_config
from .listener import Listener
from .security import TLSConfig, resolve_server_credentials


__all__ = [
    "BootstrapState",
    "ChannelOption",
    "GRPCServer",
    "GRPCServerConfig",
    "Listener",
    "ServerFactory",
    "TLSConfig",
    "decode_config",
    "default_grpc_server",
    "encode_config",
    "resolve_server_credentials",
]
