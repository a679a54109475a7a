# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""Exception hierarchy for plugserve.

Ordinary failures derive from :class:`PlugserveError` and are raised to the
caller of :meth:`plugserve.server.GRPCServer.init` or ``serve``.
:class:`HandshakeEncodingError` is the one exception that derives from
``BaseException``: it marks a programming defect that must not be absorbed
by ``except Exception`` blocks.
"""

from __future__ import annotations


class PlugserveError(Exception):
    """Base class for recoverable plugserve errors."""


class PluginRegistrationError(PlugserveError):
    """Raised when a named plugin cannot be registered on the server."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name


class PluginCapabilityError(PluginRegistrationError):
    """The plugin does not implement ``attach_to_server``."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"{name!r} is not a gRPC-compatible plugin")


class PluginAttachError(PluginRegistrationError):
    """The plugin's own ``attach_to_server`` raised."""

    def __init__(self, name: str, cause: BaseException) -> None:
        super().__init__(name, f"error registering {name!r}: {cause}")


class BootstrapStateError(PlugserveError, RuntimeError):
    """Raised when a lifecycle operation is invoked in the wrong state."""


class ListenerBindError(PlugserveError):
    """grpcio could not bind the requested listener address."""


class HandshakeEncodingError(BaseException):
    """Fatal: the handshake configuration could not be serialized.

    The encoded shape is fixed and built only from strings, so this can only
    signal a bug. ``except Exception`` does not catch it.
    """


__all__ = [
    "BootstrapStateError",
    "HandshakeEncodingError",
    "ListenerBindError",
    "PluginAttachError",
    "PluginCapabilityError",
    "PluginRegistrationError",
    "PlugserveError",
]
