# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""Runtime settings for plugin servers, overridable through the environment."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
import math
import os
from typing import Any, Final


ENV_SHUTDOWN_MODE: Final[str] = "PLUGSERVE_SHUTDOWN_MODE"
ENV_SHUTDOWN_GRACE: Final[str] = "PLUGSERVE_SHUTDOWN_GRACE"
ENV_MAX_MESSAGE_BYTES: Final[str] = "PLUGSERVE_MAX_MESSAGE_BYTES"
ENV_KEEPALIVE_TIME_MS: Final[str] = "PLUGSERVE_KEEPALIVE_TIME_MS"

DEFAULT_MAX_MESSAGE_BYTES: Final[int] = 16 * 1024 * 1024


class ShutdownMode(str, Enum):
    """What ``serve`` does to the gRPC server once the done signal fires."""

    GRACEFUL = "graceful"
    """Stop accepting and let in-flight RPCs finish within the grace period."""

    IMMEDIATE = "immediate"
    """Stop accepting and cancel in-flight RPCs."""

    DETACH = "detach"
    """Return without stopping; the server keeps serving until stopped elsewhere."""


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Tunables applied when a plugin server is constructed and shut down."""

    shutdown_mode: ShutdownMode = ShutdownMode.GRACEFUL
    shutdown_grace: float = 5.0
    max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES
    keepalive_time_ms: int = 10_000

    def __post_init__(self) -> None:
        if not math.isfinite(self.shutdown_grace) or self.shutdown_grace < 0:
            raise ValueError("shutdown_grace must be a finite number >= 0")
        if self.max_message_bytes <= 0:
            raise ValueError("max_message_bytes must be positive")
        if self.keepalive_time_ms <= 0:
            raise ValueError("keepalive_time_ms must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerSettings:
        """Build settings from ``PLUGSERVE_*`` variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        mode = env.get(ENV_SHUTDOWN_MODE)
        if mode:
            try:
                values["shutdown_mode"] = ShutdownMode(mode.strip().lower())
            except ValueError:
                choices = ", ".join(m.value for m in ShutdownMode)
                raise ValueError(f"{ENV_SHUTDOWN_MODE} must be one of: {choices} (got {mode!r})") from None

        grace = env.get(ENV_SHUTDOWN_GRACE)
        if grace:
            values["shutdown_grace"] = _parse_number(ENV_SHUTDOWN_GRACE, grace, float)

        max_bytes = env.get(ENV_MAX_MESSAGE_BYTES)
        if max_bytes:
            values["max_message_bytes"] = _parse_number(ENV_MAX_MESSAGE_BYTES, max_bytes, int)

        keepalive = env.get(ENV_KEEPALIVE_TIME_MS)
        if keepalive:
            values["keepalive_time_ms"] = _parse_number(ENV_KEEPALIVE_TIME_MS, keepalive, int)

        return cls(**values)

    def channel_options(self) -> list[tuple[str, Any]]:
        """gRPC channel arguments handed to the server factory."""
        return [
            ("grpc.max_receive_message_length", self.max_message_bytes),
            ("grpc.max_send_message_length", self.max_message_bytes),
            ("grpc.keepalive_time_ms", self.keepalive_time_ms),
            ("grpc.keepalive_permit_without_calls", 1),
        ]


def _parse_number(key: str, raw: str, kind: type[int] | type[float]) -> Any:
    try:
        return kind(raw.strip())
    except ValueError:
        raise ValueError(f"{key} must be a {kind.__name__} (got {raw!r})") from None


__all__ = ["ServerSettings", "ShutdownMode"]
