# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

"""Handshake configuration advertised to the supervising host.

The record tells the host where to connect for the plugin's relayed
``stdout``/``stderr`` streams. On the wire it is the JSON object
``{"stdout_addr": ..., "stderr_addr": ...}`` encoded as standard base64, so
it always fits on one line of the handshake output.
"""

from __future__ import annotations

import base64
import binascii

import orjson as oj
from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import HandshakeEncodingError


class GRPCServerConfig(BaseModel):
    """Addresses of the auxiliary output streams. Opaque strings."""

    model_config = ConfigDict(frozen=True)

    stdout_addr: str = ""
    stderr_addr: str = ""


def encode_config(config: GRPCServerConfig) -> str:
    """Return the single-line handshake payload for *config*.

    Raises:
        HandshakeEncodingError: serialization failed. Fatal.
    """
    try:
        raw = oj.dumps(config.model_dump())
    except oj.JSONEncodeError as exc:
        raise HandshakeEncodingError(f"could not encode handshake config: {exc}") from exc
    return base64.b64encode(raw).decode("ascii")


def decode_config(payload: str | bytes) -> GRPCServerConfig:
    """Parse a payload produced by :func:`encode_config`.

    Raises:
        ValueError: the payload is not valid base64 or JSON, or has the wrong shape.
    """
    if isinstance(payload, str):
        payload = payload.strip().encode("ascii")
    try:
        raw = base64.b64decode(payload, validate=True)
        data = oj.loads(raw)
    except (binascii.Error, oj.JSONDecodeError) as exc:
        raise ValueError(f"malformed handshake config: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("malformed handshake config: expected a JSON object")
    try:
        return GRPCServerConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"malformed handshake config: {exc}") from exc


__all__ = ["GRPCServerConfig", "decode_config", "encode_config"]
