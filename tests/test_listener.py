# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/plugserve-python/LICENSE
# ==============================================================================

from __future__ import annotations

import pytest

from plugserve import Listener


def test_tcp_listener_substitutes_bound_port() -> None:
    listener = Listener.tcp("127.0.0.1", 0)
    assert listener.address == "127.0.0.1:0"
    assert listener.network == "tcp"
    assert not listener.consumed

    listener.mark_bound(43123)

    assert listener.consumed
    assert listener.addr == "127.0.0.1:43123"


def test_ipv6_host_is_bracketed() -> None:
    assert Listener.tcp("::1", 8080).address == "[::1]:8080"


def test_unix_listener_reports_socket_path() -> None:
    listener = Listener.unix("/tmp/plugin.sock")

    assert listener.address == "unix:/tmp/plugin.sock"
    assert listener.network == "unix"
    assert listener.addr == "/tmp/plugin.sock"


def test_listener_binds_once() -> None:
    listener = Listener.tcp()
    listener.mark_bound(1)

    with pytest.raises(RuntimeError, match="already bound"):
        listener.mark_bound(2)


@pytest.mark.parametrize("port", [-1, 65536])
def test_tcp_port_range_is_checked(port: int) -> None:
    with pytest.raises(ValueError, match="port out of range"):
        Listener.tcp(port=port)


def test_empty_address_rejected() -> None:
    with pytest.raises(ValueError):
        Listener("")
