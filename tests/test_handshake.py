"""Unit tests for chessnet/peer/handshake.py"""

from datetime import timedelta

import pytest

from chessnet.common.protocol import Ack, Color, Start
from chessnet.peer.connection import HandshakeTimeout, ReadError
from chessnet.peer.handshake import Handshake, HandshakeError, HandshakeState, perform_handshake
from tests.conftest import run_in_thread


def test_default_handshake_client_white_server_black(conn_pair) -> None:
    server, client = conn_pair
    join = run_in_thread(perform_handshake, server, name="srv", timeout=2.0)
    client_result = perform_handshake(client, name="cli", timeout=2.0)
    server_result = join()

    assert client_result.local_color is Color.WHITE
    assert server_result.local_color is Color.BLACK
    assert client.local_color is Color.WHITE
    assert server.local_color is Color.BLACK
    assert client_result.peer_name == "srv"
    assert server_result.peer_name == "cli"


@pytest.mark.parametrize("prefer_white", [True, False])
def test_colors_are_always_complementary(conn_pair, prefer_white) -> None:
    server, client = conn_pair
    join = run_in_thread(perform_handshake, server, prefer_white=prefer_white, timeout=2.0)
    perform_handshake(client, prefer_white=prefer_white, timeout=2.0)
    join()
    assert {client.local_color, server.local_color} == {Color.WHITE, Color.BLACK}
    assert (client.local_color is Color.WHITE) is prefer_white


def test_server_reply_carries_game_setup(conn_pair) -> None:
    server, client = conn_pair
    fen = "4k3/8/8/8/8/8/8/4K3 b - - 0 1"
    join = run_in_thread(
        perform_handshake, server, fen=fen, time=timedelta(minutes=10), inc=timedelta(seconds=5), timeout=2.0
    )
    result = perform_handshake(client, fen="ignored", timeout=2.0)
    join()
    assert result.fen == fen
    assert result.time == timedelta(minutes=10)
    assert result.inc == timedelta(seconds=5)


def test_server_reply_is_opposite_of_client_claim(conn_pair) -> None:
    server, client = conn_pair
    client.write(Start(isWhite=True, name="raw"))
    result = perform_handshake(server, timeout=2.0)
    assert result.local_color is Color.BLACK
    assert client.read_blocking(Start, timeout=1.0).isWhite is False


def test_state_moves_to_ready_only_after_exchange(conn_pair) -> None:
    server, client = conn_pair
    hs = Handshake(client, timeout=2.0)
    assert hs.state is HandshakeState.NEGOTIATING
    join = run_in_thread(perform_handshake, server, timeout=2.0)
    hs.run()
    join()
    assert hs.state is HandshakeState.READY
    with pytest.raises(HandshakeError):
        hs.run()


def test_silent_peer_times_out(conn_pair) -> None:
    server, _client = conn_pair
    hs = Handshake(server, timeout=0.1)
    with pytest.raises(HandshakeTimeout):
        hs.run()
    assert hs.state is HandshakeState.NEGOTIATING
    assert server.local_color is None


def test_wrong_packet_during_handshake_is_fatal(conn_pair) -> None:
    server, client = conn_pair
    client.write(Ack(ok=True))
    with pytest.raises(ReadError):
        perform_handshake(server, timeout=1.0)
