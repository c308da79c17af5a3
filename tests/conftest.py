"""
Shared fixtures: connected peer pairs over socketpair(), and a scripted rules
collaborator that records every call.
"""

import socket
import threading
from typing import Optional, Set

import pytest

from chessnet.common.protocol import Color, EndState, Move, Role, Square
from chessnet.game.board import Board, IllegalMoveError
from chessnet.peer.connection import Connection


class RecordingRules:
    """Accepts every on-board move of the side to play unless told otherwise."""

    def __init__(self, illegal: Optional[Set[Square]] = None, end: Optional[EndState] = None):
        self.illegal = illegal or set()
        self.end = end
        self.applied = []
        self.refuse_apply = False

    def legal_moves(self, board: Board, origin: Square, color: Color) -> Set[Square]:
        if board.turn is not color:
            return set()
        return {(x, y) for x in range(8) for y in range(8)} - self.illegal - {origin}

    def apply_move(self, move: Move, origin: Square, color: Color, board: Board) -> None:
        if self.refuse_apply:
            raise IllegalMoveError("refused")
        self.applied.append((origin, move.dest, color))
        piece = board.squares.pop(origin, None)
        if piece is not None:
            board.squares[move.dest] = piece
        board.turn = color.opposite

    def end_state(self, board: Board) -> Optional[EndState]:
        return self.end if self.applied else None


@pytest.fixture
def conn_pair():
    """(server_conn, client_conn) joined by a socketpair; closed at teardown."""
    a, b = socket.socketpair()
    server = Connection(a, Role.SERVER, poll_interval=0.005)
    client = Connection(b, Role.CLIENT, poll_interval=0.005)
    try:
        yield server, client
    finally:
        server.close()
        client.close()


@pytest.fixture
def colored_pair(conn_pair):
    """Connections with colors fixed as after a default handshake: client white."""
    server, client = conn_pair
    client.assign_color(Color.WHITE)
    server.assign_color(Color.BLACK)
    return server, client


def run_in_thread(fn, *args, **kwargs):
    """Start fn in a thread; returns a join() that re-raises or returns fn's result."""
    box = {}

    def target():
        try:
            box["value"] = fn(*args, **kwargs)
        except BaseException as e:  # re-raised in join()
            box["error"] = e

    t = threading.Thread(target=target, daemon=True)
    t.start()

    def join(timeout: float = 10.0):
        t.join(timeout)
        assert not t.is_alive(), "background call did not finish"
        if "error" in box:
            raise box["error"]
        return box.get("value")

    return join
