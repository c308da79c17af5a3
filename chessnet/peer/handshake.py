"""
One-time Start exchange run before the frame loop.

Client speaks first and states a color preference; the server answers with
the opposite claim. Each side then takes the color opposite to what its peer
claimed, so the two ends always finish on complementary colors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional

from chessnet.common.config import DEFAULT_HANDSHAKE_TIMEOUT
from chessnet.common.protocol import Color, Role, Start
from chessnet.peer.connection import Connection


class HandshakeError(Exception):
    pass


class HandshakeState(str, Enum):
    NEGOTIATING = "negotiating"
    READY = "ready"


@dataclass(frozen=True)
class HandshakeResult:
    local_color: Color
    peer_name: Optional[str]
    fen: Optional[str] = None
    time: Optional[timedelta] = None
    inc: Optional[timedelta] = None


class Handshake:
    def __init__(
        self,
        conn: Connection,
        *,
        name: Optional[str] = None,
        prefer_white: bool = True,
        fen: Optional[str] = None,
        time: Optional[timedelta] = None,
        inc: Optional[timedelta] = None,
        timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
    ):
        self.conn = conn
        self.name = name
        self.prefer_white = prefer_white
        self.fen = fen
        self.time = time
        self.inc = inc
        self.timeout = timeout
        self.state = HandshakeState.NEGOTIATING
        self.result: Optional[HandshakeResult] = None

    def run(self) -> HandshakeResult:
        if self.state is HandshakeState.READY:
            raise HandshakeError("already_ready")
        if self.conn.role is Role.CLIENT:
            result = self._as_client()
        else:
            result = self._as_server()
        self.conn.assign_color(result.local_color)
        self.result = result
        self.state = HandshakeState.READY
        return result

    def _as_client(self) -> HandshakeResult:
        # The client never dictates the setup; the server's reply does.
        self.conn.write(Start(isWhite=self.prefer_white, name=self.name))
        reply = self.conn.read_blocking(Start, timeout=self.timeout)
        return HandshakeResult(
            local_color=Color.BLACK if reply.isWhite else Color.WHITE,
            peer_name=reply.name,
            fen=reply.fen,
            time=reply.time,
            inc=reply.inc,
        )

    def _as_server(self) -> HandshakeResult:
        hello = self.conn.read_blocking(Start, timeout=self.timeout)
        self.conn.write(
            Start(isWhite=not hello.isWhite, name=self.name, fen=self.fen, time=self.time, inc=self.inc)
        )
        return HandshakeResult(
            local_color=Color.BLACK if hello.isWhite else Color.WHITE,
            peer_name=hello.name,
            fen=self.fen,
            time=self.time,
            inc=self.inc,
        )


def perform_handshake(conn: Connection, **kwargs) -> HandshakeResult:
    return Handshake(conn, **kwargs).run()
