from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from chessnet.common.config import DEFAULT_HANDSHAKE_TIMEOUT, DEFAULT_POLL_INTERVAL
from chessnet.common.protocol import Color, EndState, PieceKind, Role, Square
from chessnet.game.board import STARTING_FEN, Board, RulesEngine, SandboxRules
from chessnet.peer.connection import Connection
from chessnet.peer.exchange import ExchangeState, MoveExchange, PendingRequest
from chessnet.peer.handshake import HandshakeResult, perform_handshake


@dataclass
class Session:
    """Everything one peer needs per frame. The render loop holds exactly one."""

    conn: Connection
    handshake: HandshakeResult
    exchange: MoveExchange

    @classmethod
    def start(
        cls,
        conn: Connection,
        *,
        name: Optional[str] = None,
        fen: Optional[str] = None,
        time: Optional[timedelta] = None,
        inc: Optional[timedelta] = None,
        prefer_white: bool = True,
        rules: Optional[RulesEngine] = None,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        ack_timeout: Optional[float] = None,
    ) -> "Session":
        """Run the blocking handshake on an established connection."""
        result = perform_handshake(
            conn,
            name=name,
            prefer_white=prefer_white,
            fen=fen,
            time=time,
            inc=inc,
            timeout=handshake_timeout,
        )
        board = Board.from_fen(result.fen or STARTING_FEN)
        exchange = MoveExchange(conn, board, rules or SandboxRules(), ack_timeout=ack_timeout)
        return cls(conn=conn, handshake=result, exchange=exchange)

    @classmethod
    def establish(
        cls,
        role: Role,
        *,
        host: str,
        port: int,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        trace: bool = False,
        **kwargs,
    ) -> "Session":
        if Role(role) is Role.SERVER:
            conn = Connection.server(port, host=host, poll_interval=poll_interval, trace=trace)
        else:
            conn = Connection.client(host, port, poll_interval=poll_interval, trace=trace)
        try:
            return cls.start(conn, **kwargs)
        except BaseException:
            conn.close()
            raise

    # ---------------------------
    # driver hooks
    # ---------------------------
    def on_tick(self) -> None:
        self.exchange.tick()

    def on_local_move_selected(self, origin: Square, dest: Square, promotion: Optional[PieceKind] = None) -> bool:
        return self.exchange.select(origin, dest, promotion)

    def on_forfeit(self) -> bool:
        return self.exchange.forfeit()

    def on_offer_draw(self) -> None:
        self.exchange.offer_draw()

    # ---------------------------
    # views for the renderer
    # ---------------------------
    @property
    def board(self) -> Board:
        return self.exchange.board

    @property
    def local_color(self) -> Color:
        return self.exchange.local_color

    @property
    def peer_name(self) -> Optional[str]:
        return self.handshake.peer_name

    @property
    def is_local_turn(self) -> bool:
        return self.exchange.is_local_turn

    @property
    def awaiting_ack(self) -> bool:
        return self.exchange.state is not ExchangeState.IDLE

    @property
    def game_over(self) -> bool:
        return self.exchange.game_over

    @property
    def end_state(self) -> Optional[EndState]:
        return self.exchange.end_state

    @property
    def winner(self) -> Optional[Color]:
        return self.exchange.winner

    @property
    def draw_offered(self) -> bool:
        return self.exchange.draw_offered

    @property
    def last_rejected(self) -> Optional[PendingRequest]:
        return self.exchange.last_rejected

    def legal_destinations(self, origin: Square) -> set:
        return self.exchange.rules.legal_moves(self.board, origin, self.local_color)

    def close(self) -> None:
        self.conn.close()
