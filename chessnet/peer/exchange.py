"""
Per-tick move exchange.

Outbound: a locally selected move goes IDLE -> PENDING -> AWAITING_ACK -> IDLE.
It is written exactly once and only touches the board after the peer's
Ack{ok: true}.

Inbound: while nothing of ours is in flight, poll once per tick for the peer's
Move, check it with the rules collaborator, apply it and answer with one Ack.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from chessnet.common.protocol import Ack, Color, EndState, Move, PieceKind, Square, on_board
from chessnet.game.board import Board, IllegalMoveError, RulesEngine
from chessnet.peer.connection import Connection, ReadError, WriteError


class DesyncError(Exception):
    pass


class AckTimeout(Exception):
    pass


class ExchangeState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    AWAITING_ACK = "awaiting_ack"


@dataclass
class PendingRequest:
    origin: Square
    dest: Square
    promotion: Optional[PieceKind] = None
    forfeit: bool = False
    offer_draw: bool = False
    sent_at: Optional[float] = None

    def to_packet(self) -> Move:
        return Move(
            origin=self.origin,
            dest=self.dest,
            promotion=self.promotion,
            forfeit=self.forfeit,
            offerDraw=self.offer_draw,
        )


class MoveExchange:
    def __init__(
        self,
        conn: Connection,
        board: Board,
        rules: RulesEngine,
        *,
        ack_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if conn.local_color is None:
            raise ValueError("handshake_not_ready")
        self.conn = conn
        self.board = board
        self.rules = rules
        self.ack_timeout = ack_timeout
        self.clock = clock

        self.local_color: Color = conn.local_color
        self.state = ExchangeState.IDLE
        self.pending: Optional[PendingRequest] = None
        self.end_state: Optional[EndState] = None
        self.winner: Optional[Color] = None
        self.draw_offered = False
        self.last_rejected: Optional[PendingRequest] = None
        self._offer_draw_next = False

    # ---------------------------
    # local input
    # ---------------------------
    @property
    def game_over(self) -> bool:
        return self.end_state is not None

    @property
    def is_local_turn(self) -> bool:
        return self.board.turn is self.local_color

    def _can_propose(self) -> bool:
        return self.pending is None and not self.game_over and self.is_local_turn

    def select(self, origin: Square, dest: Square, promotion: Optional[PieceKind] = None) -> bool:
        """Record a move to send on the next tick. False when the input is ignored."""
        if not self._can_propose():
            return False
        if not (on_board(origin) and on_board(dest)):
            return False
        if dest not in self.rules.legal_moves(self.board, origin, self.local_color):
            return False
        self.pending = PendingRequest(origin, dest, promotion, offer_draw=self._offer_draw_next)
        self._offer_draw_next = False
        self.state = ExchangeState.PENDING
        return True

    def forfeit(self) -> bool:
        # Only on our own turn: the peer is then idle, so its next packet is our Ack.
        if not self._can_propose():
            return False
        self.pending = PendingRequest((0, 0), (0, 0), forfeit=True)
        self.state = ExchangeState.PENDING
        return True

    def offer_draw(self) -> None:
        self._offer_draw_next = True

    # ---------------------------
    # per tick
    # ---------------------------
    def tick(self) -> None:
        try:
            self._outbound()
            if self.state is not ExchangeState.AWAITING_ACK and not self.game_over:
                self._inbound()
        except (ReadError, WriteError):
            self.pending = None
            self.state = ExchangeState.IDLE
            raise

    def _outbound(self) -> None:
        req = self.pending
        if req is None:
            return
        if self.state is ExchangeState.PENDING:
            self.conn.write(req.to_packet())
            req.sent_at = self.clock()
            self.state = ExchangeState.AWAITING_ACK
            return

        ack = self.conn.try_read(Ack)
        if ack is None:
            if self.ack_timeout is not None and req.sent_at is not None:
                if self.clock() - req.sent_at > self.ack_timeout:
                    raise AckTimeout(f"no_ack_within:{self.ack_timeout}s")
            return

        self.pending = None
        self.state = ExchangeState.IDLE
        if req.forfeit:
            self._finish(EndState.RESIGNATION, winner=self.local_color.opposite)
            return
        if not ack.ok:
            self.last_rejected = req
            return
        try:
            self.rules.apply_move(req.to_packet(), req.origin, self.local_color, self.board)
        except IllegalMoveError as e:
            raise DesyncError(f"acked_move_rejected_locally:{e}") from e
        self.last_rejected = None
        end = ack.endState or self.rules.end_state(self.board)
        if end is not None:
            self._finish(end, winner=self.local_color if end is EndState.CHECKMATE else None)

    def _inbound(self) -> None:
        move = self.conn.try_read(Move)
        if move is None:
            return
        remote = self.local_color.opposite
        if move.forfeit:
            self.conn.write(Ack(ok=True, endState=EndState.RESIGNATION))
            self._finish(EndState.RESIGNATION, winner=self.local_color)
            return

        ok = self._accept(move, remote)
        end = self.rules.end_state(self.board) if ok else None
        self.conn.write(Ack(ok=ok, endState=end))
        if not ok:
            return
        self.draw_offered = move.offerDraw
        if end is not None:
            self._finish(end, winner=remote if end is EndState.CHECKMATE else None)

    def _accept(self, move: Move, remote: Color) -> bool:
        if self.board.turn is not remote:
            return False
        if not (on_board(move.origin) and on_board(move.dest)):
            return False
        if move.dest not in self.rules.legal_moves(self.board, move.origin, remote):
            return False
        try:
            self.rules.apply_move(move, move.origin, remote, self.board)
        except IllegalMoveError:
            return False
        return True

    def _finish(self, end: EndState, *, winner: Optional[Color]) -> None:
        self.end_state = end
        self.winner = winner
