"""
Minimal board collaborator so two peers can play end to end.

This is deliberately not a chess rules engine. SandboxRules lets a side move
any of its pieces to any square not holding one of its own pieces; taking the
enemy king ends the game. Anything that satisfies the RulesEngine protocol
(legal_moves / apply_move / end_state) can be plugged into a Session instead.

Coordinates are (x, y): x is the file (0 = a), y is the rank (0 = rank 1).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Set

from chessnet.common.protocol import BOARD_SIZE, Color, EndState, Move, PieceKind, Square, on_board


STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

FEN_TO_KIND: Dict[str, PieceKind] = {
    "p": PieceKind.PAWN,
    "n": PieceKind.KNIGHT,
    "b": PieceKind.BISHOP,
    "r": PieceKind.ROOK,
    "q": PieceKind.QUEEN,
    "k": PieceKind.KING,
}
KIND_TO_FEN: Dict[PieceKind, str] = {v: k for k, v in FEN_TO_KIND.items()}


class InvalidFENError(Exception):
    pass


class IllegalMoveError(Exception):
    pass


@dataclass(frozen=True)
class Piece:
    kind: PieceKind
    color: Color

    @classmethod
    def from_fen(cls, ch: str) -> "Piece":
        kind = FEN_TO_KIND.get(ch.lower())
        if kind is None:
            raise InvalidFENError(f"bad_piece:{ch}")
        return cls(kind, Color.WHITE if ch.isupper() else Color.BLACK)

    def to_fen(self) -> str:
        ch = KIND_TO_FEN[self.kind]
        return ch.upper() if self.color is Color.WHITE else ch


@dataclass
class Board:
    squares: Dict[Square, Piece] = field(default_factory=dict)
    turn: Color = Color.WHITE
    end_state: Optional[EndState] = None
    winner: Optional[Color] = None

    @classmethod
    def from_fen(cls, fen: str = STARTING_FEN) -> "Board":
        """Reads the placement and side-to-move fields; the rest of the FEN is ignored."""
        parts = fen.strip().split()
        if not parts:
            raise InvalidFENError("empty")
        ranks = parts[0].split("/")
        if len(ranks) != BOARD_SIZE:
            raise InvalidFENError("bad_rank_count")
        squares: Dict[Square, Piece] = {}
        for idx, row in enumerate(ranks):
            y = BOARD_SIZE - 1 - idx
            x = 0
            for ch in row:
                if ch.isdigit():
                    x += int(ch)
                    continue
                if x >= BOARD_SIZE:
                    raise InvalidFENError(f"rank_overflow:{idx}")
                squares[(x, y)] = Piece.from_fen(ch)
                x += 1
            if x != BOARD_SIZE:
                raise InvalidFENError(f"bad_rank:{idx}")
        turn = Color.WHITE
        if len(parts) > 1:
            if parts[1] not in ("w", "b"):
                raise InvalidFENError("bad_side")
            turn = Color.WHITE if parts[1] == "w" else Color.BLACK
        return cls(squares=squares, turn=turn)

    def placement(self) -> str:
        rows: List[str] = []
        for y in range(BOARD_SIZE - 1, -1, -1):
            row, empty = "", 0
            for x in range(BOARD_SIZE):
                piece = self.squares.get((x, y))
                if piece is None:
                    empty += 1
                    continue
                if empty:
                    row += str(empty)
                    empty = 0
                row += piece.to_fen()
            if empty:
                row += str(empty)
            rows.append(row)
        return "/".join(rows)

    def piece_at(self, sq: Square) -> Optional[Piece]:
        return self.squares.get(sq)

    @property
    def game_over(self) -> bool:
        return self.end_state is not None


class RulesEngine(Protocol):
    def legal_moves(self, board: Board, origin: Square, color: Color) -> Set[Square]: ...

    def apply_move(self, move: Move, origin: Square, color: Color, board: Board) -> None: ...

    def end_state(self, board: Board) -> Optional[EndState]: ...


class SandboxRules:
    def legal_moves(self, board: Board, origin: Square, color: Color) -> Set[Square]:
        piece = board.piece_at(origin)
        if board.game_over or piece is None or piece.color is not color:
            return set()
        out: Set[Square] = set()
        for x in range(BOARD_SIZE):
            for y in range(BOARD_SIZE):
                other = board.piece_at((x, y))
                if (x, y) != origin and (other is None or other.color is not color):
                    out.add((x, y))
        return out

    def apply_move(self, move: Move, origin: Square, color: Color, board: Board) -> None:
        if board.turn is not color:
            raise IllegalMoveError("not_your_turn")
        if not (on_board(origin) and on_board(move.dest)):
            raise IllegalMoveError("off_board")
        if move.dest not in self.legal_moves(board, origin, color):
            raise IllegalMoveError("illegal_destination")
        piece = board.squares.pop(origin)
        captured = board.squares.get(move.dest)
        if move.promotion is not None and piece.kind is PieceKind.PAWN:
            piece = Piece(move.promotion, color)
        board.squares[move.dest] = piece
        if captured is not None and captured.kind is PieceKind.KING:
            board.end_state = EndState.CHECKMATE
            board.winner = color
        board.turn = color.opposite

    def end_state(self, board: Board) -> Optional[EndState]:
        return board.end_state
