#!/usr/bin/env python3
"""
Two-player network chess, pygame front end.

One peer runs as server (waits for exactly one opponent), the other as client:

  chessnet server --port 9000 --name alice
  chessnet client --host 127.0.0.1 --port 9000 --name bob

Controls:
- click one of your pieces, then a highlighted square, to propose a move
- R resigns (on your turn), D offers a draw with your next move, ESC quits

Requires: pygame installed.
"""

from __future__ import annotations

import argparse
import sys
from typing import Dict, List, Optional, Tuple

import pygame

from chessnet.common.config import ConfigError, peer_settings
from chessnet.common.protocol import BOARD_SIZE, Color, PieceKind, Role, Square, on_board
from chessnet.game.board import Board, InvalidFENError, Piece
from chessnet.peer.connection import ColorAlreadyAssigned, ReadError, WriteError
from chessnet.peer.exchange import AckTimeout, DesyncError
from chessnet.peer.handshake import HandshakeError
from chessnet.peer.session import Session


TILE_SIZE = 75
GRID_X = 0
GRID_Y = 0
PANEL_H = 60
LIGHT = (238, 238, 210)
DARK = (118, 150, 86)
HILITE = (246, 246, 105)
TARGET = (186, 202, 68)

FATAL_ERRORS = (OSError, ReadError, WriteError, HandshakeError, DesyncError, AckTimeout, ColorAlreadyAssigned)

PIECE_LETTERS: Dict[PieceKind, str] = {
    PieceKind.PAWN: "P",
    PieceKind.KNIGHT: "N",
    PieceKind.BISHOP: "B",
    PieceKind.ROOK: "R",
    PieceKind.QUEEN: "Q",
    PieceKind.KING: "K",
}


class UnknownPieceError(Exception):
    pass


def port_number(s: str) -> int:
    try:
        p = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"bad port: {s!r}")
    if not 0 < p < 65536:
        raise argparse.ArgumentTypeError(f"port out of range: {p}")
    return p


def parse_args(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(prog="chessnet")
    ap.add_argument("role", choices=[r.value for r in Role])
    ap.add_argument("--host", help="server: bind address, client: address to dial")
    ap.add_argument("--port", type=port_number)
    ap.add_argument("--name")
    ap.add_argument("--fen", help="starting position (server only)")
    ap.add_argument("--play-black", action="store_true", help="client: ask for black")
    ap.add_argument("--trace", action="store_true", help="print every packet")
    args = ap.parse_args(argv)
    if args.fen and args.role != Role.SERVER.value:
        ap.error("--fen is only valid for the server")
    return args


# ---------------------------
# board geometry
# ---------------------------
def square_to_pixel(sq: Square, viewer: Color) -> Tuple[int, int]:
    """Top-left corner of a square; the viewer's pieces sit at the bottom."""
    x, y = sq
    col = x if viewer is Color.WHITE else BOARD_SIZE - 1 - x
    row = BOARD_SIZE - 1 - y if viewer is Color.WHITE else y
    return GRID_X + col * TILE_SIZE, GRID_Y + row * TILE_SIZE


def pixel_to_square(px: int, py: int, viewer: Color) -> Optional[Square]:
    col = (px - GRID_X) // TILE_SIZE
    row = (py - GRID_Y) // TILE_SIZE
    if px < GRID_X or py < GRID_Y:
        return None
    if viewer is Color.WHITE:
        sq = (col, BOARD_SIZE - 1 - row)
    else:
        sq = (BOARD_SIZE - 1 - col, row)
    return sq if on_board(sq) else None


def piece_letter(piece: Piece) -> str:
    letter = PIECE_LETTERS.get(piece.kind)
    if letter is None:
        raise UnknownPieceError(f"no glyph for {piece.kind!r}")
    return letter


def promotion_for(piece: Optional[Piece], dest: Square) -> Optional[PieceKind]:
    if piece is None or piece.kind is not PieceKind.PAWN:
        return None
    last_rank = BOARD_SIZE - 1 if piece.color is Color.WHITE else 0
    return PieceKind.QUEEN if dest[1] == last_rank else None


def status_line(session: Session) -> str:
    if session.game_over:
        end = session.end_state.value if session.end_state else "over"
        if session.winner is None:
            return f"Game over: {end}"
        who = "you win" if session.winner is session.local_color else "you lose"
        return f"Game over: {end}, {who}"
    if session.awaiting_ack:
        return "Waiting for opponent to confirm..."
    msg = "Your move" if session.is_local_turn else "Opponent's move"
    if session.draw_offered:
        msg += "  (draw offered)"
    if session.last_rejected is not None:
        msg += "  (last move rejected)"
    return msg


def draw_board(screen, font, session: Session, selected: Optional[Square], targets: set) -> None:
    """Raises UnknownPieceError for a piece kind with no glyph."""
    for x in range(BOARD_SIZE):
        for y in range(BOARD_SIZE):
            left, top = square_to_pixel((x, y), session.local_color)
            col = LIGHT if (x + y) % 2 else DARK
            if (x, y) == selected:
                col = HILITE
            elif (x, y) in targets:
                col = TARGET
            pygame.draw.rect(screen, col, pygame.Rect(left, top, TILE_SIZE, TILE_SIZE))
            piece = session.board.piece_at((x, y))
            if piece is None:
                continue
            ink = (250, 250, 250) if piece.color is Color.WHITE else (15, 15, 15)
            label = font.render(piece_letter(piece), True, ink)
            screen.blit(
                label,
                (left + TILE_SIZE // 2 - label.get_width() // 2, top + TILE_SIZE // 2 - label.get_height() // 2),
            )


# ---------------------------
# frame loop
# ---------------------------
def run_window(session: Session) -> int:
    pygame.init()
    size = TILE_SIZE * BOARD_SIZE + GRID_X * 2
    screen = pygame.display.set_mode((size, size + GRID_Y * 2 + PANEL_H))
    peer = session.peer_name or "opponent"
    pygame.display.set_caption(f"Chess: {session.local_color.value} vs {peer}")
    font = pygame.font.SysFont(None, 56)
    font_small = pygame.font.SysFont(None, 26)

    clock = pygame.time.Clock()
    selected: Optional[Square] = None
    targets: set = set()
    running = True
    code = 0

    while running:
        clock.tick(60)
        for ev in pygame.event.get():
            if ev.type == pygame.QUIT:
                running = False
            elif ev.type == pygame.KEYDOWN and ev.key == pygame.K_ESCAPE:
                running = False
            elif ev.type == pygame.KEYDOWN and ev.key == pygame.K_r:
                session.on_forfeit()
            elif ev.type == pygame.KEYDOWN and ev.key == pygame.K_d:
                session.on_offer_draw()
            elif ev.type == pygame.MOUSEBUTTONDOWN and ev.button == 1:
                sq = pixel_to_square(ev.pos[0], ev.pos[1], session.local_color)
                if sq is None:
                    continue
                if selected is not None and sq in targets:
                    promo = promotion_for(session.board.piece_at(selected), sq)
                    session.on_local_move_selected(selected, sq, promo)
                    selected, targets = None, set()
                    continue
                piece = session.board.piece_at(sq)
                if piece is not None and piece.color is session.local_color and session.is_local_turn:
                    selected, targets = sq, session.legal_destinations(sq)
                else:
                    selected, targets = None, set()

        try:
            session.on_tick()
        except FATAL_ERRORS as e:
            print(f"[Chess] connection lost: {e}")
            code = 1
            running = False

        try:
            draw_board(screen, font, session, selected, targets)
        except UnknownPieceError as e:
            print(f"[Chess] cannot draw board: {e}")
            code = 1
            break

        panel = pygame.Rect(0, size + GRID_Y * 2, size, PANEL_H)
        pygame.draw.rect(screen, (18, 18, 24), panel)
        text = font_small.render(status_line(session), True, (230, 230, 235))
        screen.blit(text, (12, panel.top + PANEL_H // 2 - text.get_height() // 2))
        pygame.display.flip()

    pygame.quit()
    return code


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = peer_settings()
    except ConfigError as e:
        print(f"[Chess] bad configuration: {e}")
        return 2
    role = Role(args.role)
    default_host = "0.0.0.0" if role is Role.SERVER else "127.0.0.1"
    host = args.host or settings.host or default_host
    port = args.port or settings.port
    name = args.name or settings.name

    if args.fen:
        try:
            Board.from_fen(args.fen)
        except InvalidFENError as e:
            print(f"[Chess] bad starting position: {e}")
            return 2

    if role is Role.SERVER:
        print(f"[Chess] listen on {host}:{port}, waiting for one opponent")
    else:
        print(f"[Chess] connecting to {host}:{port}")
    try:
        session = Session.establish(
            role,
            host=host,
            port=port,
            name=name,
            fen=args.fen,
            prefer_white=not args.play_black,
            poll_interval=settings.poll_interval,
            trace=args.trace or settings.trace,
            handshake_timeout=settings.handshake_timeout,
            ack_timeout=settings.ack_timeout,
        )
    except InvalidFENError as e:
        print(f"[Chess] peer sent a bad starting position: {e}")
        return 1
    except FATAL_ERRORS as e:
        print(f"[Chess] could not start: {e}")
        return 1

    print(f"[Chess] playing {session.local_color.value} against {session.peer_name or 'opponent'}")
    try:
        return run_window(session)
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
