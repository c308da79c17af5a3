"""Tests for the pygame front end's pure helpers and argument handling."""

from itertools import product
from types import SimpleNamespace

import pytest

pytest.importorskip("pygame")

from chessnet.common.protocol import Color, PieceKind  # noqa: E402
from chessnet.game.board import Board, Piece  # noqa: E402
from chessnet.player import chess_client  # noqa: E402
from chessnet.player.chess_client import (  # noqa: E402
    TILE_SIZE,
    UnknownPieceError,
    draw_board,
    parse_args,
    piece_letter,
    pixel_to_square,
    promotion_for,
    square_to_pixel,
)


@pytest.mark.parametrize("viewer", [Color.WHITE, Color.BLACK])
def test_pixel_square_inverse(viewer) -> None:
    for sq in product(range(8), range(8)):
        left, top = square_to_pixel(sq, viewer)
        assert pixel_to_square(left + TILE_SIZE // 2, top + TILE_SIZE // 2, viewer) == sq


def test_own_pieces_at_the_bottom() -> None:
    bottom = TILE_SIZE * 7 + 1
    assert pixel_to_square(1, bottom, Color.WHITE) == (0, 0)
    assert pixel_to_square(1, bottom, Color.BLACK) == (7, 7)


def test_clicks_off_the_board() -> None:
    assert pixel_to_square(-1, 10, Color.WHITE) is None
    assert pixel_to_square(10, TILE_SIZE * 8 + 5, Color.WHITE) is None


def test_piece_letters() -> None:
    assert piece_letter(Piece(PieceKind.KNIGHT, Color.BLACK)) == "N"
    with pytest.raises(UnknownPieceError):
        piece_letter(Piece("dragon", Color.WHITE))


def test_auto_queen() -> None:
    assert promotion_for(Piece(PieceKind.PAWN, Color.WHITE), (0, 7)) is PieceKind.QUEEN
    assert promotion_for(Piece(PieceKind.PAWN, Color.BLACK), (0, 0)) is PieceKind.QUEEN
    assert promotion_for(Piece(PieceKind.PAWN, Color.WHITE), (0, 5)) is None
    assert promotion_for(Piece(PieceKind.ROOK, Color.WHITE), (0, 7)) is None
    assert promotion_for(None, (0, 7)) is None


def test_parse_args() -> None:
    args = parse_args(["client", "--host", "127.0.0.1", "--port", "9000"])
    assert (args.role, args.host, args.port) == ("client", "127.0.0.1", 9000)


@pytest.mark.parametrize(
    "argv",
    [[], ["observer"], ["server", "--port", "abc"], ["server", "--port", "70000"], ["client", "--fen", "8/8/8/8/8/8/8/8"]],
)
def test_bad_arguments_exit(argv) -> None:
    with pytest.raises(SystemExit) as e:
        parse_args(argv)
    assert e.value.code == 2


def test_main_reports_refused_connection(monkeypatch, capsys) -> None:
    monkeypatch.setattr(chess_client.Session, "establish", classmethod(_refuse))
    assert chess_client.main(["client", "--port", "9000"]) == 1
    assert "[Chess] could not start" in capsys.readouterr().out


def test_main_rejects_bad_fen(capsys) -> None:
    assert chess_client.main(["server", "--port", "9000", "--fen", "banana"]) == 2
    assert "bad starting position" in capsys.readouterr().out


def _refuse(cls, *args, **kwargs):
    raise ConnectionRefusedError("refused")


def _dragon_session() -> SimpleNamespace:
    board = Board(squares={(0, 0): Piece("dragon", Color.WHITE)})
    return SimpleNamespace(peer_name="bob", local_color=Color.WHITE, board=board, on_tick=lambda: None)


def test_draw_board_refuses_unknown_piece() -> None:
    import pygame

    screen = pygame.Surface((TILE_SIZE * 8, TILE_SIZE * 8))
    font = SimpleNamespace(render=lambda *a: pygame.Surface((10, 10)))
    with pytest.raises(UnknownPieceError):
        draw_board(screen, font, _dragon_session(), None, set())


def test_window_exits_cleanly_on_unknown_piece(monkeypatch, capsys) -> None:
    import pygame

    monkeypatch.setenv("SDL_VIDEODRIVER", "dummy")
    quits = []
    real_quit = pygame.quit
    monkeypatch.setattr(pygame, "quit", lambda: (quits.append(True), real_quit()))
    assert chess_client.run_window(_dragon_session()) == 1
    assert quits == [True]
    assert "[Chess] cannot draw board" in capsys.readouterr().out


def test_main_rejects_bad_configured_port(monkeypatch, capsys) -> None:
    monkeypatch.setenv("CHESSNET_PORT", "nine")
    monkeypatch.setattr(chess_client.Session, "establish", classmethod(_refuse))
    assert chess_client.main(["client"]) == 2
    assert "[Chess] bad configuration: bad:CHESSNET_PORT" in capsys.readouterr().out
