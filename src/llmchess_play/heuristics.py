"""
Fallback heuristics for notation the matcher could not place.

These run directly against the referee's board (python-chess legal moves) instead of
the enumerated SAN candidates, and accept looser shapes LLMs tend to produce:
coordinate moves (e2e4, Ng1-f3), castling spelled o-o / OO, promotions without '='
(e8Q, e8(Q), e7e8q), piece letter + square with stray marks (Nf3+, nxe5), bare pawn
squares and pawn-capture shorthand (ed5, exd6 e.p.).
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Optional

import chess

from .matcher import MoveMatch, ResolvedMove, promotion_from_token
from .referee import PROMOTION_PIECES, promotion_letter

log = logging.getLogger("heuristics")

COORD_RE = re.compile(r"^([KQRBNkqrbn])?([a-h][1-8])[-x:]?([a-h][1-8])=?([QRBNqrbn])?[+#]?$")
CASTLE_LOOSE_RE = re.compile(r"^[O0o]-?[O0o](-?[O0o])?[+#]?$")
PROMOTION_SUFFIX_RE = re.compile(r"^(?:([a-h])[x:]?)?([a-h][18])\s*[=/(]?\s*([QRBNqrbn])\)?[+#]?$")
PIECE_RE = re.compile(r"^([KQRBNkqrn])([a-h])?([1-8])?[x:-]?([a-h][1-8])[+#]?$")
PAWN_DEST_RE = re.compile(r"^([a-h][1-8])[+#]?$")
PAWN_CAPTURE_RE = re.compile(r"^([a-h])[x:]?([a-h][1-8])(?:e\.?p\.?)?[+#]?$")

Heuristic = Callable[[str, chess.Board], list[chess.Move]]


def _coordinate(token: str, board: chess.Board) -> list[chess.Move]:
    m = COORD_RE.match(token)
    if not m:
        return []
    piece, src, dst, promo = m.groups()
    from_sq, to_sq = chess.parse_square(src), chess.parse_square(dst)
    moves = [mv for mv in board.legal_moves if mv.from_square == from_sq and mv.to_square == to_sq]
    if piece and moves and board.piece_type_at(from_sq) != chess.Piece.from_symbol(piece.upper()).piece_type:
        return []
    if promo:
        moves = [mv for mv in moves if mv.promotion == PROMOTION_PIECES[promo.lower()]]
    return moves


def _castling(token: str, board: chess.Board) -> list[chess.Move]:
    m = CASTLE_LOOSE_RE.match(token)
    if not m:
        return []
    queenside = m.group(1) is not None
    if queenside:
        return [mv for mv in board.legal_moves if board.is_queenside_castling(mv)]
    return [mv for mv in board.legal_moves if board.is_kingside_castling(mv)]


def _promotion_suffix(token: str, board: chess.Board) -> list[chess.Move]:
    m = PROMOTION_SUFFIX_RE.match(token)
    if not m:
        return []
    src_file, dst, promo = m.groups()
    to_sq = chess.parse_square(dst)
    piece = PROMOTION_PIECES[promo.lower()]
    return [
        mv for mv in board.legal_moves
        if mv.to_square == to_sq and mv.promotion == piece
        and (src_file is None or chess.square_file(mv.from_square) == ord(src_file) - ord("a"))
    ]


def _piece_type(token: str, board: chess.Board) -> list[chess.Move]:
    m = PIECE_RE.match(token)
    if not m:
        return []
    letter, file_hint, rank_hint, dst = m.groups()
    piece_type = chess.Piece.from_symbol(letter.upper()).piece_type
    to_sq = chess.parse_square(dst)
    moves = [mv for mv in board.legal_moves if mv.to_square == to_sq and board.piece_type_at(mv.from_square) == piece_type]
    narrowed = [
        mv for mv in moves
        if (file_hint is None or chess.square_file(mv.from_square) == ord(file_hint) - ord("a"))
        and (rank_hint is None or chess.square_rank(mv.from_square) == int(rank_hint) - 1)
    ]
    return narrowed


def _pawn_destination(token: str, board: chess.Board) -> list[chess.Move]:
    m = PAWN_DEST_RE.match(token)
    if not m:
        return []
    to_sq = chess.parse_square(m.group(1))
    return [
        mv for mv in board.legal_moves
        if mv.to_square == to_sq and board.piece_type_at(mv.from_square) == chess.PAWN
        and mv.promotion in (None, chess.QUEEN)
    ]


def _pawn_capture(token: str, board: chess.Board) -> list[chess.Move]:
    m = PAWN_CAPTURE_RE.match(token)
    if not m:
        return []
    src_file = ord(m.group(1)) - ord("a")
    to_sq = chess.parse_square(m.group(2))
    if chess.square_file(to_sq) == src_file:
        return []
    return [
        mv for mv in board.legal_moves
        if mv.to_square == to_sq and board.piece_type_at(mv.from_square) == chess.PAWN
        and chess.square_file(mv.from_square) == src_file and mv.promotion in (None, chess.QUEEN)
    ]


HEURISTICS: list[tuple[str, Heuristic]] = [
    ("coordinate", _coordinate),
    ("castling_loose", _castling),
    ("promotion_suffix", _promotion_suffix),
    ("piece_type", _piece_type),
    ("pawn_destination_any", _pawn_destination),
    ("pawn_capture", _pawn_capture),
]


def apply_heuristics(token: str, board: chess.Board) -> Optional[MoveMatch]:
    """Run the fallback bundle in order; return the first hit as a MoveMatch or None."""
    token = (token or "").strip()
    if not token:
        return None
    for name, fn in HEURISTICS:
        moves = fn(token, board)
        if not moves:
            continue
        distinct: list[chess.Move] = []
        for mv in moves:
            if all((mv.from_square, mv.to_square) != (d.from_square, d.to_square) for d in distinct):
                distinct.append(mv)
        chosen = distinct[0]
        promotion = None
        if chosen.promotion:
            promotion = promotion_from_token(token) or chess.piece_symbol(chosen.promotion)
            promotion = promotion_letter(promotion)
        move = ResolvedMove(chess.square_name(chosen.from_square), chess.square_name(chosen.to_square), promotion)
        log.debug("Fallback %s resolved %r to %s", name, token, move.uci)
        return MoveMatch(move, name, board.san(chosen), ambiguous=len(distinct) > 1, tied=len(distinct))
    return None
