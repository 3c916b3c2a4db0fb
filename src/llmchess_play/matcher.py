"""
Move matcher: map a normalized notation token onto one enumerated MoveCandidate.

Strategies, first hit wins:
1. exact SAN            2. case-insensitive SAN      3. SAN without trailing +/#
4. piece + destination  5. over-disambiguated piece move (Ngf3 for Nf3)
6. castling (fixed king squares for the side to move)
7. bare pawn destination (only when exactly one pawn move reaches it)
8. capture by destination (split on 'x')

A promotion letter given as "=X" in the token is attached to the result whenever the
matched move is a promotion; otherwise promotions default to the queen.
When several distinct moves tie, the first in enumeration order is returned with
ambiguous=True so callers can report it.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .candidates import MoveCandidate
from .notation import castle_side
from .referee import promotion_letter

log = logging.getLogger("matcher")

PIECE_DEST_RE = re.compile(r"^([KQRBN])([a-h][1-8])$")
DISAMBIGUATED_RE = re.compile(r"^([KQRBN])([a-h1-8])([a-h][1-8])$")
SQUARE_RE = re.compile(r"^[a-h][1-8]$")
PROMOTION_RE = re.compile(r"=([A-Za-z])")


@dataclass(frozen=True)
class ResolvedMove:
    from_square: str
    to_square: str
    promotion: Optional[str] = None

    @property
    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    def to_dict(self) -> dict:
        d = {"from": self.from_square, "to": self.to_square}
        if self.promotion:
            d["promotion"] = self.promotion
        return d


@dataclass(frozen=True)
class MoveMatch:
    move: ResolvedMove
    strategy: str
    san: Optional[str] = None
    ambiguous: bool = False
    tied: int = 1


def promotion_from_token(token: str) -> Optional[str]:
    m = PROMOTION_RE.search(token or "")
    return promotion_letter(m.group(1)) if m else None


def _distinct(pool: list[MoveCandidate]) -> list[MoveCandidate]:
    """Collapse promotion variants: one candidate per (from, to), first seen wins (queen first)."""
    seen: set[tuple[str, str]] = set()
    out = []
    for c in pool:
        key = (c.from_square, c.to_square)
        if key not in seen:
            seen.add(key)
            out.append(c)
    return out


def _pick(pool: list[MoveCandidate], strategy: str, token: str) -> MoveMatch:
    distinct = _distinct(pool)
    chosen = distinct[0]
    promotion = None
    if chosen.promotion:
        promotion = promotion_from_token(token) or chosen.promotion
    move = ResolvedMove(chosen.from_square, chosen.to_square, promotion)
    log.debug("Token %r matched %s via %s", token, move.uci, strategy)
    return MoveMatch(move, strategy, chosen.san, ambiguous=len(distinct) > 1, tied=len(distinct))


def _piece_to(candidates: list[MoveCandidate], piece: str, dest: str) -> list[MoveCandidate]:
    return [c for c in candidates if c.san.startswith(piece) and dest in c.san and c.to_square == dest]


def match_move(token: str, candidates: list[MoveCandidate], turn: str) -> Optional[MoveMatch]:
    """Return the single matched candidate for token, or None when no strategy applies."""
    token = (token or "").strip()
    if not token or not candidates:
        return None

    pool = [c for c in candidates if c.san == token]
    if pool:
        return _pick(pool, "exact", token)

    lowered = token.lower()
    pool = [c for c in candidates if c.san.lower() == lowered]
    if pool:
        return _pick(pool, "case_insensitive", token)

    pool = [c for c in candidates if c.san.rstrip("+#") == token]
    if pool:
        return _pick(pool, "strip_symbols", token)

    m = PIECE_DEST_RE.match(token)
    if m:
        pool = _piece_to(candidates, m.group(1), m.group(2))
        if pool:
            return _pick(pool, "piece_destination", token)

    m = DISAMBIGUATED_RE.match(token)
    if m:
        piece, hint, dest = m.groups()
        pool = _piece_to(candidates, piece, dest)
        if hint.isalpha():
            narrowed = [c for c in pool if c.from_square.startswith(hint)]
        else:
            narrowed = [c for c in pool if c.from_square.endswith(hint)]
        if narrowed:
            return _pick(narrowed, "disambiguated", token)

    side = castle_side(token)
    if side:
        rank = "1" if turn == "w" else "8"
        king_from = f"e{rank}"
        king_to = f"{'g' if side == 'kingside' else 'c'}{rank}"
        pool = [c for c in candidates if c.from_square == king_from and c.to_square == king_to and c.piece == "k"]
        # A castling token never falls through to other strategies.
        return _pick(pool, "castling", token) if pool else None

    if SQUARE_RE.match(token):
        pool = _distinct([c for c in candidates if c.piece == "p" and c.to_square == token])
        if len(pool) == 1:
            return _pick(pool, "pawn_destination", token)

    if "x" in token:
        parts = token.split("x")
        if len(parts) == 2:
            dest = parts[1].rstrip("+#").split("=")[0]
            pool = [c for c in candidates if c.to_square == dest]
            if pool:
                return _pick(pool, "capture_destination", token)

    return None
