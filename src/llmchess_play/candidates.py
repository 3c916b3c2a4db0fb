"""
Candidate move enumeration.

For the current position, every legal (from, to[, promotion]) move is applied on the
referee, the SAN the referee assigned is read back, and the move is undone again.
The resulting MoveCandidate list is the ground truth the matcher compares notation
tokens against, so SAN rules are never re-derived here.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from .referee import PROMOTION_PIECES, Referee

log = logging.getLogger("candidates")


class OracleInvariantViolation(RuntimeError):
    """The referee rejected a move it listed as legal, or enumeration did not restore the position."""


@dataclass(frozen=True)
class MoveCandidate:
    from_square: str
    to_square: str
    san: str
    piece: str  # moving piece letter: p, n, b, r, q, k
    promotion: Optional[str] = None

    @property
    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"


@contextmanager
def speculative_move(referee: Referee, from_square: str, to_square: str, promotion: str | None = None) -> Iterator[str]:
    """Apply a legal move for the duration of the block and yield its SAN; always undone on exit."""
    res = referee.apply_move(from_square, to_square, promotion, snapshot=False)
    if not res.success:
        raise OracleInvariantViolation(
            f"Referee rejected listed legal move {from_square}-{to_square}{promotion or ''}: {res.error}"
        )
    try:
        yield res.san or ""
    finally:
        undone = referee.undo(snapshot=False)
        if not undone.success:
            raise OracleInvariantViolation(f"Failed to undo speculative move {from_square}-{to_square}: {undone.error}")


def enumerate_candidates(referee: Referee) -> list[MoveCandidate]:
    """Return every legal move of the side to move paired with its SAN, in legal-move-map order."""
    fen_before = referee.fen()
    candidates: list[MoveCandidate] = []
    for from_square, targets in referee.legal_moves_by_origin().items():
        piece = referee.piece_at(from_square)
        letter = piece[0] if piece else "?"
        for to_square in targets:
            promotions = list(PROMOTION_PIECES) if referee.is_promotion(from_square, to_square) else [None]
            for promo in promotions:
                with speculative_move(referee, from_square, to_square, promo) as san:
                    candidates.append(MoveCandidate(from_square, to_square, san, letter, promo))
    if referee.fen() != fen_before:
        raise OracleInvariantViolation(f"Enumeration left the board at {referee.fen()} (expected {fen_before})")
    log.debug("Enumerated %d candidates for %s", len(candidates), fen_before)
    return candidates
