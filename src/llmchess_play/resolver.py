"""
Move resolution: turn an LLM move reply into a move applied on the referee.

Flow per request (one ResolutionAttempt):
  normalize → match against enumerated candidates → fallback heuristics on the board
  → on failure, ask the LLM for one fresh suggestion (bounded by max_regenerations)
  → apply the resolved move through the referee.

Failures come back as Resolution(ok=False, reason=...); the referee is only touched by
the final apply (enumeration always restores the position).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .candidates import MoveCandidate, enumerate_candidates
from .config import SETTINGS
from .heuristics import apply_heuristics
from .llm_client import CollaboratorUnavailable
from .matcher import MoveMatch, ResolvedMove, match_move
from .notation import normalize_notation
from .referee import GameState, Referee

log = logging.getLogger("resolver")


@dataclass
class ResolutionAttempt:
    original: str
    cleaned: str
    attempts: int = 0
    exhausted: list[str] = field(default_factory=list)


@dataclass
class Resolution:
    ok: bool
    notation: str = ""
    move: Optional[ResolvedMove] = None
    san: Optional[str] = None
    strategy: Optional[str] = None
    ambiguous: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    tried: list[str] = field(default_factory=list)
    explanation: Optional[str] = None
    state: Optional[GameState] = None

    def to_dict(self) -> dict:
        d = {
            "ok": self.ok,
            "notation": self.notation,
            "move": self.move.to_dict() if self.move else None,
            "san": self.san,
            "strategy": self.strategy,
            "ambiguous": self.ambiguous,
            "attempts": self.attempts,
            "tried": list(self.tried),
        }
        if self.reason:
            d["reason"] = self.reason
            d["error"] = self.error
        if self.explanation:
            d["explanation"] = self.explanation
        return d


def find_move(token: str, referee: Referee, candidates: list[MoveCandidate] | None = None) -> Optional[MoveMatch]:
    """Matcher first, then the fallback bundle. Never mutates the referee's position."""
    if candidates is None:
        candidates = enumerate_candidates(referee)
    return match_move(token, candidates, referee.turn) or apply_heuristics(token, referee.board)


class MoveResolver:
    def __init__(self, max_regenerations: int | None = None):
        self.max_regenerations = SETTINGS.max_regenerations if max_regenerations is None else max_regenerations

    def resolve(self, raw: str, referee: Referee, llm=None, difficulty: str = "intermediate") -> Resolution:
        """Resolve and apply raw (an LLM move reply). llm, if given, is asked for regenerations."""
        attempt = ResolutionAttempt(original=raw, cleaned=normalize_notation(raw))
        explanation = None
        while True:
            match = find_move(attempt.cleaned, referee)
            if match is not None:
                return self._apply(match, attempt, referee, explanation)
            attempt.exhausted.append(attempt.cleaned)
            log.debug("No match for %r (raw=%r)", attempt.cleaned, attempt.original)

            if llm is None or attempt.attempts >= self.max_regenerations:
                log.info("Giving up on %r after %d regeneration(s)", attempt.cleaned, attempt.attempts)
                return Resolution(
                    ok=False,
                    notation=attempt.cleaned,
                    reason="malformed_notation",
                    error=f'Could not parse move "{attempt.cleaned}"',
                    attempts=attempt.attempts,
                    tried=list(attempt.exhausted),
                    explanation=explanation,
                )

            log.info("Could not parse %r; requesting a new suggestion (%d/%d)",
                     attempt.cleaned, attempt.attempts + 1, self.max_regenerations)
            try:
                suggestion = llm.suggest_move(referee.current_state(), difficulty, want_explanation=True)
            except CollaboratorUnavailable as exc:
                return Resolution(
                    ok=False,
                    notation=attempt.cleaned,
                    reason="collaborator_unavailable",
                    error=str(exc),
                    attempts=attempt.attempts,
                    tried=list(attempt.exhausted),
                )
            explanation = suggestion.explanation
            if explanation:
                log.debug("Regenerated suggestion explanation: %s", explanation)
            attempt.attempts += 1
            attempt.original = suggestion.move
            attempt.cleaned = normalize_notation(suggestion.move)

    def _apply(self, match: MoveMatch, attempt: ResolutionAttempt, referee: Referee,
               explanation: str | None) -> Resolution:
        mv = match.move
        if match.ambiguous:
            log.warning("Ambiguous notation %r: %d moves tie, chose %s via %s",
                        attempt.cleaned, match.tied, mv.uci, match.strategy)
        res = referee.apply_move(mv.from_square, mv.to_square, mv.promotion)
        if not res.success:
            log.error("Referee rejected resolved move %s for %r: %s", mv.uci, attempt.cleaned, res.error)
            return Resolution(
                ok=False,
                notation=attempt.cleaned,
                move=mv,
                strategy=match.strategy,
                ambiguous=match.ambiguous,
                reason="illegal_move",
                error=f"Invalid move: {mv.from_square}-{mv.to_square} ({attempt.cleaned})",
                attempts=attempt.attempts,
                tried=list(attempt.exhausted),
            )
        return Resolution(
            ok=True,
            notation=attempt.cleaned,
            move=mv,
            san=res.san,
            strategy=match.strategy,
            ambiguous=match.ambiguous,
            attempts=attempt.attempts,
            tried=list(attempt.exhausted) + [attempt.cleaned],
            explanation=explanation,
            state=res.state,
        )


def parse_move(fen: str, move_text: str) -> dict:
    """Move-parsing service: {from, to, promotion?} or {error, availableMoves}."""
    referee = Referee()
    loaded = referee.load_fen(fen)
    if not loaded.success:
        return {"error": loaded.error, "availableMoves": []}
    token = normalize_notation(move_text)
    candidates = enumerate_candidates(referee)
    match = find_move(token, referee, candidates)
    if match is None:
        return {"error": f"Could not parse move: {token}", "availableMoves": [c.san for c in candidates]}
    if match.ambiguous:
        log.warning("Ambiguous notation %r: %d moves tie, chose %s via %s", token, match.tied, match.move.uci, match.strategy)
    d = match.move.to_dict()
    d["san"] = match.san
    d["ambiguous"] = match.ambiguous
    return d
