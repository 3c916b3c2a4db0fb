"""
GameSession: one human-vs-LLM game.

- Owns the referee (position + SAN history) and an immutable SessionStatus that is
  replaced, never mutated, on every transition; snapshot() hands out frozen views.
- Human moves, AI move requests and undo are serialized by a non-blocking busy lock:
  while the AI is thinking, any other move-initiating call raises SessionBusy.
- A failed AI move leaves the board untouched and hands the turn back to the human.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Iterator, Optional

from .config import SETTINGS
from .llm_client import CollaboratorUnavailable, LLMClient, PositionAnalysis
from .referee import GameState, MoveResult, Referee
from .resolver import MoveResolver, Resolution

log = logging.getLogger("session")


class SessionBusy(RuntimeError):
    """A move request arrived while another one is still in flight."""


@dataclass(frozen=True)
class SessionStatus:
    player_color: str = "w"
    difficulty: str = "intermediate"
    is_player_turn: bool = True
    is_loading: bool = False
    error: Optional[str] = None
    last_ai_move: Optional[dict] = None


@dataclass(frozen=True)
class SessionSnapshot:
    game_id: str
    status: SessionStatus
    state: GameState

    def to_dict(self) -> dict:
        return {
            "game_id": self.game_id,
            "player_color": self.status.player_color,
            "difficulty": self.status.difficulty,
            "is_player_turn": self.status.is_player_turn,
            "is_loading": self.status.is_loading,
            "error": self.status.error,
            "last_ai_move": self.status.last_ai_move,
            "game_state": self.state.to_dict(),
        }


class GameSession:
    def __init__(self, player_color: str = "w", difficulty: str | None = None, llm=None,
                 resolver: MoveResolver | None = None, starting_fen: str | None = None,
                 game_id: str | None = None):
        self.id = game_id or f"game_{int(time.time())}_{uuid.uuid4().hex[:6]}"
        self.llm = llm if llm is not None else LLMClient()
        self.resolver = resolver or MoveResolver()
        self.referee = Referee(starting_fen)
        self.status = SessionStatus(
            player_color=player_color,
            difficulty=difficulty or SETTINGS.default_difficulty,
            is_player_turn=self.referee.turn == player_color,
        )
        self.last_resolution: Optional[Resolution] = None
        self._busy = threading.Lock()
        self.created_at = time.time()
        self.updated_at = self.created_at
        self._set_headers()

    # ---------------- Status transitions -----------------
    def _set(self, **changes) -> SessionStatus:
        self.status = replace(self.status, **changes)
        self.updated_at = time.time()
        return self.status

    def _set_headers(self) -> None:
        ai = getattr(self.llm, "move_model", "LLM")
        if self.status.player_color == "w":
            self.referee.set_headers(white="Human", black=ai)
        else:
            self.referee.set_headers(white=ai, black="Human")

    @contextmanager
    def _thinking(self) -> Iterator[None]:
        if not self._busy.acquire(blocking=False):
            raise SessionBusy("A move is already being processed for this game")
        self._set(is_loading=True, error=None)
        try:
            yield
        finally:
            self._set(is_loading=False)
            self._busy.release()

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(self.id, self.status, self.referee.current_state())

    # ---------------- Rules oracle passthrough -----------------
    def current_position(self) -> str:
        return self.referee.fen()

    def legal_moves_by_origin(self) -> dict[str, list[str]]:
        return self.referee.legal_moves_by_origin()

    def apply_move(self, from_square: str, to_square: str, promotion: str | None = None) -> MoveResult:
        return self.referee.apply_move(from_square, to_square, promotion)

    def undo(self) -> MoveResult:
        return self.referee.undo()

    def player_to_move(self) -> bool:
        return self.referee.turn == self.status.player_color

    def ai_to_move(self) -> bool:
        return not self.player_to_move() and not self.referee.current_state().is_game_over

    # ---------------- Game actions -----------------
    def new_game(self, player_color: str | None = None, difficulty: str | None = None) -> SessionSnapshot:
        with self._thinking():
            color = player_color or self.status.player_color
            self.referee.reset()
            self.last_resolution = None
            self._set(
                player_color=color,
                difficulty=difficulty or self.status.difficulty,
                is_player_turn=color == "w",
                last_ai_move=None,
            )
            self._set_headers()
        return self.snapshot()

    def reset(self) -> SessionSnapshot:
        return self.new_game(self.status.player_color, self.status.difficulty)

    def set_difficulty(self, level: str) -> None:
        self._set(difficulty=level)

    def set_player_color(self, color: str) -> None:
        self._set(player_color=color)

    def make_move(self, from_square: str, to_square: str, promotion: str | None = None,
                  reply: bool = True) -> MoveResult:
        """Apply the human's move; unless the game ended, let the AI answer (reply=True)."""
        with self._thinking():
            if self.referee.current_state().is_game_over:
                self._set(error="Game is over")
                return MoveResult(False, error="Game is over")
            if not self.status.is_player_turn or not self.player_to_move():
                self._set(error="Not your turn")
                return MoveResult(False, error="Not your turn")
            result = self.referee.apply_move(from_square, to_square, promotion)
            if not result.success:
                self._set(error=result.error or "Invalid move")
                return result
            log.info("Game %s: human played %s", self.id, result.san)
            self._set(is_player_turn=False)
            if reply and not result.state.is_game_over:
                # The AI reply runs under the same lock as the human move.
                self._request_ai_move_locked()
        return result

    def request_ai_move(self) -> Resolution:
        """Ask the LLM for a move and resolve it onto the board; the human always gets the turn back."""
        with self._thinking():
            return self._request_ai_move_locked()

    def _request_ai_move_locked(self) -> Resolution:
        state = self.referee.current_state()
        if state.is_game_over:
            resolution = Resolution(ok=False, reason="game_over", error="Game is over")
        elif self.player_to_move():
            resolution = Resolution(ok=False, reason="not_ai_turn", error="It is the player's turn")
        else:
            resolution = self._resolve_ai_move(state)
        self.last_resolution = resolution
        if resolution.ok:
            log.info("Game %s: AI played %s (%s via %s)", self.id, resolution.san, resolution.notation, resolution.strategy)
            self._set(is_player_turn=True, error=None, last_ai_move=resolution.to_dict())
        else:
            log.info("Game %s: AI move failed: %s", self.id, resolution.error)
            self._set(is_player_turn=True, error=f"AI move error: {resolution.error}", last_ai_move=resolution.to_dict())
        return resolution

    def _resolve_ai_move(self, state: GameState) -> Resolution:
        difficulty = self.status.difficulty
        try:
            suggestion = self.llm.suggest_move(state, difficulty, False)
        except CollaboratorUnavailable as exc:
            log.exception("Move suggestion failed for game %s", self.id)
            return Resolution(ok=False, reason="collaborator_unavailable", error=str(exc))
        log.debug("Game %s: LLM suggested %r", self.id, suggestion.move)
        return self.resolver.resolve(suggestion.move, self.referee, self.llm, difficulty)

    def undo_move(self) -> MoveResult:
        """Undo the AI's reply and the human's move. A failing second undo keeps the first one."""
        with self._thinking():
            first = self.referee.undo()
            if not first.success:
                self._set(error=first.error)
                return first
            second = self.referee.undo()
            self._set(is_player_turn=self.player_to_move(), last_ai_move=None,
                      error=None if second.success else second.error)
            if not second.success:
                return MoveResult(False, state=first.state, error=second.error)
            return second

    def analyze(self, query: str | None = None) -> PositionAnalysis:
        return self.llm.analyze_position(self.referee.current_state(), query)
