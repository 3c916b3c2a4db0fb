"""
Referee: the rules oracle behind a game session.

- Owns a python-chess Board and applies moves given as (from, to, promotion?) squares.
- Every call returns plain results (MoveResult) carrying an immutable GameState snapshot:
  FEN, PGN, side to move, check/mate/draw flags, SAN history and the legal-move map.
- Supports undo, FEN/PGN loading, reset, headers and PGN export.

Used by the candidate enumerator (speculative apply/undo), the resolver and GameSession.
"""
from __future__ import annotations

import datetime
import io
from dataclasses import dataclass, field
from typing import Optional

import chess
import chess.pgn

PROMOTION_PIECES = {"q": chess.QUEEN, "r": chess.ROOK, "b": chess.BISHOP, "n": chess.KNIGHT}
PIECE_NAMES = {"queen": "q", "rook": "r", "bishop": "b", "knight": "n"}


def _color_code(color: chess.Color) -> str:
    return "w" if color == chess.WHITE else "b"


def promotion_letter(value: str | None) -> str | None:
    """Map 'Q', 'q', 'queen' (etc.) to the lowercase piece letter, or None if not a promotion piece."""
    if not value:
        return None
    text = str(value).strip().lower()
    text = PIECE_NAMES.get(text, text)
    return text if text in PROMOTION_PIECES else None


@dataclass(frozen=True)
class HistoryEntry:
    from_square: str
    to_square: str
    san: str
    piece: str
    color: str
    promotion: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"from": self.from_square, "to": self.to_square, "san": self.san, "piece": self.piece, "color": self.color}
        if self.promotion:
            d["promotion"] = self.promotion
        return d


@dataclass(frozen=True)
class GameState:
    """Snapshot of the board as reported by the referee."""

    fen: str
    pgn: str
    turn: str
    is_check: bool
    is_checkmate: bool
    is_draw: bool
    is_game_over: bool
    history: tuple[HistoryEntry, ...]
    valid_moves: dict[str, list[str]] = field(hash=False)
    board: tuple[tuple[Optional[tuple[str, str]], ...], ...] = ()

    def to_dict(self) -> dict:
        return {
            "fen": self.fen,
            "pgn": self.pgn,
            "turn": self.turn,
            "isCheck": self.is_check,
            "isCheckmate": self.is_checkmate,
            "isDraw": self.is_draw,
            "isGameOver": self.is_game_over,
            "history": [h.to_dict() for h in self.history],
            "validMoves": {k: list(v) for k, v in self.valid_moves.items()},
            "board": [[{"type": p[0], "color": p[1]} if p else None for p in row] for row in self.board],
        }


@dataclass
class MoveResult:
    success: bool
    state: Optional[GameState] = None
    error: Optional[str] = None
    san: Optional[str] = None

    def to_dict(self) -> dict:
        d: dict = {"success": self.success}
        if self.state is not None:
            d["state"] = self.state.to_dict()
        if self.error:
            d["error"] = self.error
        if self.san:
            d["san"] = self.san
        return d


class Referee:
    """Rules oracle around a python-chess Board."""

    def __init__(self, starting_fen: str | None = None):
        self.board = chess.Board(fen=starting_fen) if starting_fen else chess.Board()
        self._history: list[HistoryEntry] = []
        self._headers: dict[str, str] = {}

    # ---------------- Headers -----------------
    def set_headers(self, event: str = "LLM Chess", site: str = "?", date: Optional[str] = None,
                    white: str = "?", black: str = "?") -> None:
        date = date or datetime.date.today().strftime("%Y.%m.%d")
        self._headers.update({"Event": event, "Site": site, "Date": date, "White": white, "Black": black})

    # ---------------- Queries -----------------
    @property
    def turn(self) -> str:
        return _color_code(self.board.turn)

    def fen(self) -> str:
        return self.board.fen()

    def piece_at(self, square: str) -> Optional[tuple[str, str]]:
        """Return (piece letter, color code) at a square name, or None."""
        piece = self.board.piece_at(chess.parse_square(square))
        if piece is None:
            return None
        return piece.symbol().lower(), _color_code(piece.color)

    def is_promotion(self, from_square: str, to_square: str) -> bool:
        from_sq = chess.parse_square(from_square)
        to_sq = chess.parse_square(to_square)
        return self.board.piece_type_at(from_sq) == chess.PAWN and chess.square_rank(to_sq) in (0, 7)

    def legal_moves_by_origin(self) -> dict[str, list[str]]:
        """Map origin square → reachable squares for the side to move (promotion variants collapsed)."""
        moves: dict[str, list[str]] = {}
        for mv in self.board.legal_moves:
            origin = chess.square_name(mv.from_square)
            target = chess.square_name(mv.to_square)
            targets = moves.setdefault(origin, [])
            if target not in targets:
                targets.append(target)
        return moves

    def is_draw(self) -> bool:
        b = self.board
        return b.is_stalemate() or b.is_insufficient_material() or b.is_fifty_moves() or b.is_repetition(3)

    def current_state(self) -> GameState:
        b = self.board
        is_checkmate = b.is_checkmate()
        is_draw = self.is_draw()
        grid = []
        for rank in range(7, -1, -1):
            row = []
            for file in range(8):
                piece = b.piece_at(chess.square(file, rank))
                row.append((piece.symbol().lower(), _color_code(piece.color)) if piece else None)
            grid.append(tuple(row))
        return GameState(
            fen=b.fen(),
            pgn=self.pgn(),
            turn=self.turn,
            is_check=b.is_check(),
            is_checkmate=is_checkmate,
            is_draw=is_draw,
            is_game_over=is_checkmate or is_draw,
            history=tuple(self._history),
            valid_moves=self.legal_moves_by_origin(),
            board=tuple(grid),
        )

    # ---------------- Move Application -----------------
    def _build_move(self, from_square: str, to_square: str, promotion: str | None) -> chess.Move:
        from_sq = chess.parse_square(from_square)
        to_sq = chess.parse_square(to_square)
        if not self.is_promotion(from_square, to_square):
            return chess.Move(from_sq, to_sq)
        if promotion is None:
            # A promotion without a piece always becomes a queen.
            return chess.Move(from_sq, to_sq, promotion=chess.QUEEN)
        letter = promotion_letter(promotion)
        if letter is None:
            raise ValueError(f"Invalid promotion piece: {promotion}")
        return chess.Move(from_sq, to_sq, promotion=PROMOTION_PIECES[letter])

    def apply_move(self, from_square: str, to_square: str, promotion: str | None = None,
                   snapshot: bool = True) -> MoveResult:
        try:
            mv = self._build_move(from_square, to_square, promotion)
        except ValueError as exc:
            return MoveResult(False, error=str(exc))
        if mv not in self.board.legal_moves:
            return MoveResult(False, error=f"Invalid move: {from_square}-{to_square}")
        piece = self.board.piece_at(mv.from_square)
        san = self.board.san(mv)
        self.board.push(mv)
        self._history.append(HistoryEntry(
            from_square=from_square,
            to_square=to_square,
            san=san,
            piece=piece.symbol().lower(),
            color=_color_code(piece.color),
            promotion=chess.piece_symbol(mv.promotion) if mv.promotion else None,
        ))
        return MoveResult(True, state=self.current_state() if snapshot else None, san=san)

    def undo(self, snapshot: bool = True) -> MoveResult:
        if not self.board.move_stack:
            return MoveResult(False, error="No move to undo")
        self.board.pop()
        entry = self._history.pop() if self._history else None
        return MoveResult(True, state=self.current_state() if snapshot else None, san=entry.san if entry else None)

    def last_san(self) -> Optional[str]:
        return self._history[-1].san if self._history else None

    # ---------------- Loading -----------------
    def reset(self) -> GameState:
        self.board = chess.Board()
        self._history = []
        return self.current_state()

    def load_fen(self, fen: str) -> MoveResult:
        try:
            board = chess.Board(fen=fen)
        except ValueError:
            return MoveResult(False, error="Invalid FEN string")
        if not board.is_valid():
            return MoveResult(False, error="Invalid FEN string")
        self.board = board
        self._history = []
        return MoveResult(True, state=self.current_state())

    def load_pgn(self, pgn: str) -> MoveResult:
        game = chess.pgn.read_game(io.StringIO(pgn or ""))
        if game is None or game.errors:
            return MoveResult(False, error="Invalid PGN string")
        self.board = game.board()
        self._history = []
        for mv in game.mainline_moves():
            promo = chess.piece_symbol(mv.promotion) if mv.promotion else None
            res = self.apply_move(chess.square_name(mv.from_square), chess.square_name(mv.to_square), promo, snapshot=False)
            if not res.success:
                return MoveResult(False, error="Invalid PGN string")
        return MoveResult(True, state=self.current_state())

    # ---------------- PGN / Status -----------------
    def pgn(self) -> str:
        game = chess.pgn.Game.from_board(self.board)
        for k, v in self._headers.items():
            game.headers[k] = v
        exporter = chess.pgn.StringExporter(headers=bool(self._headers), variations=False, comments=False)
        return game.accept(exporter)

    def status(self) -> str:
        if self.board.is_checkmate():
            return "0-1" if self.board.turn == chess.WHITE else "1-0"
        if self.is_draw():
            return "1/2-1/2"
        return "*"
