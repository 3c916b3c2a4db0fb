"""Test doubles shared by the unittest suites."""
import chess

from llmchess_play.llm_client import CollaboratorUnavailable, MoveSuggestion, PositionAnalysis

START_FEN = chess.STARTING_FEN
PROMOTION_FEN = "8/4P3/8/8/8/8/k7/4K3 w - - 0 1"
BISHOP_CAPTURE_FEN = "7k/5p2/8/8/2B5/8/8/4K3 w - - 0 1"
CASTLING_FEN = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"
TWO_KNIGHTS_FEN = "rnbqkb1r/ppp1pppp/5n2/3p4/3P4/5N2/PPP1PPPP/RNBQKB1R w KQkq - 2 3"
EN_PASSANT_FEN = "4k3/8/8/3pP3/8/8/8/4K3 w - d6 0 1"
FOOLS_MATE_FEN = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"
BACK_RANK_FEN = "6k1/5ppp/8/8/8/8/5PPP/R5K1 w - - 0 1"


class FakeLLM:
    """Scripted move-suggestion collaborator. Items may be strings, exceptions or callables."""

    move_model = "fake-model"

    def __init__(self, moves=None, analysis=None):
        self.moves = list(moves or [])
        self.analysis = analysis
        self.calls = []

    def suggest_move(self, state, difficulty="intermediate", want_explanation=False):
        self.calls.append({"fen": state.fen, "difficulty": difficulty, "want_explanation": want_explanation})
        if not self.moves:
            raise CollaboratorUnavailable("no scripted move left")
        item = self.moves.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            item = item()
        return MoveSuggestion(move=item, explanation="scripted reason" if want_explanation else None)

    def analyze_position(self, state, query=None):
        if self.analysis is None:
            raise CollaboratorUnavailable("analysis offline")
        return PositionAnalysis(analysis=self.analysis, suggested_move="e4", evaluation="Equal position")
