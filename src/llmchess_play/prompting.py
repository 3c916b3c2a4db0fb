"""
Prompt builders and config for LLM move and analysis requests using a modular template.

Callers supply system instructions and a template string with placeholders
that are substituted per request.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .referee import GameState

DIFFICULTY_TEXT = {
    "beginner": "playing at a beginner level (around 800-1000 ELO).",
    "intermediate": "playing at an intermediate level (around 1200-1400 ELO).",
    "advanced": "playing at an advanced level (around 1600-1800 ELO).",
    "expert": "playing at an expert level (around 2000+ ELO).",
}

NOTATION_RULES = (
    "Provide the move in standard algebraic notation (e.g., e4, Nf3). "
    "For pawn moves, specify only the destination square (e.g., 'e4'). "
    "For piece moves, include the piece letter followed by the destination (e.g., 'Nf3'). "
    "For captures, use 'x' (e.g., 'Bxf7'). "
    "For castling, use 'O-O' for kingside and 'O-O-O' for queenside. "
    "For promotion, add '=' followed by the piece (e.g., 'e8=Q'). "
    "For check, add '+' (e.g., 'Qh5+'). "
    "For checkmate, add '#' (e.g., 'Qh7#')."
)

DEFAULT_MOVE_SYSTEM = "You are a chess engine. Return ONLY the move notation without any additional text or explanation in the 'move' field."
DEFAULT_MOVE_TEMPLATE = """You are a chess engine. Given this FEN: "{FEN}", suggest the next move for {SIDE_TO_MOVE} {DIFFICULTY_TEXT}
{NOTATION_RULES}
{EXPLANATION_LINE}
The game history so far is: {HISTORY}."""

DEFAULT_ANALYSIS_SYSTEM = "You are a friendly chess coach for complete beginners."
DEFAULT_ANALYSIS_QUERY = "Analyze this position and suggest a good move"
DEFAULT_ANALYSIS_TEMPLATE = """Chess position in FEN: "{FEN}". It's {SIDE_TO_MOVE}'s turn to move.
Request: {QUERY}

Analyze this position for a complete beginner who is just learning chess.

Your analysis should:
1. Explain the current state of the game in very simple terms
2. Point out any immediate threats or opportunities
3. Suggest a good move and explain why it's good in plain language
4. Avoid using complex chess terminology without explanation
5. Be encouraging and educational

Remember that the player is a complete beginner who may not know standard chess concepts."""


@dataclass
class PromptConfig:
    """Configuration for shaping prompts using a custom template."""

    system_instructions: str = DEFAULT_MOVE_SYSTEM
    template: str = DEFAULT_MOVE_TEMPLATE


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def side_name(turn: str) -> str:
    return "White" if turn == "w" else "Black"


def history_text(state: GameState) -> str:
    """History as 'e2-e4, e7-e5, ...'."""
    return ", ".join(f"{h.from_square}-{h.to_square}" for h in state.history)


def build_move_prompt(state: GameState, difficulty: str, want_explanation: bool,
                      cfg: PromptConfig | None = None) -> tuple[str, str]:
    """Return (system, user) prompts for a move suggestion."""
    cfg = cfg or PromptConfig()
    explanation = (
        "Also provide a brief explanation of why this move is good in the 'explanation' field."
        if want_explanation else ""
    )
    values = {
        "FEN": state.fen,
        "SIDE_TO_MOVE": side_name(state.turn),
        "DIFFICULTY_TEXT": DIFFICULTY_TEXT.get(difficulty, DIFFICULTY_TEXT["intermediate"]),
        "NOTATION_RULES": NOTATION_RULES,
        "EXPLANATION_LINE": explanation,
        "HISTORY": history_text(state) or "(none)",
    }
    return cfg.system_instructions, render_custom_prompt(cfg.template, values)


def build_analysis_prompt(state: GameState, query: str | None = None) -> tuple[str, str]:
    values = {
        "FEN": state.fen,
        "SIDE_TO_MOVE": side_name(state.turn),
        "QUERY": query or DEFAULT_ANALYSIS_QUERY,
    }
    return DEFAULT_ANALYSIS_SYSTEM, render_custom_prompt(DEFAULT_ANALYSIS_TEMPLATE, values)
