import argparse
import logging

import chess

from llmchess_play.config import DIFFICULTY_LEVELS, SETTINGS
from llmchess_play.llm_client import CollaboratorUnavailable, LLMClient
from llmchess_play.session import GameSession


def read_human_move(session: GameSession):
    """Prompt until the user enters a legal move or a command. Returns (from, to, promotion) or a command string."""
    board = session.referee.board
    while True:
        print("\nYour turn. Board FEN:", board.fen())
        print(board)
        raw = input("Enter your move in SAN or UCI (e.g., e4 or e2e4), or undo/analyze/quit: ").strip()
        if not raw:
            continue
        if raw.lower() in ("undo", "analyze", "quit"):
            return raw.lower()
        try:
            mv = chess.Move.from_uci(raw) if len(raw) >= 4 else None
        except ValueError:
            mv = None
        if not mv:
            try:
                mv = board.parse_san(raw)
            except ValueError:
                mv = None
        if mv and mv in board.legal_moves:
            promo = chess.piece_symbol(mv.promotion) if mv.promotion else None
            return chess.square_name(mv.from_square), chess.square_name(mv.to_square), promo
        print("Illegal move. Please try again with a legal move.")


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Play a game against an LLM from the terminal.")
    ap.add_argument("--model", default=None, help="Move model (defaults to LLMCHESS_MOVE_MODEL)")
    ap.add_argument("--color", choices=["white", "black"], default="white", help="Which side you play")
    ap.add_argument("--difficulty", choices=list(DIFFICULTY_LEVELS), default=SETTINGS.default_difficulty)
    ap.add_argument("--fen", default=None, help="Optional starting position")
    ap.add_argument("--pgn-out", default=None, help="Optional path to write PGN at end")
    ap.add_argument("--log-level", default="WARNING", help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log = logging.getLogger("play_one")

    session = GameSession(
        player_color="w" if args.color == "white" else "b",
        difficulty=args.difficulty,
        llm=LLMClient(move_model=args.model),
        starting_fen=args.fen,
    )

    while not session.referee.current_state().is_game_over:
        if session.ai_to_move():
            print("AI is thinking...")
            resolution = session.request_ai_move()
            if resolution.ok:
                print(f"AI plays {resolution.san}")
            else:
                print(f"AI could not move ({resolution.error}). Undo, or press enter to let it try again.")
                cmd = input("> ").strip().lower()
                if cmd == "undo":
                    session.undo_move()
                elif cmd == "quit":
                    break
            continue
        choice = read_human_move(session)
        if choice == "quit":
            break
        if choice == "undo":
            res = session.undo_move()
            if not res.success:
                print(f"Undo: {res.error}")
            continue
        if choice == "analyze":
            try:
                analysis = session.analyze()
            except CollaboratorUnavailable as exc:
                log.error("Analysis failed: %s", exc)
                continue
            print(analysis.analysis)
            if analysis.suggested_move:
                print(f"Suggested move: {analysis.suggested_move} ({analysis.evaluation or 'no evaluation'})")
            continue
        res = session.make_move(*choice, reply=False)
        if not res.success:
            print(res.error)

    print("\nResult:", session.referee.status())
    pgn = session.referee.pgn()
    print(pgn)
    if args.pgn_out:
        with open(args.pgn_out, "w", encoding="utf-8") as f:
            f.write(pgn)
