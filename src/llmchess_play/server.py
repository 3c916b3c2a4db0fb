"""
Minimal Flask API for human-vs-LLM games.

Endpoints:
- POST /api/games                    -> start a game ({player_color?, difficulty?}); AI moves first if the human is black
- GET  /api/games/<id>               -> current session snapshot
- POST /api/games/<id>/move          -> human move ({from, to, promotion?}) followed by the AI reply
- POST /api/games/<id>/ai-move       -> (re)request the AI move, e.g. after a failed attempt
- POST /api/games/<id>/undo          -> undo the last AI reply and human move
- POST /api/games/<id>/reset         -> restart with the same color/difficulty
- POST /api/games/<id>/analysis      -> LLM analysis of the current position ({query?})
- POST /api/chess/move               -> raw move suggestion for {gameState:{fen}, difficultyLevel?, includeExplanation?}
- POST /api/chess/parse-move         -> {gameState:{fen}, moveNotation} -> {from, to, promotion?} | {error, availableMoves}
- POST /api/chess/analysis           -> {gameState:{fen}, query?} -> {analysis, suggestedMove?, evaluation?}

Sessions live in memory and are dropped after SETTINGS.session_ttl_s of inactivity.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional

from flask import Flask, jsonify, request

from .config import DIFFICULTY_LEVELS, SETTINGS
from .llm_client import CollaboratorUnavailable, LLMClient
from .referee import Referee
from .resolver import parse_move
from .session import GameSession, SessionBusy

log = logging.getLogger("server")

app = Flask(__name__)
games_lock = threading.Lock()
GAMES: Dict[str, GameSession] = {}
LLM = LLMClient()


def _cleanup_stale_games(max_age_s: int | None = None):
    max_age_s = SETTINGS.session_ttl_s if max_age_s is None else max_age_s
    now = time.time()
    with games_lock:
        expired = [gid for gid, sess in GAMES.items() if now - sess.updated_at > max_age_s and not sess.is_busy]
        for gid in expired:
            GAMES.pop(gid, None)


def _get_session(game_id: str) -> Optional[GameSession]:
    _cleanup_stale_games()
    with games_lock:
        return GAMES.get(game_id)


def _color(value) -> str:
    return "b" if str(value or "w").lower() in ("b", "black") else "w"


def _difficulty(value) -> str:
    level = str(value or SETTINGS.default_difficulty).lower()
    return level if level in DIFFICULTY_LEVELS else SETTINGS.default_difficulty


def _referee_from_payload(data: dict) -> tuple[Optional[Referee], Optional[str]]:
    fen = (data.get("gameState") or {}).get("fen")
    if not fen:
        return None, "Missing required game state"
    referee = Referee()
    loaded = referee.load_fen(fen)
    if not loaded.success:
        return None, loaded.error
    return referee, None


def _busy_response():
    return jsonify({"error": "busy", "message": "AI is thinking; try again when the move completes."}), 409


@app.route("/api/games", methods=["POST"])
def create_game():
    _cleanup_stale_games()
    data = request.get_json(silent=True) or {}
    session = GameSession(player_color=_color(data.get("player_color")), difficulty=_difficulty(data.get("difficulty")), llm=LLM)
    with games_lock:
        GAMES[session.id] = session
    if session.ai_to_move():
        session.request_ai_move()
    return jsonify(session.snapshot().to_dict())


@app.route("/api/games/<game_id>", methods=["GET"])
def get_game(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    return jsonify(session.snapshot().to_dict())


@app.route("/api/games/<game_id>/move", methods=["POST"])
def game_move(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    data = request.get_json(silent=True) or {}
    from_square, to_square = data.get("from"), data.get("to")
    if not from_square or not to_square:
        return jsonify({"error": "from and to are required"}), 400
    try:
        result = session.make_move(from_square, to_square, data.get("promotion"))
    except SessionBusy:
        return _busy_response()
    if not result.success:
        return jsonify({"error": result.error or "invalid_move", **session.snapshot().to_dict()}), 400
    return jsonify(session.snapshot().to_dict())


@app.route("/api/games/<game_id>/ai-move", methods=["POST"])
def game_ai_move(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    try:
        session.request_ai_move()
    except SessionBusy:
        return _busy_response()
    return jsonify(session.snapshot().to_dict())


@app.route("/api/games/<game_id>/undo", methods=["POST"])
def game_undo(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    try:
        result = session.undo_move()
    except SessionBusy:
        return _busy_response()
    body = session.snapshot().to_dict()
    if not result.success:
        body["undo_error"] = result.error
    return jsonify(body)


@app.route("/api/games/<game_id>/reset", methods=["POST"])
def game_reset(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    try:
        session.reset()
        if session.ai_to_move():
            session.request_ai_move()
    except SessionBusy:
        return _busy_response()
    return jsonify(session.snapshot().to_dict())


@app.route("/api/games/<game_id>/analysis", methods=["POST"])
def game_analysis(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    data = request.get_json(silent=True) or {}
    try:
        analysis = session.analyze(data.get("query"))
    except CollaboratorUnavailable as exc:
        return jsonify({"error": f"Failed to get chess analysis: {exc}"}), 502
    return jsonify(analysis.to_dict())


@app.route("/api/chess/move", methods=["POST"])
def chess_move():
    data = request.get_json(silent=True) or {}
    referee, err = _referee_from_payload(data)
    if err:
        return jsonify({"error": err}), 400
    include_explanation = bool(data.get("includeExplanation", False))
    try:
        suggestion = LLM.suggest_move(referee.current_state(), _difficulty(data.get("difficultyLevel")), include_explanation)
    except CollaboratorUnavailable as exc:
        return jsonify({"error": f"Failed to get chess move: {exc}"}), 502
    return jsonify({"move": suggestion.move, "explanation": suggestion.explanation if include_explanation else None})


@app.route("/api/chess/parse-move", methods=["POST"])
def chess_parse_move():
    data = request.get_json(silent=True) or {}
    fen = (data.get("gameState") or {}).get("fen")
    notation = data.get("moveNotation")
    if not fen or not notation:
        return jsonify({"error": "Missing required parameters"}), 400
    parsed = parse_move(fen, notation)
    if "error" in parsed:
        return jsonify(parsed), 400
    return jsonify(parsed)


@app.route("/api/chess/analysis", methods=["POST"])
def chess_analysis():
    data = request.get_json(silent=True) or {}
    referee, err = _referee_from_payload(data)
    if err:
        return jsonify({"error": err}), 400
    try:
        analysis = LLM.analyze_position(referee.current_state(), data.get("query"))
    except CollaboratorUnavailable as exc:
        return jsonify({"error": f"Failed to get chess analysis: {exc}"}), 502
    return jsonify(analysis.to_dict())


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    # Prevent caching so the UI always sees the freshest board
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return response


@app.route("/api/<path:path>", methods=["OPTIONS"])
def cors_preflight(path: str):
    return app.make_response(("", 204))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(host="0.0.0.0", port=8000, debug=True)
