"""
LLM Chess Play package: a human plays against an LLM opponent.

Components:
- referee: rules oracle over python-chess (state snapshots, apply/undo, FEN/PGN)
- notation/candidates/matcher/heuristics: turn a free-form LLM move reply into a legal move
- resolver: orchestrates matching, fallbacks and bounded regeneration, then applies the move
- session: one game (turn taking, busy lock, pair undo) and its snapshots
- llm_client/prompting: move-suggestion and analysis agents over an OpenAI-compatible endpoint
- server: Flask API
"""
