"""
LLM collaborators: move suggestions and position analysis.

Both are OpenAI Agents SDK agents with typed (pydantic) outputs, running over an
OpenAI-compatible endpoint configured from SETTINGS (api key + optional base URL).
Transport failures are retried with exponential backoff; once retries are spent the
caller gets CollaboratorUnavailable.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Optional

from agents import Agent, ModelSettings, Runner, set_default_openai_api, set_default_openai_client, set_tracing_disabled
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field

from .config import SETTINGS
from .prompting import build_analysis_prompt, build_move_prompt
from .referee import GameState

log = logging.getLogger("llm_client")


class CollaboratorUnavailable(RuntimeError):
    """The LLM service failed or timed out after all transport retries."""


class MoveSuggestion(BaseModel):
    move: str = Field(description="The chess move in standard algebraic notation (e.g., e4, Nf3, O-O)")
    explanation: Optional[str] = Field(description="Explanation of why this move is good")


class PositionAnalysis(BaseModel):
    analysis: str = Field(description="Detailed analysis of the chess position in simple terms that a beginner can understand")
    suggested_move: Optional[str] = Field(description="A suggested move in standard algebraic notation (e.g., e4, Nf3, O-O)")
    evaluation: Optional[str] = Field(description="Simple evaluation of the position (e.g., 'White is better', 'Equal position')")

    def to_dict(self) -> dict:
        return {"analysis": self.analysis, "suggestedMove": self.suggested_move, "evaluation": self.evaluation}


_CONFIGURED = False


def _configure() -> None:
    """Point the Agents SDK at the configured endpoint (once)."""
    global _CONFIGURED
    if _CONFIGURED:
        return
    try:
        client = AsyncOpenAI(
            api_key=SETTINGS.llm_api_key or None,
            base_url=SETTINGS.api_base or None,
            timeout=SETTINGS.responses_timeout_s,
        )
    except OpenAIError as exc:
        raise CollaboratorUnavailable(f"LLM client not configured: {exc}") from exc
    set_default_openai_client(client, use_for_tracing=False)
    # Chat Completions is the common denominator for OpenAI-compatible gateways.
    set_default_openai_api("chat_completions")
    set_tracing_disabled(True)
    _CONFIGURED = True


def _run_with_retries(agent: Agent, prompt: str):
    _configure()
    delay = 0.5
    for attempt in range(SETTINGS.responses_retries + 1):
        try:
            result = asyncio.run(Runner.run(agent, prompt))
            if result.final_output is not None:
                return result.final_output
            log.warning("Agent %s returned no output (attempt %d)", agent.name, attempt + 1)
        except Exception as exc:
            if attempt >= SETTINGS.responses_retries:
                log.exception("Agent %s failed after %d attempts", agent.name, attempt + 1)
                raise CollaboratorUnavailable(f"{agent.name} unavailable: {exc}") from exc
        sleep_s = delay * (2 ** attempt) * (0.8 + 0.4 * random.random())
        time.sleep(min(sleep_s, 10.0))
    raise CollaboratorUnavailable(f"{agent.name} returned no output")


class LLMClient:
    """Move-suggestion and position-analysis collaborator."""

    def __init__(self, move_model: str | None = None, analysis_model: str | None = None):
        self.move_model = move_model or SETTINGS.move_model
        self.analysis_model = analysis_model or SETTINGS.analysis_model

    def _move_agent(self, system: str) -> Agent:
        return Agent(
            name="MoveSuggester",
            instructions=system,
            model=self.move_model,
            model_settings=ModelSettings(temperature=0.2, max_tokens=150),
            output_type=MoveSuggestion,
        )

    def _analysis_agent(self, system: str) -> Agent:
        return Agent(
            name="PositionAnalyst",
            instructions=system,
            model=self.analysis_model,
            model_settings=ModelSettings(temperature=0.3, max_tokens=800),
            output_type=PositionAnalysis,
        )

    def suggest_move(self, state: GameState, difficulty: str = "intermediate", want_explanation: bool = False) -> MoveSuggestion:
        system, prompt = build_move_prompt(state, difficulty, want_explanation)
        suggestion = _run_with_retries(self._move_agent(system), prompt)
        log.info("LLM suggested move %r (difficulty=%s)", suggestion.move, difficulty)
        if not want_explanation:
            suggestion = suggestion.model_copy(update={"explanation": None})
        return suggestion

    def analyze_position(self, state: GameState, query: str | None = None) -> PositionAnalysis:
        system, prompt = build_analysis_prompt(state, query)
        return _run_with_retries(self._analysis_agent(system), prompt)
