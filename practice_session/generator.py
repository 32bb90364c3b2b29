from __future__ import annotations  # Response generator turning transcript and directive into the next AI turn

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Type

from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from pydantic import BaseModel

from config import LlmRoute, SessionFlowSettings, load_config, resolve_registry, settings
from llm_gateway import HttpClient, LlmGatewayError
from llm_gateway import runnable as llm_runnable
from .errors import GenerationError
from .models import (
    GeneratedTurn,
    InterviewTurnOutput,
    PracticeStarterOutput,
    PracticeTurnOutput,
    SessionConfig,
    TranscriptItem,
    TurnDirective,
)
from .prompts import INTERVIEWER_PERSONA, PRACTICE_ANALYSIS, PRACTICE_PERSONA
from .toolkit import bullet_list, clamp_text, profile_summary, render_turns, transcript_messages
from .transcript import count_ai_turns


logger = logging.getLogger(__name__)

INTERVIEW_TURN_KEY = "practice_session.interview_turn"  # Registry key for interviewer turns
PRACTICE_TURN_KEY = "practice_session.practice_turn"  # Registry key for english practice follow-ups
PRACTICE_STARTER_KEY = "practice_session.practice_starter"  # Registry key for the english practice opening

GENERATOR_SCHEMAS: Dict[str, Type[BaseModel]] = {
    INTERVIEW_TURN_KEY: InterviewTurnOutput,
    PRACTICE_TURN_KEY: PracticeTurnOutput,
    PRACTICE_STARTER_KEY: PracticeStarterOutput,
}


@dataclass(frozen=True)
class ModeTemplate:  # Per-mode prompt wiring
    registry_key: str
    persona: str
    temperature_field: str
    ai_label: str
    user_label: str
    task: str


MODE_TEMPLATES: Dict[str, ModeTemplate] = {
    "interview": ModeTemplate(
        registry_key=INTERVIEW_TURN_KEY,
        persona=INTERVIEWER_PERSONA,
        temperature_field="interview_temperature",
        ai_label="Interviewer",
        user_label="Candidate",
        task=(
            "Write the next interviewer turn. Return a JSON object with private_analysis (your notes on the"
            " latest answer, never shown to the candidate), response_text (what you say aloud),"
            " question_category and is_end_of_session."
        ),
    ),
    "practice_opening": ModeTemplate(
        registry_key=PRACTICE_STARTER_KEY,
        persona=PRACTICE_PERSONA,
        temperature_field="starter_temperature",
        ai_label="Tutor",
        user_label="Student",
        task=(
            "Write a warm, natural greeting (2-3 sentences) that introduces yourself and asks ONE engaging"
            " question about the topic. Return a JSON object with greeting."
        ),
    ),
    "practice": ModeTemplate(
        registry_key=PRACTICE_TURN_KEY,
        persona=PRACTICE_PERSONA,
        temperature_field="practice_temperature",
        ai_label="Tutor",
        user_label="Student",
        task=(
            PRACTICE_ANALYSIS
            + "\nThen continue the conversation. Return a JSON object with response (what you say aloud),"
            " feedback and is_end_of_session."
        ),
    ),
}


def template_key(config: SessionConfig, history: Sequence[TranscriptItem]) -> str:  # Select mode template for the next turn
    if not config.is_practice:
        return "interview"
    if count_ai_turns(history) == 0:
        return "practice_opening"
    return "practice"


class ResponseGenerator:
    """Produce the next AI turn through the configured LLM routes.

    Each call resolves the mode template, renders the chat prompt and runs it
    through the gateway runnable with a bounded number of attempts. The same
    payload is resent on retry. Gateway failures surface as
    ``GenerationError``; the transcript passed in is never modified.
    """

    def __init__(
        self,
        registry: Dict[str, Tuple[LlmRoute, Type[BaseModel]]],
        *,
        flow: Optional[SessionFlowSettings] = None,
        client: Optional[HttpClient] = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        missing = [key for key in GENERATOR_SCHEMAS if key not in registry]
        if missing:
            raise KeyError(f"Registry entries missing for {', '.join(sorted(missing))}")
        self._registry = registry
        self._flow = flow or SessionFlowSettings()
        self._client = client
        self._max_attempts = max_attempts or settings.GENERATION_MAX_ATTEMPTS
        self._prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{instructions}"),
                MessagesPlaceholder("history"),
                (
                    "human",
                    (
                        "Session context:\n{context}\n\n"
                        "Conversation so far:\n{conversation}\n\n"
                        "Turn directive:\n{directive}\n\n"
                        "{task}"
                    ),
                ),
            ]
        )

    @classmethod
    def from_config(
        cls,
        path: Optional[Path] = None,
        *,
        client: Optional[HttpClient] = None,
    ) -> "ResponseGenerator":  # Build from app_config.json routes
        app_config = load_config(Path(path or settings.APP_CONFIG_PATH))
        registry = resolve_registry(app_config, GENERATOR_SCHEMAS)
        return cls(registry, flow=app_config.flow, client=client)

    @property
    def flow(self) -> SessionFlowSettings:
        return self._flow

    async def generate(
        self,
        history: Sequence[TranscriptItem],
        config: SessionConfig,
        directive: TurnDirective,
    ) -> GeneratedTurn:
        key = template_key(config, history)
        template = MODE_TEMPLATES[key]
        route, schema = self._registry[template.registry_key]
        temperature = getattr(self._flow, template.temperature_field)
        chain = self._prompt | llm_runnable(
            route,
            schema,
            client=self._client,
            options={"temperature": temperature},
            attempts=self._max_attempts,
        )
        logger.info(
            "Generating %s turn route=%s category=%s wrap_up=%s",
            key,
            route.name,
            directive.question_category,
            directive.should_wrap_up,
        )
        try:
            output = await chain.ainvoke(
                {
                    "instructions": template.persona.format(persona=config.persona),
                    "history": transcript_messages(history),
                    "context": _session_context(config),
                    "conversation": render_turns(history, ai_label=template.ai_label, user_label=template.user_label),
                    "directive": _directive_block(directive),
                    "task": template.task,
                }
            )
        except LlmGatewayError as exc:
            logger.warning("Generation failed for %s turn: %s", key, exc)
            raise GenerationError(str(exc)) from exc
        return _to_turn(output, directive)


def _session_context(config: SessionConfig) -> str:  # Mode specific context block
    if config.is_practice:
        lines = [
            f"Student level: {config.proficiency}",
            f"Conversation topic: {config.topic}",
            f"Accent preference: {config.accent}",
        ]
    else:
        lines = [
            f"Interview type: {config.mode}",
            f"Target role: {config.job_role}",
            f"Job description: {clamp_text(config.job_description) or 'Not provided.'}",
        ]
    lines.append(f"Profile: {profile_summary(config.user_profile)}")
    return "\n".join(lines)


def _directive_block(directive: TurnDirective) -> str:
    hints = [f"{name}: {text}" for name, text in directive.style_hints.items()]
    return "\n".join(
        [
            f"Question category for this turn: {directive.question_category}",
            f"Wrap up now: {'yes' if directive.should_wrap_up else 'no'}",
            "Style hints:",
            bullet_list(hints),
        ]
    )


def _to_turn(output: BaseModel, directive: TurnDirective) -> GeneratedTurn:  # Normalise schema outputs
    if isinstance(output, InterviewTurnOutput):
        return GeneratedTurn(
            response_text=output.response_text.strip(),
            question_category=output.question_category.strip() or directive.question_category,
            is_end_of_session=output.is_end_of_session,
        )
    if isinstance(output, PracticeTurnOutput):
        return GeneratedTurn(
            response_text=output.response.strip(),
            question_category=directive.question_category,
            feedback=output.feedback,
            is_end_of_session=output.is_end_of_session,
        )
    if isinstance(output, PracticeStarterOutput):
        return GeneratedTurn(
            response_text=output.greeting.strip(),
            question_category=directive.question_category,
        )
    raise GenerationError(f"Unsupported generator output {type(output).__name__}")


__all__ = [
    "GENERATOR_SCHEMAS",
    "INTERVIEW_TURN_KEY",
    "MODE_TEMPLATES",
    "PRACTICE_STARTER_KEY",
    "PRACTICE_TURN_KEY",
    "ResponseGenerator",
    "template_key",
]
