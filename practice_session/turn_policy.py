"""Deterministic turn pacing: question archetype, wrap-up and style hints."""
from __future__ import annotations

from typing import Dict, Sequence

from .errors import ConfigError
from .models import INTERVIEW_MODES, PRACTICE_MODE, SessionConfig, TranscriptItem, TurnDirective
from .prompts import (
    INTERVIEW_CLOSING,
    INTERVIEW_TYPE_GUIDANCE,
    PRACTICE_CLOSING,
    PROFICIENCY_FOLLOWUP_GUIDANCE,
    PROFICIENCY_STARTER_GUIDANCE,
    TOPIC_STARTERS,
    TOPIC_TIPS,
    archetypes_for,
)
from .transcript import last_user_text

SHORT_ANSWER_WORDS = 8


def validate_config(config: SessionConfig) -> None:
    """Raise ``ConfigError`` when fields required by the session mode are missing."""

    if config.mode not in INTERVIEW_MODES and config.mode != PRACTICE_MODE:
        raise ConfigError(f"Unknown session mode: {config.mode!r}")
    if config.max_exchanges < 1:
        raise ConfigError("max_exchanges must be at least 1")
    if not 1 <= config.wrap_up_offset <= config.max_exchanges:
        raise ConfigError("wrap_up_offset must be between 1 and max_exchanges")
    if not (config.persona or "").strip():
        raise ConfigError("persona is required")
    if config.mode == PRACTICE_MODE:
        if config.topic is None or config.proficiency is None:
            raise ConfigError("english-practice sessions require topic and proficiency")
    elif not (config.job_role or "").strip():
        raise ConfigError(f"{config.mode} interviews require a job_role")


def wrap_up_threshold(config: SessionConfig) -> int:
    return config.max_exchanges - config.wrap_up_offset


def hard_limit(config: SessionConfig) -> int:  # AI turn count after which the session ends regardless of the model
    return config.max_exchanges + config.wrap_up_offset


def compute_directive(
    transcript: Sequence[TranscriptItem],
    config: SessionConfig,
    exchange_count: int,
    *,
    short_answer_words: int = SHORT_ANSWER_WORDS,
) -> TurnDirective:
    """Return the directive for the next AI turn.

    The archetype is ``archetypes[exchange_count % len(archetypes)]``, so the
    first turn is always the opening archetype and long sessions cycle.
    """

    validate_config(config)
    if exchange_count < 0:
        raise ValueError("exchange_count cannot be negative")

    archetypes = archetypes_for(config.mode)
    category, question_style = archetypes[exchange_count % len(archetypes)]
    should_wrap_up = exchange_count >= wrap_up_threshold(config)

    hints: Dict[str, str] = {
        "question_style": question_style,
        "progress": f"Exchange {exchange_count}/{config.max_exchanges}",
    }
    opening = exchange_count == 0
    if config.mode == PRACTICE_MODE:
        levels = PROFICIENCY_STARTER_GUIDANCE if opening else PROFICIENCY_FOLLOWUP_GUIDANCE
        topics = TOPIC_STARTERS if opening else TOPIC_TIPS
        hints["level_guidance"] = levels[config.proficiency]  # type: ignore[index]
        hints["topic_guidance"] = topics[config.topic]  # type: ignore[index]
    else:
        hints["level_guidance"] = INTERVIEW_TYPE_GUIDANCE[config.mode]

    last_user = last_user_text(transcript)
    if last_user:
        hints["react"] = "React naturally to the specific details of their latest answer before moving on."
        if len(last_user.split()) < short_answer_words:
            hints["elaborate"] = "Their last answer was short; encourage them to elaborate with a concrete example."
    if should_wrap_up:
        hints["closing"] = PRACTICE_CLOSING if config.mode == PRACTICE_MODE else INTERVIEW_CLOSING

    return TurnDirective(question_category=category, should_wrap_up=should_wrap_up, style_hints=hints)


__all__ = ["compute_directive", "hard_limit", "validate_config", "wrap_up_threshold"]
