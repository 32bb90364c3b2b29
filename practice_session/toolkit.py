from __future__ import annotations  # Shared LangChain helpers for turn generation

import json
from typing import Any, Iterable, List, Mapping, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from .models import TranscriptItem


def transcript_messages(history: Sequence[TranscriptItem]) -> List[BaseMessage]:  # Map transcript items to LangChain messages
    messages: List[BaseMessage] = []
    for item in history:
        content = item.text.strip()
        if not content:
            continue
        if item.speaker == "ai":
            messages.append(AIMessage(content=content))
        else:
            messages.append(HumanMessage(content=content))
    return messages


def render_turns(history: Sequence[TranscriptItem], *, ai_label: str, user_label: str) -> str:  # Alternating text rendering of the transcript
    lines = []
    for item in history:
        label = ai_label if item.speaker == "ai" else user_label
        lines.append(f"{label}: {item.text.strip()}")
    if not lines:
        return "No conversation yet."
    return "\n\n".join(lines)


def clamp_text(text: str, limit: int = 600) -> str:  # Compact whitespace and clip length
    compact = " ".join(text.split())
    if len(compact) <= limit:
        return compact
    return compact[: limit - 1].rstrip() + "…"


def bullet_list(entries: Iterable[str]) -> str:  # Render entries as markdown bullets
    lines = [item.strip() for item in entries if item and item.strip()]
    if not lines:
        return "None provided."
    return "\n".join(f"- {line}" for line in lines)


def profile_summary(profile: Mapping[str, Any], limit: int = 1200) -> str:  # Compact profile rendering for prompts
    if not profile:
        return "Not provided."
    kept = {key: value for key, value in profile.items() if value not in (None, "", [], {})}
    if not kept:
        return "Not provided."
    return clamp_text(json.dumps(kept, ensure_ascii=False, default=str), limit)


__all__ = ["bullet_list", "clamp_text", "profile_summary", "render_turns", "transcript_messages"]
