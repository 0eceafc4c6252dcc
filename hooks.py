"""Per-turn recall and capture for an agent conversation.

The host calls ``before_turn`` when a turn starts (to get context to inject)
and ``after_turn`` when it ends (to persist what was said). Session identity
travels in an explicit ``SessionContext`` on every call; no module-level state
remembers the "current" session. A host builds one per process with
``config = load_config()`` and ``TurnOrchestrator(LocalMemoryClient.from_config(config), config)``,
then forwards its turn events to the two methods.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from categories import detect_category
from config import Config
from memory_client import LocalMemoryClient
from models import MAX_DYNAMIC_FACTS, ProfileResult, SearchResult
from utils import limit_text, log, now_iso

CONTEXT_TAG = "localmemory-context"
MIN_PROMPT_CHARS = 5
MIN_FRAGMENT_CHARS = 10
DYNAMIC_PREVIEW_CHARS = 200

_CONTEXT_BLOCK = re.compile(rf"<{CONTEXT_TAG}>.*?</{CONTEXT_TAG}>", re.S)


@dataclass(frozen=True, slots=True)
class SessionContext:
    session_key: str


class TurnPhase(Enum):
    AWAITING_TURN = "awaiting_turn"
    RECALLING = "recalling"
    PROFILE_INJECTING = "profile_injecting"
    CAPTURING = "capturing"


@dataclass(slots=True)
class SessionState:
    turn: int = 0
    phase: TurnPhase = TurnPhase.AWAITING_TURN


# =============================================================================
# Message extraction
# =============================================================================


def _message_text(message: dict[str, Any]) -> list[str]:
    content = message.get("content", "")
    if isinstance(content, str):
        return [content]
    parts = []
    if isinstance(content, list):
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
            elif isinstance(part, dict) and part.get("type") == "tool_result":
                parts.append(str(part.get("content", "")))
    return parts


def _current_turn(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Messages from the last user message onwards."""
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].get("role") == "user":
            return messages[i:]
    return messages


def extract_capture_content(messages: list[dict[str, Any]], capture_mode: str) -> str:
    """Text of the current turn that is eligible for capture.

    ``everything`` keeps every text part of every message in the turn, tool
    output included. ``all`` keeps user and assistant text only, with injected
    memory context removed and short fragments dropped.
    """
    lines = []
    for message in _current_turn(messages):
        role = message.get("role", "unknown")
        if capture_mode != "everything" and role not in ("user", "assistant"):
            continue
        for text in _message_text(message):
            if capture_mode != "everything":
                text = _CONTEXT_BLOCK.sub("", text)
            text = text.strip()
            if not text:
                continue
            if capture_mode != "everything" and len(text) < MIN_FRAGMENT_CHARS:
                continue
            lines.append(f"[{role}]: {text}")
    return "\n".join(lines).strip()


# =============================================================================
# Formatting
# =============================================================================


def _format_similarity(similarity: float | None) -> str:
    return f" ({similarity:.0%})" if similarity is not None else ""


def format_context(results: list[SearchResult], profile: ProfileResult | None) -> str | None:
    sections = []
    if profile is not None:
        if profile.static:
            sections.append("User profile (stable):\n" + "\n".join(f"- {f}" for f in profile.static))
        if profile.dynamic:
            sections.append("Recent context:\n" + "\n".join(f"- {f}" for f in profile.dynamic))
    if results:
        sections.append(
            "Relevant memories:\n"
            + "\n".join(f"- {r.content}{_format_similarity(r.similarity)}" for r in results)
        )
    if not sections:
        return None
    body = "\n\n".join(sections)
    return f"<{CONTEXT_TAG}>\n{body}\n</{CONTEXT_TAG}>"


# =============================================================================
# Orchestrator
# =============================================================================


class TurnOrchestrator:
    """Decides per turn what to recall and what to capture.

    Full-profile injection fires only on turns where
    ``turn % profile_frequency == 0``.
    """

    def __init__(
        self,
        client: LocalMemoryClient,
        config: Config,
        classify: Callable[[str], str] = detect_category,
    ):
        self.client = client
        self.config = config
        self.classify = classify
        self._sessions: dict[str, SessionState] = {}

    def session(self, ctx: SessionContext) -> SessionState:
        return self._sessions.setdefault(ctx.session_key, SessionState())

    async def before_turn(self, event: dict[str, Any], ctx: SessionContext) -> str | None:
        """Context to prepend to the agent's prompt, or None."""
        state = self.session(ctx)
        state.turn += 1

        if not self.config.auto_recall:
            return None
        prompt = str(event.get("prompt") or "").strip()
        if len(prompt) < MIN_PROMPT_CHARS:
            return None

        try:
            state.phase = TurnPhase.RECALLING
            results = await self.client.search(prompt, self.config.max_recall_results)

            profile = None
            if state.turn % self.config.profile_frequency == 0:
                state.phase = TurnPhase.PROFILE_INJECTING
                profile = await self.client.get_profile()

            context = format_context(results, profile)
            log.debug(
                "recall: session=%s turn=%d hits=%d profile=%s",
                ctx.session_key,
                state.turn,
                len(results),
                profile is not None,
            )
            return context
        except Exception as e:
            log.error("recall failed: %s", e)
            return None
        finally:
            state.phase = TurnPhase.AWAITING_TURN

    async def after_turn(self, event: dict[str, Any], ctx: SessionContext) -> str | None:
        """Store the turn's content as a memory; returns the new id or None."""
        if not self.config.auto_capture:
            return None
        if event.get("success") is False:
            return None

        content = extract_capture_content(event.get("messages") or [], self.config.capture_mode)
        if not content:
            return None

        state = self.session(ctx)
        state.phase = TurnPhase.CAPTURING
        try:
            category = self.classify(content)
            memory_id = await self.client.add_memory(
                content,
                {"type": category, "source": "capture", "timestamp": now_iso()},
            )
            await self._merge_profile(content, category)
            log.debug("capture: session=%s id=%s category=%s", ctx.session_key, memory_id, category)
            return memory_id
        except Exception as e:
            log.error("capture failed: %s", e)
            return None
        finally:
            state.phase = TurnPhase.AWAITING_TURN

    async def _merge_profile(self, content: str, category: str) -> None:
        preview = limit_text(" ".join(content.split()), DYNAMIC_PREVIEW_CHARS)
        current = await self.client.get_profile()
        dynamic = [preview] + [f for f in current.dynamic if f != preview]
        static = [preview] if category == "preference" else None
        await self.client.update_profile(static_facts=static, dynamic_facts=dynamic[:MAX_DYNAMIC_FACTS])
