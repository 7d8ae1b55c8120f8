from __future__ import annotations

import json
import os
from typing import Any

from openai import OpenAI

from postpro_engine.core.ai.contracts import ACTION_INTENTS, ProposedAction, parse_proposed_action


SYSTEM_PROMPT = """You are a helpful assistant for post-production scheduling.

You understand:
- Episode numbers (e.g. "304", "episode 304", "304's")
- Milestone type codes from the catalog (e.g. "EC" = Editor's Cut, "DC" = Director's Cut,
  "FPL" = Final Picture Lock, "LOCK" = Picture Lock)
- Date expressions ("Friday", "next week", "12/20", or an ISO date)
- Post-production terminology

Turn the user's request into ONE action JSON object with fields:
- intent: one of move, what_if, show_this_week, show_next_week, show_episode, late, blocking, list, unknown
- episode_ref: the episode number as written, or null
- milestone_code: a catalog code, or null
- date: the target date as the user said it or as YYYY-MM-DD, or null
- list_kind: for list, what to list (e.g. "milestones", "vfx"), else null
- reply: a short conversational reply for the user, or null

Return ONLY the JSON object (no markdown, no extra text).
Do not invent episodes or codes that are not in the context. If unsure, use intent=unknown
and put a clarifying question in reply. The scheduler re-checks every change you propose.
"""


# OpenAI Structured Outputs: every object has additionalProperties=false and
# lists every property as required; optional values are nullable.
ACTION_JSON_SCHEMA: dict[str, Any] = {
    "name": "schedule_action",
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "intent": {"type": "string", "enum": list(ACTION_INTENTS)},
            "episode_ref": {"type": ["string", "null"]},
            "milestone_code": {"type": ["string", "null"]},
            "date": {"type": ["string", "null"]},
            "list_kind": {"type": ["string", "null"]},
            "reply": {"type": ["string", "null"]},
        },
        "required": ["intent", "episode_ref", "milestone_code", "date", "list_kind", "reply"],
    },
}


class OpenAICommandClient:
    def __init__(self, *, base_url: str | None = None) -> None:
        self._base_url = base_url

    def propose_action(self, *, context: dict[str, Any], text: str, model: str) -> ProposedAction:
        """Ask the model for a structured action using the Responses API."""
        if not os.getenv("OPENAI_API_KEY"):
            raise RuntimeError("OPENAI_API_KEY is not set")

        client = OpenAI(base_url=self._base_url) if self._base_url else OpenAI()

        resp = client.responses.create(
            model=model,
            temperature=0,
            input=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _render_user_prompt(context, text)},
            ],
            text={
                "format": {
                    "type": "json_schema",
                    "name": ACTION_JSON_SCHEMA["name"],
                    "schema": ACTION_JSON_SCHEMA["schema"],
                    "strict": True,
                }
            },
        )

        raw_text = _extract_output_text(resp)
        try:
            obj = json.loads(raw_text)
        except json.JSONDecodeError as e:
            snippet = raw_text[:800]
            raise RuntimeError(f"Failed to parse model JSON. First 800 chars: {snippet}") from e

        return parse_proposed_action(obj)


def _extract_output_text(resp: Any) -> str:
    """Extract response text across OpenAI SDK response shapes."""
    raw = getattr(resp, "output_text", None)
    if isinstance(raw, str) and raw.strip():
        return raw

    out = getattr(resp, "output", None)
    if isinstance(out, list):
        texts: list[str] = []
        for item in out:
            content = getattr(item, "content", None)
            if isinstance(content, list):
                for c in content:
                    t = getattr(c, "text", None)
                    if isinstance(t, str) and t.strip():
                        texts.append(t)
        if texts:
            return "\n".join(texts)

    return str(resp)


def _render_user_prompt(context: dict[str, Any], text: str) -> str:
    return (
        "CONTEXT_JSON:\n"
        + json.dumps(context, indent=2, sort_keys=True)
        + f'\n\nUser said: "{text}"'
        + "\nReturn only the JSON action."
    )
