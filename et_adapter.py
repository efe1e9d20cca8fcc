"""
et_adapter.py — provider call + untrusted text -> schema-valid MIDI sequence.

Per request:
  prompts -> provider call (one retry) -> repair cascade -> canonicalize events
  -> schema completion -> musical correction (only when the model stated an answer)
  -> final validity gate (static fallback on failure)

Two boundaries:
  respond(system_prompt, user_prompt, exercise_type=None) -> str
      always a JSON document string; never raises.
  generate_sequence(exercise_type, difficulty, options) -> dict | None
      None only when the provider itself failed, so the caller can fall back.
"""

import json
import logging
from typing import Any, Dict, Optional

from et_config import LLM_RETRIES
from et_events import complete_sequence, is_valid_sequence, static_fallback_sequence, Sequence
from et_canonical import canonicalize_events
from et_correct import apply_musical_correction
from et_repair import repair_cascade
from et_prompts import augment_system_prompt, detect_exercise_type, load_system_prompt, render_user_prompt

log = logging.getLogger(__name__)

MIN_DOCUMENT_CHARS = 50


def static_fallback_text(exercise_type: str = "interval") -> str:
    return json.dumps(static_fallback_sequence(exercise_type))


def passes_final_gate(text: str, doc: Any) -> bool:
    return len(text) >= MIN_DOCUMENT_CHARS and "{" in text and is_valid_sequence(doc)


class ProviderAdapter:
    def __init__(self, provider, retries: int = LLM_RETRIES, system_prompt: Optional[str] = None):
        self.provider = provider
        self.retries: int = max(0, int(retries))
        self.system_prompt: str = system_prompt if system_prompt is not None else load_system_prompt()

    # ---------- provider call ----------
    def call_provider(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        """Returns the raw text, or None once every attempt failed."""
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                raw = self.provider.generate_response(system_prompt, user_prompt)
            except Exception as e:
                log.warning("LLM call failed (attempt %d/%d): %s", attempt, attempts, e)
                continue
            log.debug("Raw model response (first 300 chars): %r", (raw or "")[:300])
            return raw if isinstance(raw, str) else str(raw or "")
        return None

    # ---------- text -> document ----------
    def process_text(self, raw_text: str, exercise_type: str, difficulty: str = "beginner") -> Sequence:
        doc, tier = repair_cascade(raw_text, exercise_type)
        log.info("Repair cascade: tier '%s' for %s exercise.", tier, exercise_type)

        if isinstance(doc.get("events"), list):
            doc["events"] = canonicalize_events(doc["events"])
        stated_answer = bool(doc.get("correctAnswer"))
        # correction sees the completed event set (completion may substitute defaults)
        doc = complete_sequence(doc, exercise_type, difficulty)
        if stated_answer:
            doc = apply_musical_correction(doc, exercise_type)

        text = json.dumps(doc)
        if not passes_final_gate(text, doc):
            log.warning("Final gate rejected the %s document; using static fallback.", exercise_type)
            return static_fallback_sequence(exercise_type)
        return doc

    # ---------- boundaries ----------
    def respond(self, system_prompt: str, user_prompt: str, exercise_type: Optional[str] = None) -> str:
        exercise_type = exercise_type or detect_exercise_type(user_prompt)
        raw = self.call_provider(augment_system_prompt(exercise_type, system_prompt), user_prompt)
        if raw is None:
            log.warning("Provider unavailable; returning static %s fallback.", exercise_type)
            return static_fallback_text(exercise_type)
        try:
            return json.dumps(self.process_text(raw, exercise_type))
        except Exception:
            log.exception("Unexpected failure while repairing the %s response.", exercise_type)
            return static_fallback_text(exercise_type)

    def generate_sequence(self, exercise_type: str, difficulty: str = "beginner",
                          options: Optional[Dict[str, Any]] = None) -> Optional[Sequence]:
        system = augment_system_prompt(exercise_type, self.system_prompt)
        user = render_user_prompt(exercise_type, difficulty, options)
        raw = self.call_provider(system, user)
        if raw is None:
            return None
        return self.process_text(raw, exercise_type, difficulty)
