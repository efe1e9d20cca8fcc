"""
et_generate.py — the generation entry point.

ExerciseGenerator picks the algorithmic or the LLM path for a request:
  - difficulty above beginner without premium: algorithmic beginner, always.
  - use_llm: provider adapter, humanized (velocity profile), wrapped as ExerciseContent.
    Any failure or empty result re-runs the algorithmic generator with the
    request's own difficulty/premium flags.
Nothing here raises to the caller.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from et_config import DEFAULT_PPQ, DIFFICULTIES, EXERCISE_TYPES
from et_events import Sequence, as_int, check_exercise_type, notes_in_time_order
from et_generators import GENERATORS, ExerciseContent
from et_humanize import humanize_by_type, PROFILE_VELOCITY

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    exercise_type: str
    difficulty: str = "beginner"
    is_premium: bool = False
    use_llm: bool = False
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        check_exercise_type(self.exercise_type)
        if self.difficulty not in DIFFICULTIES:
            raise ValueError(f"Unknown difficulty: {self.difficulty}")


# ---------- display fields for LLM output ----------
def extract_notes(seq: Sequence) -> List[int]:
    return [as_int(n.get("data1"), 60) for n in notes_in_time_order(seq["events"])]


def extract_chords(seq: Sequence) -> List[str]:
    """Pitches sounding together, grouped by onset: ["60-64-67", ...]."""
    groups: Dict[int, List[int]] = {}
    for n in notes_in_time_order(seq["events"]):
        groups.setdefault(as_int(n.get("position"), 0), []).append(as_int(n.get("data1"), 60))
    return ["-".join(str(p) for p in sorted(pitches)) for _, pitches in sorted(groups.items())]


def extract_rhythms(seq: Sequence) -> List[float]:
    """Note durations in milliseconds, at the algorithmic generators' scale (whole note = 1000 ms)."""
    ppq = as_int(seq.get("ppq"), DEFAULT_PPQ) or DEFAULT_PPQ
    return [round(as_int(n.get("duration"), 0) * 1000 / (ppq * 4), 1)
            for n in notes_in_time_order(seq["events"])]


def wrap_llm_sequence(seq: Sequence, exercise_type: str, difficulty: str) -> ExerciseContent:
    answer = seq.get("correctAnswer") or seq.get("description")
    return {
        "type": exercise_type,
        "difficulty": difficulty,
        "content": {
            "midiSequence": seq,
            "notes": extract_notes(seq),
            "intervals": [answer] if exercise_type == "interval" else [],
            "chords": extract_chords(seq) if exercise_type == "progression" else [],
            "rhythms": extract_rhythms(seq) if exercise_type == "rhythmic" else [],
        },
        "answer": answer,
        "requiresPremium": difficulty != "beginner",
    }


class ExerciseGenerator:
    """
    Holds the (optional) provider adapter and a random source; both injected.
    Without an adapter every request takes the algorithmic path.
    """

    def __init__(self, adapter=None, rng: Optional[random.Random] = None):
        self.adapter = adapter
        self.rng = rng or random.Random()

    def _algorithmic(self, exercise_type: str, difficulty: str, is_premium: bool) -> ExerciseContent:
        return GENERATORS[exercise_type](difficulty, is_premium, rng=self.rng)

    def _from_llm(self, exercise_type: str, difficulty: str,
                  options: Dict[str, Any]) -> Optional[ExerciseContent]:
        seq = self.adapter.generate_sequence(exercise_type, difficulty, options)
        if not seq:
            return None
        seq = humanize_by_type(seq, exercise_type, profile=PROFILE_VELOCITY, rng=self.rng)
        return wrap_llm_sequence(seq, exercise_type, difficulty)

    def generate_exercise(self, exercise_type: str, difficulty: str = "beginner",
                          options: Optional[Dict[str, Any]] = None,
                          is_premium: bool = False, use_llm: bool = False) -> ExerciseContent:
        if exercise_type not in EXERCISE_TYPES:
            log.warning("Unknown exercise type '%s'; generating an interval exercise.", exercise_type)
            exercise_type = "interval"

        if difficulty != "beginner" and not is_premium:
            log.info("%s/%s requested without premium; serving beginner.", exercise_type, difficulty)
            return self._algorithmic(exercise_type, "beginner", False)

        if use_llm and self.adapter is not None:
            try:
                exercise = self._from_llm(exercise_type, difficulty, options or {})
                if exercise:
                    log.info("LLM %s exercise ready (%s).", exercise_type, difficulty)
                    return exercise
                log.warning("LLM returned nothing for %s; falling back to the algorithmic generator.",
                            exercise_type)
            except Exception:
                log.exception("LLM path failed for %s; falling back to the algorithmic generator.",
                              exercise_type)
        elif use_llm:
            log.info("No LLM adapter configured; using the algorithmic generator.")

        return self._algorithmic(exercise_type, difficulty, is_premium)

    def generate(self, request: GenerationRequest) -> ExerciseContent:
        return self.generate_exercise(request.exercise_type, request.difficulty, dict(request.options),
                                      is_premium=request.is_premium, use_llm=request.use_llm)

    async def agenerate_exercise(self, exercise_type: str, difficulty: str = "beginner",
                                 options: Optional[Dict[str, Any]] = None,
                                 is_premium: bool = False, use_llm: bool = False) -> ExerciseContent:
        """Awaitable form; the pipeline itself runs in a worker thread."""
        return await asyncio.to_thread(self.generate_exercise, exercise_type, difficulty,
                                       options, is_premium, use_llm)
