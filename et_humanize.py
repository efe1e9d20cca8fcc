"""
et_humanize.py — bounded stochastic perturbation of a sequence.

Two profiles:
  - "full"      (algorithmic generators): ±5 tick timing jitter, ±7 velocity,
                 duration ×0.97–1.03, sustain pedal + expression controllers.
  - "velocity"  (LLM path): positions are frozen (ticks were already forced);
                 ±3 velocity clamped to [60, 100], duration ×0.98–1.02.

Every entry point works on a deep copy and returns it.
"""

import copy
import logging
import math
import random
from typing import List, Optional

from et_config import (
    VELOCITY_FLOOR, VELOCITY_CEIL, SUSTAIN_CC, EXPRESSION_CC, DEFAULT_VELOCITY,
    DEFAULT_NOTE_TICKS, DEFAULT_CHANNEL, DEFAULT_PPQ,
)
from et_events import Event, Sequence, as_int, clamp, make_control, note_events, sort_events

log = logging.getLogger(__name__)

PROFILE_FULL = "full"
PROFILE_VELOCITY = "velocity"


def _vel(value, lo: int = VELOCITY_FLOOR, hi: int = VELOCITY_CEIL) -> int:
    return clamp(value, lo, hi)


def _scaled(duration: int, factor: float) -> int:
    return max(0, int(round(duration * factor)))


def _has_controller(events: List[Event], controller: int) -> bool:
    return any(e.get("type") == "control" and as_int(e.get("data1")) == controller for e in events)


# ---------- base profiles ----------
def _humanize_velocity_only(seq: Sequence, rng) -> Sequence:
    events = seq.get("events") or []
    original_positions = [e.get("position") for e in events]

    for i, e in enumerate(events):
        if e.get("type") == "note":
            e["data2"] = _vel(as_int(e.get("data2"), DEFAULT_VELOCITY) + rng.randint(-3, 3))
            e["duration"] = _scaled(as_int(e.get("duration"), DEFAULT_NOTE_TICKS), rng.uniform(0.98, 1.02))
        e["position"] = original_positions[i]

    final_positions = [e.get("position") for e in events]
    if final_positions != original_positions:
        log.error("Humanizer moved event positions; restoring %s", original_positions)
        for e, pos in zip(events, original_positions):
            e["position"] = pos
    return seq


def _humanize_full(seq: Sequence, rng) -> Sequence:
    events = seq.get("events") or []
    for e in events:
        if e.get("type") != "note":
            continue
        e["position"] = max(0, as_int(e.get("position"), 0) + rng.randint(-5, 5))
        e["data2"] = _vel(as_int(e.get("data2"), DEFAULT_VELOCITY) + rng.randint(-7, 7))
        e["duration"] = _scaled(as_int(e.get("duration"), DEFAULT_NOTE_TICKS), rng.uniform(0.97, 1.03))

    if not _has_controller(events, EXPRESSION_CC):
        events.append(make_control(0, EXPRESSION_CC, 100, channel=DEFAULT_CHANNEL))

    notes = sort_events(note_events(events))
    if len(notes) >= 2 and not _has_controller(events, SUSTAIN_CC):
        first, last = as_int(notes[0]["position"], 0), as_int(notes[-1]["position"], 0)
        events.append(make_control(first + 10, SUSTAIN_CC, 127))
        events.append(make_control(max(0, last - 5), SUSTAIN_CC, 0))

    seq["events"] = sort_events(events)
    return seq


def humanize(sequence: Sequence, profile: str = PROFILE_FULL, rng: Optional[random.Random] = None) -> Sequence:
    rng = rng or random
    out = copy.deepcopy(sequence)
    if not isinstance(out.get("events"), list):
        return out
    if profile == PROFILE_VELOCITY:
        return _humanize_velocity_only(out, rng)
    if profile == PROFILE_FULL:
        return _humanize_full(out, rng)
    raise ValueError(f"Unknown humanize profile: {profile}")


# ---------- per-exercise-type passes (velocity only, never timing) ----------
def _soften_second_note(seq: Sequence, rng) -> Sequence:
    notes = sort_events(note_events(seq["events"]))
    if len(notes) >= 2:
        second = notes[1]
        second["data2"] = _vel(math.floor(as_int(second.get("data2"), DEFAULT_VELOCITY) * 0.93))
    return seq


def _accent_beats(seq: Sequence, rng) -> Sequence:
    beat = 2 * (as_int(seq.get("ppq"), DEFAULT_PPQ) or DEFAULT_PPQ)
    for note in note_events(seq["events"]):
        pos = as_int(note.get("position"), 0)
        if pos == 0:
            mult = 1.06
        elif pos % beat == 0:
            mult = 1.03
        else:
            mult = 0.97
        note["data2"] = _vel(math.floor(as_int(note.get("data2"), DEFAULT_VELOCITY) * mult))
    return seq


def _phrase_curve(seq: Sequence, rng) -> Sequence:
    notes = sort_events(note_events(seq["events"]))
    span = max(1, len(notes) - 1)
    for i, note in enumerate(notes):
        mult = 0.94 + math.sin(i / span * math.pi) * 0.12   # 94% at the edges, 106% mid-phrase
        note["data2"] = _vel(math.floor(as_int(note.get("data2"), DEFAULT_VELOCITY) * mult))
    return seq


def _chord_jitter(seq: Sequence, rng) -> Sequence:
    for note in note_events(seq["events"]):
        note["data2"] = _vel(math.floor(as_int(note.get("data2"), DEFAULT_VELOCITY) * rng.uniform(0.98, 1.02)))
    return seq


TYPE_PASSES = {
    "interval": _soften_second_note,
    "rhythmic": _accent_beats,
    "melodic": _phrase_curve,
    "progression": _chord_jitter,
}


def humanize_by_type(sequence: Sequence, exercise_type: str, profile: str = PROFILE_FULL,
                     rng: Optional[random.Random] = None) -> Sequence:
    rng = rng or random
    out = humanize(sequence, profile=profile, rng=rng)
    if not isinstance(out.get("events"), list):
        return out
    type_pass = TYPE_PASSES.get(exercise_type)
    return type_pass(out, rng) if type_pass else out
