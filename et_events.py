"""
et_events.py — the canonical MIDI-like event/sequence model.

Events and sequences are plain dicts in the JSON wire shape:

  event    = {"type": "note"|"control", "channel", "position", "data1", "data2", "duration"?}
  sequence = {"events", "ppq", "tempo", "timeSignature", "description", "correctAnswer"}

This module builds them, fills in missing fields and gates their validity.
"""

import copy
import math
import logging
from typing import Any, Dict, List, Optional, Union

from et_config import (
    DEFAULT_PPQ, DEFAULT_TEMPO, DEFAULT_TIME_SIGNATURE, DEFAULT_CHANNEL,
    DEFAULT_VELOCITY, DEFAULT_NOTE_TICKS, DEFAULT_PROGRESSION, PERCUSSION_CHANNEL,
    RHYTHM_BUCKETS, RHYTHM_SMALLEST, EXERCISE_TYPES, interval_name,
)

log = logging.getLogger(__name__)

Event = Dict[str, Any]
Sequence = Dict[str, Any]
Answer = Union[str, List[str]]

EVENT_TYPES = ("note", "control")
REQUIRED_FIELDS = ("events", "ppq", "tempo", "timeSignature", "description", "correctAnswer")


# ---------- coercion ----------
def as_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Coerce JSON-ish numbers ("480", 480.0, 479.6) to int; anything else gives `default`."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(round(value)) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return as_int(float(value.strip()), default)
        except ValueError:
            return default
    return default


def clamp(x, lo, hi): return max(lo, min(hi, int(x)))


# ---------- builders ----------
def make_note(position: int, pitch: int, velocity: int = DEFAULT_VELOCITY,
              duration: int = DEFAULT_NOTE_TICKS, channel: int = DEFAULT_CHANNEL) -> Event:
    return {"type": "note", "channel": int(channel), "position": int(position),
            "data1": int(pitch), "data2": int(velocity), "duration": int(duration)}


def make_control(position: int, controller: int, value: int, channel: int = DEFAULT_CHANNEL) -> Event:
    return {"type": "control", "channel": int(channel), "position": int(position),
            "data1": int(controller), "data2": int(value)}


def new_sequence(events: List[Event], description: str, correct_answer: Answer,
                 ppq: int = DEFAULT_PPQ, tempo: int = DEFAULT_TEMPO,
                 time_signature: Optional[Dict[str, int]] = None) -> Sequence:
    return {
        "events": sort_events(events),
        "ppq": int(ppq),
        "tempo": int(tempo),
        "timeSignature": dict(time_signature or DEFAULT_TIME_SIGNATURE),
        "description": description,
        "correctAnswer": correct_answer,
    }


def sort_events(events: List[Event]) -> List[Event]:
    """Stable ascending sort by position (ties keep their incoming order)."""
    return sorted(events, key=lambda e: as_int(e.get("position"), 0))


def is_sorted(events: List[Event]) -> bool:
    pos = [as_int(e.get("position"), 0) for e in events]
    return all(a <= b for a, b in zip(pos, pos[1:]))


def note_events(events: List[Event]) -> List[Event]:
    return [e for e in events if isinstance(e, dict) and e.get("type") == "note"]


def notes_in_time_order(events: List[Event]) -> List[Event]:
    return sort_events(note_events(events))


# ---------- musical helpers shared by correction and completion ----------
def duration_bucket(ticks: int) -> str:
    for threshold, name in RHYTHM_BUCKETS:
        if ticks >= threshold:
            return name
    return RHYTHM_SMALLEST


def rhythm_pattern(notes: List[Event]) -> str:
    return "-".join(duration_bucket(as_int(n.get("duration"), DEFAULT_NOTE_TICKS)) for n in notes)


def interval_answer(notes: List[Event]) -> str:
    """Interval name for the first two notes in the given order ('' if undeterminable)."""
    if len(notes) < 2:
        return ""
    return interval_name(as_int(notes[1].get("data1"), 0) - as_int(notes[0].get("data1"), 0))


def derive_answer(exercise_type: str, events: List[Event]) -> Answer:
    notes = notes_in_time_order(events)
    if exercise_type == "progression":
        return list(DEFAULT_PROGRESSION)
    if exercise_type == "melodic":
        return [str(as_int(n.get("data1"), 60)) for n in notes] or ["60"]
    if exercise_type == "rhythmic":
        return rhythm_pattern(notes) or "quarter"
    return interval_answer(notes) or "P5"


# ---------- defaults ----------
def default_events(exercise_type: str) -> List[Event]:
    """Minimal, musically valid event set for each exercise type."""
    if exercise_type == "progression":
        chords = [(60, 64, 67), (65, 69, 72), (67, 71, 74), (60, 64, 67)]   # I IV V I in C
        return [make_note(i * 1920, p, duration=1440) for i, chord in enumerate(chords) for p in chord]
    if exercise_type == "melodic":
        evs = [make_note(i * 480, p) for i, p in enumerate((60, 62, 64, 65))]
        evs.append(make_note(1920, 67, duration=960))
        return evs
    if exercise_type == "rhythmic":
        return [make_note(t, 60, velocity=100, duration=120, channel=PERCUSSION_CHANNEL)
                for t in (0, 480, 960, 1200, 1440, 1920)]
    return [make_note(0, 60), make_note(960, 67)]


FALLBACK_ANSWERS: Dict[str, Answer] = {
    "interval": "P5",
    "progression": list(DEFAULT_PROGRESSION),
    "melodic": ["60", "67"],
    "rhythmic": "quarter-quarter",
}


def static_fallback_sequence(exercise_type: str = "interval") -> Sequence:
    """Two-note perfect fifth (60 → 67), tagged with the exercise type's canonical answer."""
    answer = FALLBACK_ANSWERS.get(exercise_type, FALLBACK_ANSWERS["interval"])
    return new_sequence(
        [make_note(0, 60), make_note(960, 67)],
        description=f"Perfect Fifth ({exercise_type} fallback)",
        correct_answer=copy.deepcopy(answer),
    )


# ---------- completion ----------
def _answer_is_empty(answer: Any) -> bool:
    if answer is None:
        return True
    if isinstance(answer, str):
        return not answer.strip()
    if isinstance(answer, list):
        return not answer
    return True


def _normalize_answer(answer: Any) -> Answer:
    if isinstance(answer, list):
        return [str(a) for a in answer]
    return str(answer)


def complete_sequence(doc: Dict[str, Any], exercise_type: str, difficulty: str = "beginner") -> Sequence:
    """
    Default each missing/invalid field independently; never rejects.
    Events are expected to be canonical already (see et_canonical).
    """
    out = dict(doc) if isinstance(doc, dict) else {}

    events = out.get("events")
    if not isinstance(events, list) or not note_events(events):
        log.warning("Missing or empty events in %s sequence; using defaults.", exercise_type)
        events = default_events(exercise_type)
    out["events"] = sort_events(events)

    ppq = as_int(out.get("ppq"))
    out["ppq"] = ppq if ppq and ppq > 0 else DEFAULT_PPQ

    tempo = as_int(out.get("tempo"))
    out["tempo"] = tempo if tempo and tempo > 0 else DEFAULT_TEMPO

    ts = out.get("timeSignature")
    num = as_int(ts.get("numerator")) if isinstance(ts, dict) else None
    den = as_int(ts.get("denominator")) if isinstance(ts, dict) else None
    if num and den and num > 0 and den > 0:
        out["timeSignature"] = {"numerator": num, "denominator": den}
    else:
        out["timeSignature"] = dict(DEFAULT_TIME_SIGNATURE)

    desc = out.get("description")
    if not isinstance(desc, str) or not desc.strip():
        out["description"] = f"{exercise_type} exercise ({difficulty})"

    if _answer_is_empty(out.get("correctAnswer")):
        log.warning("Missing correctAnswer in %s sequence; deriving it from the notes.", exercise_type)
        out["correctAnswer"] = derive_answer(exercise_type, out["events"])
    else:
        out["correctAnswer"] = _normalize_answer(out["correctAnswer"])

    return {k: out[k] for k in REQUIRED_FIELDS}


# ---------- validation ----------
def _err(errors, msg): errors.append(msg)


def validate_sequence_or_raise(doc: Any) -> Sequence:
    errors: List[str] = []
    if not isinstance(doc, dict):
        raise RuntimeError("sequence must be an object.")
    for field in REQUIRED_FIELDS:
        if field not in doc:
            _err(errors, f"missing field '{field}'.")
    if errors:
        raise RuntimeError(" ".join(errors))

    events = doc["events"]
    if not isinstance(events, list) or not events:
        _err(errors, "events must be a non-empty list.")
        events = []
    for i, e in enumerate(events):
        if not isinstance(e, dict):
            _err(errors, f"events[{i}] must be an object."); continue
        if e.get("type") not in EVENT_TYPES:
            _err(errors, f"events[{i}].type must be one of {EVENT_TYPES}.")
        for key in ("channel", "position", "data1", "data2"):
            if not isinstance(e.get(key), int) or isinstance(e.get(key), bool):
                _err(errors, f"events[{i}].{key} must be an integer.")
        if isinstance(e.get("position"), int) and e["position"] < 0:
            _err(errors, f"events[{i}].position must be >= 0.")
        if e.get("type") == "note" and not isinstance(e.get("duration"), int):
            _err(errors, f"events[{i}].duration is required for notes.")
    if events and not errors and not is_sorted(events):
        _err(errors, "events must be sorted by position.")

    if not isinstance(doc["ppq"], int) or doc["ppq"] <= 0:
        _err(errors, "ppq must be a positive integer.")
    if not isinstance(doc["tempo"], int) or doc["tempo"] <= 0:
        _err(errors, "tempo must be a positive integer.")
    ts = doc["timeSignature"]
    if not isinstance(ts, dict) or not all(isinstance(ts.get(k), int) and ts.get(k) > 0
                                           for k in ("numerator", "denominator")):
        _err(errors, "timeSignature needs positive integer numerator/denominator.")
    if not isinstance(doc["description"], str):
        _err(errors, "description must be a string.")
    ans = doc["correctAnswer"]
    if _answer_is_empty(ans) or (isinstance(ans, list) and not all(isinstance(a, str) for a in ans)):
        _err(errors, "correctAnswer must be a non-empty string or list of strings.")

    if errors:
        raise RuntimeError(" ".join(errors))
    return doc


def is_valid_sequence(doc: Any) -> bool:
    try:
        validate_sequence_or_raise(doc)
        return True
    except RuntimeError:
        return False


def check_exercise_type(exercise_type: str) -> str:
    if exercise_type not in EXERCISE_TYPES:
        raise ValueError(f"Unknown exercise type: {exercise_type}")
    return exercise_type
