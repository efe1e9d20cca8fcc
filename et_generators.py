"""
et_generators.py — closed-form exercise generators.

Each generator takes (difficulty, is_premium, rng) and returns an ExerciseContent dict:
  {"type", "difficulty", "content": {..., "midiSequence"}, "answer", "requiresPremium"}
Premium gating happens here: a non-premium caller never receives premium content.
"""

import logging
import random
import re
from typing import Any, Dict, List, Optional

from et_config import (
    INTERVALS, INTERVAL_MAX_SEMITONES, INTERVAL_BASE_LOW, INTERVAL_SECOND_TICK,
    PROGRESSIONS, KEY_NAMES, CHORD_SPACING_TICKS, CHORD_DURATION_TICKS,
    MELODIC_NOTE_COUNT, PENTATONIC_POOL, MELODIC_SPACING_TICKS, MELODIC_NOTE_TICKS,
    BEAT_PATTERNS, RHYTHM_POOLS, RHYTHM_BEATS, RHYTHM_PITCH, RHYTHM_VELOCITY,
    RHYTHM_MAX_NOTE_TICKS, DEFAULT_PPQ, PERCUSSION_CHANNEL,
)
from et_events import make_note, new_sequence
from et_humanize import humanize_by_type, PROFILE_FULL

log = logging.getLogger(__name__)

ExerciseContent = Dict[str, Any]

# scale degree -> semitones above the tonic (major scale)
_DEGREES = {"i": 0, "ii": 2, "iii": 4, "iv": 5, "v": 7, "vi": 9, "vii": 11}
_NUMERAL = re.compile(r"^(b*|#*)([ivIV]+)(.*)$")


def _exercise(exercise_type: str, difficulty: str, content: Dict[str, Any],
              answer, requires_premium: bool) -> ExerciseContent:
    return {
        "type": exercise_type,
        "difficulty": difficulty,
        "content": content,
        "answer": answer,
        "requiresPremium": bool(requires_premium),
    }


# ---------- interval ----------
def _interval_pool(difficulty: str, is_premium: bool) -> List[Dict]:
    limit = INTERVAL_MAX_SEMITONES.get(difficulty, INTERVAL_MAX_SEMITONES["beginner"])
    pool = [iv for iv in INTERVALS
            if (not iv["premium"] or is_premium) and iv["semitones"] <= limit
            and not (difficulty == "beginner" and iv["premium"])]
    return pool or [iv for iv in INTERVALS if not iv["premium"]]


def generate_interval_exercise(difficulty: str = "beginner", is_premium: bool = False,
                               rng: Optional[random.Random] = None) -> ExerciseContent:
    rng = rng or random
    interval = rng.choice(_interval_pool(difficulty, is_premium))
    base = INTERVAL_BASE_LOW + rng.randrange(12)
    ascending = rng.random() >= 0.5
    second = base + interval["semitones"] if ascending else base - interval["semitones"]

    seq = new_sequence(
        [make_note(0, base), make_note(INTERVAL_SECOND_TICK, second)],
        description=f"{interval['label']} {'ascending' if ascending else 'descending'}",
        correct_answer=interval["name"],
    )
    seq = humanize_by_type(seq, "interval", profile=PROFILE_FULL, rng=rng)
    return _exercise("interval", difficulty, {
        "notes": [base, second],
        "intervals": [interval["name"]],
        "midiSequence": seq,
    }, interval["name"], interval["premium"])


# ---------- progression ----------
def numeral_root(numeral: str) -> int:
    """
    Semitones above the tonic for a Roman numeral: 'IV' -> 5, 'bVII' -> 10,
    'V/V' -> 2 (dominant of the target). Unknown text maps to the tonic.
    """
    if "/" in numeral:
        head, target = numeral.split("/", 1)
        return (numeral_root(head) + numeral_root(target)) % 12
    m = _NUMERAL.match(numeral.strip())
    if not m:
        return 0
    accidentals, roman, _ = m.groups()
    base = _DEGREES.get(roman.lower(), 0)
    shift = -len(accidentals) if accidentals.startswith("b") else len(accidentals)
    return (base + shift) % 12


def numeral_is_minor(numeral: str) -> bool:
    head = numeral.split("/", 1)[0].lstrip("b#")
    return "m" in head or head[:1].islower()


def _progression_pool(difficulty: str, is_premium: bool) -> List[Dict]:
    pool = [p for p in PROGRESSIONS.get(difficulty, PROGRESSIONS["beginner"])
            if not p["premium"] or is_premium]
    return pool or [p for p in PROGRESSIONS["beginner"] if not p["premium"]]


def generate_progression_exercise(difficulty: str = "beginner", is_premium: bool = False,
                                  rng: Optional[random.Random] = None) -> ExerciseContent:
    rng = rng or random
    progression = rng.choice(_progression_pool(difficulty, is_premium))
    numerals: List[str] = list(progression["numerals"])
    key_offset = rng.randrange(12)
    key_name = KEY_NAMES[key_offset]

    events = []
    for i, numeral in enumerate(numerals):
        root = 60 + key_offset + numeral_root(numeral)
        third = root + (3 if numeral_is_minor(numeral) else 4)
        for pitch in (root, third, root + 7):
            events.append(make_note(i * CHORD_SPACING_TICKS, pitch, duration=CHORD_DURATION_TICKS))

    seq = new_sequence(events,
                       description=f"Progression: {' - '.join(numerals)} in {key_name}",
                       correct_answer=list(numerals))
    seq = humanize_by_type(seq, "progression", profile=PROFILE_FULL, rng=rng)
    return _exercise("progression", difficulty, {
        "chords": [f"{n} ({key_name})" for n in numerals],
        "midiSequence": seq,
    }, list(numerals), progression["premium"])


# ---------- melodic ----------
def generate_melodic_exercise(difficulty: str = "beginner", is_premium: bool = False,
                              rng: Optional[random.Random] = None) -> ExerciseContent:
    rng = rng or random
    requires_premium = difficulty != "beginner"
    if requires_premium and not is_premium:
        note_count, requires_premium = MELODIC_NOTE_COUNT["beginner"], False
    else:
        note_count = MELODIC_NOTE_COUNT.get(difficulty, MELODIC_NOTE_COUNT["beginner"])

    notes = [rng.choice(PENTATONIC_POOL) for _ in range(note_count)]
    answer = [str(n) for n in notes]
    seq = new_sequence(
        [make_note(i * MELODIC_SPACING_TICKS, n, duration=MELODIC_NOTE_TICKS) for i, n in enumerate(notes)],
        description=f"{note_count}-note melody on the pentatonic scale",
        correct_answer=list(answer),
    )
    seq = humanize_by_type(seq, "melodic", profile=PROFILE_FULL, rng=rng)
    return _exercise("melodic", difficulty, {"notes": notes, "midiSequence": seq},
                     answer, requires_premium)


# ---------- rhythmic ----------
def ms_to_ticks(ms: float, ppq: int = DEFAULT_PPQ) -> int:
    return int(round(ms / 1000 * ppq * 4))


def format_ms(ms: float) -> str:
    return str(int(ms)) if float(ms).is_integer() else str(ms)


def generate_rhythmic_exercise(difficulty: str = "beginner", is_premium: bool = False,
                               rng: Optional[random.Random] = None) -> ExerciseContent:
    rng = rng or random
    requires_premium = difficulty != "beginner"
    if requires_premium and not is_premium:
        pool, requires_premium = RHYTHM_POOLS["beginner"], False
    else:
        pool = RHYTHM_POOLS.get(difficulty, RHYTHM_POOLS["beginner"])

    rhythms: List[float] = []
    for _ in range(RHYTHM_BEATS):
        rhythms.extend(BEAT_PATTERNS[rng.choice(pool)])

    events, position = [], 0
    for ms in rhythms:
        ticks = ms_to_ticks(ms)
        events.append(make_note(position, RHYTHM_PITCH, velocity=RHYTHM_VELOCITY,
                                duration=min(ticks, RHYTHM_MAX_NOTE_TICKS), channel=PERCUSSION_CHANNEL))
        position += ticks

    answer = [format_ms(ms) for ms in rhythms]
    seq = new_sequence(events, description=f"{RHYTHM_BEATS}-beat rhythm pattern",
                       correct_answer=list(answer))
    seq = humanize_by_type(seq, "rhythmic", profile=PROFILE_FULL, rng=rng)
    return _exercise("rhythmic", difficulty, {"rhythms": rhythms, "midiSequence": seq},
                     answer, requires_premium)


GENERATORS = {
    "interval": generate_interval_exercise,
    "progression": generate_progression_exercise,
    "melodic": generate_melodic_exercise,
    "rhythmic": generate_rhythmic_exercise,
}
