"""
et_correct.py — recompute the musically correct answer from a parsed sequence.

Generated content's ground truth is always recomputed from its own notes,
never trusted from the model's prose: whatever `correctAnswer` the model
claimed is overwritten for interval, melodic and rhythmic exercises.
Progressions pass through unchanged (no chord-quality inference).
"""

import logging
from typing import Any, Dict, List

from et_config import DEFAULT_PPQ
from et_events import (
    Answer, Event, as_int, interval_answer, note_events, rhythm_pattern, sort_events,
)

log = logging.getLogger(__name__)

FORCED_STEP_TICKS = DEFAULT_PPQ   # notes land on 0, 480, 960, ...
MISMODELED_RHYTHM = "quarter-quarter"


def force_positions(events: List[Event], step: int = FORCED_STEP_TICKS) -> List[Event]:
    """
    Reassign note positions to 0, step, 2*step, ... in their temporal order
    (stable for ties), then re-sort the full list. Controls keep their ticks.
    Mutates the note dicts in place and returns the re-sorted list.
    """
    notes = sort_events(note_events(events))
    for i, note in enumerate(notes):
        note["position"] = i * step
    return sort_events(events)


def correct_interval(doc: Dict[str, Any]) -> Answer:
    notes = sort_events(note_events(doc["events"]))
    name = interval_answer(notes)
    if not name:
        log.info("Interval correction skipped (notes=%d); keeping stated answer.", len(notes))
        return doc.get("correctAnswer")
    log.info("Interval correction: %s -> %s = %s",
             notes[0].get("data1"), notes[1].get("data1"), name)
    return name


def correct_rhythmic(doc: Dict[str, Any]) -> Answer:
    notes = sort_events(note_events(doc["events"]))
    if not notes:
        return doc.get("correctAnswer")
    pitches = {as_int(n.get("data1")) for n in notes}
    if len(pitches) > 1:
        log.warning("Rhythmic exercise uses %d different pitches; treating as mismodeled.", len(pitches))
        return MISMODELED_RHYTHM
    return rhythm_pattern(notes)


def correct_melodic(doc: Dict[str, Any]) -> Answer:
    notes = sort_events(note_events(doc["events"]))
    if not notes:
        return doc.get("correctAnswer")
    return [str(as_int(n.get("data1"), 60)) for n in notes]


def correct_progression(doc: Dict[str, Any]) -> Answer:
    log.info("Progression answer kept as stated (chord quality is not inferred).")
    return doc.get("correctAnswer")


CORRECTORS = {
    "interval": correct_interval,
    "rhythmic": correct_rhythmic,
    "melodic": correct_melodic,
    "progression": correct_progression,
}


def apply_musical_correction(doc: Dict[str, Any], exercise_type: str) -> Dict[str, Any]:
    """
    Only runs when the parsed object carries a `correctAnswer`; expects
    canonical events. Returns the same dict, corrected.
    """
    if not isinstance(doc, dict) or not doc.get("correctAnswer"):
        return doc
    if not isinstance(doc.get("events"), list):
        return doc

    doc["events"] = force_positions(doc["events"])
    corrector = CORRECTORS.get(exercise_type, correct_progression)
    doc["correctAnswer"] = corrector(doc)
    return doc
