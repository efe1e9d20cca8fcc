"""
et_canonical.py — normalize heterogeneous event shapes into canonical note/control events.

Accepted shapes:
  - noteOn / noteOff pairs (also note_on / note_off), paired by pitch + channel;
    a noteOn with velocity 0 counts as a noteOff.
  - controlChange (also control_change) with controller / value.
  - note / control events using any of the aliases note|time|velocity|value.
Anything else is dropped. Output is sorted by ascending position.
"""

import logging
from typing import Any, Dict, List, Tuple

from et_config import DEFAULT_CHANNEL, DEFAULT_VELOCITY, DEFAULT_NOTE_TICKS
from et_events import Event, as_int, clamp, sort_events

log = logging.getLogger(__name__)

NOTE_ON_TYPES = ("noteOn", "note_on")
NOTE_OFF_TYPES = ("noteOff", "note_off")
CONTROL_CHANGE_TYPES = ("controlChange", "control_change")


def _first_int(event: Dict[str, Any], keys: Tuple[str, ...], default: int) -> int:
    """First key whose value coerces to an int (0 counts as a value)."""
    for k in keys:
        v = as_int(event.get(k))
        if v is not None:
            return v
    return default


def _channel(event: Dict[str, Any]) -> int:
    return clamp(_first_int(event, ("channel",), DEFAULT_CHANNEL), 0, 15)


def _pitch(event: Dict[str, Any]) -> int:
    return clamp(_first_int(event, ("data1", "note", "pitch"), 60), 0, 127)


def _time(event: Dict[str, Any]) -> int:
    return max(0, _first_int(event, ("position", "time"), 0))


def _note(channel: int, position: int, pitch: int, velocity: int, duration: int) -> Event:
    return {"type": "note", "channel": channel, "position": position,
            "data1": pitch, "data2": clamp(velocity, 0, 127), "duration": max(0, int(duration))}


def _control(channel: int, position: int, controller: int, value: int) -> Event:
    return {"type": "control", "channel": channel, "position": position,
            "data1": clamp(controller, 0, 127), "data2": clamp(value, 0, 127)}


def canonicalize_events(events: Any) -> List[Event]:
    if not isinstance(events, list):
        return []

    out: List[Event] = []
    open_notes: Dict[str, Event] = {}   # "pitch_channel" -> pending noteOn (insertion ordered)

    for ev in events:
        if not isinstance(ev, dict):
            continue
        kind = ev.get("type")
        velocity = _first_int(ev, ("data2", "velocity"), DEFAULT_VELOCITY)

        if kind in NOTE_ON_TYPES and velocity > 0:
            pitch, ch = _pitch(ev), _channel(ev)
            key = f"{pitch}_{ch}"
            if key in open_notes:
                # retriggered before release: close the previous one with its default length
                out.append(open_notes.pop(key))
            open_notes[key] = _note(ch, _time(ev), pitch, velocity, DEFAULT_NOTE_TICKS)

        elif kind in NOTE_OFF_TYPES or kind in NOTE_ON_TYPES:
            key = f"{_pitch(ev)}_{_channel(ev)}"
            pending = open_notes.pop(key, None)
            if pending is not None:
                pending["duration"] = max(0, _time(ev) - pending["position"])
                out.append(pending)

        elif kind in CONTROL_CHANGE_TYPES:
            out.append(_control(_channel(ev), _time(ev),
                                _first_int(ev, ("controller", "data1"), 0),
                                _first_int(ev, ("value", "data2"), 0)))

        elif kind == "note":
            out.append(_note(_channel(ev), _time(ev), _pitch(ev), velocity,
                             _first_int(ev, ("duration",), DEFAULT_NOTE_TICKS)))

        elif kind == "control":
            out.append(_control(_channel(ev), _time(ev),
                                _first_int(ev, ("data1", "controller"), 0),
                                _first_int(ev, ("data2", "value"), 0)))

    # unmatched noteOn keeps its default duration
    out.extend(open_notes.values())

    if len(out) != len(events):
        log.info("Canonicalized %d events into %d.", len(events), len(out))
    return sort_events(out)
