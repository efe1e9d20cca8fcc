"""
et_midi.py — write a canonical MIDI sequence as a Standard MIDI File (mido).

Track 0 carries tempo + time signature; track 1 carries the notes and controllers.
Sequence channels are 1-based (1..16) except the percussion channel, which is
already 9 in both numberings.
"""

import logging
import pathlib
from typing import List, Tuple, Union

import mido
from mido import Message, MidiFile, MidiTrack, bpm2tempo

from et_config import DEFAULT_PPQ, DEFAULT_TEMPO, PERCUSSION_CHANNEL
from et_events import Sequence, as_int, clamp

log = logging.getLogger(__name__)


def _ascii(text) -> str:
    return str(text).encode("ascii", "replace").decode("ascii")[:64]


def to_midi_channel(channel: int) -> int:
    ch = as_int(channel, 1)
    if ch == PERCUSSION_CHANNEL:
        return PERCUSSION_CHANNEL
    return clamp(ch - 1, 0, 15)


def _timeline(seq: Sequence) -> List[Tuple[int, int, Message]]:
    """(absolute_tick, order, message); note_off sorts before note_on/control at the same tick."""
    out: List[Tuple[int, int, Message]] = []
    for e in seq.get("events") or []:
        ch = to_midi_channel(e.get("channel"))
        pos = max(0, as_int(e.get("position"), 0))
        d1 = clamp(as_int(e.get("data1"), 0), 0, 127)
        d2 = clamp(as_int(e.get("data2"), 0), 0, 127)
        if e.get("type") == "note":
            dur = max(0, as_int(e.get("duration"), 0))
            out.append((pos, 1, Message("note_on", channel=ch, note=d1, velocity=d2)))
            out.append((pos + dur, 0, Message("note_off", channel=ch, note=d1, velocity=0)))
        elif e.get("type") == "control":
            out.append((pos, 1, Message("control_change", channel=ch, control=d1, value=d2)))
    out.sort(key=lambda t: (t[0], t[1]))
    return out


def sequence_to_midifile(seq: Sequence) -> MidiFile:
    ppq = clamp(as_int(seq.get("ppq"), DEFAULT_PPQ) or DEFAULT_PPQ, 1, 32767)
    tempo = clamp(as_int(seq.get("tempo"), DEFAULT_TEMPO) or DEFAULT_TEMPO, 4, 999)   # set_tempo is 24-bit
    ts = seq.get("timeSignature") or {}
    num = clamp(as_int(ts.get("numerator"), 4) or 4, 1, 255)
    den = as_int(ts.get("denominator"), 4) or 4
    if den & (den - 1):
        den = 4   # SMF stores the denominator as a power of two

    mid = MidiFile(type=1, ticks_per_beat=ppq)
    meta = MidiTrack()
    meta.append(mido.MetaMessage("set_tempo", tempo=bpm2tempo(tempo)))
    meta.append(mido.MetaMessage("time_signature", numerator=num, denominator=den))
    mid.tracks.append(meta)

    track = MidiTrack()
    track.append(mido.MetaMessage("track_name", name=_ascii(seq.get("description") or "exercise")))
    last = 0
    for tick, _, msg in _timeline(seq):
        track.append(msg.copy(time=tick - last))
        last = tick
    mid.tracks.append(track)
    return mid


def save_midi(seq: Sequence, path: Union[str, pathlib.Path]) -> pathlib.Path:
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    sequence_to_midifile(seq).save(str(path))
    log.info("MIDI written: %s", path)
    return path
