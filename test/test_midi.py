#!/usr/bin/env python3
"""
Tests for Standard MIDI File export.
"""

import unittest
import tempfile
import os
import sys

from mido import MidiFile

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import et_midi
from et_events import make_control, make_note, new_sequence


def _absolute(track):
    t, out = 0, []
    for msg in track:
        t += msg.time
        if not msg.is_meta:
            out.append((t, msg))
    return out


class TestChannels(unittest.TestCase):

    def test_one_based_to_zero_based(self):
        self.assertEqual(et_midi.to_midi_channel(1), 0)
        self.assertEqual(et_midi.to_midi_channel(16), 15)
        self.assertEqual(et_midi.to_midi_channel(0), 0)

    def test_percussion_channel_kept(self):
        self.assertEqual(et_midi.to_midi_channel(9), 9)


class TestSequenceToMidi(unittest.TestCase):

    def setUp(self):
        self.seq = new_sequence(
            [make_note(0, 60, velocity=90, duration=480), make_note(960, 67, duration=480),
             make_control(0, 64, 127)],
            "Perfect Fifth ascending", "P5", tempo=120,
        )

    def test_tracks_and_meta(self):
        mid = et_midi.sequence_to_midifile(self.seq)
        self.assertEqual(mid.type, 1)
        self.assertEqual(mid.ticks_per_beat, 480)
        self.assertEqual(len(mid.tracks), 2)
        meta_types = [m.type for m in mid.tracks[0]]
        self.assertIn("set_tempo", meta_types)
        self.assertIn("time_signature", meta_types)
        tempo = [m for m in mid.tracks[0] if m.type == "set_tempo"][0].tempo
        self.assertEqual(tempo, 500000)

    def test_note_timing(self):
        mid = et_midi.sequence_to_midifile(self.seq)
        events = [(t, m.type, getattr(m, "note", None)) for t, m in _absolute(mid.tracks[1])]
        self.assertIn((0, "note_on", 60), events)
        self.assertIn((480, "note_off", 60), events)
        self.assertIn((960, "note_on", 67), events)
        self.assertIn((1440, "note_off", 67), events)
        self.assertEqual(len([e for e in events if e[1] == "control_change"]), 1)
        self.assertEqual([t for t, _, _ in events], sorted(t for t, _, _ in events))

    def test_note_off_before_note_on_at_same_tick(self):
        seq = new_sequence([make_note(0, 60, duration=480), make_note(480, 60, duration=480)], "x", "P1")
        msgs = [(t, m.type) for t, m in _absolute(et_midi.sequence_to_midifile(seq).tracks[1])]
        at_480 = [kind for t, kind in msgs if t == 480]
        self.assertEqual(at_480, ["note_off", "note_on"])

    def test_save_and_reload(self):
        rhythm = new_sequence([make_note(i * 480, 60, velocity=100, duration=120, channel=9) for i in range(4)],
                              "Rhythm — test", "quarter")
        with tempfile.TemporaryDirectory() as tmpdir:
            path = et_midi.save_midi(rhythm, os.path.join(tmpdir, "out", "rhythm.mid"))
            self.assertTrue(path.exists())
            mid = MidiFile(str(path))
            note_ons = [m for m in mid.tracks[1] if m.type == "note_on"]
            self.assertEqual(len(note_ons), 4)
            self.assertTrue(all(m.channel == 9 for m in note_ons))

    def test_odd_time_signature_denominator(self):
        seq = new_sequence([make_note(0, 60)], "x", "P1", time_signature={"numerator": 7, "denominator": 6})
        ts = [m for m in et_midi.sequence_to_midifile(seq).tracks[0] if m.type == "time_signature"][0]
        self.assertEqual((ts.numerator, ts.denominator), (7, 4))


if __name__ == '__main__':
    unittest.main()
