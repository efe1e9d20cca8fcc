#!/usr/bin/env python3
"""
Tests for normalizing note-on/off pairs, control changes and aliased events.
"""

import unittest
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from et_canonical import canonicalize_events


class TestNotePairs(unittest.TestCase):

    def test_matched_pairs_become_notes(self):
        events = [
            {"type": "noteOn", "time": 0, "note": 60, "velocity": 90, "channel": 1},
            {"type": "noteOff", "time": 480, "note": 60, "channel": 1},
            {"type": "noteOn", "position": 480, "data1": 64, "data2": 70},
            {"type": "noteOff", "time": 1200, "data1": 64},
        ]
        out = canonicalize_events(events)
        self.assertEqual(len(out), 2)
        self.assertTrue(all(e["type"] == "note" for e in out))
        self.assertEqual([(e["position"], e["data1"], e["duration"]) for e in out],
                         [(0, 60, 480), (480, 64, 720)])
        self.assertEqual(out[0]["data2"], 90)

    def test_n_pairs_yield_n_notes(self):
        events = []
        for i in range(5):
            events.append({"type": "note_on", "time": i * 100, "note": 60 + i, "velocity": 80})
        for i in range(5):
            events.append({"type": "note_off", "time": 1000 + i * 10, "note": 60 + i})
        out = canonicalize_events(events)
        self.assertEqual(len(out), 5)
        for i, e in enumerate(out):
            self.assertEqual(e["duration"], 1000 + i * 10 - i * 100)
            self.assertGreaterEqual(e["duration"], 0)

    def test_velocity_zero_note_on_releases(self):
        events = [
            {"type": "noteOn", "time": 0, "note": 62, "velocity": 80},
            {"type": "noteOn", "time": 240, "note": 62, "velocity": 0},
        ]
        out = canonicalize_events(events)
        self.assertEqual(len(out), 1)
        self.assertEqual(out[0]["duration"], 240)

    def test_unmatched_note_on_keeps_default_duration(self):
        out = canonicalize_events([{"type": "noteOn", "time": 960, "note": 67, "velocity": 80}])
        self.assertEqual(out, [{"type": "note", "channel": 1, "position": 960,
                                "data1": 67, "data2": 80, "duration": 480}])

    def test_pairing_is_per_channel(self):
        events = [
            {"type": "noteOn", "time": 0, "note": 60, "velocity": 80, "channel": 1},
            {"type": "noteOn", "time": 0, "note": 60, "velocity": 80, "channel": 2},
            {"type": "noteOff", "time": 100, "note": 60, "channel": 2},
        ]
        out = canonicalize_events(events)
        by_channel = {e["channel"]: e["duration"] for e in out}
        self.assertEqual(by_channel, {1: 480, 2: 100})

    def test_release_before_onset_clamps_to_zero(self):
        events = [
            {"type": "noteOn", "time": 500, "note": 60, "velocity": 80},
            {"type": "noteOff", "time": 400, "note": 60},
        ]
        self.assertEqual(canonicalize_events(events)[0]["duration"], 0)


class TestControlsAndAliases(unittest.TestCase):

    def test_control_change_mapping(self):
        out = canonicalize_events([{"type": "controlChange", "time": 10, "controller": 64, "value": 127}])
        self.assertEqual(out, [{"type": "control", "channel": 1, "position": 10, "data1": 64, "data2": 127}])

    def test_canonical_note_aliases(self):
        out = canonicalize_events([{"type": "note", "time": 100, "note": 62, "velocity": 70, "duration": 240}])
        self.assertEqual(out[0]["position"], 100)
        self.assertEqual(out[0]["data1"], 62)
        self.assertEqual(out[0]["data2"], 70)
        self.assertEqual(out[0]["duration"], 240)

    def test_note_without_duration_gets_default(self):
        out = canonicalize_events([{"type": "note", "position": 0, "data1": 60, "data2": 80}])
        self.assertEqual(out[0]["duration"], 480)

    def test_zero_is_a_real_value(self):
        out = canonicalize_events([{"type": "control", "position": 0, "data1": 11, "data2": 0, "value": 99}])
        self.assertEqual(out[0]["data2"], 0)

    def test_values_clamped_and_coerced(self):
        out = canonicalize_events([{"type": "note", "position": "480", "data1": 200,
                                    "data2": 300.4, "duration": -5, "channel": 40}])
        e = out[0]
        self.assertEqual((e["position"], e["data1"], e["data2"], e["duration"], e["channel"]),
                         (480, 127, 127, 0, 15))

    def test_unknown_and_malformed_dropped(self):
        out = canonicalize_events(["junk", 5, {"type": "pitchBend", "time": 0}, {"no": "type"}])
        self.assertEqual(out, [])
        self.assertEqual(canonicalize_events("not a list"), [])

    def test_output_sorted_by_position(self):
        events = [
            {"type": "note", "position": 960, "data1": 67, "duration": 480},
            {"type": "controlChange", "time": 0, "controller": 11, "value": 100},
            {"type": "note", "position": 0, "data1": 60, "duration": 480},
        ]
        self.assertEqual([e["position"] for e in canonicalize_events(events)], [0, 0, 960])


if __name__ == '__main__':
    unittest.main()
