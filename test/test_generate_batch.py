#!/usr/bin/env python3
"""
Tests for the batch command line: run folder layout, manifest and argument parsing.
"""

import unittest
import tempfile
import logging
import pathlib
import json
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import generate_batch
from et_config import DIFFICULTIES, EXERCISE_TYPES
from et_events import is_valid_sequence


class TestBatchRun(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        self.tmp.cleanup()

    def test_batch_writes_exercises_midi_and_manifest(self):
        generate_batch.main(["--types", "interval,rhythmic", "--count", "2", "--seed", "1",
                             "--midi", "--out", self.tmp.name])
        runs = list(pathlib.Path(self.tmp.name).glob("*_batch"))
        self.assertEqual(len(runs), 1)
        run_dir = runs[0]
        self.assertTrue((run_dir / "batch.log").exists())

        manifest = json.loads((run_dir / "manifest.json").read_text(encoding="utf-8"))
        self.assertEqual(manifest["settings"]["types"], ["interval", "rhythmic"])
        self.assertEqual(manifest["settings"]["difficulties"], ["beginner"])
        self.assertIsNone(manifest["settings"]["provider"])
        names = [e["name"] for e in manifest["exercises"]]
        self.assertEqual(names, ["interval_beginner_001", "interval_beginner_002",
                                 "rhythmic_beginner_001", "rhythmic_beginner_002"])

        for entry in manifest["exercises"]:
            self.assertTrue((run_dir / entry["midi"]).exists())
            exercise = json.loads((run_dir / entry["file"]).read_text(encoding="utf-8"))
            self.assertEqual(exercise["type"], entry["type"])
            self.assertEqual(exercise["answer"], entry["answer"])
            self.assertTrue(is_valid_sequence(exercise["content"]["midiSequence"]))

    def test_same_seed_same_answers(self):
        answers = []
        for sub in ("a", "b"):
            out = os.path.join(self.tmp.name, sub)
            generate_batch.main(["--types", "melodic", "--count", "3", "--seed", "7", "--out", out])
            run_dir = next(pathlib.Path(out).glob("*_batch"))
            manifest = json.loads((run_dir / "manifest.json").read_text(encoding="utf-8"))
            answers.append([e["answer"] for e in manifest["exercises"]])
            self.assertNotIn("midi", manifest["exercises"][0])
        self.assertEqual(answers[0], answers[1])


class TestParseList(unittest.TestCase):

    def test_all_and_empty(self):
        self.assertEqual(generate_batch._parse_list("all", EXERCISE_TYPES), list(EXERCISE_TYPES))
        self.assertEqual(generate_batch._parse_list("", DIFFICULTIES), list(DIFFICULTIES))

    def test_normalizes_case_and_spaces(self):
        self.assertEqual(generate_batch._parse_list(" Interval , MELODIC", EXERCISE_TYPES),
                         ["interval", "melodic"])

    def test_unknown_value_exits(self):
        with self.assertRaises(SystemExit):
            generate_batch._parse_list("interval,harmonic", EXERCISE_TYPES)

    def test_count_must_be_positive(self):
        with self.assertRaises(SystemExit):
            generate_batch.main(["--count", "0"])


if __name__ == '__main__':
    unittest.main()
