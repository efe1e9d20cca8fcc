#!/usr/bin/env python3
"""
generate_batch.py — generate a batch of ear-training exercises into one run folder under runs/.

For every requested type x difficulty, generate --count exercises (algorithmically,
or through the configured LLM provider with --llm), and write:
  runs/<ts>_batch/exercises/<type>_<difficulty>_<n>.json   one ExerciseContent each
  runs/<ts>_batch/midi/<same name>.mid                      with --midi
  runs/<ts>_batch/manifest.json
  runs/<ts>_batch/batch.log
"""

import argparse
import json
import logging
import os
import pathlib
import random
import sys
import time
from datetime import datetime
from typing import Any, Dict, List

from tqdm import tqdm

from et_config import DIFFICULTIES, EXERCISE_TYPES
from et_adapter import ProviderAdapter
from et_generate import ExerciseGenerator
from et_midi import save_midi
from llm_client import build_provider


def _write_json(path: pathlib.Path, obj: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)


def _make_run_dir(root: pathlib.Path) -> pathlib.Path:
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    run_dir = root / f"{ts}_batch"
    run_dir.mkdir(parents=True, exist_ok=False)
    return run_dir


# ---------- logging ----------
def _setup_logging(run_dir: pathlib.Path, verbose: bool):
    log_fmt = "%(asctime)s | %(levelname)-8s | %(message)s"
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=log_fmt, force=True, handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(run_dir / "batch.log", encoding="utf-8"),
    ])
    logging.info("Logging to %s", run_dir / "batch.log")


def _parse_list(value: str, allowed) -> List[str]:
    items = [v.strip().lower() for v in (value or "").split(",") if v.strip()]
    if not items or items == ["all"]:
        return list(allowed)
    bad = [v for v in items if v not in allowed]
    if bad:
        raise SystemExit(f"Unknown value(s) {bad}; expected one of {list(allowed)} or 'all'.")
    return items


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a batch of ear-training exercises.")
    parser.add_argument("--types", default="all",
                        help="Comma-separated exercise types (interval,progression,melodic,rhythmic) or 'all'.")
    parser.add_argument("--difficulties", default="beginner",
                        help="Comma-separated difficulties (beginner,intermediate,advanced) or 'all'.")
    parser.add_argument("--count", type=int, default=int(os.getenv("BATCH_COUNT", "5")),
                        help="Exercises per type/difficulty pair (default 5).")
    parser.add_argument("--premium", action="store_true", help="Generate as a premium user.")
    parser.add_argument("--llm", action="store_true",
                        help="Use the LLM provider (LLM_PROVIDER env) with algorithmic fallback.")
    parser.add_argument("--provider", default=None, help="Override LLM_PROVIDER.")
    parser.add_argument("--interval", default=None, help="Ask the LLM for this interval (e.g. P5).")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible batches.")
    parser.add_argument("--midi", action="store_true", help="Also export each exercise as a .mid file.")
    parser.add_argument("--out", default=None, help="Runs root folder (default: ./runs next to this file).")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging.")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    types = _parse_list(args.types, EXERCISE_TYPES)
    difficulties = _parse_list(args.difficulties, DIFFICULTIES)
    if args.count < 1:
        raise SystemExit("--count must be >= 1.")

    runs_root = pathlib.Path(args.out) if args.out else pathlib.Path(__file__).resolve().parent / "runs"
    runs_root.mkdir(parents=True, exist_ok=True)
    run_dir = _make_run_dir(runs_root)
    _setup_logging(run_dir, args.verbose)

    adapter = ProviderAdapter(build_provider(args.provider)) if args.llm else None
    generator = ExerciseGenerator(adapter=adapter, rng=random.Random(args.seed))
    options: Dict[str, Any] = {"interval": args.interval} if args.interval else {}

    jobs = [(t, d, n) for t in types for d in difficulties for n in range(1, args.count + 1)]
    logging.info("New batch: %d exercises (types=%s, difficulties=%s, premium=%s, llm=%s).",
                 len(jobs), types, difficulties, args.premium, args.llm)

    written: List[Dict[str, Any]] = []
    try:
        for exercise_type, difficulty, n in tqdm(jobs, desc="Generating", unit="ex", ncols=80):
            name = f"{exercise_type}_{difficulty}_{n:03d}"
            t0 = time.perf_counter()
            exercise = generator.generate_exercise(exercise_type, difficulty, options,
                                                   is_premium=args.premium, use_llm=args.llm)
            _write_json(run_dir / "exercises" / f"{name}.json", exercise)
            entry = {
                "name": name,
                "type": exercise["type"],
                "difficulty": exercise["difficulty"],
                "answer": exercise["answer"],
                "requiresPremium": exercise["requiresPremium"],
                "file": f"exercises/{name}.json",
            }
            if args.midi:
                save_midi(exercise["content"]["midiSequence"], run_dir / "midi" / f"{name}.mid")
                entry["midi"] = f"midi/{name}.mid"
            written.append(entry)
            logging.debug("%s: done in %.2fs | answer=%s", name, time.perf_counter() - t0, exercise["answer"])
    except KeyboardInterrupt:
        logging.warning("Interrupted by user. %d/%d exercises written to %s", len(written), len(jobs), run_dir)

    manifest = {
        "created_at": datetime.now().isoformat(timespec="seconds"),
        "settings": {
            "types": types,
            "difficulties": difficulties,
            "count": args.count,
            "premium": args.premium,
            "llm": args.llm,
            "provider": (args.provider or os.getenv("LLM_PROVIDER", "groq")) if args.llm else None,
            "seed": args.seed,
        },
        "exercises": written,
    }
    _write_json(run_dir / "manifest.json", manifest)
    logging.info("Batch written:")
    logging.info("  • %s", run_dir / "exercises")
    logging.info("  • %s", run_dir / "manifest.json")


if __name__ == "__main__":
    main()
