"""
Central config/constants for ear-training exercise generation.
Static tables only: nothing in here is mutated at runtime.
"""

import os
from typing import Dict, List

# ---------- sequence defaults ----------
DEFAULT_PPQ: int = 480          # ticks per quarter note
DEFAULT_TEMPO: int = 90         # BPM
DEFAULT_TIME_SIGNATURE: Dict[str, int] = {"numerator": 4, "denominator": 4}
DEFAULT_CHANNEL: int = 1
DEFAULT_VELOCITY: int = 80
DEFAULT_NOTE_TICKS: int = 480   # duration given to notes that arrive without one
PERCUSSION_CHANNEL: int = 9

EXERCISE_TYPES = ("interval", "progression", "melodic", "rhythmic")
DIFFICULTIES = ("beginner", "intermediate", "advanced")

# ---------- intervals ----------
# Short name is the answer; label is for descriptions.
INTERVALS: List[Dict] = [
    {"name": "P1", "label": "Perfect Unison", "semitones": 0,  "premium": False},
    {"name": "m2", "label": "Minor Second",   "semitones": 1,  "premium": False},
    {"name": "M2", "label": "Major Second",   "semitones": 2,  "premium": False},
    {"name": "m3", "label": "Minor Third",    "semitones": 3,  "premium": False},
    {"name": "M3", "label": "Major Third",    "semitones": 4,  "premium": False},
    {"name": "P4", "label": "Perfect Fourth", "semitones": 5,  "premium": False},
    {"name": "TT", "label": "Tritone",        "semitones": 6,  "premium": True},
    {"name": "P5", "label": "Perfect Fifth",  "semitones": 7,  "premium": False},
    {"name": "m6", "label": "Minor Sixth",    "semitones": 8,  "premium": True},
    {"name": "M6", "label": "Major Sixth",    "semitones": 9,  "premium": True},
    {"name": "m7", "label": "Minor Seventh",  "semitones": 10, "premium": True},
    {"name": "M7", "label": "Major Seventh",  "semitones": 11, "premium": True},
    {"name": "P8", "label": "Perfect Octave", "semitones": 12, "premium": False},
]

# semitone delta -> short interval name (0..12)
SEMITONE_NAMES: Dict[int, str] = {iv["semitones"]: iv["name"] for iv in INTERVALS}

# Highest semitone count allowed per difficulty (advanced = unrestricted).
INTERVAL_MAX_SEMITONES: Dict[str, int] = {"beginner": 7, "intermediate": 12, "advanced": 12}

INTERVAL_BASE_LOW: int = 60     # base pitch drawn from one octave, 60..71
INTERVAL_SECOND_TICK: int = 960

# ---------- chord progressions ----------
PROGRESSIONS: Dict[str, List[Dict]] = {
    "beginner": [
        {"numerals": ["I", "IV", "V", "I"], "premium": False},
        {"numerals": ["I", "vi", "IV", "V"], "premium": False},
        {"numerals": ["I", "V", "vi", "IV"], "premium": False},
    ],
    "intermediate": [
        {"numerals": ["ii", "V", "I"], "premium": True},
        {"numerals": ["I", "vi", "ii", "V"], "premium": True},
        {"numerals": ["I", "IV", "ii", "V7"], "premium": True},
    ],
    "advanced": [
        {"numerals": ["iii", "vi", "ii", "V", "I"], "premium": True},
        {"numerals": ["I", "V/vi", "vi", "V/V", "V", "I"], "premium": True},
        {"numerals": ["I", "bVII", "bVI", "V"], "premium": True},
    ],
}

KEY_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
CHORD_SPACING_TICKS: int = 1920
CHORD_DURATION_TICKS: int = 1440
DEFAULT_PROGRESSION: List[str] = ["I", "IV", "V", "I"]

# ---------- melodic dictation ----------
MELODIC_NOTE_COUNT: Dict[str, int] = {"beginner": 3, "intermediate": 4, "advanced": 5}
PENTATONIC_POOL: List[int] = [60, 62, 64, 67, 69, 72, 74]
MELODIC_SPACING_TICKS: int = 960
MELODIC_NOTE_TICKS: int = 480

# ---------- rhythmic dictation ----------
# One beat = 500 ms; each entry is a per-beat pattern in milliseconds.
BEAT_MS: int = 500
BEAT_PATTERNS: Dict[str, List[float]] = {
    "quarter":    [500],
    "eighths":    [250, 250],
    "triplet":    [166.7, 166.7, 166.7],
    "sixteenths": [125, 125, 125, 125],
}
# Which patterns each difficulty may draw from (premium users only above beginner).
RHYTHM_POOLS: Dict[str, List[str]] = {
    "beginner":     ["quarter", "eighths"],
    "intermediate": ["quarter", "eighths", "triplet"],
    "advanced":     ["quarter", "eighths", "triplet", "sixteenths"],
}
RHYTHM_BEATS: int = 4
RHYTHM_PITCH: int = 60
RHYTHM_VELOCITY: int = 100
RHYTHM_MAX_NOTE_TICKS: int = 120   # short percussive notes stay audible without overlapping

# Duration buckets (ticks) used to describe rhythmic answers.
RHYTHM_BUCKETS = [(720, "dotted-quarter"), (480, "quarter"), (240, "eighth")]
RHYTHM_SMALLEST = "sixteenth"

# ---------- humanization ----------
VELOCITY_FLOOR: int = 60
VELOCITY_CEIL: int = 100
SUSTAIN_CC: int = 64
EXPRESSION_CC: int = 11

# ---------- LLM provider ----------
LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "groq")
LLM_TIMEOUT: float = float(os.getenv("LLM_TIMEOUT", "8"))
LLM_RETRIES: int = int(os.getenv("LLM_RETRIES", "1"))
LLM_TEMPERATURE: float = 0.7
LLM_MAX_TOKENS: int = 1500

# name -> (base_url, default model, env var holding the key)
PROVIDERS: Dict[str, Dict[str, str]] = {
    "groq":     {"base_url": "https://api.groq.com/openai/v1", "model": "llama-3.3-70b-versatile", "key_env": "GROQ_API_KEY"},
    "openai":   {"base_url": "", "model": "gpt-4.1", "key_env": "OPENAI_API_KEY"},
    "deepseek": {"base_url": "https://api.deepseek.com/v1", "model": "deepseek-chat", "key_env": "DEEPSEEK_API_KEY"},
    "llama":    {"base_url": "https://api.deepinfra.com/v1/openai", "model": "meta-llama/Llama-3.2-11B-Vision-Instruct", "key_env": "DEEPINFRA_API_KEY"},
    "gemini":   {"base_url": "https://generativelanguage.googleapis.com/v1beta/models", "model": "gemini-1.5-flash-8b", "key_env": "GOOGLE_API_KEY"},
}


def interval_name(semitones: int) -> str:
    """Short name for a semitone delta in 0..12; empty string outside the table."""
    return SEMITONE_NAMES.get(abs(int(semitones)), "")
