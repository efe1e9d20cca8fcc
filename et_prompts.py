# et_prompts.py
"""
Prompt construction for the LLM path:

- One global system prompt (built in; optionally overridden by prompts/system/global.txt).
- One user prompt template per exercise type, rendered with $-placeholders:
    $DIFFICULTY, $DIFFICULTY_HINT, $TARGET
- A type-specific instruction block appended to the system prompt, plus the
  hard JSON-only constraint.
"""

from string import Template
from typing import Dict, Optional
import pathlib

# Anchors to file locations relative to this file's folder.
BASE_DIR = pathlib.Path(__file__).resolve().parent
PROMPTS_DIR = BASE_DIR / "prompts"

DEFAULT_SYSTEM_PROMPT = """\
You are an expert in music theory, composition, and MIDI.
You will generate precise MIDI sequences for ear training musical exercises.
Use JSON format and exact numbers. Piano will be the instrument.
PPQ (ticks per quarter note): 480.
"""

JSON_ONLY_CONSTRAINT = (
    "IMPORTANT: Respond with ONLY valid JSON. No markdown, no explanations, just the JSON object. "
    "Use ONLY literal numbers - no mathematical expressions like \"480 + 10\". "
    "Use actual calculated values like \"490\"."
)

RESPONSE_FORMAT = """\
REQUIRED response format:
{
  "events": [
    {"type": "note", "channel": 1, "position": <ticks>, "data1": <pitch 0-127>,
     "data2": <velocity 1-127>, "duration": <ticks>},
    ...
  ],
  "ppq": 480,
  "tempo": <BPM integer>,
  "timeSignature": {"numerator": <int>, "denominator": <int>},
  "description": "<text explaining the exercise>",
  "correctAnswer": $ANSWER_SHAPE
}"""

ANSWER_SHAPES: Dict[str, str] = {
    "interval": '"<interval name, e.g. P5>"',
    "progression": '["I", "IV", "V", "I"] or similar array of chord numerals',
    "melodic": '["60", "62", "64"] or similar array of the MIDI pitches in order',
    "rhythmic": '"<pattern such as quarter-eighth-eighth-quarter>"',
}

DIFFICULTY_HINTS: Dict[str, Dict[str, str]] = {
    "interval": {
        "beginner": "Use simple intervals (M2, m3, M3, P5, P8).",
        "intermediate": "Use intervals including P4, m6, M6, m7.",
        "advanced": "Use all intervals, including the tritone and sevenths.",
    },
    "progression": {
        "beginner": "Use simple progressions (I-IV-V-I, I-vi-IV-V).",
        "intermediate": "Use medium progressions (ii-V-I, I-vi-ii-V).",
        "advanced": "Use complex progressions with secondary dominants or modal mixture.",
    },
    "melodic": {
        "beginner": "Use simple 3-4 note melodies in C major/A minor, stepwise motion.",
        "intermediate": "Use 5-7 note melodies with some skips, in major and minor keys.",
        "advanced": "Use 8-12 note melodies with chromaticism.",
    },
    "rhythmic": {
        "beginner": "Use simple quarter and eighth note patterns in 4/4.",
        "intermediate": "Use eighth and sixteenth notes and dotted rhythms in 3/4 or 4/4.",
        "advanced": "Use complex patterns with syncopation.",
    },
}

USER_TEMPLATES: Dict[str, str] = {
    "interval": """\
Generate a MIDI sequence for an interval identification exercise.
Difficulty: $DIFFICULTY
$DIFFICULTY_HINT
Create exactly two note events, separated in time.
The interval to be identified should be: $TARGET""",
    "progression": """\
Generate a MIDI sequence for a chord progression identification exercise.
Difficulty: $DIFFICULTY
$DIFFICULTY_HINT
Create a series of chord events with proper voice leading.
The progression to be identified should be noted using Roman numerals.""",
    "melodic": """\
Generate a MIDI sequence for a melodic dictation exercise.
Difficulty: $DIFFICULTY
$DIFFICULTY_HINT
The melody should be musical and memorable, with a clear tonal center.""",
    "rhythmic": """\
Generate a MIDI sequence for a rhythm identification exercise.
Difficulty: $DIFFICULTY
$DIFFICULTY_HINT
The rhythm should be played on a single pitch (MIDI note 60).""",
}

TYPE_INSTRUCTIONS: Dict[str, str] = {
    "interval": """\
Generate an interval identification exercise.

CRITICAL INTERVAL CALCULATION:
- 0 semitones = P1 (unison)
- 1 semitone = m2 (minor second)
- 2 semitones = M2 (major second)
- 3 semitones = m3 (minor third)
- 4 semitones = M3 (major third)
- 5 semitones = P4 (perfect fourth)
- 6 semitones = TT (tritone)
- 7 semitones = P5 (perfect fifth)
- 8 semitones = m6 (minor sixth)
- 9 semitones = M6 (major sixth)
- 10 semitones = m7 (minor seventh)
- 11 semitones = M7 (major seventh)
- 12 semitones = P8 (perfect octave)

EXAMPLE: Note 60 (C4) to Note 67 (G4) = 67-60 = 7 semitones = P5

Generate exactly 2 notes and calculate the interval CORRECTLY based on the semitone difference.""",
    "progression": """\
Generate a chord progression exercise.

Use these EXACT chord voicings in C major:
- I (C major): [60, 64, 67]
- ii (D minor): [62, 65, 69]
- iii (E minor): [64, 67, 71]
- IV (F major): [65, 69, 72]
- V (G major): [67, 71, 74]
- vi (A minor): [69, 72, 76]

Generate a 4-chord progression and make sure correctAnswer matches the chords you actually generate.""",
    "melodic": """\
Generate a melodic dictation exercise.

Create a simple 4-8 note melody using C major scale notes:
C=60, D=62, E=64, F=65, G=67, A=69, B=71, C=72

Play notes one after another (never simultaneously), about 480 ticks apart.
correctAnswer must be the array of the exact MIDI note numbers you generate, in order.""",
    "rhythmic": """\
Generate a rhythmic exercise.

IMPORTANT: Use the SAME note (C4 = 60) repeated with different rhythmic durations.
DO NOT generate intervals or melodies.

Common rhythm durations:
- Dotted quarter = 720 ticks
- Quarter note = 480 ticks
- Eighth note = 240 ticks
- Sixteenth note = 120 ticks

Generate 3-6 repetitions of the same note with varied durations.
correctAnswer should describe the pattern like "quarter-eighth-eighth-quarter".""",
}

# keyword -> exercise type, checked in order
TYPE_KEYWORDS = (
    ("interval", ("interval", "intervalo")),
    ("progression", ("progression", "progressão", "chord")),
    ("melodic", ("melodic", "melody", "melódic")),
    ("rhythmic", ("rhythmic", "rhythm", "rítmic")),
)


def _read_text(path: pathlib.Path) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def load_system_prompt(fallback: str = DEFAULT_SYSTEM_PROMPT) -> str:
    """
    Global system prompt used for all exercise types.
    File path: prompts/system/global.txt (optional override).
    """
    p = PROMPTS_DIR / "system" / "global.txt"
    return _read_text(p) if p.exists() else fallback


def detect_exercise_type(prompt: str) -> str:
    """Keyword match over free text; 'interval' when nothing matches."""
    text = (prompt or "").lower()
    for exercise_type, words in TYPE_KEYWORDS:
        if any(w in text for w in words):
            return exercise_type
    return "interval"


def augment_system_prompt(exercise_type: str, system_prompt: str) -> str:
    block = TYPE_INSTRUCTIONS.get(exercise_type, TYPE_INSTRUCTIONS["interval"])
    return f"{system_prompt.rstrip()}\n\n{block}\n\n{JSON_ONLY_CONSTRAINT}"


def render_user_prompt(exercise_type: str, difficulty: str, options: Optional[dict] = None) -> str:
    """
    Render the per-type user prompt. `options["interval"]` pins the interval to ask for.
    Always safe_substitute: unknown placeholders stay as they are.
    """
    options = options or {}
    template = USER_TEMPLATES.get(exercise_type, USER_TEMPLATES["interval"])
    ctx = {
        "DIFFICULTY": difficulty,
        "DIFFICULTY_HINT": DIFFICULTY_HINTS.get(exercise_type, {}).get(difficulty, ""),
        "TARGET": options.get("interval") or "choose one appropriate for the difficulty",
    }
    body = Template(template).safe_substitute(ctx)
    fmt = Template(RESPONSE_FORMAT).safe_substitute(
        ANSWER_SHAPE=ANSWER_SHAPES.get(exercise_type, ANSWER_SHAPES["interval"]))
    return f"{body}\n\n{fmt}"
