"""
et_repair.py — turn untrusted model text into a JSON document.

Stage 1, cleaning (always applied):
  code fences -> candidate {...} spans -> comments / single quotes / unquoted keys /
  trailing commas / simple integer arithmetic inside values.
  Candidates are each top-level balanced block in turn, then the greedy
  first-'{'-to-last-'}' span, so prose like "your {interval} exercise" ahead
  of the document does not hide it.

Stage 2, the cascade. Each tier is a pure function `tier(text) -> (doc, None) | (None, reason)`;
`first_success` runs them in order and the first tier that yields a parsed object wins:
  parse           plain json.loads of the cleaned text
  arithmetic      broader arithmetic/parenthesis folding, then parse
  note-fragments  regex-rebuild a minimal document from the note objects that survived
  static          hard-coded two-note document (never fails)
"""

import json
import logging
import math
import re
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from et_config import DEFAULT_PPQ, DEFAULT_TEMPO
from et_events import static_fallback_sequence

log = logging.getLogger(__name__)

Document = Dict[str, Any]
RepairResult = Tuple[Optional[Document], Optional[str]]
Tier = Callable[[str], RepairResult]


# ---------- lexical helpers ----------
def _segments(text: str) -> List[Tuple[bool, str]]:
    """
    Split text into (is_string, chunk) pieces. Recognizes "double" and 'single'
    quoted strings (with backslash escapes) and drops // and /* */ comments
    found outside of strings. An unterminated string runs to the end.
    """
    out: List[Tuple[bool, str]] = []
    code: List[str] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch in ('"', "'"):
            if code:
                out.append((False, "".join(code))); code = []
            j = i + 1
            while j < n and text[j] != ch:
                j += 2 if text[j] == "\\" else 1
            out.append((True, text[i:j + 1]))
            i = j + 1
        elif text.startswith("//", i):
            j = text.find("\n", i)
            i = n if j == -1 else j
        elif text.startswith("/*", i):
            j = text.find("*/", i + 2)
            i = n if j == -1 else j + 2
        else:
            code.append(ch)
            i += 1
    if code:
        out.append((False, "".join(code)))
    return out


def _requote(chunk: str) -> str:
    """'note' -> "note" (inner double quotes get escaped)."""
    if not chunk.startswith("'"):
        return chunk
    body = chunk[1:-1] if len(chunk) > 1 and chunk.endswith("'") else chunk[1:]
    body = body.replace("\\'", "'")
    body = re.sub(r'(?<!\\)"', r'\\"', body)
    return f'"{body}"'


def _map_code(text: str, fn: Callable[[str], str]) -> str:
    """Apply fn to the code chunks only; string literals pass through (requoted)."""
    return "".join(_requote(chunk) if is_str else fn(chunk) for is_str, chunk in _segments(text))


_NUM = r"-?\d+(?:\.\d+)?"
_VALUE_ARITH = re.compile(r"([:\[,]\s*)(-?\d+)\s*([*+\-])\s*(\d+)")
_ANY_ARITH = [
    re.compile(rf"({_NUM})\s*(\*)\s*({_NUM})"),
    re.compile(rf"({_NUM})\s*([+\-])\s*(\d+(?:\.\d+)?)"),
]
_PARENS = re.compile(rf"\(\s*({_NUM})\s*\)")


def _fold(a: str, op: str, b: str) -> str:
    x, y = float(a), float(b)
    r = x * y if op == "*" else x + y if op == "+" else x - y
    if not math.isfinite(r):
        return "0"
    return str(int(r)) if r == int(r) else repr(round(r, 6))


def _fold_value_arithmetic(code: str) -> str:
    prev = None
    while prev != code:
        prev = code
        code = _VALUE_ARITH.sub(lambda m: m.group(1) + _fold(m.group(2), m.group(3), m.group(4)), code, count=1)
    return code


def _fold_any_arithmetic(code: str) -> str:
    prev = None
    while prev != code:
        prev = code
        code = _PARENS.sub(r"\1", code)
        for rx in _ANY_ARITH:
            code = rx.sub(lambda m: _fold(m.group(1), m.group(2), m.group(3)), code, count=1)
            if code != prev:
                break
    return code


def _fix_code(code: str) -> str:
    code = _fold_value_arithmetic(code)
    code = re.sub(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)", r'\1"\2"\3', code)   # type: -> "type":
    code = re.sub(r",(\s*[}\]])", r"\1", code)                                      # trailing commas
    code = re.sub(r"(\d+)\.(\s*[,}\]])", r"\1\2", code)                              # 123. -> 123
    code = re.sub(r"}\s*{", "},{", code)                                             # missing commas
    code = re.sub(r"\bTrue\b", "true", code)
    code = re.sub(r"\bFalse\b", "false", code)
    code = re.sub(r"\bNone\b", "null", code)
    return code


# ---------- cleaning ----------
def strip_code_fences(text: str) -> str:
    return re.sub(r"```[A-Za-z]*", "", text or "")


def json_object_spans(text: str) -> List[str]:
    """
    Every top-level balanced {...} block, in order (string-aware). A block that
    never closes (truncated output) runs to the end and is the last one.
    """
    spans: List[str] = []
    depth, in_str, esc, start = 0, False, False, -1
    for i, ch in enumerate(text or ""):
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
        elif ch == '"' and depth:
            in_str = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
            if depth == 0:
                spans.append(text[start:i + 1])
    if depth:
        spans.append(text[start:])
    return spans


def extract_json_object(text: str) -> str:
    """The first balanced {...} block, or from the first '{' to the end if it never closes."""
    spans = json_object_spans(text)
    return spans[0] if spans else ""


def greedy_json_span(text: str) -> str:
    """From the first '{' to the last '}' (to the end when nothing closes after it)."""
    start = (text or "").find("{")
    if start == -1:
        return ""
    end = text.rfind("}")
    return text[start:end + 1] if end > start else text[start:]


def clean_span(span: str) -> str:
    return _map_code(span, _fix_code).strip()


def clean_response(text: str) -> str:
    return clean_span(extract_json_object(strip_code_fences(text)))


# ---------- tiers ----------
def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def _loads_object(text: str) -> RepairResult:
    try:
        obj = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        return None, f"invalid JSON: {e}"
    if not isinstance(obj, dict):
        return None, "top-level JSON value is not an object"
    return obj, None


def parse_document(text: str) -> RepairResult:
    return _loads_object(text)


def repair_arithmetic(text: str) -> RepairResult:
    folded = _map_code(text, _fold_any_arithmetic)
    if folded == text:
        return None, "no arithmetic to fold"
    return _loads_object(_map_code(folded, _fix_code))


_NOTE_FRAGMENT = re.compile(r'\{[^{}]*?"type"\s*:\s*"note"[^{}]*?"duration"\s*:\s*\d+[^{}]*')


def _int_field(fragment: str, key: str, default: int) -> int:
    m = re.search(rf'"{key}"\s*:\s*(-?\d+)', fragment)
    return int(m.group(1)) if m else default


def _answer_field(text: str) -> Optional[Any]:
    m = re.search(r'"correctAnswer"\s*:\s*"([^"]*)"', text)
    if m and m.group(1).strip():
        return m.group(1)
    m = re.search(r'"correctAnswer"\s*:\s*\[([^\]]*)\]', text)
    if m:
        items = [s.strip().strip('"').strip() for s in m.group(1).split(",")]
        items = [s for s in items if s]
        return items or None
    return None


def repair_extract_notes(text: str) -> RepairResult:
    fragments = _NOTE_FRAGMENT.findall(text or "")
    if not fragments:
        return None, "no note fragments found"
    events = [{
        "type": "note",
        "channel": _int_field(frag, "channel", 1),
        "position": max(0, _int_field(frag, "position", i * 960)),
        "data1": _int_field(frag, "data1", 60),
        "data2": _int_field(frag, "data2", 80),
        "duration": max(0, _int_field(frag, "duration", 480)),
    } for i, frag in enumerate(fragments)]
    doc: Document = {
        "events": events,
        "ppq": _int_field(text, "ppq", DEFAULT_PPQ),
        "tempo": _int_field(text, "tempo", DEFAULT_TEMPO),
        "timeSignature": {"numerator": 4, "denominator": 4},
        "description": "Exercise rebuilt from note fragments",
    }
    answer = _answer_field(text)
    if answer is not None:
        doc["correctAnswer"] = answer
    return _loads_object(json.dumps(doc))


def static_fallback(text: str, exercise_type: str = "interval") -> RepairResult:
    return _loads_object(json.dumps(static_fallback_sequence(exercise_type)))


# ---------- combinator ----------
def first_success(text: str, tiers: Sequence[Tuple[str, Tier]]) -> Tuple[Optional[Document], Optional[str]]:
    """Run tiers in order; return (document, tier_name) from the first that parses."""
    for name, tier in tiers:
        doc, reason = tier(text)
        if doc is not None:
            return doc, name
        log.debug("Repair tier '%s' failed: %s", name, reason)
    return None, None


def repair_tiers(exercise_type: str = "interval") -> List[Tuple[str, Tier]]:
    return [
        ("parse", parse_document),
        ("arithmetic", repair_arithmetic),
        ("note-fragments", repair_extract_notes),
        ("static", partial(static_fallback, exercise_type=exercise_type)),
    ]


def _attempts(text: str, exercise_type: str) -> List[Tuple[str, List[Tuple[str, Tier]]]]:
    """
    (candidate text, tiers) in the order they are tried: the parsing tiers on each
    top-level block, then on the first-'{'-to-last-'}' span; the rescue tiers on
    everything from the first '{' on, cleaned and then raw. The last attempt ends
    with the static tier.
    """
    tiers = repair_tiers(exercise_type)
    parsing, rescue = tiers[:2], tiers[2:]
    candidates = [clean_span(span) for span in json_object_spans(text)]
    candidates.append(clean_span(greedy_json_span(text)))
    attempts = [(c, parsing) for c in dict.fromkeys(candidates) if c]
    start = text.find("{")
    tail = text[start:] if start != -1 else text
    attempts.append((clean_span(tail), rescue[:-1]))
    attempts.append((tail, rescue))
    return attempts


def repair_cascade(raw_text: str, exercise_type: str = "interval") -> Tuple[Document, str]:
    text = strip_code_fences(raw_text or "")
    doc, tier = None, None
    for candidate, tiers in _attempts(text, exercise_type):
        doc, tier = first_success(candidate, tiers)
        if doc is not None:
            break
    if tier != "parse":
        log.warning("Model response needed repair; tier '%s' won.", tier)
    return doc, tier
