"""Turn raw model output into JSON.

Stages, tried in order until one parses:

1. strict  - ``json.loads`` on the trimmed text.
2. extract - the first top-level balanced ``{...}``/``[...]`` span found in
   surrounding prose or code fences, parsed strictly (an object span wins
   over an earlier array span).
3. repair  - smart-quote delimiters straightened, bare control characters in
   strings escaped, unterminated strings and brackets closed, trailing commas
   dropped, then parsed again.

Every scanner here is string-aware: a ``}`` inside a JSON string (generated
source code is full of them) never closes a structure.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Any

from tutorgen.services.tutorial.errors import ParseError


logger = logging.getLogger(__name__)

_OPENERS = {"{": "}", "[": "]"}
_SMART_DOUBLE_QUOTES = "“”„‟"
_SMART_SINGLE_QUOTES = "‘’‚‛"
_MAX_CANDIDATES = 32
_MAX_TRIMS = 8


@dataclass(frozen=True)
class ParsedJson:
    value: Any
    stage: int


def parse_json_with_repair(text: Any) -> ParsedJson:
    raw = str(text or "").strip()

    try:
        return _parsed(_loads(raw), stage=1)
    except ValueError as exc:
        logger.debug("strict parse failed: %s", exc)

    # 설명 문장 속 "[1]" 같은 배열보다 객체를 우선한다.
    spans, _tail = scan_top_level_spans(raw)
    first_non_object: list[Any] = []
    for start, end in spans:
        try:
            value = _loads(raw[start:end])
        except ValueError as exc:
            logger.debug("extracted span [%d:%d] failed: %s", start, end, exc)
            continue
        if isinstance(value, dict):
            return _parsed(value, stage=2)
        if not first_non_object:
            first_non_object.append(value)
    if first_non_object:
        return _parsed(first_non_object[0], stage=2)

    first_opener = _first_opener(raw)
    if first_opener is None:
        raise ParseError(stage=2, reason="no_json_span", excerpt=raw)

    normalized = normalize_smart_quotes(raw[first_opener:])
    spans, tail_start = scan_top_level_spans(normalized)
    candidates = [normalized[start:end] for start, end in spans]
    if tail_start is not None:
        candidates.append(normalized[tail_start:])

    last_error = "no_candidate"
    for candidate in candidates:
        try:
            return _parsed(_repair_and_load(candidate), stage=3)
        except ValueError as exc:
            last_error = str(exc)
            logger.debug("repair candidate failed: %s", exc)

    raise ParseError(stage=3, reason=last_error, excerpt=raw)


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except RecursionError as exc:
        raise ValueError("nesting_too_deep") from exc


def _parsed(value: Any, *, stage: int) -> ParsedJson:
    logger.info("model output parsed at stage %d", stage)
    return ParsedJson(value=value, stage=stage)


def _first_opener(text: str) -> int | None:
    positions = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    return min(positions) if positions else None


def _scan_structure(text: str, start: int) -> tuple[str, int]:
    """Walk the structure opened at ``start``.

    Returns ``("closed", end)`` with ``end`` just past the matching bracket,
    ``("mismatch", idx)`` at a closing bracket of the wrong kind, or
    ``("open", len(text))`` when the text ends first (truncated output).
    """
    stack: list[str] = []
    in_str = False
    escape = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue

        if ch == '"':
            in_str = True
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in "}]":
            if not stack or stack[-1] != ch:
                return "mismatch", idx
            stack.pop()
            if not stack:
                return "closed", idx + 1
    return "open", len(text)


def find_balanced_end(text: str, start: int) -> int | None:
    status, end = _scan_structure(text, start)
    return end if status == "closed" else None


def scan_top_level_spans(text: str) -> tuple[list[tuple[int, int]], int | None]:
    """Balanced spans in text order, plus the start of an unclosed tail if any.

    The search resumes past each span (or past a mismatched bracket), so
    objects nested inside a malformed document are never mistaken for the
    document itself.
    """
    spans: list[tuple[int, int]] = []
    pos = 0
    while len(spans) < _MAX_CANDIDATES:
        start = _next_opener(text, pos)
        if start is None:
            return spans, None
        status, end = _scan_structure(text, start)
        if status == "open":
            return spans, start
        if status == "closed":
            spans.append((start, end))
        pos = end if status == "closed" else end + 1
    return spans, None


def _next_opener(text: str, pos: int) -> int | None:
    for idx in range(pos, len(text)):
        if text[idx] in _OPENERS:
            return idx
    return None


def normalize_smart_quotes(text: str) -> str:
    out: list[str] = []
    in_str = False
    escape = False
    smart_open = False
    for ch in text:
        if ch in _SMART_SINGLE_QUOTES:
            out.append("'")
            continue
        if in_str:
            if escape:
                out.append(ch)
                escape = False
                continue
            if ch == "\\":
                out.append(ch)
                escape = True
                continue
            if ch == '"' or (smart_open and ch in _SMART_DOUBLE_QUOTES):
                out.append('"')
                in_str = False
                continue
            out.append(ch)
            continue

        if ch in _SMART_DOUBLE_QUOTES:
            out.append('"')
            in_str = True
            smart_open = True
            continue
        if ch == '"':
            in_str = True
            smart_open = False
        out.append(ch)
    return "".join(out)


def escape_control_chars_in_strings(text: str) -> str:
    out: list[str] = []
    in_str = False
    escape = False
    for ch in text:
        if in_str:
            if escape:
                out.append(ch)
                escape = False
                continue
            if ch == "\\":
                out.append(ch)
                escape = True
                continue
            if ch == '"':
                out.append(ch)
                in_str = False
                continue
            if ch == "\n":
                out.append("\\n")
            elif ch == "\r":
                out.append("\\r")
            elif ch == "\t":
                out.append("\\t")
            elif ord(ch) < 0x20:
                out.append(f"\\u{ord(ch):04x}")
            else:
                out.append(ch)
            continue
        if ch == '"':
            in_str = True
        out.append(ch)
    return "".join(out)


def strip_trailing_commas(text: str) -> str:
    out: list[str] = []
    in_str = False
    escape = False
    length = len(text)
    for idx, ch in enumerate(text):
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            out.append(ch)
            continue
        if ch == '"':
            in_str = True
        elif ch == ",":
            nxt = idx + 1
            while nxt < length and text[nxt].isspace():
                nxt += 1
            if nxt < length and text[nxt] in "}]":
                continue
        out.append(ch)
    return "".join(out)


def close_unbalanced(text: str) -> str:
    stack: list[str] = []
    in_str = False
    escape = False
    for ch in text:
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()

    suffix = ""
    if in_str:
        if escape:
            text = text[:-1]
        suffix += '"'
    else:
        text = text.rstrip()
        if text.endswith(":"):
            suffix += "null"
    suffix += "".join(reversed(stack))
    return text + suffix


def _last_separator_outside_strings(text: str) -> int | None:
    last = None
    in_str = False
    escape = False
    for idx, ch in enumerate(text):
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == ",":
            last = idx
    return last


def _repair_and_load(candidate: str) -> Any:
    text = escape_control_chars_in_strings(candidate)
    try:
        return _loads(strip_trailing_commas(close_unbalanced(text)))
    except ValueError as first_exc:
        error = first_exc

    # 잘린 응답: 마지막 완결 멤버까지 잘라내고 다시 닫아 본다.
    for _ in range(_MAX_TRIMS):
        cut = _last_separator_outside_strings(text)
        if cut is None:
            break
        text = text[:cut]
        try:
            return _loads(strip_trailing_commas(close_unbalanced(text)))
        except ValueError as exc:
            error = exc
    raise error
