import json
import re
from typing import Any, Optional, Dict, List

_CODE_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?[^\S\n]*\n?(.*?)```", re.DOTALL)
_SENTENCE_SPLIT_PATTERN = re.compile(r"(?<=[.!?])\s+")


def strip_code_fences(text: str) -> str:
    """Unwrap the first Markdown code fence that holds an object.

    Fences with no '{' (transcript notes and the like) are skipped; if no
    fence qualifies the whole text is returned.
    """
    if not text:
        return ""
    for match in _CODE_FENCE_PATTERN.finditer(text):
        block = match.group(1).strip()
        if "{" in block:
            return block
    return text.strip().strip("`").strip()


def _loads_dict(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            cleaned = re.sub(r"[\x00-\x1f]", "", candidate)
            parsed = json.loads(cleaned)
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def extract_json_block(text: str) -> Optional[Dict[str, Any]]:
    """Extract the first valid JSON object from text.

    Braces inside quoted strings do not count towards nesting.
    """
    if not text:
        return None
    
    start = text.find("{")
    if start == -1:
        return None
    
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return _loads_dict(text[start : i + 1])
    return None


def extract_greedy_json(text: str) -> Optional[Dict[str, Any]]:
    """Parse the span from the first '{' to the last '}'.

    Falls back to the first balanced object when the greedy span is not
    valid JSON (e.g. prose with stray braces after the object).
    """
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    parsed = _loads_dict(text[start : end + 1])
    if parsed is not None:
        return parsed
    return extract_json_block(text)


def split_sentences(text: str) -> List[str]:
    if not text:
        return []
    collapsed = re.sub(r"\s+", " ", text).strip()
    return [s.strip() for s in _SENTENCE_SPLIT_PATTERN.split(collapsed) if s.strip()]


def parse_confidence(val: Any) -> float:
    """Coerce a model-supplied confidence into a finite float in [0, 1]."""
    if val is None or isinstance(val, bool):
        return 0.0
    try:
        s = str(val).strip().rstrip("%")
        number = float(s)
    except (ValueError, TypeError):
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    if isinstance(val, str) and val.strip().endswith("%"):
        number = number / 100.0
    return min(max(number, 0.0), 1.0)
