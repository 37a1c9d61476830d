"""
Natours Backend — Extended Querystring Parsing
===============================================

What:  Turns flat (key, value) pairs into nested structures.
How:   Bracket segments open nested mappings, an empty bracket appends to a
       list, and a repeated plain key becomes a list of its values:

        duration[gte]=5&sort=price   → {"duration": {"gte": "5"}, "sort": "price"}
        tags[]=a&tags[]=b            → {"tags": ["a", "b"]}
        duration=5&duration=9        → {"duration": ["5", "9"]}

Used for both the URL query string and url-encoded request bodies.
"""

import re
from typing import Any, Dict, Iterable, List, Tuple

# Deeper keys are kept flat as a literal string key
MAX_DEPTH = 5

_KEY_RE = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_SEGMENT_RE = re.compile(r"\[([^\[\]]*)\]")


def split_key(key: str) -> List[str]:
    """'a[b][c]' -> ['a', 'b', 'c'];  'a[]' -> ['a', '']"""
    match = _KEY_RE.match(key)
    if not match:
        return [key]
    segments = [match.group(1)] + _SEGMENT_RE.findall(match.group(2))
    if len(segments) > MAX_DEPTH + 1:
        return [key]
    return segments


def _assign(target: Dict[str, Any], segments: List[str], value: str) -> None:
    head, rest = segments[0], segments[1:]

    if not rest:
        if head in target:
            existing = target[head]
            if isinstance(existing, list):
                existing.append(value)
            elif isinstance(existing, dict):
                target[head] = value
            else:
                target[head] = [existing, value]
        else:
            target[head] = value
        return

    if rest == [""]:
        existing = target.get(head)
        if isinstance(existing, list):
            existing.append(value)
        elif existing is None or isinstance(existing, dict):
            target[head] = [value]
        else:
            target[head] = [existing, value]
        return

    child = target.get(head)
    if not isinstance(child, dict):
        child = {}
        target[head] = child
    _assign(child, rest, value)


def parse_pairs(pairs: Iterable[Tuple[str, str]]) -> Dict[str, Any]:
    """Build the nested structure for an ordered sequence of key/value pairs."""
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if not key:
            continue
        _assign(result, split_key(key), value)
    return result
