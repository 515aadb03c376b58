"""Extended urlencoded form parsing.

Bracketed keys build nested structures:

    user[name]=Ann&user[tags][]=a&user[tags][]=b
    -> {"user": {"name": "Ann", "tags": ["a", "b"]}}

Numeric indices up to `array_limit` build lists (holes are dropped),
larger ones stay object keys. Repeated keys collect into a list. Keys
nested deeper than `depth` keep the remainder as one literal key.
"""

import re
from typing import Any
from urllib.parse import parse_qsl

_SEGMENT = re.compile(r"\[[^\[\]]*\]")


def split_key(key: str, depth: int) -> list[str]:
    """Split ``a[b][c]`` into ``["a", "[b]", "[c]"]``.

    Child segments keep their brackets so ``a[0]`` (index) can be told
    apart from ``0`` (plain key).
    """
    first = _SEGMENT.search(key) if depth > 0 else None
    if first is None:
        return [key]

    parent = key[:first.start()]
    segments = [parent] if parent else []
    for count, match in enumerate(_SEGMENT.finditer(key, first.start())):
        if count == depth:
            segments.append("[" + key[match.start():] + "]")
            break
        segments.append(match.group(0))
    return segments


def _is_index(name: str, array_limit: int) -> bool:
    """ASCII digits only, no leading zeros, at most `array_limit`."""
    if not (name.isascii() and name.isdigit()) or len(name) > len(str(array_limit)):
        return False
    return str(int(name)) == name and int(name) <= array_limit


def _build(segments: list[str], value: str, array_limit: int) -> Any:
    leaf: Any = value
    for segment in reversed(segments):
        if segment == "[]":
            leaf = leaf if isinstance(leaf, list) else [leaf]
            continue
        bracketed = segment.startswith("[") and segment.endswith("]")
        name = segment[1:-1] if bracketed else segment
        if bracketed and _is_index(name, array_limit):
            # int keys mark list positions until _compact
            leaf = {int(name): leaf}
        else:
            leaf = {name: leaf}
    return leaf


def _as_mapping(value: list) -> dict:
    return dict(enumerate(value))


def _merge(target: Any, source: Any) -> Any:
    if not isinstance(source, (dict, list)):
        if isinstance(target, list):
            target.append(source)
            return target
        return [target, source]

    if not isinstance(target, (dict, list)):
        return [target, *source] if isinstance(source, list) else [target, source]

    if isinstance(target, list) and isinstance(source, list):
        for index, item in enumerate(source):
            if index < len(target) and isinstance(target[index], (dict, list)) and isinstance(item, (dict, list)):
                target[index] = _merge(target[index], item)
            else:
                target.append(item)
        return target

    if isinstance(target, list):
        target = _as_mapping(target)
    if isinstance(source, list):
        source = _as_mapping(source)

    for key, value in source.items():
        target[key] = _merge(target[key], value) if key in target else value
    return target


def _compact(value: Any) -> Any:
    if isinstance(value, list):
        return [_compact(v) for v in value]
    if not isinstance(value, dict):
        return value
    if value and all(isinstance(k, int) for k in value):
        return [_compact(value[k]) for k in sorted(value)]
    return {str(k): _compact(v) for k, v in value.items()}


def parse_nested_form(text: str, depth: int = 5, array_limit: int = 20) -> dict[str, Any]:
    """Parse an application/x-www-form-urlencoded body into nested data."""
    result: dict[Any, Any] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        if not key:
            continue
        segments = split_key(key, depth)
        if segments[0] == "[]":
            segments = [key]
        result = _merge(result, _build(segments, value, array_limit))
    # The top level is always an object, even for keys like "[0]"
    return {str(k): _compact(v) for k, v in result.items()}
