"""
Dotted-path helpers.

Two independent encoders connect structured values with the flat namespace:
- flatten_value: nested tree -> list of (dotted path, leaf) pairs
- assign_path: dotted path + value -> mutation of a nested tree

query_paths() runs wildcard pattern queries (e.g. "devices.*.*.state") against
a nested tree.
"""

from typing import Any, Dict, List, Tuple

from homectl.exceptions import DiffEncodingError

PATH_SEPARATOR = "."
WILDCARD = "*"


def normalize_name(name: str) -> str:
    """Turn a display name into a path segment ("Living Room" -> "living_room")."""
    return name.lower().replace(" ", "_")


def flatten_value(value: Any, prefix: str) -> List[Tuple[str, Any]]:
    """
    Recursively flatten a structured value into dotted-path leaves.

    Dict keys and list indices become path segments below prefix. Empty
    containers produce no leaves.

    Args:
        value: Nested dict/list/scalar value
        prefix: Dotted path of the value itself

    Returns:
        List of (path, leaf) pairs in traversal order
    """
    if isinstance(value, dict):
        pairs: List[Tuple[str, Any]] = []
        for key, child in value.items():
            pairs.extend(flatten_value(child, f"{prefix}{PATH_SEPARATOR}{key}"))
        return pairs

    if isinstance(value, (list, tuple)):
        pairs = []
        for index, child in enumerate(value):
            pairs.extend(flatten_value(child, f"{prefix}{PATH_SEPARATOR}{index}"))
        return pairs

    return [(prefix, value)]


def split_path(path: str) -> List[str]:
    """
    Split a dotted path into pointer segments.

    Raises:
        DiffEncodingError: If the path is empty or has an empty segment
    """
    segments = path.split(PATH_SEPARATOR)
    if any(segment == "" for segment in segments):
        raise DiffEncodingError(f"Malformed path: {path!r}", path=path)
    return segments


def assign_path(tree: Dict[str, Any], path: str, value: Any) -> None:
    """
    Assign value at the location a dotted path points to.

    Missing intermediate nodes are created as dicts.

    Raises:
        DiffEncodingError: If the path is malformed, or descends through (or
            overwrites) a node that is already assigned with an incompatible kind
    """
    segments = split_path(path)
    node = tree

    for segment in segments[:-1]:
        if segment not in node:
            node[segment] = {}
        child = node[segment]
        if not isinstance(child, dict):
            raise DiffEncodingError(
                f"Cannot assign {path!r}: {segment!r} already holds a value",
                path=path,
            )
        node = child

    last = segments[-1]
    if isinstance(node.get(last), dict):
        raise DiffEncodingError(
            f"Cannot assign {path!r}: {last!r} already holds a subtree",
            path=path,
        )
    node[last] = value


def query_paths(tree: Any, pattern: str) -> List[Tuple[List[str], Any]]:
    """
    Find every node in tree matching a dotted pattern.

    A "*" segment matches any key at that level. Keys are visited in sorted
    order so results are deterministic.

    Args:
        tree: Nested dict to search
        pattern: Dotted pattern, e.g. "devices.*.*.scene"

    Returns:
        List of (matched path segments, node value) pairs
    """
    matches: List[Tuple[List[str], Any]] = []
    _query(tree, pattern.split(PATH_SEPARATOR), [], matches)
    return matches


def _query(
    node: Any,
    segments: List[str],
    path: List[str],
    matches: List[Tuple[List[str], Any]],
) -> None:
    if not segments:
        matches.append((path, node))
        return

    if not isinstance(node, dict):
        return

    head, rest = segments[0], segments[1:]
    if head == WILDCARD:
        for key in sorted(node):
            _query(node[key], rest, path + [key], matches)
    elif head in node:
        _query(node[head], rest, path + [head], matches)
