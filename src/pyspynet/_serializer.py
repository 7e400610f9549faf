"""superjson-compatible serialization for RPC payloads.

A serialized value is ``{"json": <plain JSON>, "meta": {"values": <tree>}}``
where the optional tree records which paths held a non-JSON type.
Annotation trees are either a leaf ``[type]``, an inner node
``[type, {path: tree}]``, or a bare ``{path: tree}`` for untyped
containers. Path keys are dot-joined with ``.`` and ``\\`` escaped.

Supported types: ``datetime`` ("Date"), ``set``/``frozenset`` ("set"),
mappings with non-string keys ("map"), NaN and infinities ("number") and
integers beyond the JS safe range ("bigint"). "undefined" decodes to
``None`` and "URL"/"regexp" decode to ``str``.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

_MAX_SAFE_INTEGER = 2**53 - 1


class Serializer(Protocol):
    def serialize(self, value: Any) -> dict[str, Any]:
        ...

    def deserialize(self, payload: Any) -> Any:
        ...


def _escape_key(key: str) -> str:
    return key.replace("\\", "\\\\").replace(".", "\\.")


def parse_path(path: str) -> list[str]:
    """Split an escaped annotation path into its segments."""
    segments: list[str] = []
    current: list[str] = []
    i = 0
    while i < len(path):
        ch = path[i]
        if ch == "\\" and i + 1 < len(path):
            current.append(path[i + 1])
            i += 2
            continue
        if ch == ".":
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    segments.append("".join(current))
    return segments


def _format_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _transform_scalar(value: Any) -> tuple[Any, str] | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        if abs(value) > _MAX_SAFE_INTEGER:
            return str(value), "bigint"
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN", "number"
        if math.isinf(value):
            return ("Infinity" if value > 0 else "-Infinity"), "number"
        return None
    if isinstance(value, datetime):
        return _format_date(value), "Date"
    return None


def _walk(value: Any) -> tuple[Any, list[Any] | dict[str, Any] | None]:
    scalar = _transform_scalar(value)
    if scalar is not None:
        json_value, scalar_type = scalar
        return json_value, [scalar_type]

    type_name: str | None = None
    items: dict[str, Any] | list[Any]
    if isinstance(value, (set, frozenset)):
        type_name = "set"
        items = list(value)
    elif isinstance(value, Mapping):
        if all(isinstance(k, str) for k in value):
            items = dict(value)
        else:
            type_name = "map"
            items = [[k, v] for k, v in value.items()]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        return value, None

    entries = items.items() if isinstance(items, dict) else enumerate(items)
    out: dict[str, Any] | list[Any] = {} if isinstance(items, dict) else []
    inner: dict[str, Any] = {}
    for index, child in entries:
        child_value, child_annotations = _walk(child)
        if isinstance(out, dict):
            out[index] = child_value
        else:
            out.append(child_value)
        key = _escape_key(str(index))
        if isinstance(child_annotations, list):
            inner[key] = child_annotations
        elif isinstance(child_annotations, dict):
            for sub_key, tree in child_annotations.items():
                inner[f"{key}.{sub_key}"] = tree

    if not inner:
        return out, ([type_name] if type_name else None)
    if type_name:
        return out, [type_name, inner]
    return out, inner


def serialize(value: Any) -> dict[str, Any]:
    """Serialize *value* into a ``{"json", "meta"}`` envelope."""
    json_value, annotations = _walk(value)
    result: dict[str, Any] = {"json": json_value}
    if annotations:
        result["meta"] = {"values": annotations}
    return result


def _parse_date(value: Any) -> datetime:
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _to_set(value: Any) -> set[Any]:
    try:
        return set(value)
    except TypeError as exc:
        raise ValueError(f"set members must be hashable: {value!r}") from exc


def _to_map(value: Any) -> dict[Any, Any]:
    try:
        return {k: v for k, v in value}
    except (TypeError, ValueError) as exc:
        raise ValueError(f"map entries must be hashable [key, value] pairs: {value!r}") from exc


_UNTRANSFORMS: dict[str, Callable[[Any], Any]] = {
    "Date": _parse_date,
    "bigint": int,
    "number": float,
    "undefined": lambda _value: None,
    "set": _to_set,
    "map": _to_map,
    "URL": str,
    "regexp": str,
}


def _replace_at(root: list[Any], path: list[str], fn: Callable[[Any], Any]) -> None:
    parent: Any = root
    key: Any = 0
    for segment in path:
        parent = parent[key]
        key = int(segment) if isinstance(parent, list) else segment
    parent[key] = fn(parent[key])


def _apply(tree: Any, origin: list[str], root: list[Any]) -> None:
    if isinstance(tree, Mapping):
        for key, subtree in tree.items():
            _apply(subtree, origin + parse_path(key), root)
        return
    if not isinstance(tree, list) or not tree:
        return
    node = tree[0]
    children = tree[1] if len(tree) > 1 else None
    # Children first: containers are still lists while their members decode.
    if isinstance(children, Mapping):
        for key, subtree in children.items():
            _apply(subtree, origin + parse_path(key), root)
    if isinstance(node, str) and node in _UNTRANSFORMS:
        _replace_at(root, origin, _UNTRANSFORMS[node])


def deserialize(payload: Any) -> Any:
    """Rebuild the value carried by a ``{"json", "meta"}`` envelope."""
    if not isinstance(payload, Mapping):
        raise ValueError(f"serialized payload must be an object, got {type(payload).__name__}")
    root = [copy.deepcopy(payload.get("json"))]
    meta = payload.get("meta")
    if isinstance(meta, Mapping) and meta.get("values") is not None:
        _apply(meta["values"], [], root)
    return root[0]


class SuperJsonSerializer:
    """Default :class:`Serializer` for the RPC transport."""

    def serialize(self, value: Any) -> dict[str, Any]:
        return serialize(value)

    def deserialize(self, payload: Any) -> Any:
        return deserialize(payload)
