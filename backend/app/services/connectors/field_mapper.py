"""Field mapping: raw upstream documents to canonical flat documents.

A mapping is an ordered ``(source_field, target_field, transform)`` triple.
Mappings are applied in list order, so a later mapping to the same target
overwrites an earlier one. A source path that does not resolve leaves the
target absent; it is never an error.
"""

import json
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from app.schemas.cms_integration import FieldMapping
from app.services.connectors.exceptions import MappingError

MISSING: Any = object()

_HTML_TAG_RE = re.compile(r"<[^>]*>")


def get_nested_value(document: Any, path: str) -> Any:
    """Resolve a dotted path against nested dicts and lists.

    Returns ``MISSING`` as soon as a step cannot be resolved. Numeric path
    segments index into lists (``tags.0.name``).
    """
    current = document
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _strip_html(value: Any) -> str:
    return _HTML_TAG_RE.sub("", _as_text(value))


def _json_parse(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise MappingError(f"json_parse failed: {exc.msg}") from exc


def _json_stringify(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as exc:
        raise MappingError(f"json_stringify failed: {exc}") from exc


TRANSFORMS: dict[str, Callable[[Any], Any]] = {
    "lowercase": lambda v: _as_text(v).lower(),
    "uppercase": lambda v: _as_text(v).upper(),
    "strip_html": _strip_html,
    "trim": lambda v: _as_text(v).strip(),
    "json_parse": _json_parse,
    "json_stringify": _json_stringify,
}


def apply_transform(value: Any, transform: str | None) -> Any:
    """Apply a named transform; unknown or empty names are the identity."""
    if not transform:
        return value
    func = TRANSFORMS.get(transform)
    if func is None:
        return value
    return func(value)


def map_fields(
    document: Mapping[str, Any],
    mappings: Iterable[FieldMapping | Mapping[str, Any]],
) -> dict[str, Any]:
    """Build the canonical document for *document* from *mappings*."""
    mapped: dict[str, Any] = {}
    for mapping in mappings:
        if not isinstance(mapping, FieldMapping):
            mapping = FieldMapping.model_validate(mapping)
        value = get_nested_value(document, mapping.source_field)
        if value is MISSING:
            continue
        try:
            mapped[mapping.target_field] = apply_transform(value, mapping.transform)
        except MappingError:
            raise
        except Exception as exc:
            raise MappingError(
                f"Transform {mapping.transform!r} failed for {mapping.source_field!r}: {exc}"
            ) from exc
    return mapped
