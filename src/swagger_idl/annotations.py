"""Annotations attached to IDL declarations.

An annotation value is one of three variants:

- ``Scalar``: a single string, e.g. ``api.query = "page"``
- ``ScalarList``: the same key repeated on one declaration
- ``StructuredText``: a mapping payload for the ``openapi.*`` keys, written as
  JSON or YAML flow text (Thrift) or captured from an aggregate option
  literal (Protobuf)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

import yaml

# HTTP method annotations
API_GET = "api.get"
API_POST = "api.post"
API_PUT = "api.put"
API_PATCH = "api.patch"
API_DELETE = "api.delete"
API_OPTIONS = "api.options"
API_HEAD = "api.head"
API_ANY = "api.any"

# Field placement annotations
API_QUERY = "api.query"
API_PATH = "api.path"
API_HEADER = "api.header"
API_COOKIE = "api.cookie"
API_BODY = "api.body"
API_FORM = "api.form"
API_RAW_BODY = "api.raw_body"

# Host annotations
API_BASE_DOMAIN = "api.base_domain"
API_BASE_URL = "api.baseurl"

# Structured OpenAPI overrides
OPENAPI_OPERATION = "openapi.operation"
OPENAPI_PROPERTY = "openapi.property"
OPENAPI_SCHEMA = "openapi.schema"
OPENAPI_PARAMETER = "openapi.parameter"
OPENAPI_DOCUMENT = "openapi.document"

STRUCTURED_KEYS = frozenset(
    {OPENAPI_OPERATION, OPENAPI_PROPERTY, OPENAPI_SCHEMA, OPENAPI_PARAMETER, OPENAPI_DOCUMENT}
)

# Annotation key -> OpenAPI HTTP method, in declaration order.
HTTP_METHOD_ANNOTATIONS: Dict[str, str] = {
    API_GET: "GET",
    API_POST: "POST",
    API_PUT: "PUT",
    API_PATCH: "PATCH",
    API_DELETE: "DELETE",
    API_OPTIONS: "OPTIONS",
    API_HEAD: "HEAD",
    API_ANY: "ANY",
}


class AnnotationError(Exception):
    """Raised when a structured annotation payload cannot be parsed."""


@dataclass(frozen=True)
class Scalar:
    value: str


@dataclass(frozen=True)
class ScalarList:
    items: List[Scalar] = field(default_factory=list)


@dataclass(frozen=True)
class StructuredText:
    text: str


AnnotationValue = Union[Scalar, ScalarList, StructuredText]


def values_of(value: AnnotationValue) -> List[str]:
    """All string values carried by an annotation, in order."""
    if isinstance(value, Scalar):
        return [value.value]
    if isinstance(value, ScalarList):
        return [item.value for item in value.items]
    return [value.text]


def parse_structured(value: AnnotationValue) -> Dict[str, Any]:
    """Parse an annotation payload into a mapping.

    JSON is a subset of YAML, so both Thrift spellings
    (``'{"title": "x"}'`` and ``'{title: x}'``) go through the YAML loader.
    """
    text = values_of(value)[0]
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise AnnotationError(f"invalid annotation payload {text!r}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise AnnotationError(f"annotation payload must be a mapping, got {type(data).__name__}")
    return data


class Annotations:
    """Read-only mapping from annotation key to its value variant."""

    def __init__(self, values: Optional[Dict[str, AnnotationValue]] = None):
        self._values: Dict[str, AnnotationValue] = dict(values or {})

    @classmethod
    def from_pairs(cls, pairs: List[tuple]) -> Annotations:
        """Build from ``(key, value)`` pairs in source order.

        Repeated keys collect into a ``ScalarList``. Values for the ``openapi.*``
        keys become ``StructuredText``; dict values are serialized to JSON.
        """
        collected: Dict[str, List[Any]] = {}
        for key, raw in pairs:
            collected.setdefault(key, []).append(raw)

        values: Dict[str, AnnotationValue] = {}
        for key, raws in collected.items():
            if key in STRUCTURED_KEYS:
                raw = raws[0]
                text = raw if isinstance(raw, str) else json.dumps(raw)
                values[key] = StructuredText(text)
            elif len(raws) == 1:
                values[key] = Scalar(_as_text(raws[0]))
            else:
                values[key] = ScalarList([Scalar(_as_text(r)) for r in raws])
        return cls(values)

    def get(self, key: str) -> Optional[AnnotationValue]:
        return self._values.get(key)

    def first(self, key: str) -> Optional[str]:
        """The first string value for ``key``, or None when absent."""
        value = self._values.get(key)
        if value is None:
            return None
        found = values_of(value)
        return found[0] if found else None

    def structured(self, key: str) -> Optional[Dict[str, Any]]:
        """Parsed payload for ``key``; raises AnnotationError on bad payloads."""
        value = self._values.get(key)
        if value is None:
            return None
        return parse_structured(value)

    def keys(self) -> List[str]:
        return list(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Annotations({self._values!r})"


def _as_text(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, (dict, list)):
        return json.dumps(raw)
    return str(raw)
