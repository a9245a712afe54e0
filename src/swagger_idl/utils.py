from __future__ import annotations

import re
from typing import List, Optional, Sequence

DEFAULT_SERVICE_NAME = "DefaultService"

_BRACE_PARAM = re.compile(r"\{(\w+)\}")
_COLON_PARAM = re.compile(r":(\w+)")
_WORD_SEPARATORS = re.compile(r"[^A-Za-z0-9]+")
_COMMENT_PATTERN = re.compile(r"//\s*(.*)|/\*([\s\S]*?)\*/|#\s*(.*)")
_LINTER_RULE_PATTERN = re.compile(r"\(-- .* --\)")


def generate_method_name(operation_id: Optional[str], http_method: str) -> str:
    """Use the operationId, or derive ``<Method>Method`` from the HTTP verb."""
    if operation_id:
        return operation_id
    return http_method.lower().capitalize() + "Method"


def get_service_name(tags: Optional[Sequence[str]]) -> str:
    if tags:
        return tags[0]
    return DEFAULT_SERVICE_NAME


def extract_name_from_ref(ref: str) -> str:
    """Return the last path segment of a ``$ref`` string."""
    return ref.rsplit("/", 1)[-1]


def braces_to_colons(path: str) -> str:
    """/users/{id} -> /users/:id"""
    return _BRACE_PARAM.sub(r":\1", path)


def colons_to_braces(path: str) -> str:
    """/users/:id -> /users/{id}"""
    return _COLON_PARAM.sub(r"{\1}", path)


def to_camel(name: str) -> str:
    """Upper-camel-case ``name`` by dropping separators and capitalising each word.

    Letters inside a word keep their case: ``createUserRequestapplication/json``
    becomes ``CreateUserRequestapplicationJson``.
    """
    words = [w for w in _WORD_SEPARATORS.split(name) if w]
    return "".join(w[0].upper() + w[1:] for w in words)


def to_field_name(name: str) -> str:
    """Make a proto field identifier of a parameter or header name.

    ``X-Trace`` becomes ``X_Trace``; names that would start with a digit get
    a ``field_`` prefix.
    """
    s = _WORD_SEPARATORS.sub("_", name).strip("_")
    if not s or s[0].isdigit():
        s = "field_" + s
    return s


def to_upper_snake(name: str) -> str:
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    s = _WORD_SEPARATORS.sub("_", s).strip("_")
    return s.upper()


def append_unique(items: List[str], value: str) -> List[str]:
    if value not in items:
        items.append(value)
    return items


def filter_comment(text: str) -> str:
    """Strip comment markers and linter rules from a raw comment block."""
    if not text:
        return ""
    comments: List[str] = []
    for match in _COMMENT_PATTERN.finditer(text):
        one_line = match.group(1) if match.group(1) is not None else match.group(3)
        if one_line is not None:
            comments.append(one_line.strip())
        elif match.group(2) is not None:
            comments.append(_dedent_block(match.group(2)))
    joined = "\n".join(c for c in comments if c)
    return _LINTER_RULE_PATTERN.sub("", joined).strip()


def _dedent_block(block: str) -> str:
    cleaned = []
    for line in block.split("\n"):
        line = line.strip()
        if line.startswith("*"):
            line = line[1:].strip()
        cleaned.append(line)
    return "\n".join(cleaned).strip()
