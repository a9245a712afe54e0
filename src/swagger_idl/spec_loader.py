"""Load and validate OpenAPI 3.x documents.

Component references for parameters, request bodies, responses and headers
are inlined while loading so that the converter only ever sees schema
``$ref``s. Schema references are left in place but must resolve.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

_LOCAL_PREFIX = "#/"

# component sections whose references are inlined
_INLINED_SECTIONS = ("parameters", "requestBodies", "responses", "headers")


class SpecLoadError(Exception):
    """Raised when an OpenAPI document cannot be loaded or is malformed."""


class SpecLoader:
    """Parses an OpenAPI document from YAML or JSON text."""

    def load_file(self, path: str) -> Dict[str, Any]:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SpecLoadError(f"failed to read file {path}: {e}") from e
        return self.load_text(text, source=path)

    def load_text(self, text: str, source: str = "<string>") -> Dict[str, Any]:
        try:
            doc = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SpecLoadError(f"failed to parse {source}: {e}") from e
        if not isinstance(doc, dict):
            raise SpecLoadError(f"{source}: document root must be a mapping")

        self._validate(doc, source)
        return self._inline_references(doc)

    # -- validation --

    def _validate(self, doc: Dict[str, Any], source: str) -> None:
        version = str(doc.get("openapi", ""))
        if not version.startswith("3."):
            raise SpecLoadError(f"{source}: unsupported OpenAPI version {version or '(missing)'!r}")
        for key in ("paths", "components"):
            value = doc.get(key)
            if value is not None and not isinstance(value, dict):
                raise SpecLoadError(f"{source}: '{key}' must be a mapping")
        logger.debug("validated %s (OpenAPI %s)", source, version)

    # -- reference handling --

    def _inline_references(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(doc)
        for path, item in (doc.get("paths") or {}).items():
            if not isinstance(item, dict):
                raise SpecLoadError(f"path {path}: path item must be a mapping")
            doc["paths"][path] = self._resolve_node(doc, item, set())
        self._check_schema_refs(doc, doc.get("components") or {})
        return doc

    def _resolve_node(self, doc: Dict[str, Any], node: Any, active: set) -> Any:
        if isinstance(node, list):
            return [self._resolve_node(doc, item, active) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get("$ref")
        if isinstance(ref, str) and _section_of(ref) in _INLINED_SECTIONS:
            if ref in active:
                raise SpecLoadError(f"circular reference {ref}")
            target = self.resolve_ref(doc, ref)
            return self._resolve_node(doc, copy.deepcopy(target), active | {ref})
        if isinstance(ref, str):
            # schema references stay as references
            self.resolve_ref(doc, ref)
            return node

        return {k: self._resolve_node(doc, v, active) for k, v in node.items()}

    def _check_schema_refs(self, doc: Dict[str, Any], node: Any) -> None:
        if isinstance(node, list):
            for item in node:
                self._check_schema_refs(doc, item)
        elif isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str):
                self.resolve_ref(doc, ref)
            for value in node.values():
                self._check_schema_refs(doc, value)

    @staticmethod
    def resolve_ref(doc: Dict[str, Any], ref: str) -> Any:
        """Follow a local JSON pointer such as ``#/components/schemas/Pet``."""
        if not ref.startswith(_LOCAL_PREFIX):
            raise SpecLoadError(f"unsupported non-local reference {ref}")
        node: Any = doc
        for part in ref[len(_LOCAL_PREFIX):].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, dict) or part not in node:
                raise SpecLoadError(f"unresolvable reference {ref}")
            node = node[part]
        return node


def _section_of(ref: str) -> Optional[str]:
    parts = ref.split("/")
    if len(parts) >= 3 and parts[0] == "#" and parts[1] == "components":
        return parts[2]
    return None


def load_openapi_spec(path: str) -> Dict[str, Any]:
    return SpecLoader().load_file(path)


def load_openapi_text(text: str) -> Dict[str, Any]:
    return SpecLoader().load_text(text)
