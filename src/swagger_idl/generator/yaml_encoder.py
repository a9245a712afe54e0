from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml

from swagger_idl.openapi_models import Document

GENERATOR_NAME = "swagger-idl"
DEFAULT_COMMENT = f"Generated with {GENERATOR_NAME}"


class _Dumper(yaml.SafeDumper):
    """SafeDumper that indents sequences under their parent key and never emits aliases."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)

    def ignore_aliases(self, data):
        return True


def _str_representer(dumper: yaml.SafeDumper, data: str):
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_Dumper.add_representer(str, _str_representer)


class YAMLEncoder:
    """Render a Document as YAML, keeping the key order of ``to_dict``."""

    def __init__(self, comment: str = DEFAULT_COMMENT):
        self.comment = comment

    def encode(self, document: Document) -> str:
        return self.encode_dict(document.to_dict())

    def encode_dict(self, data: Dict[str, Any]) -> str:
        body = yaml.dump(
            data,
            Dumper=_Dumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=1000,
        )
        header = "".join(f"# {line}\n" if line else "#\n" for line in self.comment.split("\n"))
        return header + "\n" + body


def generate_yaml(document: Document) -> str:
    return YAMLEncoder().encode(document)


def write_yaml(document: Document, output_path: str) -> str:
    """Render ``document`` to ``output_path`` and return the path."""
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    Path(output_path).write_text(generate_yaml(document))
    return output_path
