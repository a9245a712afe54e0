"""Render the intermediate proto tree as proto3 source text."""

from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path
from typing import List

from jinja2 import Environment, FileSystemLoader

from swagger_idl.models import (
    BoolValue,
    ListValue,
    MapValue,
    NumberValue,
    Option,
    OptionValue,
    ProtoEnum,
    ProtoFile,
    ProtoMessage,
    ProtoService,
    StringValue,
    option_value,
)

INDENT = "  "


def render_option_value(value: OptionValue, indent: str = "") -> str:
    """Render an option value in protobuf text format.

    Map values become a brace block whose entries are indented one level
    deeper than ``indent``; map keys are sorted.
    """
    if isinstance(value, StringValue):
        return json.dumps(value.value, ensure_ascii=False)
    if isinstance(value, BoolValue):
        return "true" if value.value else "false"
    if isinstance(value, NumberValue):
        return str(value.value)
    if isinstance(value, ListValue):
        return "[" + ", ".join(render_option_value(item, indent) for item in value.items) + "]"
    if isinstance(value, MapValue):
        if not value.entries:
            return "{}"
        inner = indent + INDENT
        lines = [
            f"{inner}{key}: {render_option_value(value.entries[key], inner)}"
            for key in sorted(value.entries)
        ]
        return "{\n" + "\n".join(lines) + "\n" + indent + "}"
    raise TypeError(f"unsupported option value: {type(value).__name__}")


def render_field_options(options: List[Option]) -> str:
    if not options:
        return ""
    rendered = ", ".join(f"({o.name}) = {render_option_value(o.value, INDENT * 2)}" for o in options)
    return f" [{rendered}]"


def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["option_value"] = render_option_value
    env.filters["field_options"] = render_field_options
    return env


def _sorted_enum(enum: ProtoEnum) -> ProtoEnum:
    return replace(enum, values=sorted(enum.values, key=lambda v: v.number))


def _sorted_message(message: ProtoMessage) -> ProtoMessage:
    """Copy of ``message`` with fields, nested messages and enums sorted by name."""
    return replace(
        message,
        fields=sorted(message.fields, key=lambda f: f.name),
        messages=[_sorted_message(m) for m in sorted(message.messages, key=lambda m: m.name)],
        enums=[_sorted_enum(e) for e in sorted(message.enums, key=lambda e: e.name)],
    )


def _sorted_service(service: ProtoService) -> ProtoService:
    return replace(service, methods=sorted(service.methods, key=lambda m: m.name))


class ProtoEncoder:
    """Renders a ProtoFile; the tree itself is left untouched."""

    def __init__(self):
        self._template = _get_template_env().get_template("proto.j2")

    def encode(self, proto_file: ProtoFile) -> str:
        text = self._template.render(
            package=proto_file.package,
            imports=sorted(proto_file.imports),
            options=[(k, option_value(proto_file.options[k])) for k in sorted(proto_file.options)],
            enums=[_sorted_enum(e) for e in sorted(proto_file.enums, key=lambda e: e.name)],
            messages=[_sorted_message(m) for m in sorted(proto_file.messages, key=lambda m: m.name)],
            services=[_sorted_service(s) for s in sorted(proto_file.services, key=lambda s: s.name)],
        )
        return text.rstrip("\n") + "\n"


def generate_proto(proto_file: ProtoFile) -> str:
    return ProtoEncoder().encode(proto_file)


def write_proto(proto_file: ProtoFile, output_path: str) -> str:
    """Render ``proto_file`` to ``output_path`` and return the path."""
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    Path(output_path).write_text(generate_proto(proto_file))
    return output_path
