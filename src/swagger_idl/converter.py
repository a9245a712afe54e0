"""Convert an OpenAPI 3.x document into the intermediate proto tree."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from swagger_idl.models import (
    EMPTY_IMPORT,
    EMPTY_TYPE,
    Option,
    ProtoEnum,
    ProtoEnumValue,
    ProtoField,
    ProtoFile,
    ProtoMessage,
    ProtoMethod,
    StringValue,
    option_value,
)
from swagger_idl.type_mapping import TIMESTAMP_IMPORT, TIMESTAMP_TYPE, proto_type_for_openapi
from swagger_idl.utils import (
    braces_to_colons,
    extract_name_from_ref,
    generate_method_name,
    get_service_name,
    to_camel,
    to_field_name,
    to_upper_snake,
)

logger = logging.getLogger(__name__)

API_PROTO_FILE = "api.proto"
OPENAPI_PROTO_FILE = "openapi.proto"

# OpenAPI path item keys that hold operations, in document order.
OPERATION_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# HTTP method -> method option name
METHOD_OPTIONS: Dict[str, str] = {
    "GET": "api.get",
    "POST": "api.post",
    "PUT": "api.put",
    "PATCH": "api.patch",
    "DELETE": "api.delete",
}

# Operation keys copied into the openapi.operation option.
OPERATION_OPTION_KEYS = ("operationId", "summary", "description", "tags", "deprecated")

FieldOrMessage = Union[ProtoField, ProtoMessage, ProtoEnum]


class ConversionError(Exception):
    """Raised when a schema cannot be mapped onto proto."""


@dataclass
class ConvertOption:
    openapi_option: bool = False
    api_option: bool = True


class ProtoConverter:
    """Builds one ProtoFile from one OpenAPI document.

    An instance accumulates output while converting and should be used for a
    single document.
    """

    def __init__(self, package_name: str, option: Optional[ConvertOption] = None):
        self.proto_file = ProtoFile(package=package_name)
        self.option = option or ConvertOption()

    # -- public API --

    def convert(self, spec: Dict[str, Any]) -> ProtoFile:
        """Convert components and paths of ``spec`` into ``self.proto_file``."""
        components = spec.get("components") or {}
        self._convert_components(components.get("schemas") or {})
        self._convert_paths(spec.get("paths") or {})

        if self.option.openapi_option:
            self.proto_file.add_import(OPENAPI_PROTO_FILE)
        if self.option.api_option:
            self.proto_file.add_import(API_PROTO_FILE)
        return self.proto_file

    def convert_schema(
        self,
        schema: Dict[str, Any],
        name: str,
        parent: Optional[ProtoMessage] = None,
    ) -> FieldOrMessage:
        """Map one OpenAPI schema to a field, a message or (top level) an enum.

        Nested messages produced for array items and map values are attached to
        ``parent``; enums for inline properties are attached to ``parent`` too.
        """
        ref = schema.get("$ref")
        if ref:
            return ProtoField(name=name, type=extract_name_from_ref(ref))

        schema_type = schema.get("type")
        if not schema_type:
            raise ConversionError("schema type is required")
        if isinstance(schema_type, list):
            # OpenAPI 3.1 style ["string", "null"]
            schema_type = next((t for t in schema_type if t != "null"), None)
            if schema_type is None:
                raise ConversionError("schema type is required")

        if schema_type == "array":
            return self._convert_array(schema, name, parent)
        if schema_type == "object":
            return self._convert_object(schema, name)
        if schema_type == "string" and schema.get("enum"):
            return self._convert_enum(schema, name, parent)

        proto_type = proto_type_for_openapi(schema_type, schema.get("format"))
        if proto_type is None:
            raise ConversionError(f"unsupported schema type {schema_type!r}")
        if proto_type == TIMESTAMP_TYPE:
            self.proto_file.add_import(TIMESTAMP_IMPORT)
        return ProtoField(name=name, type=proto_type)

    # -- schema kinds --

    def _convert_array(
        self, schema: Dict[str, Any], name: str, parent: Optional[ProtoMessage]
    ) -> ProtoField:
        items = schema.get("items")
        if not items:
            raise ConversionError(f"array {name}: items are required")
        item = self.convert_schema(items, name + "Item", parent)
        if isinstance(item, ProtoField):
            return ProtoField(name=name, type=item.type, repeated=True)
        if isinstance(item, ProtoEnum):
            # top-level array of enum: keep the enum at file level
            self.proto_file.add_enum(item)
            return ProtoField(name=name, type=item.name, repeated=True)
        if parent is not None:
            parent.add_message(item)
        else:
            self.proto_file.add_message(item)
        return ProtoField(name=name, type=item.name, repeated=True)

    def _convert_object(self, schema: Dict[str, Any], name: str) -> ProtoMessage:
        message = ProtoMessage(name=name)
        for prop_name, prop_schema in (schema.get("properties") or {}).items():
            try:
                converted = self.convert_schema(prop_schema, prop_name, message)
            except ConversionError as e:
                raise ConversionError(f"property {prop_name}: {e}") from e
            self._attach(message, converted, prop_name)

        additional = schema.get("additionalProperties")
        if additional is not None and additional is not False:
            value_type = "string"
            if isinstance(additional, dict) and additional:
                converted = self.convert_schema(additional, name + "AdditionalProperties", message)
                if isinstance(converted, ProtoMessage):
                    message.add_message(converted)
                    value_type = converted.name
            message.add_field(ProtoField(name="additionalProperties", type=f"map<string, {value_type}>"))
        return message

    def _convert_enum(
        self, schema: Dict[str, Any], name: str, parent: Optional[ProtoMessage]
    ) -> FieldOrMessage:
        enum_name = to_camel(name)
        prefix = to_upper_snake(enum_name)
        enum = ProtoEnum(name=enum_name, values=[ProtoEnumValue(f"{prefix}_UNSPECIFIED", 0)])
        for i, value in enumerate(schema["enum"], start=1):
            enum.values.append(ProtoEnumValue(f"{prefix}_{to_upper_snake(str(value))}", i))

        if parent is None:
            return enum
        parent.add_enum(enum)
        return ProtoField(name=name, type=enum_name)

    def _attach(self, message: ProtoMessage, converted: FieldOrMessage, prop_name: str) -> None:
        if isinstance(converted, ProtoField):
            message.add_field(converted)
        elif isinstance(converted, ProtoMessage):
            message.add_message(converted)
            message.add_field(ProtoField(name=prop_name + "Field", type=converted.name))
        else:
            message.add_enum(converted)

    # -- components --

    def _convert_components(self, schemas: Dict[str, Any]) -> None:
        for name, schema in schemas.items():
            logger.debug("converting component schema %s", name)
            try:
                converted = self.convert_schema(schema, name, None)
            except ConversionError as e:
                raise ConversionError(f"error converting schema {name}: {e}") from e

            if isinstance(converted, ProtoEnum):
                self.proto_file.add_enum(converted)
            elif isinstance(converted, ProtoField):
                self.proto_file.add_message(ProtoMessage(name=name, fields=[converted]))
            else:
                self.proto_file.add_message(converted)

    # -- paths --

    def _convert_paths(self, paths: Dict[str, Any]) -> None:
        for path, path_item in paths.items():
            for method in OPERATION_METHODS:
                operation = path_item.get(method)
                if operation is None:
                    continue
                self._convert_operation(path, method.upper(), operation)

    def _convert_operation(self, path: str, method: str, operation: Dict[str, Any]) -> None:
        service = self.proto_file.find_or_create_service(get_service_name(operation.get("tags")))
        method_name = generate_method_name(operation.get("operationId"), method)
        logger.debug("converting %s %s as %s.%s", method, path, service.name, method_name)

        try:
            input_type = self._generate_request_message(operation, method_name)
        except ConversionError as e:
            raise ConversionError(f"error generating request message for {method_name}: {e}") from e
        try:
            output_type = self._generate_response_message(operation, method_name)
        except ConversionError as e:
            raise ConversionError(f"error generating response message for {method_name}: {e}") from e

        if service.has_method(method_name):
            return

        proto_method = ProtoMethod(
            name=method_name,
            input_type=input_type or self._use_empty(),
            output_type=output_type or self._use_empty(),
        )
        if self.option.api_option and method in METHOD_OPTIONS:
            proto_method.options.append(
                Option(METHOD_OPTIONS[method], StringValue(braces_to_colons(path)))
            )
        if self.option.openapi_option:
            details = {k: operation[k] for k in OPERATION_OPTION_KEYS if operation.get(k)}
            if details:
                proto_method.options.append(Option("openapi.operation", option_value(details)))
        service.methods.append(proto_method)

    def _use_empty(self) -> str:
        self.proto_file.add_import(EMPTY_IMPORT)
        return EMPTY_TYPE

    def _generate_request_message(self, operation: Dict[str, Any], base_name: str) -> str:
        """Return the request message name; "" when nothing was generated."""
        request_body = operation.get("requestBody")
        parameters = operation.get("parameters") or []
        if not request_body and not parameters:
            return self._use_empty()

        message_name = base_name + "Request"
        message = ProtoMessage(name=message_name)

        for media_type, media in ((request_body or {}).get("content") or {}).items():
            schema = (media or {}).get("schema")
            if schema:
                converted = self.convert_schema(schema, to_camel(message_name + media_type), message)
                self._add_to(message, converted)

        for param in parameters:
            schema = param.get("schema")
            if schema:
                try:
                    converted = self.convert_schema(schema, to_field_name(param["name"]), message)
                except ConversionError as e:
                    raise ConversionError(f"parameter {param.get('name')}: {e}") from e
                self._add_to(message, converted)

        if message.is_empty():
            return ""
        self.proto_file.add_message(message)
        return message.name

    def _generate_response_message(self, operation: Dict[str, Any], base_name: str) -> str:
        responses = operation.get("responses") or {}
        if not responses:
            return ""

        if len(responses) == 1:
            status_code, response = next(iter(responses.items()))
            if not (response or {}).get("content"):
                return self._use_empty()
            return self._process_single_response(str(status_code), response, base_name)

        wrapper = ProtoMessage(name=base_name)
        for status_code, response in responses.items():
            if not (response or {}).get("content"):
                continue
            message_name = self._process_single_response(str(status_code), response, base_name)
            if message_name:
                wrapper.add_field(ProtoField(name=f"response_{status_code}", type=message_name))

        if not wrapper.fields:
            return self._use_empty()
        self.proto_file.add_message(wrapper)
        return wrapper.name

    def _process_single_response(
        self, status_code: str, response: Dict[str, Any], base_name: str
    ) -> str:
        message = ProtoMessage(name=f"{base_name}Response_{status_code}")

        for header_name, header in (response.get("headers") or {}).items():
            schema = (header or {}).get("schema")
            if schema:
                self._add_to(message, self.convert_schema(schema, to_field_name(header_name), message))

        for media_type, media in (response.get("content") or {}).items():
            schema = (media or {}).get("schema")
            if schema:
                self._add_to(message, self.convert_schema(schema, to_camel(media_type), message))

        if message.is_empty():
            return ""
        self.proto_file.add_message(message)
        return message.name

    @staticmethod
    def _add_to(message: ProtoMessage, converted: FieldOrMessage) -> None:
        if isinstance(converted, ProtoField):
            message.add_field(converted)
        elif isinstance(converted, ProtoMessage):
            message.add_message(converted)
        else:
            message.add_enum(converted)


def convert_spec(spec: Dict[str, Any], package_name: Optional[str] = None,
                 option: Optional[ConvertOption] = None) -> ProtoFile:
    """Convert a loaded OpenAPI document; the package defaults to info.title."""
    if package_name is None:
        title = (spec.get("info") or {}).get("title") or ""
        package_name = title.replace(" ", "_")
    return ProtoConverter(package_name, option).convert(spec)
