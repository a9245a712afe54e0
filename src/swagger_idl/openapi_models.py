"""Intermediate OpenAPI document built by the IDL -> OpenAPI generator.

The objects are pydantic models: annotation payloads are validated with
``model_validate`` and documents are written out with ``to_dict``. Keys a
model does not name are kept as extra fields so that annotation authors can
set any OpenAPI keyword.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_serializer

COMPONENT_SCHEMA_PREFIX = "#/components/schemas/"

HTTP_METHODS: Tuple[str, ...] = ("get", "put", "post", "delete", "options", "head", "patch")


class OpenAPIObject(BaseModel):
    """Base of all document nodes; unknown keys are kept as extensions."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_serializer(mode="wrap")
    def drop_empty_collections(self, handler):
        # empty lists and maps are as good as absent in the output
        return {k: v for k, v in handler(self).items() if not (isinstance(v, (list, dict)) and not v)}

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def merge_objects(dst: OpenAPIObject, src: Optional[OpenAPIObject]) -> OpenAPIObject:
    """Overlay the explicitly set fields of ``src`` onto ``dst``.

    Fields ``src`` was built with win, including false and zero values;
    everything else keeps the value of ``dst``. Nested objects of the same
    type merge recursively and maps merge key by key.
    """
    if src is None:
        return dst
    names = [name for name in type(src).model_fields if name in src.model_fields_set]
    names.extend(src.model_extra or {})
    for name in names:
        value = getattr(src, name)
        current = getattr(dst, name, None)
        if isinstance(current, OpenAPIObject) and type(current) is type(value):
            merge_objects(current, value)
        elif isinstance(current, dict) and isinstance(value, dict):
            current.update(value)
        else:
            setattr(dst, name, value)
    return dst


class Reference(OpenAPIObject):
    ref: str = Field(..., alias="$ref")

    @classmethod
    def to_schema(cls, name: str) -> Reference:
        return cls(ref=COMPONENT_SCHEMA_PREFIX + name)


class Schema(OpenAPIObject):
    type: Optional[str] = None
    format: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    properties: Dict[str, Union[Reference, Schema]] = Field(default_factory=dict)
    items: Optional[Union[Reference, Schema]] = None
    additional_properties: Optional[Union[Reference, Schema, bool]] = Field(None, alias="additionalProperties")
    required: List[str] = Field(default_factory=list)
    enum: List[Any] = Field(default_factory=list)
    default: Any = None
    example: Any = None
    nullable: Optional[bool] = None
    read_only: Optional[bool] = Field(None, alias="readOnly")
    write_only: Optional[bool] = Field(None, alias="writeOnly")
    deprecated: Optional[bool] = None
    unique_items: Optional[bool] = Field(None, alias="uniqueItems")


SchemaOrReference = Union[Reference, Schema]


class Parameter(OpenAPIObject):
    name: Optional[str] = None
    in_: Optional[str] = Field(None, alias="in")
    description: Optional[str] = None
    required: Optional[bool] = None
    deprecated: Optional[bool] = None
    schema_: Optional[SchemaOrReference] = Field(None, alias="schema")
    example: Any = None


class MediaType(OpenAPIObject):
    schema_: Optional[SchemaOrReference] = Field(None, alias="schema")
    example: Any = None


class RequestBody(OpenAPIObject):
    description: Optional[str] = None
    content: Dict[str, MediaType] = Field(default_factory=dict)
    required: Optional[bool] = None


class Header(OpenAPIObject):
    description: Optional[str] = None
    required: Optional[bool] = None
    schema_: Optional[SchemaOrReference] = Field(None, alias="schema")


class Response(OpenAPIObject):
    # description is required by OpenAPI even when empty
    description: str = ""
    headers: Optional[Dict[str, Header]] = None
    content: Optional[Dict[str, MediaType]] = None


class Server(OpenAPIObject):
    url: str = ""
    description: Optional[str] = None


class Tag(OpenAPIObject):
    name: str = ""
    description: Optional[str] = None


class Operation(OpenAPIObject):
    tags: List[str] = Field(default_factory=list)
    summary: Optional[str] = None
    description: Optional[str] = None
    operation_id: Optional[str] = Field(None, alias="operationId")
    parameters: List[Parameter] = Field(default_factory=list)
    request_body: Optional[RequestBody] = Field(None, alias="requestBody")
    responses: Dict[str, Response] = Field(default_factory=dict)
    deprecated: Optional[bool] = None
    servers: List[Server] = Field(default_factory=list)


class PathItem(OpenAPIObject):
    summary: Optional[str] = None
    description: Optional[str] = None
    get: Optional[Operation] = None
    put: Optional[Operation] = None
    post: Optional[Operation] = None
    delete: Optional[Operation] = None
    options: Optional[Operation] = None
    head: Optional[Operation] = None
    patch: Optional[Operation] = None
    servers: List[Server] = Field(default_factory=list)

    def operations(self) -> List[Tuple[str, Operation]]:
        """The (method, operation) pairs that are set, in OpenAPI order."""
        found = []
        for method in HTTP_METHODS:
            op = getattr(self, method)
            if op is not None:
                found.append((method, op))
        return found

    def set_operation(self, method: str, op: Operation) -> None:
        method = method.lower()
        if method not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method: {method}")
        setattr(self, method, op)


class Info(OpenAPIObject):
    title: str = ""
    description: Optional[str] = None
    terms_of_service: Optional[str] = Field(None, alias="termsOfService")
    contact: Dict[str, Any] = Field(default_factory=dict)
    license: Dict[str, Any] = Field(default_factory=dict)
    version: str = ""


class Components(OpenAPIObject):
    schemas: Dict[str, SchemaOrReference] = Field(default_factory=dict)


class Document(OpenAPIObject):
    openapi: str = ""
    info: Info = Field(default_factory=Info)
    servers: List[Server] = Field(default_factory=list)
    paths: Dict[str, PathItem] = Field(default_factory=dict)
    components: Components = Field(default_factory=Components)
    tags: List[Tag] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        # paths is required by OpenAPI even when empty
        out.setdefault("paths", {})
        return out
