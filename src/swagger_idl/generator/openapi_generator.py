"""Build an OpenAPI document from a reflected IDL file.

Two layouts are supported:

- ``http``: operations come from ``api.<method>`` annotations on methods and
  fields are placed by ``api.query`` / ``api.path`` / ``api.body`` / ... .
  Fields without a placement annotation are left out of the operation.
- ``rpc``: every method becomes ``POST /<Method>`` whose JSON body carries all
  fields of the request struct.

Struct schemas are expanded on demand: a ``$ref`` to a struct queues its name,
and the queue is drained after all operations are built. A name is marked as
generated before its fields are walked, so cyclic struct graphs terminate.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Set, Tuple, Type

from pydantic import ValidationError

from swagger_idl.annotations import (
    API_BASE_DOMAIN,
    API_BASE_URL,
    API_BODY,
    API_COOKIE,
    API_FORM,
    API_HEADER,
    API_PATH,
    API_QUERY,
    API_RAW_BODY,
    HTTP_METHOD_ANNOTATIONS,
    OPENAPI_DOCUMENT,
    OPENAPI_OPERATION,
    OPENAPI_PARAMETER,
    OPENAPI_PROPERTY,
    OPENAPI_SCHEMA,
    AnnotationError,
    Annotations,
)
from swagger_idl.descriptors import (
    FieldDescriptor,
    FileDescriptor,
    MethodDescriptor,
    ServiceDescriptor,
    StructDescriptor,
    TypeDescriptor,
    TypeKind,
)
from swagger_idl.openapi_models import (
    Document,
    Header,
    Info,
    MediaType,
    OpenAPIObject,
    Operation,
    Parameter,
    PathItem,
    Reference,
    RequestBody,
    Response,
    Schema,
    SchemaOrReference,
    Server,
    Tag,
    merge_objects,
)
from swagger_idl.type_mapping import ENUM_SCHEMA, schema_for_scalar
from swagger_idl.utils import append_unique, colons_to_braces, filter_comment

logger = logging.getLogger(__name__)

HTTP_MODE = "http"
RPC_MODE = "rpc"

OPENAPI_VERSION = "3.0.3"
DEFAULT_TITLE = "API generated by swagger-idl"
DEFAULT_DESCRIPTION = "API description"
DEFAULT_VERSION = "0.0.1"
DEFAULT_HTTP_SERVER_URL = "http://127.0.0.1:8888"
DEFAULT_RPC_SERVER_URL = "http://127.0.0.1:8080"

STATUS_OK = "200"
DEFAULT_RESPONSE_DESCRIPTION = "Successful response"

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_FORM_MULTIPART = "multipart/form-data"
CONTENT_TYPE_FORM_URLENCODED = "application/x-www-form-urlencoded"
CONTENT_TYPE_RAW_BODY = "text/plain"

BODY_SCHEMA_SUFFIX = "Body"
RAW_BODY_SCHEMA_SUFFIX = "RawBody"

TTHEADER_PARAMETER = "ttheader"
TTHEADER_DESCRIPTION = "metainfo for request"

# later entries win when a field carries more than one placement
PARAMETER_ANNOTATIONS: Tuple[Tuple[str, str], ...] = (
    (API_QUERY, "query"),
    (API_PATH, "path"),
    (API_COOKIE, "cookie"),
    (API_HEADER, "header"),
)

METHODS_WITHOUT_BODY = frozenset({"GET", "HEAD", "DELETE"})

HTTP_PREFIX = "http://"
HTTPS_PREFIX = "https://"


@dataclass
class GeneratorConfig:
    """Options for one document build.

    ``title``/``description``/``version`` left as None fall back to the
    ``openapi.document`` annotation, then to the single tag (title and
    description only), then to the defaults above.
    """

    mode: str = HTTP_MODE
    title: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    openapi_version: str = OPENAPI_VERSION
    default_server_url: Optional[str] = None

    def __post_init__(self):
        if self.mode not in (HTTP_MODE, RPC_MODE):
            raise ValueError(f"unknown generator mode: {self.mode!r}")

    def server_url(self) -> str:
        if self.default_server_url:
            return self.default_server_url
        return DEFAULT_RPC_SERVER_URL if self.mode == RPC_MODE else DEFAULT_HTTP_SERVER_URL


class SchemaRegistry:
    """Component schemas of one generator run plus the queue of structs still to expand."""

    def __init__(self):
        self.schemas: Dict[str, SchemaOrReference] = {}
        self._queue: Deque[str] = deque()
        self._required: Set[str] = set()

    def require(self, name: str) -> Reference:
        """Reference the component ``name``, queueing it for expansion once."""
        if name not in self._required:
            self._required.add(name)
            self._queue.append(name)
        return Reference.to_schema(name)

    def add(self, name: str, schema: SchemaOrReference) -> bool:
        """Register ``schema`` under ``name``; the first registration wins."""
        if name in self.schemas:
            return False
        self.schemas[name] = schema
        return True

    def next_required(self) -> Optional[str]:
        while self._queue:
            name = self._queue.popleft()
            if name not in self.schemas:
                return name
        return None


def _annotation_object(annotations: Annotations, key: str, cls: Type[OpenAPIObject], owner: str):
    """Parse the ``key`` payload as ``cls``; bad payloads are logged and ignored."""
    try:
        payload = annotations.structured(key)
        if payload is None:
            return None
        return cls.model_validate(payload)
    except (AnnotationError, ValidationError) as e:
        logger.warning("ignoring %s on %s: %s", key, owner, e)
        return None


def _with_scheme(host: str) -> str:
    if host.startswith(HTTP_PREFIX) or host.startswith(HTTPS_PREFIX):
        return host
    return HTTP_PREFIX + host


class OpenAPIGenerator:
    """Builds one Document per ``generate`` call; no state outlives the call."""

    def __init__(self, config: Optional[GeneratorConfig] = None):
        self.config = config or GeneratorConfig()

    def generate(self, file_desc: FileDescriptor) -> Document:
        return _GenerationSession(file_desc, self.config).build()


class _GenerationSession:
    def __init__(self, file_desc: FileDescriptor, config: GeneratorConfig):
        self.file = file_desc
        self.config = config
        self.registry = SchemaRegistry()
        self.doc = Document(
            openapi=config.openapi_version,
            info=Info(
                title=config.title or "",
                description=config.description,
                version=config.version or "",
            ),
        )

    def build(self) -> Document:
        self._apply_document_annotation()
        for service in self.file.services:
            self._add_service(service)
        self._expand_required_structs()
        self._apply_tag_info()
        self._hoist_servers()
        self._sort()
        return self.doc

    # -- document --

    def _apply_document_annotation(self) -> None:
        owner = self._document_annotation_owner()
        if owner is None:
            return
        name, annotations = owner
        ext = _annotation_object(annotations, OPENAPI_DOCUMENT, Document, name)
        if ext is None:
            return
        merge_objects(self.doc, ext)
        # explicit config values outrank the annotation
        info = self.doc.info
        info.title = self.config.title or info.title
        info.description = self.config.description or info.description
        info.version = self.config.version or info.version
        self.doc.openapi = self.config.openapi_version

    def _document_annotation_owner(self) -> Optional[Tuple[str, Annotations]]:
        for service in self.file.services:
            if OPENAPI_DOCUMENT in service.annotations:
                return service.name, service.annotations
        for name in self.file.local_structs:
            struct = self.file.find_struct(name)
            if struct is not None and OPENAPI_DOCUMENT in struct.annotations:
                return struct.name, struct.annotations
        return None

    def _apply_tag_info(self) -> None:
        info = self.doc.info
        if len(self.doc.tags) == 1:
            tag = self.doc.tags[0]
            if not info.title and tag.name:
                info.title = tag.name + " API"
            if not info.description:
                info.description = tag.description
            tag.description = None
        if not info.title:
            info.title = DEFAULT_TITLE
        if not info.description:
            info.description = DEFAULT_DESCRIPTION
        if not info.version:
            info.version = DEFAULT_VERSION

    def _hoist_servers(self) -> None:
        all_urls: List[str] = []
        for item in self.doc.paths.values():
            urls: List[str] = []
            for _, op in item.operations():
                if len(op.servers) == 1:
                    append_unique(urls, op.servers[0].url)
                    append_unique(all_urls, op.servers[0].url)
            if len(urls) == 1:
                item.servers = [Server(url=urls[0])]
                for _, op in item.operations():
                    op.servers = []

        if len(all_urls) == 1 and (
            not self.doc.servers or [s.url for s in self.doc.servers] == all_urls
        ):
            self.doc.servers = [Server(url=all_urls[0])]
            for item in self.doc.paths.values():
                item.servers = []

        if not self.doc.servers:
            self.doc.servers = [Server(url=self.config.server_url())]

    def _sort(self) -> None:
        self.doc.tags.sort(key=lambda t: t.name)
        self.doc.paths = dict(sorted(self.doc.paths.items()))
        schemas = dict(self.registry.schemas)
        schemas.update(self.doc.components.schemas)
        self.doc.components.schemas = dict(sorted(schemas.items()))

    # -- services and operations --

    def _add_service(self, service: ServiceDescriptor) -> None:
        count = 0
        for method in service.methods:
            if self.config.mode == RPC_MODE:
                self._add_operation(service, method, "POST", "/" + method.name)
                count += 1
                continue
            for key, http_method in HTTP_METHOD_ANNOTATIONS.items():
                path = method.annotations.first(key)
                if path is None:
                    continue
                if http_method == "ANY":
                    logger.warning(
                        "%s on %s.%s has no single OpenAPI method, skipped",
                        key, service.name, method.name,
                    )
                    continue
                self._add_operation(service, method, http_method, path)
                count += 1
        if count > 0:
            description = filter_comment(service.comment) or None
            self.doc.tags.append(Tag(name=service.name, description=description))

    def _add_operation(self, service: ServiceDescriptor, method: MethodDescriptor, http_method: str, path: str) -> None:
        op_name = f"{service.name}.{method.name}"
        logger.debug("building %s %s for %s", http_method, path, op_name)
        op = self.build_operation(service, method, http_method)
        ext = _annotation_object(method.annotations, OPENAPI_OPERATION, Operation, op_name)
        merge_objects(op, ext)

        key = colons_to_braces(path)
        item = self.doc.paths.get(key)
        if item is None:
            item = self.doc.paths[key] = PathItem()
        item.set_operation(http_method, op)

    def build_operation(self, service: ServiceDescriptor, method: MethodDescriptor, http_method: str) -> Operation:
        request = method.request
        if self.config.mode == RPC_MODE:
            parameters = [
                Parameter(
                    name=TTHEADER_PARAMETER,
                    in_="query",
                    description=TTHEADER_DESCRIPTION,
                    schema=Schema(type="object"),
                )
            ]
            request_body = self._rpc_request_body(request)
        else:
            parameters = self._parameters(request) if request is not None else []
            request_body = None
            if request is not None and http_method not in METHODS_WITHOUT_BODY:
                request_body = self._http_request_body(request)

        op = Operation(
            tags=[service.name],
            description=filter_comment(method.comment) or None,
            operation_id=f"{service.name}_{method.name}",
            parameters=parameters,
            request_body=request_body,
            responses={STATUS_OK: self.response_for_struct(method.response)},
        )
        host = self._host_for(service, method)
        if host:
            op.servers = [Server(url=_with_scheme(host))]
        return op

    @staticmethod
    def _host_for(service: ServiceDescriptor, method: MethodDescriptor) -> Optional[str]:
        host = method.annotations.first(API_BASE_URL)
        if not host:
            host = service.annotations.first(API_BASE_DOMAIN)
        return host or None

    def _parameters(self, struct: StructDescriptor) -> List[Parameter]:
        parameters: List[Parameter] = []
        for f in struct.fields:
            name = location = None
            for key, where in PARAMETER_ANNOTATIONS:
                value = f.annotations.first(key)
                if value:
                    name, location = value, where
            if name is None:
                continue

            schema = self.schema_for_type(f.type)
            self._merge_property(schema, f, struct)
            parameter = Parameter(
                name=name,
                in_=location,
                description=filter_comment(f.comment) or None,
                required=True if location == "path" else None,
                schema=schema,
            )
            ext = _annotation_object(f.annotations, OPENAPI_PARAMETER, Parameter, f"{struct.name}.{f.name}")
            merge_objects(parameter, ext)
            parameters.append(parameter)
        return parameters

    def _http_request_body(self, struct: StructDescriptor) -> Optional[RequestBody]:
        content: Dict[str, MediaType] = {}
        body = self.schema_by_option(struct, API_BODY)
        if body.properties:
            content[CONTENT_TYPE_JSON] = MediaType(schema=body)
        form = self.schema_by_option(struct, API_FORM)
        if form.properties:
            content[CONTENT_TYPE_FORM_MULTIPART] = MediaType(schema=form)
            content[CONTENT_TYPE_FORM_URLENCODED] = MediaType(schema=form)
        raw = self.schema_by_option(struct, API_RAW_BODY)
        if raw.properties:
            content[CONTENT_TYPE_RAW_BODY] = MediaType(schema=raw)
        if not content:
            return None
        return RequestBody(description=filter_comment(struct.comment) or None, content=content)

    def _rpc_request_body(self, struct: Optional[StructDescriptor]) -> Optional[RequestBody]:
        if struct is None:
            return None
        body = self.schema_by_option(struct, None)
        if not body.properties:
            return None
        return RequestBody(
            description=filter_comment(struct.comment) or None,
            content={CONTENT_TYPE_JSON: MediaType(schema=body)},
        )

    def response_for_struct(self, struct: Optional[StructDescriptor]) -> Response:
        """The ``200`` response: headers and body components built from ``struct``.

        A response without headers or content keeps only its description.
        """
        if struct is None:
            return Response(description=DEFAULT_RESPONSE_DESCRIPTION)

        description = filter_comment(struct.comment) or DEFAULT_RESPONSE_DESCRIPTION
        headers: Dict[str, Header] = {}
        content: Dict[str, MediaType] = {}

        if self.config.mode == RPC_MODE:
            body = self.schema_by_option(struct, None)
            if body.properties:
                self.registry.add(struct.name, body)
                content[CONTENT_TYPE_JSON] = MediaType(schema=Reference.to_schema(struct.name))
        else:
            for f in struct.fields:
                name = f.annotations.first(API_HEADER)
                if name:
                    headers[name] = Header(
                        description=filter_comment(f.comment) or None,
                        schema=self.schema_for_type(f.type),
                    )
            for option, suffix, media_type in (
                (API_BODY, BODY_SCHEMA_SUFFIX, CONTENT_TYPE_JSON),
                (API_RAW_BODY, RAW_BODY_SCHEMA_SUFFIX, CONTENT_TYPE_RAW_BODY),
            ):
                schema = self.schema_by_option(struct, option)
                if schema.properties:
                    component = struct.name + suffix
                    self.registry.add(component, schema)
                    content[media_type] = MediaType(schema=Reference.to_schema(component))

        return Response(
            description=description,
            headers=headers or None,
            content=content or None,
        )

    # -- schemas --

    def schema_by_option(self, struct: StructDescriptor, option: Optional[str]) -> Schema:
        """Object schema of the fields of ``struct`` annotated with ``option``.

        With ``option`` None every field is included. Properties are named by
        the annotation value, or the field name when the value is empty.
        ``required`` lists the included names that the struct's
        ``openapi.schema`` marks required or that are declared required.
        """
        ext = _annotation_object(struct.annotations, OPENAPI_SCHEMA, Schema, struct.name)
        ext_required = list(ext.required) if ext is not None else []

        schema = Schema(type="object")
        required: List[str] = []
        for f in struct.fields:
            if option is None:
                name = f.name
            else:
                if option not in f.annotations:
                    continue
                name = f.annotations.first(option) or f.name
            if name in ext_required or f.required:
                required.append(name)
            schema.properties[name] = self._property_schema(f, struct)

        if ext is not None:
            merge_objects(schema, ext)
        schema.required = required
        return schema

    def schema_for_type(self, type_: TypeDescriptor) -> SchemaOrReference:
        kind = type_.kind
        if kind == TypeKind.STRUCT:
            return self.registry.require(type_.name)
        if kind == TypeKind.ENUM:
            return Schema(type=ENUM_SCHEMA[0], format=ENUM_SCHEMA[1])
        if kind in (TypeKind.LIST, TypeKind.SET):
            return Schema(
                type="array",
                items=self.schema_for_type(type_.element),
                unique_items=True if kind == TypeKind.SET else None,
            )
        if kind == TypeKind.MAP:
            return Schema(type="object", additional_properties=self.schema_for_type(type_.element))

        schema_type, schema_format = schema_for_scalar(type_.name)
        if schema_type is None:
            logger.debug("unknown scalar kind '%s', emitting an untyped schema", type_.name)
        return Schema(type=schema_type, format=schema_format)

    def _property_schema(self, f: FieldDescriptor, struct: StructDescriptor) -> SchemaOrReference:
        schema = self.schema_for_type(f.type)
        if isinstance(schema, Schema):
            schema.description = filter_comment(f.comment) or None
            self._merge_property(schema, f, struct)
        return schema

    @staticmethod
    def _merge_property(schema: SchemaOrReference, f: FieldDescriptor, struct: StructDescriptor) -> None:
        if not isinstance(schema, Schema):
            return
        ext = _annotation_object(f.annotations, OPENAPI_PROPERTY, Schema, f"{struct.name}.{f.name}")
        merge_objects(schema, ext)

    def _expand_required_structs(self) -> None:
        while True:
            name = self.registry.next_required()
            if name is None:
                return
            struct = self.file.find_struct(name)
            if struct is None:
                logger.warning("could not find struct '%s' referenced by a field", name)
                continue
            self.expand_struct(struct)

    def expand_struct(self, struct: StructDescriptor) -> Schema:
        """Build and register the component schema of ``struct``."""
        logger.debug("expanding struct %s", struct.name)
        schema = Schema(type="object", description=filter_comment(struct.comment) or None)
        # registered before the fields are walked so back references find it
        self.registry.add(struct.name, schema)

        required: List[str] = []
        for f in struct.fields:
            schema.properties[f.name] = self._property_schema(f, struct)
            if f.required:
                required.append(f.name)

        ext = _annotation_object(struct.annotations, OPENAPI_SCHEMA, Schema, struct.name)
        if ext is not None:
            merge_objects(schema, ext)
            for name in ext.required:
                append_unique(required, name)
        schema.required = required
        return schema


def generate_document(file_desc: FileDescriptor, config: Optional[GeneratorConfig] = None) -> Document:
    return OpenAPIGenerator(config).generate(file_desc)
