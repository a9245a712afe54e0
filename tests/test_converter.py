import pytest

from swagger_idl.converter import ConversionError, ConvertOption, ProtoConverter, convert_spec
from swagger_idl.models import EMPTY_IMPORT, EMPTY_TYPE, MapValue, ProtoEnum, ProtoField, ProtoMessage, StringValue


def _converter(**option) -> ProtoConverter:
    return ProtoConverter("test", ConvertOption(**option) if option else None)


def _field(message: ProtoMessage, name: str) -> ProtoField:
    for f in message.fields:
        if f.name == name:
            return f
    raise AssertionError(f"no field {name} in {message.name}: {[f.name for f in message.fields]}")


def _nested(message: ProtoMessage, name: str) -> ProtoMessage:
    for m in message.messages:
        if m.name == name:
            return m
    raise AssertionError(f"no nested message {name} in {message.name}")


class TestConvertSchema:
    def test_reference_becomes_field(self):
        result = _converter().convert_schema({"$ref": "#/components/schemas/Pet"}, "pet")
        assert result == ProtoField(name="pet", type="Pet")

    def test_scalar(self):
        result = _converter().convert_schema({"type": "integer", "format": "int32"}, "age")
        assert result == ProtoField(name="age", type="int32")

    def test_timestamp_registers_import(self):
        conv = _converter()
        result = conv.convert_schema({"type": "string", "format": "date-time"}, "created")
        assert result.type == "google.protobuf.Timestamp"
        assert "google/protobuf/timestamp.proto" in conv.proto_file.imports

    def test_missing_type_is_error(self):
        with pytest.raises(ConversionError, match="schema type is required"):
            _converter().convert_schema({"description": "no type"}, "x")

    def test_openapi_31_type_list(self):
        result = _converter().convert_schema({"type": ["string", "null"]}, "nickname")
        assert result == ProtoField(name="nickname", type="string")

    def test_object(self):
        schema = {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
            },
        }
        message = _converter().convert_schema(schema, "Pet")
        assert isinstance(message, ProtoMessage)
        assert message.name == "Pet"
        assert [(f.name, f.type) for f in message.fields] == [("id", "int64"), ("name", "string")]

    def test_array_of_scalars(self):
        result = _converter().convert_schema({"type": "array", "items": {"type": "string"}}, "tags")
        assert result == ProtoField(name="tags", type="string", repeated=True)

    def test_array_of_objects_nests_item_message_in_parent(self):
        schema = {
            "type": "object",
            "properties": {
                "items": {
                    "type": "array",
                    "items": {"type": "object", "properties": {"sku": {"type": "string"}}},
                },
            },
        }
        conv = _converter()
        message = conv.convert_schema(schema, "Order")
        items = _field(message, "items")
        assert items.repeated is True
        assert items.type == "itemsItem"
        assert _field(_nested(message, "itemsItem"), "sku").type == "string"
        assert conv.proto_file.find_message("itemsItem") is None

    def test_nested_object_property(self):
        schema = {
            "type": "object",
            "properties": {
                "owner": {"type": "object", "properties": {"name": {"type": "string"}}},
            },
        }
        message = _converter().convert_schema(schema, "Pet")
        assert _field(message, "ownerField").type == "owner"
        assert _nested(message, "owner").fields[0].name == "name"

    def test_additional_properties_default_string(self):
        schema = {"type": "object", "additionalProperties": True}
        message = _converter().convert_schema(schema, "Labels")
        assert _field(message, "additionalProperties").type == "map<string, string>"

    def test_additional_properties_scalar_maps_to_string(self):
        schema = {"type": "object", "additionalProperties": {"type": "integer", "format": "int32"}}
        message = _converter().convert_schema(schema, "Counts")
        assert _field(message, "additionalProperties").type == "map<string, string>"

    def test_additional_properties_message(self):
        schema = {
            "type": "object",
            "additionalProperties": {"type": "object", "properties": {"v": {"type": "string"}}},
        }
        message = _converter().convert_schema(schema, "Index")
        assert _field(message, "additionalProperties").type == "map<string, IndexAdditionalProperties>"
        assert _nested(message, "IndexAdditionalProperties").fields[0].name == "v"

    def test_property_error_is_wrapped(self):
        schema = {"type": "object", "properties": {"tags": {"items": {"type": "string"}}}}
        with pytest.raises(ConversionError, match="property tags: schema type is required"):
            _converter().convert_schema(schema, "Pet")


class TestEnums:
    def test_inline_enum_nested_in_parent(self):
        schema = {
            "type": "object",
            "properties": {"status": {"type": "string", "enum": ["available", "sold"]}},
        }
        message = _converter().convert_schema(schema, "Pet")
        assert _field(message, "status").type == "Status"
        enum = message.enums[0]
        assert enum.name == "Status"
        assert [(v.name, v.number) for v in enum.values] == [
            ("STATUS_UNSPECIFIED", 0),
            ("STATUS_AVAILABLE", 1),
            ("STATUS_SOLD", 2),
        ]

    def test_component_enum_at_file_level(self):
        spec = {
            "openapi": "3.0.0",
            "components": {"schemas": {"PetStatus": {"type": "string", "enum": ["in-stock"]}}},
        }
        proto = convert_spec(spec, "pets")
        assert proto.messages == []
        enum = proto.enums[0]
        assert isinstance(enum, ProtoEnum)
        assert [v.name for v in enum.values] == ["PET_STATUS_UNSPECIFIED", "PET_STATUS_IN_STOCK"]


class TestComponents:
    def test_schema_error_names_component(self):
        spec = {
            "openapi": "3.0.0",
            "components": {"schemas": {"Pet": {"type": "object", "properties": {"tags": {}}}}},
        }
        with pytest.raises(ConversionError, match="error converting schema Pet: property tags: schema type is required"):
            convert_spec(spec, "pets")

    def test_scalar_component_wrapped_in_message(self):
        spec = {"openapi": "3.0.0", "components": {"schemas": {"Id": {"type": "string"}}}}
        proto = convert_spec(spec, "pets")
        assert proto.messages[0].name == "Id"
        assert proto.messages[0].fields[0] == ProtoField(name="Id", type="string")

    def test_same_name_messages_are_unioned(self):
        conv = _converter()
        conv.proto_file.add_message(ProtoMessage("Pet", fields=[ProtoField("id", "int64"), ProtoField("name", "string")]))
        conv.proto_file.add_message(ProtoMessage("Pet", fields=[ProtoField("name", "bytes"), ProtoField("age", "int32")]))
        assert len(conv.proto_file.messages) == 1
        pet = conv.proto_file.messages[0]
        assert [(f.name, f.type) for f in pet.fields] == [("id", "int64"), ("name", "string"), ("age", "int32")]

    @pytest.mark.parametrize("components_first", [True, False])
    def test_component_and_request_message_share_name(self, components_first):
        components = {
            "schemas": {
                "getPetRequest": {
                    "type": "object",
                    "properties": {"petId": {"type": "integer"}, "extra": {"type": "string"}},
                },
            },
        }
        paths = {
            "/pets/{petId}": {
                "get": {
                    "operationId": "getPet",
                    "parameters": [{"name": "petId", "in": "path", "schema": {"type": "integer"}}],
                    "responses": {"200": {"description": "ok"}},
                },
            },
        }
        spec = {"openapi": "3.0.0"}
        if components_first:
            spec.update(components=components, paths=paths)
        else:
            spec.update(paths=paths, components=components)

        proto = convert_spec(spec, "pets")
        assert [m.name for m in proto.messages] == ["getPetRequest"]
        assert [(f.name, f.type) for f in proto.messages[0].fields] == [("petId", "int64"), ("extra", "string")]
        assert proto.services[0].methods[0].input_type == "getPetRequest"


PET_SPEC = {
    "openapi": "3.0.0",
    "info": {"title": "Pet Store", "version": "1.0.0"},
    "paths": {
        "/pets": {
            "get": {
                "operationId": "listPets",
                "tags": ["pets"],
                "responses": {"200": {"description": "ok"}},
            },
            "post": {
                "operationId": "createPet",
                "tags": ["pets"],
                "summary": "Create a pet",
                "requestBody": {
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                },
                "responses": {
                    "201": {
                        "description": "created",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                    },
                },
            },
        },
        "/pets/{petId}": {
            "get": {
                "operationId": "getPet",
                "tags": ["pets"],
                "parameters": [
                    {"name": "petId", "in": "path", "required": True, "schema": {"type": "integer"}},
                ],
                "responses": {
                    "200": {
                        "description": "ok",
                        "headers": {"X-Rate-Limit": {"schema": {"type": "integer", "format": "int32"}}},
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                    },
                    "404": {"description": "not found"},
                },
            },
        },
        "/health": {
            "get": {"responses": {"204": {"description": "alive"}}},
        },
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "properties": {"id": {"type": "integer"}, "name": {"type": "string"}},
            },
        },
    },
}


class TestOperations:
    def _convert(self, **option):
        return convert_spec(PET_SPEC, option=ConvertOption(**option) if option else None)

    def test_package_defaults_to_title(self):
        assert self._convert().package == "Pet_Store"

    def test_services_grouped_by_tag(self):
        proto = self._convert()
        names = sorted(s.name for s in proto.services)
        assert names == ["DefaultService", "pets"]

    def test_method_name_fallback(self):
        proto = self._convert()
        default = next(s for s in proto.services if s.name == "DefaultService")
        assert [m.name for m in default.methods] == ["GetMethod"]

    def test_empty_shortcut_registers_import_once(self):
        proto = self._convert()
        pets = next(s for s in proto.services if s.name == "pets")
        list_pets = next(m for m in pets.methods if m.name == "listPets")
        assert list_pets.input_type == EMPTY_TYPE
        assert list_pets.output_type == EMPTY_TYPE
        assert proto.imports.count(EMPTY_IMPORT) == 1

    def test_request_message_from_body(self):
        proto = self._convert()
        request = proto.find_message("createPetRequest")
        assert request is not None
        assert request.fields == [ProtoField(name="CreatePetRequestapplicationJson", type="Pet")]

    def test_request_message_from_parameters(self):
        proto = self._convert()
        request = proto.find_message("getPetRequest")
        assert request.fields == [ProtoField(name="petId", type="int64")]

    def test_single_response_with_content(self):
        proto = self._convert()
        pets = next(s for s in proto.services if s.name == "pets")
        create = next(m for m in pets.methods if m.name == "createPet")
        assert create.output_type == "createPetResponse_201"
        response = proto.find_message("createPetResponse_201")
        assert response.fields == [ProtoField(name="ApplicationJson", type="Pet")]

    def test_multiple_responses_wrapper(self):
        proto = self._convert()
        wrapper = proto.find_message("getPet")
        assert wrapper.fields == [ProtoField(name="response_200", type="getPetResponse_200")]
        response = proto.find_message("getPetResponse_200")
        assert [(f.name, f.type) for f in response.fields] == [
            ("X_Rate_Limit", "int32"),
            ("ApplicationJson", "Pet"),
        ]

    def test_api_option_path_rewritten(self):
        proto = self._convert()
        pets = next(s for s in proto.services if s.name == "pets")
        get_pet = next(m for m in pets.methods if m.name == "getPet")
        assert get_pet.options[0].name == "api.get"
        assert get_pet.options[0].value == StringValue("/pets/:petId")
        assert "api.proto" in proto.imports

    def test_no_api_option(self):
        proto = self._convert(api_option=False)
        assert all(not m.options for s in proto.services for m in s.methods)
        assert "api.proto" not in proto.imports

    def test_openapi_option(self):
        proto = self._convert(openapi_option=True)
        pets = next(s for s in proto.services if s.name == "pets")
        create = next(m for m in pets.methods if m.name == "createPet")
        option = next(o for o in create.options if o.name == "openapi.operation")
        assert isinstance(option.value, MapValue)
        assert option.value.entries["summary"] == StringValue("Create a pet")
        assert "openapi.proto" in proto.imports

    def test_duplicate_method_names_first_wins(self):
        spec = {
            "openapi": "3.0.0",
            "paths": {
                "/a": {"get": {"operationId": "fetch", "responses": {"200": {"description": "a"}}}},
                "/b": {"get": {"operationId": "fetch", "responses": {"200": {"description": "b"}}}},
            },
        }
        proto = convert_spec(spec, "dup")
        methods = proto.services[0].methods
        assert len(methods) == 1
        assert methods[0].options[0].value == StringValue("/a")

    def test_all_content_less_responses_use_empty(self):
        spec = {
            "openapi": "3.0.0",
            "paths": {
                "/a": {
                    "delete": {
                        "operationId": "remove",
                        "responses": {"204": {"description": "gone"}, "404": {"description": "missing"}},
                    }
                },
            },
        }
        proto = convert_spec(spec, "x")
        assert proto.services[0].methods[0].output_type == EMPTY_TYPE
        assert proto.find_message("remove") is None

    def test_operation_error_is_wrapped(self):
        spec = {
            "openapi": "3.0.0",
            "paths": {
                "/a": {
                    "get": {
                        "operationId": "broken",
                        "parameters": [{"name": "q", "in": "query", "schema": {"format": "int32"}}],
                    }
                },
            },
        }
        with pytest.raises(ConversionError, match="request message for broken: parameter q"):
            convert_spec(spec, "x")

    def test_names_fall_back_to_method_name(self):
        spec = {
            "openapi": "3.0.0",
            "paths": {
                "/a": {
                    "get": {
                        "parameters": [{"name": "q", "in": "query", "schema": {"type": "string"}}],
                        "responses": {
                            "200": {"description": "ok", "content": {"application/json": {"schema": {"type": "string"}}}},
                            "400": {"description": "bad", "content": {"application/json": {"schema": {"type": "string"}}}},
                        },
                    }
                },
            },
        }
        proto = convert_spec(spec, "x")
        method = proto.services[0].methods[0]
        assert method.name == "GetMethod"
        assert method.input_type == "GetMethodRequest"
        assert method.output_type == "GetMethod"
        assert sorted(m.name for m in proto.messages) == [
            "GetMethod",
            "GetMethodRequest",
            "GetMethodResponse_200",
            "GetMethodResponse_400",
        ]
        assert all(m.name for m in proto.messages)

    def test_parameter_and_header_names_made_identifiers(self):
        spec = {
            "openapi": "3.0.0",
            "paths": {
                "/a": {
                    "get": {
                        "operationId": "trace",
                        "parameters": [
                            {"name": "X-Trace", "in": "header", "schema": {"type": "string"}},
                            {"name": "page.size", "in": "query", "schema": {"type": "integer", "format": "int32"}},
                        ],
                        "responses": {
                            "200": {
                                "description": "ok",
                                "headers": {"X-Request-Id": {"schema": {"type": "string"}}},
                                "content": {"text/plain": {"schema": {"type": "string"}}},
                            },
                        },
                    }
                },
            },
        }
        proto = convert_spec(spec, "x")
        request = proto.find_message("traceRequest")
        assert [f.name for f in request.fields] == ["X_Trace", "page_size"]
        response = proto.find_message("traceResponse_200")
        assert [f.name for f in response.fields] == ["X_Request_Id", "TextPlain"]
