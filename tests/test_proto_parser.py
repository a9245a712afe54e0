import pytest

from swagger_idl.parser.proto_ast_parser import ProtoParseError, parse_proto_text
from swagger_idl.parser.proto_tokenizer import ProtoTokenType, tokenize_proto


class TestTokenizer:
    def test_dotted_identifier_is_one_token(self):
        tokens = tokenize_proto("google.protobuf.Empty")
        assert tokens[0].type == ProtoTokenType.IDENT
        assert tokens[0].value == "google.protobuf.Empty"
        assert tokens[1].type == ProtoTokenType.EOF

    def test_leading_and_trailing_comments(self):
        tokens = tokenize_proto("// the id\nint32 id = 1; // trailing\n")
        assert tokens[0].comment == "// the id"
        semicolon = next(t for t in tokens if t.type == ProtoTokenType.SEMICOLON)
        assert semicolon.trailing == "// trailing"

    def test_string_escapes(self):
        tokens = tokenize_proto(r'"a\"b" ' + "'c'")
        assert [t.value for t in tokens[:2]] == ['a"b', "c"]

    def test_line_numbers(self):
        tokens = tokenize_proto("syntax\n\n  message")
        assert (tokens[1].line, tokens[1].col) == (3, 3)


class TestSimpleMessage:
    def test_single_message_with_primitives(self):
        proto = """\
syntax = "proto3";

package order;

message OrderInfo {
    int32 order_id = 1;
    string customer_name = 2;
    bool is_active = 3;
}
"""
        pf = parse_proto_text(proto)
        assert pf.syntax == "proto3"
        assert pf.package == "order"
        assert len(pf.messages) == 1
        msg = pf.messages[0]
        assert msg.name == "OrderInfo"
        assert [(f.type_name, f.field_name, f.field_number) for f in msg.fields] == [
            ("int32", "order_id", 1),
            ("string", "customer_name", 2),
            ("bool", "is_active", 3),
        ]
        assert all(f.is_repeated is False for f in msg.fields)

    def test_multiple_messages(self):
        proto = """\
syntax = "proto3";

message Foo {
    int32 id = 1;
}

message Bar {
    string name = 1;
    double value = 2;
}
"""
        pf = parse_proto_text(proto)
        assert [m.name for m in pf.messages] == ["Foo", "Bar"]
        assert len(pf.messages[1].fields) == 2


class TestFieldKinds:
    def test_repeated_field(self):
        pf = parse_proto_text("message C { repeated string tags = 1; int32 n = 2; }")
        tags, n = pf.messages[0].fields
        assert tags.is_repeated is True
        assert n.is_repeated is False

    def test_map_field(self):
        pf = parse_proto_text("message C { map<string, int64> counts = 1; }")
        field = pf.messages[0].fields[0]
        assert field.is_map
        assert field.map_key_type == "string"
        assert field.type_name == "int64"

    def test_oneof_fields_flattened(self):
        pf = parse_proto_text("""\
message Payment {
    oneof method {
        string card = 1;
        string iban = 2;
    }
    int64 amount = 3;
}
""")
        fields = pf.messages[0].fields
        assert [(f.field_name, f.oneof) for f in fields] == [
            ("card", "method"),
            ("iban", "method"),
            ("amount", None),
        ]

    def test_reserved_skipped(self):
        pf = parse_proto_text("message M { reserved 2, 15, 9 to 11; reserved \"foo\"; string a = 1; }")
        assert [f.field_name for f in pf.messages[0].fields] == ["a"]

    def test_proto2_labels(self):
        pf = parse_proto_text('syntax = "proto2"; message M { required string a = 1; optional int32 b = 2; }')
        assert pf.syntax == "proto2"
        assert [f.field_name for f in pf.messages[0].fields] == ["a", "b"]

    def test_field_comment(self):
        pf = parse_proto_text("message M {\n    // the name\n    string name = 1;\n    int32 age = 2; // years\n}\n")
        name, age = pf.messages[0].fields
        assert name.comment == "// the name"
        assert age.comment == "// years"


class TestNesting:
    def test_nested_message_and_enum(self):
        proto = """\
message Outer {
    message Inner {
        string value = 1;
    }
    enum Kind {
        KIND_UNKNOWN = 0;
        KIND_A = 1;
    }
    Inner inner = 1;
    Kind kind = 2;
}
"""
        outer = parse_proto_text(proto).messages[0]
        assert [m.name for m in outer.nested_messages] == ["Inner"]
        assert outer.enums[0].name == "Kind"
        assert [(v.name, v.number) for v in outer.enums[0].values] == [("KIND_UNKNOWN", 0), ("KIND_A", 1)]
        assert outer.fields[0].type_name == "Inner"


class TestOptions:
    def test_field_options(self):
        pf = parse_proto_text('message M { string q = 1 [(api.query) = "q", deprecated = true]; }')
        options = pf.messages[0].fields[0].options
        assert [(o.name, o.value) for o in options] == [("api.query", "q"), ("deprecated", True)]

    def test_file_option(self):
        pf = parse_proto_text('option go_package = "example.com/pets";')
        assert pf.options[0].name == "go_package"
        assert pf.options[0].value == "example.com/pets"

    def test_aggregate_option(self):
        pf = parse_proto_text("""\
message Pet {
    option (openapi.schema) = {
        title: "Pet"
        required: ["id", "name"]
        example: { id: 1 }
    };
    int64 id = 1;
}
""")
        option = pf.messages[0].options[0]
        assert option.name == "openapi.schema"
        assert option.value == {"title": "Pet", "required": ["id", "name"], "example": {"id": 1}}

    def test_repeated_aggregate_key_collects(self):
        pf = parse_proto_text('option (x) = { tag: "a" tag: "b" };')
        assert pf.options[0].value == {"tag": ["a", "b"]}

    def test_adjacent_strings_concatenated(self):
        pf = parse_proto_text('option (x) = "a" "b";')
        assert pf.options[0].value == "ab"


class TestServices:
    def test_rpc_with_options(self):
        proto = """\
syntax = "proto3";
import "google/protobuf/empty.proto";
import public "api.proto";

// Pet service.
service PetService {
    option (api.base_domain) = "pets.example.com";

    // Gets a pet.
    rpc GetPet(GetPetRequest) returns (Pet) {
        option (api.get) = "/pets/:id";
    }
    rpc Ping(google.protobuf.Empty) returns (google.protobuf.Empty);
    rpc Watch(stream WatchRequest) returns (stream Event);
}
"""
        pf = parse_proto_text(proto)
        assert pf.imports == ["google/protobuf/empty.proto", "api.proto"]
        service = pf.services[0]
        assert service.name == "PetService"
        assert service.comment == "// Pet service."
        assert service.options[0].name == "api.base_domain"
        get_pet, ping, watch = service.rpcs
        assert get_pet.comment == "// Gets a pet."
        assert (get_pet.input_type, get_pet.output_type) == ("GetPetRequest", "Pet")
        assert get_pet.options[0].name == "api.get"
        assert get_pet.options[0].value == "/pets/:id"
        assert ping.input_type == "google.protobuf.Empty"
        assert watch.client_streaming and watch.server_streaming

    def test_extend_skipped(self):
        pf = parse_proto_text("extend google.protobuf.FieldOptions { string query = 50101; } message M {}")
        assert [m.name for m in pf.messages] == ["M"]


class TestErrors:
    def test_missing_semicolon(self):
        with pytest.raises(ProtoParseError, match="Line 1"):
            parse_proto_text("message M { string a = 1 }")

    def test_unexpected_top_level_token(self):
        with pytest.raises(ProtoParseError):
            parse_proto_text("= 1;")
