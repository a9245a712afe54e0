import os
import shutil
import tempfile

import pytest

from swagger_idl.descriptors import TypeKind
from swagger_idl.reflection import IDLReflector, ReflectionError, reflect_file


THRIFT_PETS = """\
namespace go pets.api
namespace py pets_api

typedef i64 PetId
typedef list<string> Tags

enum Status {
    AVAILABLE = 1,
    SOLD = 2,
}

struct Pet {
    1: required PetId id
    2: optional string name
    3: Tags tags
    4: set<i32> scores
    5: map<string, Pet> friends
    6: Status status
}

struct GetPetRequest {
    1: PetId id (api.path = "id")
}

service PetService {
    Pet GetPet(1: GetPetRequest req) (api.get = "/pets/:id")
    void Ping()
}
"""


class TestThriftText:
    def test_types_resolved(self):
        fd = IDLReflector().reflect_thrift_text(THRIFT_PETS)
        assert fd.package == "pets.api"
        pet = fd.find_struct("Pet")
        types = {f.name: f.type for f in pet.fields}

        assert types["id"].kind == TypeKind.SCALAR
        assert types["id"].name == "i64"
        assert types["tags"].kind == TypeKind.LIST
        assert types["tags"].element.name == "string"
        assert types["scores"].kind == TypeKind.SET
        assert types["friends"].kind == TypeKind.MAP
        assert types["friends"].key.name == "string"
        assert types["friends"].element.kind == TypeKind.STRUCT
        assert types["status"].kind == TypeKind.ENUM
        assert fd.enums["Status"].values == {"AVAILABLE": 1, "SOLD": 2}

    def test_required_fields(self):
        pet = IDLReflector().reflect_thrift_text(THRIFT_PETS).find_struct("Pet")
        assert [f.name for f in pet.fields if f.required] == ["id"]

    def test_services(self):
        fd = IDLReflector().reflect_thrift_text(THRIFT_PETS)
        service = fd.find_service("PetService")
        get_pet, ping = service.methods
        assert get_pet.request.name == "GetPetRequest"
        assert get_pet.response.name == "Pet"
        assert get_pet.annotations.first("api.get") == "/pets/:id"
        assert ping.request is None
        assert ping.response is None
        assert fd.local_structs == ["Pet", "GetPetRequest"]

    def test_field_annotations(self):
        fd = IDLReflector().reflect_thrift_text(THRIFT_PETS)
        req = fd.find_struct("GetPetRequest")
        assert req.fields[0].annotations.first("api.path") == "id"

    def test_non_struct_argument(self):
        with pytest.raises(ReflectionError, match="not a known struct"):
            IDLReflector().reflect_thrift_text("service S { void Do(1: string name) }")

    def test_unknown_result(self):
        with pytest.raises(ReflectionError, match="result of S.Do"):
            IDLReflector().reflect_thrift_text("struct A {} service S { Missing Do(1: A a) }")

    def test_typedef_cycle(self):
        with pytest.raises(ReflectionError, match="typedef cycle"):
            IDLReflector().reflect_thrift_text("typedef B A\ntypedef A B\nstruct S { 1: A a }")

    def test_extra_arguments_ignored(self, caplog):
        fd = IDLReflector().reflect_thrift_text("struct A {} struct B {} service S { A Do(1: A a, 2: B b) }")
        assert fd.services[0].methods[0].request.name == "A"
        assert "more than one argument" in caplog.text


class TestThriftIncludes:
    def setup_method(self):
        self.work_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.work_dir)

    def _write(self, name: str, content: str) -> str:
        path = os.path.join(self.work_dir, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            f.write(content)
        return path

    def test_include_alias(self):
        self._write("shared/base.thrift", "struct Pet { 1: string name }\nenum Kind { A }\n")
        main = self._write("shared/api.thrift", """\
include "base.thrift"

struct ListResponse {
    1: list<base.Pet> pets
    2: base.Kind kind
}

service S {
    ListResponse List(1: base.Pet filter)
}
""")
        fd = reflect_file(main)
        resp = fd.find_struct("ListResponse")
        assert resp.fields[0].type.element.kind == TypeKind.STRUCT
        assert resp.fields[0].type.element.name == "Pet"
        assert resp.fields[1].type.kind == TypeKind.ENUM
        assert fd.services[0].methods[0].request.name == "Pet"
        assert fd.local_structs == ["ListResponse"]

    def test_include_path_search(self):
        self._write("common/base.thrift", "struct Pet {}\n")
        main = self._write("api/main.thrift", 'include "base.thrift"\nservice S { base.Pet Get() }\n')
        fd = IDLReflector([os.path.join(self.work_dir, "common")]).load_idl(main)
        assert fd.services[0].methods[0].response.name == "Pet"

    def test_missing_include_warns(self, caplog):
        main = self._write("main.thrift", 'include "nowhere.thrift"\nstruct A {}\n')
        fd = reflect_file(main)
        assert "A" in fd.structs
        assert "nowhere.thrift" in caplog.text

    def test_unsupported_suffix(self):
        path = self._write("api.idl", "")
        with pytest.raises(ReflectionError, match="unsupported IDL file type"):
            reflect_file(path)


PROTO_PETS = """\
syntax = "proto3";

package pets.v1;

import "google/protobuf/empty.proto";
import "google/protobuf/timestamp.proto";

message Pet {
    message Owner {
        string name = 1;
    }
    enum Kind {
        KIND_UNKNOWN = 0;
        KIND_DOG = 1;
    }
    int64 id = 1 [(api.path) = "id"];
    Owner owner = 2;
    Kind kind = 3;
    repeated string tags = 4;
    map<string, Owner> previous = 5;
    google.protobuf.Timestamp born = 6;
    .pets.v1.Pet parent = 7;
}

message GetPetRequest {
    int64 id = 1;
}

service PetService {
    option (api.base_domain) = "pets.example.com";
    rpc GetPet(GetPetRequest) returns (Pet) {
        option (api.get) = "/pets/:id";
    }
    rpc Ping(google.protobuf.Empty) returns (google.protobuf.Empty);
}
"""


class TestProtoText:
    def test_nested_names(self):
        fd = IDLReflector().reflect_proto_text(PROTO_PETS)
        assert fd.package == "pets.v1"
        assert set(fd.structs) == {"Pet", "Pet.Owner", "GetPetRequest"}
        assert fd.local_structs == ["Pet", "Pet.Owner", "GetPetRequest"]
        assert "Pet.Kind" in fd.enums

    def test_field_types(self):
        pet = IDLReflector().reflect_proto_text(PROTO_PETS).find_struct("Pet")
        types = {f.name: f.type for f in pet.fields}
        assert (types["owner"].kind, types["owner"].name) == (TypeKind.STRUCT, "Pet.Owner")
        assert (types["kind"].kind, types["kind"].name) == (TypeKind.ENUM, "Pet.Kind")
        assert types["tags"].kind == TypeKind.LIST
        assert types["previous"].kind == TypeKind.MAP
        assert types["previous"].element.name == "Pet.Owner"
        assert (types["born"].kind, types["born"].name) == (TypeKind.SCALAR, "google.protobuf.Timestamp")
        assert (types["parent"].kind, types["parent"].name) == (TypeKind.STRUCT, "Pet")

    def test_options_become_annotations(self):
        fd = IDLReflector().reflect_proto_text(PROTO_PETS)
        service = fd.services[0]
        assert service.annotations.first("api.base_domain") == "pets.example.com"
        assert service.methods[0].annotations.first("api.get") == "/pets/:id"
        assert fd.find_struct("Pet").fields[0].annotations.first("api.path") == "id"

    def test_empty_is_none(self):
        ping = IDLReflector().reflect_proto_text(PROTO_PETS).services[0].methods[1]
        assert ping.request is None
        assert ping.response is None

    def test_unknown_message(self):
        with pytest.raises(ReflectionError, match="not a known message"):
            IDLReflector().reflect_proto_text("service S { rpc Do(Missing) returns (Missing); }")

    def test_enum_as_input_rejected(self):
        with pytest.raises(ReflectionError):
            IDLReflector().reflect_proto_text("enum E { E_0 = 0; } message M {} service S { rpc Do(E) returns (M); }")


class TestProtoImports:
    def setup_method(self):
        self.work_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.work_dir)

    def _write(self, name: str, content: str) -> str:
        path = os.path.join(self.work_dir, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            f.write(content)
        return path

    def test_imported_package(self):
        self._write("common/types.proto", "syntax = \"proto3\";\npackage common;\nmessage Page { int32 size = 1; }\n")
        main = self._write("api.proto", """\
syntax = "proto3";
package api;
import "common/types.proto";
message ListRequest { common.Page page = 1; }
service S { rpc List(ListRequest) returns (common.Page); }
""")
        fd = reflect_file(main)
        assert fd.find_struct("ListRequest").fields[0].type.name == "Page"
        assert fd.services[0].methods[0].response.name == "Page"
        assert fd.local_structs == ["ListRequest"]

    def test_missing_import_warns(self, caplog):
        main = self._write("api.proto", 'syntax = "proto3";\nimport "gone.proto";\nmessage M {}\n')
        reflect_file(main)
        assert "gone.proto" in caplog.text
