import os
import tempfile

import pytest

from swagger_idl.spec_loader import SpecLoader, SpecLoadError, load_openapi_spec, load_openapi_text


def _write_temp_spec(content: str, suffix: str = ".yaml") -> str:
    fd, path = tempfile.mkstemp(suffix=suffix)
    os.write(fd, content.encode())
    os.close(fd)
    return path


class TestLoad:
    def test_yaml_file(self):
        spec = """\
openapi: 3.0.3
info:
  title: Pet Store
  version: 1.0.0
paths: {}
"""
        path = _write_temp_spec(spec)
        try:
            doc = load_openapi_spec(path)
            assert doc["info"]["title"] == "Pet Store"
            assert doc["paths"] == {}
        finally:
            os.unlink(path)

    def test_json_file(self):
        path = _write_temp_spec('{"openapi": "3.1.0", "info": {"title": "x"}, "paths": {}}', ".json")
        try:
            assert load_openapi_spec(path)["openapi"] == "3.1.0"
        finally:
            os.unlink(path)

    def test_missing_file(self):
        with pytest.raises(SpecLoadError, match="failed to read file"):
            load_openapi_spec("/nonexistent/openapi.yaml")

    def test_undecodable_file(self):
        fd, path = tempfile.mkstemp(suffix=".yaml")
        os.write(fd, b"openapi: \xff\xfe3.0\n")
        os.close(fd)
        try:
            with pytest.raises(SpecLoadError, match="failed to read file"):
                load_openapi_spec(path)
        finally:
            os.unlink(path)

    def test_unparsable_text(self):
        with pytest.raises(SpecLoadError, match="failed to parse"):
            load_openapi_text("openapi: [3.0")

    def test_root_must_be_mapping(self):
        with pytest.raises(SpecLoadError, match="root must be a mapping"):
            load_openapi_text("- a\n- b\n")


class TestValidate:
    def test_swagger_2_rejected(self):
        with pytest.raises(SpecLoadError, match="unsupported OpenAPI version"):
            load_openapi_text("swagger: '2.0'\npaths: {}\n")

    def test_paths_must_be_mapping(self):
        with pytest.raises(SpecLoadError, match="'paths' must be a mapping"):
            load_openapi_text("openapi: 3.0.0\npaths: [1]\n")


class TestReferences:
    def test_parameter_ref_inlined(self):
        doc = load_openapi_text("""\
openapi: 3.0.0
paths:
  /pets:
    get:
      parameters:
        - $ref: '#/components/parameters/Limit'
components:
  parameters:
    Limit:
      name: limit
      in: query
      schema:
        type: integer
        format: int32
""")
        param = doc["paths"]["/pets"]["get"]["parameters"][0]
        assert param["name"] == "limit"
        assert param["schema"] == {"type": "integer", "format": "int32"}

    def test_response_ref_inlined_schema_ref_kept(self):
        doc = load_openapi_text("""\
openapi: 3.0.0
paths:
  /pets:
    get:
      responses:
        '200':
          $ref: '#/components/responses/PetList'
components:
  responses:
    PetList:
      description: pets
      content:
        application/json:
          schema:
            $ref: '#/components/schemas/Pet'
  schemas:
    Pet:
      type: object
""")
        response = doc["paths"]["/pets"]["get"]["responses"]["200"]
        assert response["description"] == "pets"
        assert response["content"]["application/json"]["schema"] == {"$ref": "#/components/schemas/Pet"}

    def test_unresolvable_ref(self):
        with pytest.raises(SpecLoadError, match="unresolvable reference"):
            load_openapi_text("""\
openapi: 3.0.0
paths: {}
components:
  schemas:
    Pet:
      type: object
      properties:
        owner:
          $ref: '#/components/schemas/Owner'
""")

    def test_non_local_ref(self):
        with pytest.raises(SpecLoadError, match="non-local"):
            load_openapi_text("""\
openapi: 3.0.0
paths:
  /pets:
    get:
      parameters:
        - $ref: 'common.yaml#/components/parameters/Limit'
""")

    def test_circular_parameter_ref(self):
        with pytest.raises(SpecLoadError, match="circular reference"):
            load_openapi_text("""\
openapi: 3.0.0
paths:
  /pets:
    get:
      parameters:
        - $ref: '#/components/parameters/A'
components:
  parameters:
    A:
      $ref: '#/components/parameters/B'
    B:
      $ref: '#/components/parameters/A'
""")

    def test_resolve_ref_escapes(self):
        doc = {"paths": {"/a/b": {"get": {"summary": "x"}}}}
        assert SpecLoader.resolve_ref(doc, "#/paths/~1a~1b/get") == {"summary": "x"}

    def test_input_not_mutated(self):
        loader = SpecLoader()
        text = """\
openapi: 3.0.0
paths:
  /pets:
    get:
      parameters:
        - $ref: '#/components/parameters/Limit'
components:
  parameters:
    Limit:
      name: limit
      in: query
"""
        first = loader.load_text(text)
        first["components"]["parameters"]["Limit"]["name"] = "changed"
        second = loader.load_text(text)
        assert second["paths"]["/pets"]["get"]["parameters"][0]["name"] == "limit"
