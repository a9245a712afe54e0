from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from swagger_idl.converter import ConversionError, ConvertOption, convert_spec
from swagger_idl.descriptors import ReflectionError
from swagger_idl.generator.openapi_generator import HTTP_MODE, RPC_MODE, GeneratorConfig, generate_document
from swagger_idl.generator.proto_generator import write_proto
from swagger_idl.generator.yaml_encoder import write_yaml
from swagger_idl.parser.proto_ast_parser import ProtoParseError
from swagger_idl.parser.thrift_ast_parser import ThriftParseError
from swagger_idl.reflection import IDLReflector
from swagger_idl.spec_loader import SpecLoadError, load_openapi_spec

DEFAULT_PROTO_OUTPUT = "output.proto"
DEFAULT_OPENAPI_OUTPUT = "openapi.yaml"


def _fatal(error: Exception) -> None:
    print(f"FATAL: {error}", file=sys.stderr)
    sys.exit(1)


def run_openapi2proto(
    spec_path: str,
    output_path: str = DEFAULT_PROTO_OUTPUT,
    package_name: Optional[str] = None,
    option: Optional[ConvertOption] = None,
) -> str:
    """Pipeline A: load the OpenAPI document, convert, render proto3."""
    try:
        spec = load_openapi_spec(spec_path)
        print(f"Parsed {spec_path}: {len(spec.get('paths') or {})} path(s)")
        proto_file = convert_spec(spec, package_name, option)
    except (SpecLoadError, ConversionError) as e:
        _fatal(e)

    print(
        f"Converted {len(proto_file.messages)} message(s), "
        f"{len(proto_file.enums)} enum(s) and {len(proto_file.services)} service(s)"
    )
    write_proto(proto_file, output_path)
    print(f"Generated: {output_path}")
    return output_path


def run_idl2openapi(
    idl_path: str,
    output_path: str = DEFAULT_OPENAPI_OUTPUT,
    config: Optional[GeneratorConfig] = None,
    include_paths: Optional[List[str]] = None,
) -> str:
    """Pipeline B: reflect the Thrift/Protobuf file, build the document, render YAML."""
    try:
        file_desc = IDLReflector(include_paths).load_idl(idl_path)
    except (ProtoParseError, ThriftParseError, ReflectionError, OSError, UnicodeDecodeError) as e:
        _fatal(e)

    print(
        f"Parsed {idl_path}: {len(file_desc.services)} service(s), "
        f"{len(file_desc.structs)} struct(s)"
    )
    document = generate_document(file_desc, config)
    print(
        f"Built {len(document.paths)} path(s) and "
        f"{len(document.components.schemas)} schema(s)"
    )
    write_yaml(document, output_path)
    print(f"Generated: {output_path}")
    return output_path


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swagger-idl",
        description="Convert between OpenAPI documents and Protobuf/Thrift IDL",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    a = sub.add_parser("openapi2proto", help="Convert an OpenAPI 3 document to a proto3 file")
    a.add_argument("spec", help="Path to the OpenAPI document (YAML or JSON)")
    a.add_argument("-o", "--output", default=DEFAULT_PROTO_OUTPUT, help="Output .proto path")
    a.add_argument("--package", default=None, help="Proto package name (defaults to info.title)")
    a.add_argument(
        "--openapi-option",
        action="store_true",
        help="Attach openapi.operation options and import openapi.proto",
    )
    a.add_argument(
        "--no-api-option",
        action="store_true",
        help="Do not attach api.<method> options nor import api.proto",
    )

    b = sub.add_parser("idl2openapi", help="Generate an OpenAPI 3.0.3 YAML document from a .thrift or .proto file")
    b.add_argument("idl", help="Path to the .thrift or .proto file")
    b.add_argument("-o", "--output", default=DEFAULT_OPENAPI_OUTPUT, help="Output YAML path")
    b.add_argument("--mode", choices=[HTTP_MODE, RPC_MODE], default=HTTP_MODE, help="Operation layout")
    b.add_argument("--title", default=None, help="Document title")
    b.add_argument("--description", default=None, help="Document description")
    b.add_argument("--version", dest="doc_version", default=None, help="Document version")
    b.add_argument("--server", default=None, help="Server URL used when the IDL declares none")
    b.add_argument(
        "-I", "--include",
        action="append",
        default=[],
        help="Additional directory searched for includes/imports (repeatable)",
    )
    return parser


def main(argv: Optional[List[str]] = None):
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "openapi2proto":
        option = ConvertOption(openapi_option=args.openapi_option, api_option=not args.no_api_option)
        run_openapi2proto(args.spec, args.output, args.package, option)
    else:
        if not Path(args.idl).is_file():
            print(f"No such IDL file: {args.idl}")
            sys.exit(1)
        config = GeneratorConfig(
            mode=args.mode,
            title=args.title,
            description=args.description,
            version=args.doc_version,
            default_server_url=args.server,
        )
        run_idl2openapi(args.idl, args.output, config, args.include)
    print("Done!")


if __name__ == "__main__":
    main()
