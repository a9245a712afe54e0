"""Load Thrift/Protobuf sources into a resolved descriptor graph.

The reflector parses the main file, follows its includes/imports on disk and
hands the parsed set to the matching transform, which resolves type
references and turns options/annotations into ``Annotations`` maps.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from swagger_idl.descriptors import FileDescriptor, ReflectionError
from swagger_idl.parser.proto_ast_parser import parse_proto_text
from swagger_idl.parser.proto_transform import ProtoSource, transform_proto
from swagger_idl.parser.thrift_ast_parser import parse_thrift_text
from swagger_idl.parser.thrift_transform import ThriftSource, collect_aliases, transform_thrift

logger = logging.getLogger(__name__)

__all__ = ["IDLReflector", "ReflectionError", "reflect_file"]

THRIFT_SUFFIX = ".thrift"
PROTO_SUFFIX = ".proto"


class IDLReflector:
    """Reflects one IDL file (plus whatever it includes) per ``load_idl`` call.

    ``include_paths`` are searched, in order, after the directory of the
    including file (Thrift) or of the main file (Protobuf).
    """

    def __init__(self, include_paths: Optional[Sequence[str]] = None):
        self.include_paths = [Path(p) for p in (include_paths or [])]

    def load_idl(self, path: str) -> FileDescriptor:
        suffix = Path(path).suffix.lower()
        if suffix == THRIFT_SUFFIX:
            return transform_thrift(self._load_thrift(Path(path), {}))
        if suffix == PROTO_SUFFIX:
            root = Path(path).parent
            return transform_proto(self._load_proto(Path(path), root, {}))
        raise ReflectionError(f"unsupported IDL file type: {path}")

    def reflect_thrift_text(self, text: str, path: str = "<string>") -> FileDescriptor:
        """Reflect Thrift source held in memory; includes are resolved from the cwd."""
        source = ThriftSource(path=path, document=parse_thrift_text(text))
        self._attach_thrift_includes(source, Path(path).parent, {})
        return transform_thrift(source)

    def reflect_proto_text(self, text: str, path: str = "<string>") -> FileDescriptor:
        """Reflect Protobuf source held in memory; imports are resolved from the cwd."""
        source = ProtoSource(path=path, file=parse_proto_text(text))
        self._attach_proto_imports(source, Path(path).parent, {})
        return transform_proto(source)

    # -- thrift --

    def _load_thrift(self, path: Path, loaded: Dict[Path, ThriftSource]) -> ThriftSource:
        key = path.resolve()
        if key in loaded:
            return loaded[key]
        source = ThriftSource(path=str(path), document=parse_thrift_text(path.read_text(encoding="utf-8")))
        loaded[key] = source
        logger.debug("parsed %s", path)
        self._attach_thrift_includes(source, path.parent, loaded)
        return source

    def _attach_thrift_includes(self, source: ThriftSource, base: Path, loaded: Dict[Path, ThriftSource]) -> None:
        includes = source.document.includes
        for alias, include in zip(collect_aliases(includes), includes):
            found = self._find(include, [base])
            if found is None:
                logger.warning("include '%s' of %s not found", include, source.path)
                continue
            source.includes[alias] = self._load_thrift(found, loaded)

    # -- proto --

    def _load_proto(self, path: Path, root: Path, loaded: Dict[Path, ProtoSource]) -> ProtoSource:
        key = path.resolve()
        if key in loaded:
            return loaded[key]
        source = ProtoSource(path=str(path), file=parse_proto_text(path.read_text(encoding="utf-8")))
        loaded[key] = source
        logger.debug("parsed %s", path)
        self._attach_proto_imports(source, root, loaded)
        return source

    def _attach_proto_imports(self, source: ProtoSource, root: Path, loaded: Dict[Path, ProtoSource]) -> None:
        for imported in source.file.imports:
            found = self._find(imported, [root])
            if found is None:
                # well-known and annotation imports are not expected on disk
                if imported.startswith("google/protobuf/"):
                    logger.debug("skipping well-known import '%s'", imported)
                else:
                    logger.warning("import '%s' of %s not found", imported, source.path)
                continue
            source.imports.append(self._load_proto(found, root, loaded))

    def _find(self, name: str, bases: List[Path]) -> Optional[Path]:
        for base in bases + self.include_paths:
            candidate = base / name
            if candidate.is_file():
                return candidate
        return None


def reflect_file(path: str, include_paths: Optional[Sequence[str]] = None) -> FileDescriptor:
    return IDLReflector(include_paths).load_idl(path)
