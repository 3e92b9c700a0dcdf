"""Configuration of Protobuf code generation and the compile entry points."""

from __future__ import annotations

import abc
import os
from collections.abc import Iterable
from pathlib import Path

from google.protobuf.descriptor_pb2 import FileDescriptorProto

from .ast import Service
from .build import Module, generate_modules, write_modules
from .options import BytesType, MapType
from .path import PathMap
from .protoc import run_protoc

PathLike = str | os.PathLike


class ServiceGenerator(abc.ABC):
    """Generates code for Protobuf service definitions.

    ``generate`` is called for every service; ``finalize`` once per
    ``.proto`` file; ``finalize_package`` once per package that has
    services. Each returns the text to append to the generated module.
    """

    @abc.abstractmethod
    def generate(self, service: Service) -> str:
        """Return code for one service."""

    def finalize(self) -> str:
        """Return code to append once at the end of each file."""
        return ""

    def finalize_package(self, package: str) -> str:
        """Return code to append once for each package with services."""
        return ""


class Config:
    """Options for Protobuf code generation.

    The option methods return the configuration itself so they can be chained.
    """

    def __init__(self) -> None:
        self._file_descriptor_set_path: Path | None = None
        self.registered_service_generator: ServiceGenerator | None = None
        self.map_type: PathMap[MapType] = PathMap()
        self.bytes_type: PathMap[BytesType] = PathMap()
        self.type_attributes: PathMap[str] = PathMap()
        self.field_attributes: PathMap[str] = PathMap()
        self.prost_types = True
        self.strip_enum_prefix = True
        self._out_dir: Path | None = None
        self.extern_paths: list[tuple[str, str]] = []
        self.protoc_args: list[str] = []
        self.disabled_comments: PathMap[bool] = PathMap()

    def __repr__(self) -> str:
        return (
            "Config("
            f"file_descriptor_set_path={self._file_descriptor_set_path!r}, "
            f"service_generator={self.registered_service_generator is not None!r}, "
            f"map_type={self.map_type!r}, "
            f"bytes_type={self.bytes_type!r}, "
            f"type_attributes={self.type_attributes!r}, "
            f"field_attributes={self.field_attributes!r}, "
            f"prost_types={self.prost_types!r}, "
            f"strip_enum_prefix={self.strip_enum_prefix!r}, "
            f"out_dir={self._out_dir!r}, "
            f"extern_paths={self.extern_paths!r}, "
            f"protoc_args={self.protoc_args!r}, "
            f"disable_comments={self.disabled_comments!r})"
        )

    def btree_map(self, paths: Iterable[str]) -> Config:
        """Generate ``BTreeMap`` fields for map fields matching any of the paths."""
        self.map_type.clear()
        for matcher in paths:
            self.map_type.insert(str(matcher), MapType.BTREE_MAP)
        return self

    def bytes(self, paths: Iterable[str]) -> Config:
        """Generate ``Bytes`` fields for bytes fields matching any of the paths."""
        self.bytes_type.clear()
        for matcher in paths:
            self.bytes_type.insert(str(matcher), BytesType.BYTES)
        return self

    def field_attribute(self, path: str, attribute: str) -> Config:
        """Place an attribute before every field matching the path."""
        self.field_attributes.insert(str(path), str(attribute))
        return self

    def type_attribute(self, path: str, attribute: str) -> Config:
        """Place an attribute before every message, enum or oneof matching the path."""
        self.type_attributes.insert(str(path), str(attribute))
        return self

    def service_generator(self, service_generator: ServiceGenerator) -> Config:
        """Use the given service generator for service definitions."""
        self.registered_service_generator = service_generator
        return self

    def compile_well_known_types(self) -> Config:
        """Generate the well-known types instead of referring to external ones."""
        self.prost_types = False
        return self

    def disable_comments(self, paths: Iterable[str]) -> Config:
        """Omit documentation comments on items matching any of the paths."""
        self.disabled_comments.clear()
        for matcher in paths:
            self.disabled_comments.insert(str(matcher), True)
        return self

    def extern_path(self, proto_path: str, rust_path: str) -> Config:
        """Declare an externally provided Protobuf package or type."""
        self.extern_paths.append((str(proto_path), str(rust_path)))
        return self

    def file_descriptor_set_path(self, path: PathLike) -> Config:
        """Write the descriptor set produced by ``protoc`` to this path."""
        self._file_descriptor_set_path = Path(path)
        return self

    def retain_enum_prefix(self) -> Config:
        """Keep the enum name prefix on enum value names."""
        self.strip_enum_prefix = False
        return self

    def out_dir(self, path: PathLike) -> Config:
        """Write generated files to this directory instead of ``OUT_DIR``."""
        self._out_dir = Path(path)
        return self

    def protoc_arg(self, arg: str) -> Config:
        """Pass an extra argument to ``protoc``."""
        self.protoc_args.append(os.fspath(arg))
        return self

    def _target(self) -> Path:
        if self._out_dir is not None:
            return self._out_dir
        value = os.environ.get("OUT_DIR")
        if value is None:
            raise OSError("OUT_DIR environment variable is not set")
        return Path(value)

    def compile_protos(
        self, protos: Iterable[PathLike], includes: Iterable[PathLike]
    ) -> list[Path]:
        """Compile ``.proto`` files and write the generated modules.

        Returns the paths of the files that were written.
        """
        target = self._target()
        descriptor_set = run_protoc(
            protos, includes, self._file_descriptor_set_path, self.protoc_args
        )
        modules = self.generate(descriptor_set.file)
        return write_modules(modules, target)

    def generate(self, files: Iterable[FileDescriptorProto]) -> dict[Module, str]:
        """Generate the code for a set of file descriptors, keyed by module."""
        return generate_modules(self, files)


def compile_protos(
    protos: Iterable[PathLike], includes: Iterable[PathLike]
) -> list[Path]:
    """Compile ``.proto`` files with the default configuration."""
    return Config().compile_protos(protos, includes)