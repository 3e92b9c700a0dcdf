"""Turning a set of file descriptors into generated Rust modules on disk."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from google.protobuf.descriptor_pb2 import FileDescriptorProto

from .code_generator import generate_file
from .extern_paths import ExternPaths
from .ident import to_snake
from .message_graph import MessageGraph

_log = logging.getLogger(__name__)

Module = tuple[str, ...]


def module_for_file(file: FileDescriptorProto) -> Module:
    """Return the Rust module path for the package of a file descriptor."""
    return tuple(to_snake(part) for part in file.package.split(".") if part)


def generate_modules(config: Any, files: Iterable[FileDescriptorProto]) -> dict[Module, str]:
    """Generate Rust code for each package in a set of file descriptors.

    Besides the attributes read by the code generator, the configuration
    supplies ``extern_paths`` (pairs of Protobuf and Rust paths) and
    ``prost_types`` (whether well-known types come from an external crate).
    Files of the same package are generated into the same module.
    """
    files = list(files)
    message_graph = MessageGraph(files)
    extern_paths = ExternPaths(config.extern_paths, config.prost_types)

    modules: dict[Module, str] = {}
    packages: dict[Module, str] = {}

    for file in files:
        module = module_for_file(file)
        # Only packages that have services are finalized.
        if file.service:
            packages[module] = file.package
        code = generate_file(config, message_graph, extern_paths, file)
        modules[module] = modules.get(module, "") + code

    service_generator = config.registered_service_generator
    if service_generator is not None:
        for module, package in packages.items():
            modules[module] += service_generator.finalize_package(package) or ""

    return modules


def write_modules(modules: Mapping[Module, str], target: str | os.PathLike) -> list[Path]:
    """Write each module to ``<target>/<module path joined by dots>.rs``.

    Files whose content is already up to date are left untouched. Returns
    the paths that were written.
    """
    target = Path(target)
    written: list[Path] = []
    for module, content in modules.items():
        filename = ".".join(module) + ".rs"
        output_path = target / filename
        data = content.encode("utf-8")
        try:
            unchanged = output_path.read_bytes() == data
        except OSError:
            unchanged = False
        if unchanged:
            _log.debug("unchanged: %s", filename)
            continue
        _log.debug("writing: %s", filename)
        output_path.write_bytes(data)
        written.append(output_path)
    return written