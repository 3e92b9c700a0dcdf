"""Locating and running the Protobuf compiler."""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
import tempfile
from collections.abc import Iterable
from pathlib import Path

from google.protobuf.descriptor_pb2 import FileDescriptorSet
from google.protobuf.message import DecodeError

PathLike = str | os.PathLike

_OS_NAMES = {"linux": "linux", "darwin": "macos", "windows": "windows"}
_ARCH_NAMES = {
    "x86": "x86",
    "i386": "x86",
    "i686": "x86",
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


def bundle_path() -> Path:
    """Return the location of the bundled Protobuf artifacts."""
    return Path(__file__).resolve().parent / "third-party" / "protobuf"


def env_protoc() -> Path | None:
    """Return the ``protoc`` named by the ``PROTOC`` environment variable, if set."""
    value = os.environ.get("PROTOC")
    return Path(value) if value is not None else None


def _is_interpreter(path: str) -> bool:
    # A bundled binary is only usable if its dynamic loader is present.
    return Path(path).exists()


def bundled_protoc() -> Path | None:
    """Return the bundled ``protoc`` for the host platform, if there is one."""
    os_name = _OS_NAMES.get(platform.system().lower())
    arch = _ARCH_NAMES.get(platform.machine().lower())

    name: str | None = None
    if os_name == "linux":
        if arch == "x86" and _is_interpreter("/lib/ld-linux.so.2"):
            name = "protoc-linux-x86_32"
        elif arch == "x86_64" and _is_interpreter("/lib64/ld-linux-x86-64.so.2"):
            name = "protoc-linux-x86_64"
        elif arch == "aarch64" and _is_interpreter("/lib/ld-linux-aarch64.so.1"):
            name = "protoc-linux-aarch_64"
    elif os_name == "macos":
        if arch == "x86_64":
            name = "protoc-osx-x86_64"
        elif arch == "aarch64":
            name = "protoc-osx-aarch64"
    elif os_name == "windows":
        name = "protoc-win32.exe"

    return bundle_path() / name if name is not None else None


def path_protoc() -> Path | None:
    """Return the ``protoc`` found on the ``PATH``, if any."""
    found = shutil.which("protoc")
    return Path(found) if found is not None else None


def env_protoc_include() -> Path | None:
    """Return the include directory named by ``PROTOC_INCLUDE``, if set.

    Raises FileNotFoundError or NotADirectoryError if it names no directory.
    """
    value = os.environ.get("PROTOC_INCLUDE")
    if value is None:
        return None
    include = Path(value)
    if not include.exists():
        raise FileNotFoundError(
            "PROTOC_INCLUDE environment variable points to non-existent directory "
            f"({str(include)!r})"
        )
    if not include.is_dir():
        raise NotADirectoryError(
            "PROTOC_INCLUDE environment variable points to a non-directory file "
            f"({str(include)!r})"
        )
    return include


def bundled_protoc_include() -> Path:
    """Return the bundled Protobuf include directory."""
    return bundle_path() / "include"


def protoc() -> Path:
    """Return the path of the ``protoc`` binary to use."""
    found = env_protoc() or bundled_protoc() or path_protoc()
    if found is None:
        raise FileNotFoundError(
            "Failed to find the protoc binary. The PROTOC environment variable is not set, "
            "there is no bundled protoc for this platform, and protoc is not in the PATH"
        )
    return found


def protoc_include() -> Path:
    """Return the Protobuf include directory to use."""
    return env_protoc_include() or bundled_protoc_include()


def _invoke(
    protos: Iterable[PathLike],
    includes: Iterable[PathLike],
    descriptor_set_path: Path,
    extra_args: Iterable[str],
) -> FileDescriptorSet:
    cmd: list[str] = [
        str(protoc()),
        "--include_imports",
        "--include_source_info",
        "-o",
        str(descriptor_set_path),
    ]
    for include in includes:
        cmd.extend(("-I", os.fspath(include)))
    # The built-in includes go last so that user includes can override them.
    cmd.extend(("-I", str(protoc_include())))
    cmd.extend(str(arg) for arg in extra_args)
    cmd.extend(os.fspath(proto) for proto in protos)

    try:
        result = subprocess.run(cmd, capture_output=True, check=False)
    except OSError as error:
        raise OSError(f"failed to invoke protoc: {error}") from error

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", "replace")
        raise OSError(f"protoc failed: {stderr}")

    data = descriptor_set_path.read_bytes()
    try:
        return FileDescriptorSet.FromString(data)
    except DecodeError as error:
        raise ValueError(f"invalid FileDescriptorSet: {error}") from error


def run_protoc(
    protos: Iterable[PathLike],
    includes: Iterable[PathLike],
    descriptor_set_path: PathLike | None = None,
    extra_args: Iterable[str] = (),
) -> FileDescriptorSet:
    """Compile ``.proto`` files with ``protoc`` and return the descriptor set.

    The descriptor set is written to ``descriptor_set_path``, or to a
    temporary file when no path is given.
    """
    protos = list(protos)
    includes = list(includes)
    extra_args = list(extra_args)
    if descriptor_set_path is not None:
        return _invoke(protos, includes, Path(descriptor_set_path), extra_args)
    with tempfile.TemporaryDirectory(prefix="prost-build") as tmp:
        return _invoke(protos, includes, Path(tmp) / "prost-descriptor-set", extra_args)