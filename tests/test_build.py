from types import SimpleNamespace

import pytest
from google.protobuf.descriptor_pb2 import FieldDescriptorProto, FileDescriptorProto

from prostbuild.build import generate_modules, module_for_file, write_modules
from prostbuild.path import PathMap


def make_config(service_generator=None, extern_paths=()):
    return SimpleNamespace(
        map_type=PathMap(),
        bytes_type=PathMap(),
        type_attributes=PathMap(),
        field_attributes=PathMap(),
        disabled_comments=PathMap(),
        strip_enum_prefix=True,
        registered_service_generator=service_generator,
        extern_paths=list(extern_paths),
        prost_types=True,
    )


def make_file(name, package, message, service=None):
    file = FileDescriptorProto(name=name, package=package, syntax="proto3")
    msg = file.message_type.add(name=message)
    msg.field.add(
        name="value",
        number=1,
        type=FieldDescriptorProto.TYPE_INT32,
        label=FieldDescriptorProto.LABEL_OPTIONAL,
    )
    info = file.source_code_info
    info.location.add(path=[4, 0])
    info.location.add(path=[4, 0, 2, 0])
    if service is not None:
        svc = file.service.add(name=service)
        svc.method.add(
            name="Call",
            input_type=f".{package}.{message}",
            output_type=f".{package}.{message}",
        )
        info.location.add(path=[6, 0])
        info.location.add(path=[6, 0, 2, 0])
    return file


class RecordingServiceGenerator:
    def __init__(self):
        self.services = []
        self.packages = []
        self.finalized = 0

    def generate(self, service):
        self.services.append(service.name)
        return f"trait {service.name} {{}}\n"

    def finalize(self):
        self.finalized += 1
        return ""

    def finalize_package(self, package):
        self.packages.append(package)
        return f"// package {package}\n"


def test_module_for_file_splits_package():
    assert module_for_file(FileDescriptorProto(package="foo.bar")) == ("foo", "bar")


def test_module_for_file_snake_cases_and_escapes_keywords():
    assert module_for_file(FileDescriptorProto(package="FooBar.While")) == ("foo_bar", "r#while")


def test_module_for_file_empty_package():
    assert module_for_file(FileDescriptorProto(package="")) == ()


def test_generate_modules_groups_files_by_package():
    files = [
        make_file("a.proto", "foo.bar", "First"),
        make_file("b.proto", "foo.bar", "Second"),
        make_file("c.proto", "other", "Third"),
    ]
    modules = generate_modules(make_config(), files)
    assert set(modules) == {("foo", "bar"), ("other",)}
    shared = modules[("foo", "bar")]
    assert "pub struct First {" in shared
    assert "pub struct Second {" in shared
    assert shared.index("pub struct First") < shared.index("pub struct Second")
    assert "pub struct Third {" in modules[("other",)]
    assert "First" not in modules[("other",)]


def test_generate_modules_requires_package():
    file = make_file("nopkg.proto", "x", "Msg")
    file.ClearField("package")
    with pytest.raises(ValueError, match="nopkg.proto"):
        generate_modules(make_config(), [file])


def test_generate_modules_rejects_duplicate_extern_paths():
    config = make_config(extern_paths=[(".foo", "::a"), (".foo", "::b")])
    with pytest.raises(ValueError, match="duplicate"):
        generate_modules(config, [make_file("a.proto", "pkg", "Msg")])


def test_generate_modules_finalizes_packages_with_services():
    generator = RecordingServiceGenerator()
    files = [
        make_file("hello.proto", "helloworld", "Hello", service="Greeting"),
        make_file("goodbye.proto", "helloworld", "Goodbye", service="Farewell"),
        make_file("plain.proto", "plain", "Plain"),
    ]
    modules = generate_modules(make_config(generator), files)
    assert generator.services == ["Greeting", "Farewell"]
    assert generator.packages == ["helloworld"]
    assert generator.finalized == 3
    assert modules[("helloworld",)].endswith("// package helloworld\n")
    assert "trait Greeting {}" in modules[("helloworld",)]
    assert "// package" not in modules[("plain",)]


def test_write_modules_writes_named_files(tmp_path):
    modules = {("foo", "bar"): "content one\n", ("baz",): "content two\n"}
    written = write_modules(modules, tmp_path)
    assert sorted(p.name for p in written) == ["baz.rs", "foo.bar.rs"]
    assert (tmp_path / "foo.bar.rs").read_text() == "content one\n"
    assert (tmp_path / "baz.rs").read_text() == "content two\n"


def test_write_modules_skips_unchanged_and_rewrites_changed(tmp_path):
    write_modules({("a",): "same\n", ("b",): "old\n"}, tmp_path)
    written = write_modules({("a",): "same\n", ("b",): "new\n"}, tmp_path)
    assert written == [tmp_path / "b.rs"]
    assert (tmp_path / "b.rs").read_text() == "new\n"
    assert write_modules({("a",): "same\n", ("b",): "new\n"}, tmp_path) == []


def test_generate_and_write_round_trip(tmp_path):
    modules = generate_modules(make_config(), [make_file("a.proto", "pkg.sub", "Msg")])
    write_modules(modules, tmp_path)
    assert (tmp_path / "pkg.sub.rs").read_text() == modules[("pkg", "sub")]