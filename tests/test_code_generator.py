from types import SimpleNamespace

import pytest
from google.protobuf.descriptor_pb2 import FieldDescriptorProto as F
from google.protobuf.descriptor_pb2 import FileDescriptorProto

from prostbuild.code_generator import CodeGenerator, generate_file
from prostbuild.extern_paths import ExternPaths
from prostbuild.ident import to_snake, to_upper_camel
from prostbuild.message_graph import MessageGraph
from prostbuild.options import BytesType, MapType
from prostbuild.path import PathMap


def make_config(comments=False, generator=None):
    config = SimpleNamespace(
        map_type=PathMap(),
        bytes_type=PathMap(),
        type_attributes=PathMap(),
        field_attributes=PathMap(),
        disabled_comments=PathMap(),
        strip_enum_prefix=True,
        registered_service_generator=generator,
    )
    if not comments:
        config.disabled_comments.insert(".", True)
    return config


def make_file(syntax="proto3", package="pkg"):
    file = FileDescriptorProto(name="test.proto", package=package, syntax=syntax)
    file.source_code_info.SetInParent()
    return file


def make_field(name, number, type_, label=F.LABEL_OPTIONAL, type_name=None):
    field = F(name=name, number=number, type=type_, label=label)
    if type_name is not None:
        field.type_name = type_name
    return field


def render(file, config=None, extern=None):
    config = config if config is not None else make_config()
    extern = extern if extern is not None else ExternPaths([], True)
    return generate_file(config, MessageGraph([file]), extern, file)


def shirt_file(syntax="proto3"):
    file = make_file(syntax)
    file.message_type.add(name="Shirt").field.append(make_field("color", 1, F.TYPE_STRING))
    return file


def test_simple_message_output():
    expected = (
        "#[derive(Clone, PartialEq, ::prost::Message)]\n"
        '#[prost(package="pkg")]\n'
        "pub struct Shirt {\n"
        '    #[prost(string, tag="1")]\n'
        "    pub color: ::prost::alloc::string::String,\n"
        "}\n"
    )
    assert render(shirt_file()) == expected


def test_generate_is_repeatable_and_matches_generate_file():
    file = shirt_file()
    config = make_config()
    generator = CodeGenerator(config, MessageGraph([file]), ExternPaths([], True), file)
    first = generator.generate()
    assert generator.generate() == first
    assert first == render(file, config)


def test_proto2_scalar_is_optional():
    file = make_file("proto2")
    file.message_type.add(name="Item").field.append(make_field("count", 1, F.TYPE_INT32))
    out = render(file)
    assert ", optional" in out
    assert "::core::option::Option<i32>" in out


def test_proto3_scalar_is_not_optional():
    file = make_file("proto3")
    file.message_type.add(name="Item").field.append(make_field("count", 1, F.TYPE_INT32))
    out = render(file)
    assert ", optional" not in out
    assert "pub count: i32," in out


def test_required_field():
    file = make_file("proto2")
    file.message_type.add(name="Item").field.append(
        make_field("count", 1, F.TYPE_INT32, F.LABEL_REQUIRED)
    )
    assert ", required" in render(file)


@pytest.mark.parametrize("syntax, unpacked", [("proto2", True), ("proto3", False)])
def test_repeated_packing_follows_syntax(syntax, unpacked):
    file = make_file(syntax)
    file.message_type.add(name="Item").field.append(
        make_field("values", 1, F.TYPE_INT32, F.LABEL_REPEATED)
    )
    out = render(file)
    assert ", repeated" in out
    assert (', packed="false"' in out) is unpacked
    assert "::prost::alloc::vec::Vec<i32>" in out


def test_repeated_string_is_never_marked_unpacked():
    file = make_file("proto2")
    file.message_type.add(name="Item").field.append(
        make_field("names", 1, F.TYPE_STRING, F.LABEL_REPEATED)
    )
    out = render(file)
    assert "packed" not in out
    assert "::prost::alloc::vec::Vec<::prost::alloc::string::String>" in out


def test_recursive_message_is_boxed():
    file = make_file()
    file.message_type.add(name="Node").field.append(
        make_field("next", 1, F.TYPE_MESSAGE, type_name=".pkg.Node")
    )
    out = render(file)
    assert ", boxed" in out
    assert "::core::option::Option<::prost::alloc::boxed::Box<Node>>" in out


def test_repeated_recursive_message_is_not_boxed():
    file = make_file()
    file.message_type.add(name="Node").field.append(
        make_field("children", 1, F.TYPE_MESSAGE, F.LABEL_REPEATED, ".pkg.Node")
    )
    out = render(file)
    assert "boxed" not in out
    assert "::prost::alloc::vec::Vec<Node>" in out


def make_enum_file():
    file = make_file()
    desc = file.enum_type.add(name="Size")
    desc.value.add(name="SIZE_SMALL", number=0)
    desc.value.add(name="SIZE_LARGE", number=1)
    return file


def test_enum_prefix_is_stripped():
    out = render(make_enum_file())
    assert "#[derive(Clone, Copy, Debug, PartialEq, Eq, Hash, PartialOrd, Ord, ::prost::Enumeration)]" in out
    assert "#[repr(i32)]" in out
    assert "    Small = 0,\n" in out


def test_enum_prefix_is_retained_when_configured():
    config = make_config()
    config.strip_enum_prefix = False
    out = render(make_enum_file(), config)
    assert f"    {to_upper_camel('SIZE_SMALL')} = 0,\n" in out


def test_enum_aliases_are_skipped():
    file = make_file()
    desc = file.enum_type.add(name="Alias")
    desc.value.add(name="FIRST", number=0)
    desc.value.add(name="SECOND", number=0)
    out = render(file)
    assert out.count(" = 0,") == 1
    assert to_upper_camel("SECOND") not in out


def test_nested_types_go_in_module():
    file = make_file()
    file.message_type.add(name="Other")
    outer = file.message_type.add(name="Outer")
    outer.nested_type.add(name="Inner").field.append(
        make_field("other", 1, F.TYPE_MESSAGE, type_name=".pkg.Other")
    )
    out = render(file)
    assert f"pub mod {to_snake('Outer')} {{" in out
    assert "super::Other" in out
    assert out.count("{") == out.count("}")


def make_map_file():
    file = make_file()
    message = file.message_type.add(name="Counts")
    entry = message.nested_type.add(name="CountsEntry")
    entry.options.map_entry = True
    entry.field.append(make_field("key", 1, F.TYPE_STRING))
    entry.field.append(make_field("value", 2, F.TYPE_INT32))
    message.field.append(
        make_field("counts", 1, F.TYPE_MESSAGE, F.LABEL_REPEATED, ".pkg.Counts.CountsEntry")
    )
    return file


def test_map_field_uses_hash_map():
    out = render(make_map_file())
    assert "::std::collections::HashMap<::prost::alloc::string::String, i32>" in out
    assert "pub struct CountsEntry" not in out


def test_map_field_uses_btree_map_when_configured():
    config = make_config()
    config.map_type.insert(".", MapType.BTREE_MAP)
    out = render(make_map_file(), config)
    assert "::prost::alloc::collections::BTreeMap<" in out
    assert 'btree_map="string, int32"' in out


def test_oneof_generates_enum():
    file = make_file()
    message = file.message_type.add(name="Choice")
    message.oneof_decl.add(name="kind")
    a = make_field("a", 1, F.TYPE_INT32)
    a.oneof_index = 0
    b = make_field("b", 2, F.TYPE_STRING)
    b.oneof_index = 0
    message.field.extend([a, b])
    out = render(file)
    assert 'tags="1, 2"' in out
    assert "#[derive(Clone, PartialEq, ::prost::Oneof)]" in out
    assert (
        f"pub kind: ::core::option::Option<{to_snake('Choice')}::{to_upper_camel('kind')}>"
        in out
    )


def test_proto3_optional_skips_synthetic_oneof():
    file = make_file()
    message = file.message_type.add(name="Opt")
    message.oneof_decl.add(name="_x")
    x = make_field("x", 1, F.TYPE_INT32)
    x.oneof_index = 0
    x.proto3_optional = True
    message.field.append(x)
    out = render(file)
    assert "::prost::Oneof" not in out
    assert ", optional" in out


def test_extern_types_are_skipped():
    out = render(shirt_file(), extern=ExternPaths([(".pkg", "::other")], False))
    assert out == ""


def test_comments_are_rendered():
    file = shirt_file()
    file.source_code_info.location.add(path=[4, 0], leading_comments=" A shirt.\n")
    file.source_code_info.location.add(path=[4, 0, 2, 0], trailing_comments=" The colour.\n")
    out = render(file, make_config(comments=True))
    assert out.startswith("/// A shirt.\n")
    assert "    /// The colour.\n" in out


def test_missing_location_raises():
    with pytest.raises(KeyError):
        render(shirt_file(), make_config(comments=True))


def test_missing_source_info_raises():
    file = FileDescriptorProto(name="test.proto", package="pkg", syntax="proto3")
    with pytest.raises(ValueError, match="no source code info"):
        render(file)


def test_unknown_syntax_raises():
    with pytest.raises(ValueError, match="unknown syntax"):
        render(make_file("proto4"))


def test_bytes_default_is_escaped():
    file = make_file("proto2")
    field = make_field("data", 1, F.TYPE_BYTES)
    field.default_value = "\\001"
    file.message_type.add(name="Blob").field.append(field)
    out = render(file)
    assert 'bytes="vec"' in out
    assert 'default="b\\"\\\\x01\\""' in out


def test_bytes_type_configured():
    file = make_file()
    file.message_type.add(name="Blob").field.append(make_field("data", 1, F.TYPE_BYTES))
    config = make_config()
    config.bytes_type.insert(".", BytesType.BYTES)
    out = render(file, config)
    assert "::prost::bytes::Bytes" in out
    assert 'bytes="bytes"' in out


def test_string_default_is_kept():
    file = make_file("proto2")
    field = make_field("label", 1, F.TYPE_STRING)
    field.default_value = "hi"
    file.message_type.add(name="Tag").field.append(field)
    assert 'default="hi"' in render(file)


def test_deprecated_field():
    file = make_file()
    field = make_field("old", 1, F.TYPE_INT32)
    field.options.deprecated = True
    file.message_type.add(name="Legacy").field.append(field)
    assert "#[deprecated]\n" in render(file)


def test_type_and_field_attributes():
    config = make_config()
    config.type_attributes.insert("Shirt", "#[derive(Eq)]")
    config.field_attributes.insert("color", "#[serde]")
    out = render(shirt_file(), config)
    assert "#[derive(Eq)]\n#[derive(Clone, PartialEq, ::prost::Message)]" in out
    assert "    #[serde]\n    pub color" in out


class RecordingGenerator:
    def __init__(self):
        self.services = []

    def generate(self, service):
        self.services.append(service)
        return f"// {service.name}\n"

    def finalize(self):
        return "// finalized\n"


def make_service_file():
    file = make_file()
    service = file.service.add(name="Greeter")
    service.method.add(
        name="SayHello",
        input_type=".pkg.HelloRequest",
        output_type=".pkg.HelloReply",
        server_streaming=True,
    )
    file.source_code_info.location.add(path=[6, 0], leading_comments=" Greets.\n")
    file.source_code_info.location.add(path=[6, 0, 2, 0])
    return file


def test_service_generator_receives_services():
    recorder = RecordingGenerator()
    out = render(make_service_file(), make_config(generator=recorder))
    assert out.endswith("// finalized\n")
    assert len(recorder.services) == 1
    service = recorder.services[0]
    assert service.proto_name == "Greeter"
    assert service.package == "pkg"
    assert service.comments.leading == [" Greets."]
    method = service.methods[0]
    assert method.name == to_snake("SayHello")
    assert method.input_type == "HelloRequest"
    assert method.output_proto_type == ".pkg.HelloReply"
    assert method.server_streaming is True
    assert method.client_streaming is False


def test_services_ignored_without_generator():
    assert render(make_service_file()) == ""