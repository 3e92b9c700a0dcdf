"""Generation of Rust source for the contents of one Protobuf file."""

from __future__ import annotations

import enum
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from google.protobuf.descriptor_pb2 import (
    DescriptorProto,
    EnumDescriptorProto,
    EnumValueDescriptorProto,
    FieldDescriptorProto,
    FileDescriptorProto,
    MethodOptions,
    OneofDescriptorProto,
    ServiceDescriptorProto,
    ServiceOptions,
    SourceCodeInfo,
)

from .ast import Comments, Method, Service
from .extern_paths import ExternPaths
from .ident import to_snake, to_upper_camel
from .message_graph import MessageGraph
from .options import BytesType, MapType, can_pack, strip_enum_prefix, unescape_c_escape_string

_F = FieldDescriptorProto

_TYPE_TAGS = {
    _F.TYPE_FLOAT: "float",
    _F.TYPE_DOUBLE: "double",
    _F.TYPE_INT32: "int32",
    _F.TYPE_INT64: "int64",
    _F.TYPE_UINT32: "uint32",
    _F.TYPE_UINT64: "uint64",
    _F.TYPE_SINT32: "sint32",
    _F.TYPE_SINT64: "sint64",
    _F.TYPE_FIXED32: "fixed32",
    _F.TYPE_FIXED64: "fixed64",
    _F.TYPE_SFIXED32: "sfixed32",
    _F.TYPE_SFIXED64: "sfixed64",
    _F.TYPE_BOOL: "bool",
    _F.TYPE_STRING: "string",
    _F.TYPE_BYTES: "bytes",
    _F.TYPE_GROUP: "group",
    _F.TYPE_MESSAGE: "message",
}

_SCALAR_RUST_TYPES = {
    _F.TYPE_FLOAT: "f32",
    _F.TYPE_DOUBLE: "f64",
    _F.TYPE_UINT32: "u32",
    _F.TYPE_FIXED32: "u32",
    _F.TYPE_UINT64: "u64",
    _F.TYPE_FIXED64: "u64",
    _F.TYPE_INT32: "i32",
    _F.TYPE_SFIXED32: "i32",
    _F.TYPE_SINT32: "i32",
    _F.TYPE_ENUM: "i32",
    _F.TYPE_INT64: "i64",
    _F.TYPE_SFIXED64: "i64",
    _F.TYPE_SINT64: "i64",
    _F.TYPE_BOOL: "bool",
    _F.TYPE_STRING: "::prost::alloc::string::String",
}

_MESSAGE_TYPES = (_F.TYPE_MESSAGE, _F.TYPE_GROUP)

_CHAR_ESCAPES = {
    "\t": "\\t",
    "\r": "\\r",
    "\n": "\\n",
    "'": "\\'",
    '"': '\\"',
    "\\": "\\\\",
}


def _escape_default(text: str) -> str:
    """Escape text as a Rust string literal body."""
    out = []
    for ch in text:
        if ch in _CHAR_ESCAPES:
            out.append(_CHAR_ESCAPES[ch])
        elif " " <= ch <= "~":
            out.append(ch)
        else:
            out.append(f"\\u{{{ord(ch):x}}}")
    return "".join(out)


def _ascii_escape(byte: int) -> str:
    ch = chr(byte)
    if ch in _CHAR_ESCAPES:
        return _CHAR_ESCAPES[ch]
    if 0x20 <= byte <= 0x7E:
        return ch
    return f"\\x{byte:02x}"


def _quoted(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class Syntax(enum.Enum):
    PROTO2 = "proto2"
    PROTO3 = "proto3"


class CodeGenerator:
    """Generates Rust code for the messages, enums and services of one file.

    The configuration object is read through these attributes: ``map_type``,
    ``bytes_type``, ``type_attributes``, ``field_attributes`` and
    ``disabled_comments`` (path maps), ``strip_enum_prefix`` (bool) and
    ``registered_service_generator`` (a service generator or None).
    """

    def __init__(
        self,
        config: Any,
        message_graph: MessageGraph,
        extern_paths: ExternPaths,
        file: FileDescriptorProto,
    ) -> None:
        if not file.HasField("source_code_info"):
            raise ValueError("no source code info in request")
        if not file.HasField("package"):
            raise ValueError(f"file has no package: {file.name}")

        locations = sorted(
            (loc for loc in file.source_code_info.location if loc.path and len(loc.path) % 2 == 0),
            key=lambda loc: list(loc.path),
        )
        self._locations: dict[tuple[int, ...], SourceCodeInfo.Location] = {}
        for location in locations:
            self._locations.setdefault(tuple(location.path), location)

        if not file.HasField("syntax") or file.syntax == "proto2":
            self._syntax = Syntax.PROTO2
        elif file.syntax == "proto3":
            self._syntax = Syntax.PROTO3
        else:
            raise ValueError(f"unknown syntax: {file.syntax}")

        self._config = config
        self._message_graph = message_graph
        self._extern_paths = extern_paths
        self._file = file
        self._package = file.package
        self._depth = 0
        self._path: list[int] = []
        self._buf: list[str] = []

    def generate(self) -> str:
        """Return the generated Rust code for the file."""
        self._package = self._file.package
        self._depth = 0
        self._path = []
        self._buf = []

        for idx, message in enumerate(self._file.message_type):
            with self._at(4, idx):
                self._append_message(message)

        for idx, desc in enumerate(self._file.enum_type):
            with self._at(5, idx):
                self._append_enum(desc)

        service_generator = self._config.registered_service_generator
        if service_generator is not None:
            for idx, service in enumerate(self._file.service):
                with self._at(6, idx):
                    self._push_service(service)
            self._raw(service_generator.finalize() or "")

        return "".join(self._buf)

    # Output helpers.

    @contextmanager
    def _at(self, *indices: int) -> Iterator[None]:
        self._path.extend(indices)
        try:
            yield
        finally:
            del self._path[len(self._path) - len(indices):]

    @contextmanager
    def _indented(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1

    def _raw(self, text: str) -> None:
        self._buf.append(text)

    def _emit(self, text: str) -> None:
        self._buf.append("    " * self._depth + text)

    def _location(self) -> SourceCodeInfo.Location:
        try:
            return self._locations[tuple(self._path)]
        except KeyError:
            raise KeyError(f"no source location for path {self._path}") from None

    def _append_doc(self, fq_name: str, field_name: str | None) -> None:
        disabled = self._config.disabled_comments
        if field_name is not None:
            matched = disabled.get_field(fq_name, field_name)
        else:
            matched = disabled.get(fq_name)
        if matched is None:
            self._raw(Comments.from_location(self._location()).render(self._depth))

    def _append_type_attributes(self, fq_name: str) -> None:
        assert fq_name.startswith(".")
        attributes = self._config.type_attributes.get(fq_name)
        if attributes is not None:
            self._emit(attributes + "\n")

    def _append_field_attributes(self, fq_name: str, field_name: str) -> None:
        assert fq_name.startswith(".")
        attributes = self._config.field_attributes.get_field(fq_name, field_name)
        if attributes is not None:
            self._emit(attributes + "\n")

    # Messages.

    def _append_message(self, message: DescriptorProto) -> None:
        message_name = message.name
        package_name = self._package
        fq_message_name = f".{self._package}.{message_name}"

        if self._extern_paths.resolve_ident(fq_message_name) is not None:
            return

        nested_types: list[tuple[DescriptorProto, int]] = []
        map_types: dict[str, tuple[FieldDescriptorProto, FieldDescriptorProto]] = {}
        for idx, nested in enumerate(message.nested_type):
            if nested.HasField("options") and nested.options.map_entry:
                key, value = nested.field[0], nested.field[1]
                if key.name != "key" or value.name != "value":
                    raise ValueError(f"malformed map entry type: {nested.name}")
                map_types[f"{fq_message_name}.{nested.name}"] = (key, value)
            else:
                nested_types.append((nested, idx))

        fields: list[tuple[FieldDescriptorProto, int]] = []
        oneof_fields: dict[int, list[tuple[FieldDescriptorProto, int]]] = {}
        for idx, field in enumerate(message.field):
            if field.proto3_optional or not field.HasField("oneof_index"):
                fields.append((field, idx))
            else:
                oneof_fields.setdefault(field.oneof_index, []).append((field, idx))

        self._append_doc(fq_message_name, None)
        self._append_type_attributes(fq_message_name)
        self._emit("#[derive(Clone, PartialEq, ::prost::Message)]\n")
        self._emit(f'#[prost(package="{package_name}")]\n')
        self._emit(f"pub struct {to_upper_camel(message_name)} {{\n")

        with self._indented():
            for field, idx in fields:
                with self._at(2, idx):
                    entry = map_types.get(field.type_name) if field.HasField("type_name") else None
                    if entry is not None:
                        self._append_map_field(fq_message_name, field, *entry)
                    else:
                        self._append_field(fq_message_name, field)

            for idx, oneof in enumerate(message.oneof_decl):
                members = oneof_fields.get(idx)
                if members is None:
                    continue
                with self._at(8, idx):
                    self._append_oneof_field(message_name, fq_message_name, oneof, members)

        self._emit("}\n")

        if message.enum_type or nested_types or oneof_fields:
            self._push_mod(message_name)
            for nested, idx in nested_types:
                with self._at(3, idx):
                    self._append_message(nested)
            for idx, nested_enum in enumerate(message.enum_type):
                with self._at(4, idx):
                    self._append_enum(nested_enum)
            for idx, oneof in enumerate(message.oneof_decl):
                members = oneof_fields.pop(idx, None)
                if members is None:
                    continue
                self._append_oneof(fq_message_name, oneof, idx, members)
            self._pop_mod()

    def _append_field(self, fq_message_name: str, field: FieldDescriptorProto) -> None:
        type_ = field.type
        repeated = field.label == _F.LABEL_REPEATED
        deprecated = field.HasField("options") and field.options.deprecated
        optional = self._optional(field)
        ty = self._resolve_type(field, fq_message_name)
        boxed = (
            not repeated
            and type_ in _MESSAGE_TYPES
            and self._message_graph.is_nested(field.type_name, fq_message_name)
        )

        self._append_doc(fq_message_name, field.name)
        if deprecated:
            self._emit("#[deprecated]\n")

        attrs = ["#[prost(", self._field_type_tag(field)]
        if type_ == _F.TYPE_BYTES:
            bytes_type = self._config.bytes_type.get_field(fq_message_name, field.name) or BytesType.VEC
            attrs.append(f'="{bytes_type.annotation()}"')

        if field.label == _F.LABEL_REQUIRED:
            attrs.append(", required")
        elif repeated:
            attrs.append(", repeated")
            if field.HasField("options"):
                packed = field.options.packed
            else:
                packed = self._syntax is Syntax.PROTO3
            if can_pack(field) and not packed:
                attrs.append(', packed="false"')
        elif optional:
            attrs.append(", optional")

        if boxed:
            attrs.append(", boxed")
        attrs.append(f', tag="{field.number}')

        if field.HasField("default_value"):
            default = field.default_value
            attrs.append('", default="')
            if type_ == _F.TYPE_BYTES:
                escaped = "".join(
                    _escape_default(_ascii_escape(b)) for b in unescape_c_escape_string(default)
                )
                attrs.append(f'b\\"{escaped}\\"')
            elif type_ == _F.TYPE_ENUM:
                enum_value = to_upper_camel(default)
                if self._config.strip_enum_prefix:
                    enum_type = field.type_name.split(".")[-1]
                    enum_value = strip_enum_prefix(to_upper_camel(enum_type), enum_value)
                attrs.append(enum_value)
            else:
                attrs.append(_escape_default(default))

        attrs.append('")]\n')
        self._emit("".join(attrs))
        self._append_field_attributes(fq_message_name, field.name)

        if boxed:
            ty = f"::prost::alloc::boxed::Box<{ty}>"
        if repeated:
            ty = f"::prost::alloc::vec::Vec<{ty}>"
        elif optional:
            ty = f"::core::option::Option<{ty}>"
        self._emit(f"pub {to_snake(field.name)}: {ty},\n")

    def _append_map_field(
        self,
        fq_message_name: str,
        field: FieldDescriptorProto,
        key: FieldDescriptorProto,
        value: FieldDescriptorProto,
    ) -> None:
        key_ty = self._resolve_type(key, fq_message_name)
        value_ty = self._resolve_type(value, fq_message_name)

        self._append_doc(fq_message_name, field.name)
        map_type = self._config.map_type.get_field(fq_message_name, field.name) or MapType.HASH_MAP
        key_tag = self._field_type_tag(key)
        value_tag = self._map_value_type_tag(value)
        self._emit(
            f'#[prost({map_type.annotation()}="{key_tag}, {value_tag}", tag="{field.number}")]\n'
        )
        self._append_field_attributes(fq_message_name, field.name)
        self._emit(
            f"pub {to_snake(field.name)}: {map_type.rust_type()}<{key_ty}, {value_ty}>,\n"
        )

    def _append_oneof_field(
        self,
        message_name: str,
        fq_message_name: str,
        oneof: OneofDescriptorProto,
        fields: list[tuple[FieldDescriptorProto, int]],
    ) -> None:
        name = f"{to_snake(message_name)}::{to_upper_camel(oneof.name)}"
        self._append_doc(fq_message_name, None)
        tags = ", ".join(str(field.number) for field, _ in fields)
        self._emit(f'#[prost(oneof="{name}", tags="{tags}")]\n')
        self._append_field_attributes(fq_message_name, oneof.name)
        self._emit(f"pub {to_snake(oneof.name)}: ::core::option::Option<{name}>,\n")

    def _append_oneof(
        self,
        fq_message_name: str,
        oneof: OneofDescriptorProto,
        idx: int,
        fields: list[tuple[FieldDescriptorProto, int]],
    ) -> None:
        with self._at(8, idx):
            self._append_doc(fq_message_name, None)

        oneof_name = f"{fq_message_name}.{oneof.name}"
        self._append_type_attributes(oneof_name)
        self._emit("#[derive(Clone, PartialEq, ::prost::Oneof)]\n")
        self._emit(f"pub enum {to_upper_camel(oneof.name)} {{\n")

        with self._indented():
            for field, field_idx in fields:
                with self._at(2, field_idx):
                    self._append_doc(fq_message_name, field.name)
                self._emit(f'#[prost({self._field_type_tag(field)}, tag="{field.number}")]\n')
                self._append_field_attributes(oneof_name, field.name)

                ty = self._resolve_type(field, fq_message_name)
                boxed = field.type in _MESSAGE_TYPES and self._message_graph.is_nested(
                    field.type_name, fq_message_name
                )
                if boxed:
                    ty = f"::prost::alloc::boxed::Box<{ty}>"
                self._emit(f"{to_upper_camel(field.name)}({ty}),\n")

        self._emit("}\n")

    # Enums.

    def _append_enum(self, desc: EnumDescriptorProto) -> None:
        enum_name = desc.name
        fq_enum_name = f".{self._package}.{enum_name}"
        if self._extern_paths.resolve_ident(fq_enum_name) is not None:
            return

        self._append_doc(fq_enum_name, None)
        self._append_type_attributes(fq_enum_name)
        self._emit(
            "#[derive(Clone, Copy, Debug, PartialEq, Eq, Hash, PartialOrd, Ord, "
            "::prost::Enumeration)]\n"
        )
        self._emit("#[repr(i32)]\n")
        self._emit(f"pub enum {to_upper_camel(enum_name)} {{\n")

        prefix = to_upper_camel(enum_name) if self._config.strip_enum_prefix else None
        seen: set[int] = set()
        with self._indented():
            for idx, value in enumerate(desc.value):
                # Aliased values (allow_alias) share a number; only the first is kept.
                if value.number in seen:
                    continue
                seen.add(value.number)
                with self._at(2, idx):
                    self._append_enum_value(fq_enum_name, value, prefix)

        self._emit("}\n")

    def _append_enum_value(
        self, fq_enum_name: str, value: EnumValueDescriptorProto, prefix: str | None
    ) -> None:
        self._append_doc(fq_enum_name, value.name)
        self._append_field_attributes(fq_enum_name, value.name)
        name = to_upper_camel(value.name)
        if prefix is not None:
            name = strip_enum_prefix(prefix, name)
        self._emit(f"{name} = {value.number},\n")

    # Services.

    def _push_service(self, service: ServiceDescriptorProto) -> None:
        name = service.name
        comments = Comments.from_location(self._location())

        methods = []
        for idx, method in enumerate(service.method):
            with self._at(2, idx):
                method_comments = Comments.from_location(self._location())
            for required in ("name", "input_type", "output_type"):
                if not method.HasField(required):
                    raise ValueError(f"method of service {name} has no {required}")
            options = MethodOptions()
            options.CopyFrom(method.options)
            methods.append(
                Method(
                    name=to_snake(method.name),
                    proto_name=method.name,
                    comments=method_comments,
                    input_type=self._resolve_ident(method.input_type),
                    output_type=self._resolve_ident(method.output_type),
                    input_proto_type=method.input_type,
                    output_proto_type=method.output_type,
                    options=options,
                    client_streaming=method.client_streaming,
                    server_streaming=method.server_streaming,
                )
            )

        service_options = ServiceOptions()
        service_options.CopyFrom(service.options)
        description = Service(
            name=to_upper_camel(name),
            proto_name=name,
            package=self._package,
            comments=comments,
            methods=methods,
            options=service_options,
        )
        generator = self._config.registered_service_generator
        if generator is not None:
            self._raw(generator.generate(description) or "")

    # Modules.

    def _push_mod(self, module: str) -> None:
        self._emit(f"/// Nested message and enum types in `{module}`.\n")
        self._emit(f"pub mod {to_snake(module)} {{\n")
        self._package = f"{self._package}.{module}"
        self._depth += 1

    def _pop_mod(self) -> None:
        self._depth -= 1
        self._package = self._package.rsplit(".", 1)[0]
        self._emit("}\n")

    # Types.

    def _resolve_type(self, field: FieldDescriptorProto, fq_message_name: str) -> str:
        type_ = field.type
        if type_ in _SCALAR_RUST_TYPES:
            return _SCALAR_RUST_TYPES[type_]
        if type_ == _F.TYPE_BYTES:
            bytes_type = self._config.bytes_type.get_field(fq_message_name, field.name) or BytesType.VEC
            return bytes_type.rust_type()
        return self._resolve_ident(field.type_name)

    def _resolve_ident(self, pb_ident: str) -> str:
        if not pb_ident.startswith("."):
            raise ValueError(f"identifier is not fully qualified: {pb_ident}")

        extern = self._extern_paths.resolve_ident(pb_ident)
        if extern is not None:
            return extern

        local_path = self._package.split(".")
        *ident_path, ident_type = pb_ident[1:].split(".")

        common = 0
        for local, ident in zip(local_path, ident_path):
            if local != ident:
                break
            common += 1

        parts = ["super"] * (len(local_path) - common)
        parts.extend(to_snake(segment) for segment in ident_path[common:])
        parts.append(to_upper_camel(ident_type))
        return "::".join(parts)

    def _field_type_tag(self, field: FieldDescriptorProto) -> str:
        if field.type == _F.TYPE_ENUM:
            return f"enumeration={_quoted(self._resolve_ident(field.type_name))}"
        return _TYPE_TAGS[field.type]

    def _map_value_type_tag(self, field: FieldDescriptorProto) -> str:
        if field.type == _F.TYPE_ENUM:
            return f"enumeration({self._resolve_ident(field.type_name)})"
        return self._field_type_tag(field)

    def _optional(self, field: FieldDescriptorProto) -> bool:
        if field.proto3_optional:
            return True
        if field.label != _F.LABEL_OPTIONAL:
            return False
        if field.type == _F.TYPE_MESSAGE:
            return True
        return self._syntax is Syntax.PROTO2


def generate_file(
    config: Any,
    message_graph: MessageGraph,
    extern_paths: ExternPaths,
    file: FileDescriptorProto,
) -> str:
    """Return the generated Rust code for one file descriptor."""
    return CodeGenerator(config, message_graph, extern_paths, file).generate()