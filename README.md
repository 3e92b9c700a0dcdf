# prostbuild

`prostbuild` turns `.proto` files into Rust source: one struct per message,
one enum per Protobuf enum, one enum per `oneof`, nested types in nested
modules, and optional service code produced by a service generator you supply.
The generated items carry `#[prost(...)]` attributes.

It runs `protoc` to produce a `FileDescriptorSet` (with imports and source
info), decodes it with the `protobuf` library, and writes one `.rs` file per
Protobuf package, named after the package (`snazzy.items` becomes
`snazzy.items.rs`).

## Installation

```bash
pip install prostbuild
```

A `protoc` binary is needed at compile time; see "Locating protoc".

## Quick start

```python
from prostbuild.config import compile_protos

written = compile_protos(["src/items.proto"], ["src/"])
```

The generated files go to the directory named by the `OUT_DIR` environment
variable unless an output directory is configured; an `OSError` is raised if
neither is set. A file whose content has not changed is left untouched, and
`compile_protos` returns the paths of the files it actually wrote. If `protoc`
fails, an `OSError` carrying its error output is raised.

## Configuration

`prostbuild.config.Config` collects non-default options. Every option method
returns the configuration, so calls can be chained:

```python
from prostbuild.config import Config

config = (
    Config()
    .out_dir("generated")
    .btree_map(["."])                       # BTreeMap for every map field
    .bytes([".my_messages.MyMessageType"])  # ::prost::bytes::Bytes for one message
    .type_attribute(".", "#[derive(Eq)]")
    .field_attribute("in", '#[serde(rename = "in")]')
    .extern_path(".uuid", "::uuid")
    .protoc_arg("--experimental_allow_proto3_optional")
)
config.compile_protos(["src/frontend.proto", "src/backend.proto"], ["src"])
```

Other options:

- `compile_well_known_types()` – generate the `google.protobuf` well-known
  types instead of referring to `::prost_types`.
- `disable_comments(paths)` – leave out documentation comments for the
  matching packages, types or fields.
- `retain_enum_prefix()` – keep the enum name as a prefix of variant names
  (it is stripped by default).
- `file_descriptor_set_path(path)` – keep the descriptor set written by
  `protoc` at the given path instead of a temporary file.

`btree_map`, `bytes` and `disable_comments` replace any paths given in an
earlier call; `type_attribute`, `field_attribute`, `extern_path` and
`protoc_arg` add to what is already there.

`Config.generate(files)` produces the generated text for already decoded
`FileDescriptorProto` objects without running `protoc`, keyed by module path
(a tuple of snake-case package parts).

### Path matching

Options that take paths match on Protobuf names. A path with a leading `.` is
fully qualified and matches that package, message or field and everything under
it; a path without a leading dot is matched as a suffix, so `"my_field"`
matches every field of that name and `"MyMessage.my_field"` matches it in any
package. The path `"."` matches everything.

### Extern paths

`extern_path(".uuid", "::uuid")` makes every type in the `uuid` package refer
to `::uuid::...` instead of being generated. Unless
`compile_well_known_types()` is used, `.google.protobuf` maps to
`::prost_types`, and the wrapper types map to plain Rust types
(`google.protobuf.Int32Value` to `i32`, `google.protobuf.Empty` to `()`, and so
on). A path that is not fully qualified, or one given twice, raises
`ValueError` when code is generated.

## Service generators

Subclass `ServiceGenerator` and hand an instance to
`Config.service_generator`. `generate(service)` receives a
`prostbuild.ast.Service` (name, package, comments, options and its `Method`
list) and returns the text to append; `finalize()` runs once per `.proto` file
and `finalize_package(package)` once per package that defines services. Without
a service generator, services are not generated.

```python
from prostbuild.config import Config, ServiceGenerator


class TraitGenerator(ServiceGenerator):
    def generate(self, service):
        lines = [service.comments.render(0), f"trait {service.name} {{\n"]
        for method in service.methods:
            lines.append(method.comments.render(1))
            lines.append(
                f"    fn {method.name}({method.input_type}) -> {method.output_type};\n"
            )
        lines.append("}\n")
        return "".join(lines)


Config().service_generator(TraitGenerator()).compile_protos(["src/hello.proto"], ["src"])
```

## Locating protoc

`prostbuild.protoc.protoc()` takes `protoc` from the `PROTOC` environment
variable if set, then from a bundled binary for the host platform under
`prostbuild/third-party/protobuf`, then from the `PATH`; it raises
`FileNotFoundError` if none is found. `protoc_include()` takes the include
directory from `PROTOC_INCLUDE` (raising if it names no directory), falling
back to `prostbuild/third-party/protobuf/include`. `run_protoc(protos,
includes, descriptor_set_path, extra_args)` runs the compiler and returns the
decoded `FileDescriptorSet`.

## Lower-level pieces

- `prostbuild.build.generate_modules(config, files)` produces the text of each
  module, `module_for_file(file)` gives a file's module path, and
  `write_modules(modules, target)` writes them out.
- `prostbuild.code_generator.generate_file(...)` generates the code for one
  file descriptor.
- `prostbuild.message_graph.MessageGraph` detects recursively nested messages,
  whose fields are generated boxed.
- `prostbuild.ident.to_snake` and `to_upper_camel` convert identifiers,
  escaping Rust keywords.
- `prostbuild.path.PathMap` implements the path matching described above.

## What it does not do

- It ships no `protoc` binary and no Protobuf include files; the bundled
  locations are only checked. Set `PROTOC` (and `PROTOC_INCLUDE` if needed) or
  put `protoc` on the `PATH`.
- It has no command-line program; it is used from Python code.
- It generates source text only; it does not encode or decode messages.