"""Graph of message nesting, used to detect recursively nested messages."""

from __future__ import annotations

from collections.abc import Iterable

from google.protobuf.descriptor_pb2 import (
    DescriptorProto,
    FieldDescriptorProto,
    FileDescriptorProto,
)


class MessageGraph:
    """A directed graph of messages whose edges correspond to nesting.

    An edge runs from a message to the message type of each of its
    non-repeated message fields. A field whose type can reach back to the
    enclosing message is recursive and must be boxed.
    """

    def __init__(self, files: Iterable[FileDescriptorProto]) -> None:
        self._edges: dict[str, set[str]] = {}
        for file in files:
            if not file.HasField("package"):
                name = file.name if file.HasField("name") else "(unknown)"
                raise ValueError(
                    "prost requires a package specifier in all .proto files; "
                    f"file with missing package specifier: {name}"
                )
            package = f".{file.package}"
            for message in file.message_type:
                self._add_message(package, message)

    def __repr__(self) -> str:
        return f"MessageGraph({self._edges!r})"

    def _node(self, name: str) -> set[str]:
        if not name.startswith("."):
            raise ValueError(f"message name is not fully qualified: {name!r}")
        return self._edges.setdefault(name, set())

    def _add_message(self, package: str, message: DescriptorProto) -> None:
        name = f"{package}.{message.name}"
        targets = self._node(name)
        for field in message.field:
            if (
                field.type == FieldDescriptorProto.TYPE_MESSAGE
                and field.label != FieldDescriptorProto.LABEL_REPEATED
            ):
                self._node(field.type_name)
                targets.add(field.type_name)
        for nested in message.nested_type:
            self._add_message(name, nested)

    def is_nested(self, outer: str, inner: str) -> bool:
        """Return True if message type ``inner`` is reachable from ``outer``."""
        if outer not in self._edges or inner not in self._edges:
            return False
        seen = {outer}
        stack = [outer]
        while stack:
            node = stack.pop()
            if node == inner:
                return True
            for target in self._edges[node]:
                if target not in seen:
                    seen.add(target)
                    stack.append(target)
        return False