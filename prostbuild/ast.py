"""Descriptions of Protobuf items handed to service generators."""

from __future__ import annotations

from dataclasses import dataclass, field

from google.protobuf.descriptor_pb2 import MethodOptions, ServiceOptions, SourceCodeInfo


def _lines(text: str) -> list[str]:
    """Split text into lines the way a line iterator does: no trailing empty line."""
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


@dataclass
class Comments:
    """Comments on a Protobuf item."""

    leading_detached: list[list[str]] = field(default_factory=list)
    leading: list[str] = field(default_factory=list)
    trailing: list[str] = field(default_factory=list)

    @classmethod
    def from_location(cls, location: SourceCodeInfo.Location) -> Comments:
        """Collect the comments attached to a source location."""
        leading = (
            _lines(location.leading_comments)
            if location.HasField("leading_comments")
            else []
        )
        trailing = (
            _lines(location.trailing_comments)
            if location.HasField("trailing_comments")
            else []
        )
        return cls(
            leading_detached=[_lines(block) for block in location.leading_detached_comments],
            leading=leading,
            trailing=trailing,
        )

    def render(self, indent_level: int) -> str:
        """Render the comments, indenting each line by four spaces per level."""
        indent = "    " * indent_level
        out: list[str] = []
        for block in self.leading_detached:
            out.extend(f"{indent}//{line}\n" for line in block)
            out.append("\n")
        out.extend(f"{indent}///{line}\n" for line in self.leading)
        if self.leading and self.trailing:
            out.append(f"{indent}///\n")
        out.extend(f"{indent}///{line}\n" for line in self.trailing)
        return "".join(out)


@dataclass
class Method:
    """A service method descriptor."""

    name: str
    proto_name: str
    comments: Comments
    input_type: str
    output_type: str
    input_proto_type: str
    output_proto_type: str
    options: MethodOptions = field(default_factory=MethodOptions)
    client_streaming: bool = False
    server_streaming: bool = False


@dataclass
class Service:
    """A service descriptor."""

    name: str
    proto_name: str
    package: str
    comments: Comments
    methods: list[Method] = field(default_factory=list)
    options: ServiceOptions = field(default_factory=ServiceOptions)