"""Field type options and helpers shared by the code generator."""

from __future__ import annotations

import enum

from google.protobuf.descriptor_pb2 import FieldDescriptorProto


class MapType(enum.Enum):
    """The map collection type to output for Protobuf ``map`` fields."""

    HASH_MAP = "hash_map"
    BTREE_MAP = "btree_map"

    def annotation(self) -> str:
        """The derive annotation corresponding to the map type."""
        return "map" if self is MapType.HASH_MAP else "btree_map"

    def rust_type(self) -> str:
        """The fully-qualified Rust type corresponding to the map type."""
        if self is MapType.HASH_MAP:
            return "::std::collections::HashMap"
        return "::prost::alloc::collections::BTreeMap"


class BytesType(enum.Enum):
    """The bytes collection type to output for Protobuf ``bytes`` fields."""

    VEC = "vec"
    BYTES = "bytes"

    def annotation(self) -> str:
        """The derive annotation corresponding to the bytes type."""
        return "vec" if self is BytesType.VEC else "bytes"

    def rust_type(self) -> str:
        """The fully-qualified Rust type corresponding to the bytes type."""
        if self is BytesType.VEC:
            return "::prost::alloc::vec::Vec<u8>"
        return "::prost::bytes::Bytes"


_SIMPLE_ESCAPES = {
    ord("a"): 0x07,
    ord("b"): 0x08,
    ord("f"): 0x0C,
    ord("n"): 0x0A,
    ord("r"): 0x0D,
    ord("t"): 0x09,
    ord("v"): 0x0B,
    ord("\\"): 0x5C,
    ord("?"): 0x3F,
    ord("'"): 0x27,
    ord('"'): 0x22,
}

_OCTAL_DIGITS = frozenset(b"01234567")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")


def unescape_c_escape_string(s: str) -> bytes:
    """Decode a C-escaped string, as used for default values of bytes fields."""
    src = s.encode("utf-8")
    length = len(src)
    dst = bytearray()
    p = 0
    while p < length:
        if src[p] != ord("\\"):
            dst.append(src[p])
            p += 1
            continue
        p += 1
        if p == length:
            raise ValueError(
                f"invalid c-escaped default binary value ({s}): ends with '\\'"
            )
        ch = src[p]
        if ch in _SIMPLE_ESCAPES:
            dst.append(_SIMPLE_ESCAPES[ch])
            p += 1
        elif ch in _OCTAL_DIGITS:
            octal = 0
            for _ in range(3):
                if p < length and src[p] in _OCTAL_DIGITS:
                    octal = octal * 8 + (src[p] - ord("0"))
                    p += 1
                else:
                    break
            if octal > 0xFF:
                raise ValueError(
                    f"invalid c-escaped default binary value ({s}): octal value out of range"
                )
            dst.append(octal)
        elif ch in (ord("x"), ord("X")):
            digits = src[p + 1 : p + 3]
            if len(digits) < 2:
                raise ValueError(
                    f"invalid c-escaped default binary value ({s}): incomplete hex value"
                )
            if not all(d in _HEX_DIGITS for d in digits):
                raise ValueError(
                    "invalid c-escaped default binary value "
                    f"({src[p:p + 2].decode('utf-8', 'replace')}): invalid hex value"
                )
            dst.append(int(digits, 16))
            p += 3
        else:
            raise ValueError(
                f"invalid c-escaped default binary value ({s}): invalid escape"
            )
    return bytes(dst)


def strip_enum_prefix(prefix: str, name: str) -> str:
    """Strip an enum's type name from the front of one of its value names.

    Both names are expected in upper camel case. The prefix is kept when
    what would remain does not start with an uppercase letter.
    """
    stripped = name.removeprefix(prefix)
    if stripped[:1].isupper():
        return stripped
    return name


_PACKABLE_TYPES = frozenset(
    {
        FieldDescriptorProto.TYPE_FLOAT,
        FieldDescriptorProto.TYPE_DOUBLE,
        FieldDescriptorProto.TYPE_INT32,
        FieldDescriptorProto.TYPE_INT64,
        FieldDescriptorProto.TYPE_UINT32,
        FieldDescriptorProto.TYPE_UINT64,
        FieldDescriptorProto.TYPE_SINT32,
        FieldDescriptorProto.TYPE_SINT64,
        FieldDescriptorProto.TYPE_FIXED32,
        FieldDescriptorProto.TYPE_FIXED64,
        FieldDescriptorProto.TYPE_SFIXED32,
        FieldDescriptorProto.TYPE_SFIXED64,
        FieldDescriptorProto.TYPE_BOOL,
        FieldDescriptorProto.TYPE_ENUM,
    }
)


def can_pack(field: FieldDescriptorProto) -> bool:
    """Return True if a repeated field of this type can be packed."""
    return field.type in _PACKABLE_TYPES