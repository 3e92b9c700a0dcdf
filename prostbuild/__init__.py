"""Generate Rust definitions from Protobuf descriptors produced by protoc."""

__version__ = "0.8.0"