[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "prostbuild"
version = "0.8.0"
description = "Generate Rust message, enum and service definitions from .proto files using protoc descriptor sets."
requires-python = ">=3.10"
keywords = ["protobuf", "protoc", "code-generation", "rust", "serialization"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Code Generators",
]
dependencies = [
    "protobuf",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["prostbuild"]

[tool.pytest.ini_options]
addopts = "-ra"
