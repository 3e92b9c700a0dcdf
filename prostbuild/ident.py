"""Identifier case conversion for generated Rust code."""

from __future__ import annotations

from collections.abc import Iterator

_RAW_KEYWORDS = frozenset(
    {
        # 2015 strict keywords.
        "as", "break", "const", "continue", "else", "enum", "false", "fn",
        "for", "if", "impl", "in", "let", "loop", "match", "mod", "move",
        "mut", "pub", "ref", "return", "static", "struct", "trait", "true",
        "type", "unsafe", "use", "where", "while",
        # 2018 strict keywords.
        "dyn",
        # 2015 reserved keywords.
        "abstract", "become", "box", "do", "final", "macro", "override",
        "priv", "typeof", "unsized", "virtual", "yield",
        # 2018 reserved keywords.
        "async", "await", "try",
    }
)

# Keywords that cannot be written as raw identifiers; they get a trailing underscore.
_SUFFIXED_KEYWORDS = frozenset({"self", "super", "extern", "crate"})


def _words(s: str) -> Iterator[str]:
    """Split an identifier into its words at case and separator boundaries."""
    chunk: list[str] = []
    for ch in s:
        if ch.isalnum():
            chunk.append(ch)
            continue
        if chunk:
            yield from _split_chunk("".join(chunk))
            chunk = []
    if chunk:
        yield from _split_chunk("".join(chunk))


def _split_chunk(word: str) -> Iterator[str]:
    start = 0
    mode = None  # None marks a fresh word boundary, else "lower" or "upper".
    last = len(word) - 1
    for i, ch in enumerate(word):
        if i == last:
            yield word[start:]
            return
        nxt = word[i + 1]
        if ch.islower():
            next_mode = "lower"
        elif ch.isupper():
            next_mode = "upper"
        else:
            next_mode = mode

        if nxt == "_" or (next_mode == "lower" and nxt.isupper()):
            yield word[start : i + 1]
            start = i + 1
            mode = None
        elif mode == "upper" and ch.isupper() and nxt.islower():
            yield word[start:i]
            start = i
            mode = None
        else:
            mode = next_mode


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def to_snake(s: str) -> str:
    """Convert an identifier to a lower snake case Rust field identifier."""
    ident = "_".join(word.lower() for word in _words(s))
    if ident in _RAW_KEYWORDS:
        return "r#" + ident
    if ident in _SUFFIXED_KEYWORDS:
        return ident + "_"
    return ident


def to_upper_camel(s: str) -> str:
    """Convert an identifier to an upper camel case Rust type identifier."""
    ident = "".join(_capitalize(word) for word in _words(s))
    if ident == "Self":
        ident += "_"
    return ident