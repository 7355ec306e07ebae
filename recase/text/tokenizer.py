from __future__ import annotations

from typing import List, Union


def tokenize(line: Union[str, bytes, bytearray]) -> List[str]:
    """
    Split a line into one token per Unicode codepoint.

    Bytes are decoded as UTF-8; a multi-byte sequence becomes a single token, and
    every byte that does not start a valid sequence becomes its own token (a lone
    surrogate, so `encode("utf-8", "surrogateescape")` gives the byte back).
    No normalization or case folding happens here.
    """
    if isinstance(line, (bytes, bytearray)):
        line = bytes(line).decode("utf-8", errors="surrogateescape")
    return list(line)


def detokenize(tokens: List[str]) -> str:
    return "".join(tokens)


def upper_variant(token: str) -> str:
    return token.upper()
