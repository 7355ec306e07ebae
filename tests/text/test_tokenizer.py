from __future__ import annotations

from recase.text.tokenizer import detokenize, tokenize


def test_one_token_per_codepoint() -> None:
    assert tokenize("héllo") == ["h", "é", "l", "l", "o"]
    assert tokenize("日本") == ["日", "本"]


def test_multibyte_bytes_form_single_tokens() -> None:
    data = "café €1 \U0001F600".encode("utf-8")
    toks = tokenize(data)
    assert toks == ["c", "a", "f", "é", " ", "€", "1", " ", "\U0001F600"]
    assert len(data) == 15


def test_malformed_bytes_become_single_byte_tokens() -> None:
    data = b"a\xffb\xc3"
    toks = tokenize(data)
    assert len(toks) == 4
    assert toks[0] == "a" and toks[2] == "b"
    # Each bad byte round-trips to exactly itself.
    assert toks[1].encode("utf-8", errors="surrogateescape") == b"\xff"
    assert detokenize(toks).encode("utf-8", errors="surrogateescape") == data


def test_no_case_folding_or_normalization() -> None:
    # Decomposed E + combining acute stays two tokens.
    assert tokenize("É") == ["E", "́"]
    assert tokenize("") == []
