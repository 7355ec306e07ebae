from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping

from recase.utils.io import read_json, write_json

UNK = "<unk>"


class Vocabulary:
    """
    Read-only bidirectional map between codepoint tokens and integer ids.

    Ids need not start at 0 (checkpoints from 1-based trainers are fine), but they
    must be unique, and `<unk>` must be present: every lookup of an unseen token
    resolves to its id.
    """

    def __init__(self, token_to_id: Mapping[str, int]) -> None:
        if UNK not in token_to_id:
            raise ValueError(f"Vocabulary has no {UNK} entry")
        t2i: Dict[str, int] = {}
        i2t: Dict[int, str] = {}
        for tok, idx in token_to_id.items():
            idx = int(idx)
            if idx < 0:
                raise ValueError(f"Negative id {idx} for token {tok!r}")
            if idx in i2t:
                raise ValueError(f"Id {idx} assigned to both {i2t[idx]!r} and {tok!r}")
            t2i[str(tok)] = idx
            i2t[idx] = str(tok)
        self._t2i = t2i
        self._i2t = i2t
        self.unk_id = t2i[UNK]

    @classmethod
    def build(cls, text: str | Iterable[str]) -> "Vocabulary":
        """Every distinct codepoint of `text` plus `<unk>`, sorted, ids dense from 0."""
        chars = set(text)
        chars.add(UNK)
        return cls({tok: i for i, tok in enumerate(sorted(chars))})

    @classmethod
    def load(cls, path: str | Path) -> "Vocabulary":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Vocabulary file not found: {path}")
        return cls(read_json(path))

    def save(self, path: str | Path) -> None:
        write_json(path, self.to_dict())

    def to_dict(self) -> Dict[str, int]:
        return dict(self._t2i)

    def id_of(self, token: str) -> int:
        return self._t2i.get(token, self.unk_id)

    def token_of(self, idx: int) -> str:
        return self._i2t[int(idx)]

    def encode(self, tokens: Iterable[str]) -> List[int]:
        return [self.id_of(t) for t in tokens]

    @property
    def logit_size(self) -> int:
        # Width of a log-prob vector indexed directly by id.
        return max(self._i2t) + 1

    def __contains__(self, token: object) -> bool:
        return token in self._t2i

    def __len__(self) -> int:
        return len(self._t2i)

    def __iter__(self) -> Iterator[str]:
        return iter(self._t2i)
