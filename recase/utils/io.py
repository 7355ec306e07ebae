from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator


def read_json(path: str | Path) -> Dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def write_json(path: str | Path, obj: Any) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, sort_keys=False, ensure_ascii=True) + "\n", encoding="utf-8")


def read_text(path: str | Path) -> str:
    """Read a UTF-8 corpus, keeping undecodable bytes as lone surrogates."""
    return Path(path).read_bytes().decode("utf-8", errors="surrogateescape")


def iter_lines(stream: Iterable[bytes]) -> Iterator[str]:
    """Yield decoded lines from a binary stream without their line terminator."""
    for raw in stream:
        line = raw.decode("utf-8", errors="surrogateescape")
        if line.endswith("\n"):
            line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
        yield line
