from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodeConfig:
    beam_size: int = 1
    temperature: float = 1.0

    @classmethod
    def create(cls, beam_size: int = 1, temperature: float = 1.0) -> "DecodeConfig":
        beam_size = int(beam_size)
        if beam_size < 1:
            logger.warning("beam_size=%d is below 1, clamping to 1", beam_size)
            beam_size = 1
        temperature = float(temperature)
        if not temperature > 0:
            raise ValueError(f"temperature must be > 0, got {temperature}")
        return cls(beam_size=beam_size, temperature=temperature)


def _parse_scalar(s: str) -> Any:
    sl = s.strip().lower()
    if sl in {"true", "false"}:
        return sl == "true"
    if sl in {"null", "none"}:
        return None
    try:
        if "." in sl or "e" in sl:
            return float(s)
        return int(s)
    except ValueError:
        return s


def _set_by_dotted_key(d: Dict[str, Any], dotted: str, value: Any) -> None:
    cur = d
    parts = dotted.split(".")
    for p in parts[:-1]:
        if p not in cur or not isinstance(cur[p], dict):
            cur[p] = {}
        cur = cur[p]
    cur[parts[-1]] = value


def apply_overrides(cfg: Dict[str, Any], overrides: Optional[Iterable[str]]) -> Dict[str, Any]:
    for ov in overrides or []:
        if "=" not in ov:
            raise ValueError(f"Override must look like key=value, got: {ov}")
        k, v = ov.split("=", 1)
        _set_by_dotted_key(cfg, k.strip(), _parse_scalar(v))
    return cfg


def load_yaml_config(path: str | Path, overrides: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    path = Path(path)
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a YAML mapping, got {type(data)} at {path}")
    return apply_overrides(data, overrides)


def save_yaml_config(path: str | Path, cfg: Dict[str, Any]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(cfg, sort_keys=False, allow_unicode=True), encoding="utf-8")


def get(cfg: Dict[str, Any], key: str, default: Any = None) -> Any:
    cur: Any = cfg
    for p in key.split("."):
        if not isinstance(cur, dict) or p not in cur:
            return default
        cur = cur[p]
    return cur


def require(cfg: Dict[str, Any], key: str) -> Any:
    v = get(cfg, key, default=None)
    if v is None:
        raise KeyError(f"Missing required config key: {key}")
    return v
