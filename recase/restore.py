from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, BinaryIO, Dict, Iterable

from recase.config import DecodeConfig, apply_overrides, get, load_yaml_config
from recase.models.checkpoint import load_checkpoint
from recase.text.beam_decode import BeamSearchDecoder
from recase.utils.device import resolve_device
from recase.utils.io import iter_lines
from recase.utils.logging_setup import setup_logging, visible
from recase.utils.repro import seed_all

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "seed": 123,
    "device": "auto",
    "verbose": False,
    "decode": {"beam_size": 1, "temperature": 1.0},
}


def restore_stream(lines: Iterable[str], decoder: BeamSearchDecoder, out: BinaryIO) -> int:
    """Decode each non-empty line and write it out, flushing per line. Returns lines written."""
    n = 0
    for line in lines:
        if not line:
            continue
        text = decoder.decode(line)
        out.write(text.encode("utf-8", errors="surrogateescape") + b"\n")
        out.flush()
        n += 1
    return n


def _resolve_config(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = load_yaml_config(args.config) if args.config else {}
    cfg = apply_overrides(cfg, args.set)
    cli = {
        "seed": args.seed,
        "device": args.device,
        "verbose": True if args.verbose else None,
        "decode.beam_size": args.beam_size,
        "decode.temperature": args.temperature,
    }
    resolved = {
        "checkpoint": args.checkpoint or get(cfg, "checkpoint"),
        "seed": get(cfg, "seed", DEFAULTS["seed"]),
        "device": get(cfg, "device", DEFAULTS["device"]),
        "verbose": get(cfg, "verbose", DEFAULTS["verbose"]),
        "decode": {
            "beam_size": get(cfg, "decode.beam_size", DEFAULTS["decode"]["beam_size"]),
            "temperature": get(cfg, "decode.temperature", DEFAULTS["decode"]["temperature"]),
        },
    }
    for k, v in cli.items():
        if v is None:
            continue
        if k.startswith("decode."):
            resolved["decode"][k.split(".", 1)[1]] = v
        else:
            resolved[k] = v
    return resolved


def main() -> None:
    ap = argparse.ArgumentParser(description="Restore character casing of stdin lines with a char-level LM.")
    ap.add_argument("--checkpoint", type=str, default=None, help="Model checkpoint (.pt) to use.")
    ap.add_argument("--config", type=str, default=None, help="Optional YAML config.")
    ap.add_argument("--set", action="append", default=None, help="Override config keys, e.g. decode.beam_size=8")
    ap.add_argument("--beam-size", type=int, default=None)
    ap.add_argument("--temperature", type=float, default=None, help="Divides log-probabilities before scoring.")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--device", type=str, default=None, help="auto|cpu|cuda")
    ap.add_argument("--verbose", action="store_true", help="Print per-step diagnostics to stderr.")
    args = ap.parse_args()

    cfg = _resolve_config(args)
    setup_logging("DEBUG" if cfg["verbose"] else "WARNING")
    if not cfg["checkpoint"]:
        ap.error("a checkpoint is required (--checkpoint or `checkpoint:` in the config)")

    seed_all(int(cfg["seed"]))
    device = resolve_device(str(cfg["device"]))
    model, vocab, _ = load_checkpoint(cfg["checkpoint"], device)
    if logger.isEnabledFor(logging.DEBUG):
        for tok in vocab:
            logger.debug("%s %d", visible(tok), vocab.id_of(tok))

    decode_cfg = DecodeConfig.create(**cfg["decode"])
    decoder = BeamSearchDecoder(model, vocab, model.init_state(1, device), decode_cfg)
    restore_stream(iter_lines(sys.stdin.buffer), decoder, sys.stdout.buffer)


if __name__ == "__main__":
    main()
