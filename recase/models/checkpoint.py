from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import torch

from recase.models.char_rnn import CharRNN, CharRNNConfig
from recase.text.vocab import Vocabulary

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = ("model", "model_config", "vocab")


def save_checkpoint(
    path: str | Path,
    model: CharRNN,
    vocab: Vocabulary,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    ckpt = {
        "model": model.state_dict(),
        "model_config": model.cfg.to_dict(),
        "vocab": vocab.to_dict(),
    }
    ckpt.update(extra or {})
    torch.save(ckpt, path)


def load_checkpoint(path: str | Path, device: torch.device) -> Tuple[CharRNN, Vocabulary, Dict[str, Any]]:
    """
    Load model + vocabulary; the model comes back on `device` in eval mode.
    Anything missing is fatal here, before a single line is decoded.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Checkpoint {path} does not exist")
    # Config and vocab are stored as plain dicts next to the weights.
    ckpt = torch.load(path, map_location="cpu", weights_only=False)
    for k in _REQUIRED_KEYS:
        if k not in ckpt:
            raise KeyError(f"Checkpoint {path} is missing '{k}'")

    vocab = Vocabulary(ckpt["vocab"])
    cfg = CharRNNConfig.from_dict(ckpt["model_config"])
    if cfg.vocab_size < vocab.logit_size:
        raise ValueError(f"Model vocab_size={cfg.vocab_size} is smaller than vocabulary ids ({vocab.logit_size})")

    model = CharRNN(cfg)
    model.load_state_dict(ckpt["model"], strict=True)
    model.to(device)
    model.eval()
    logger.info("loaded %s: %s with %d layers of %d, vocab=%d", path, cfg.cell, cfg.num_layers, cfg.rnn_size, len(vocab))
    meta = {k: v for k, v in ckpt.items() if k not in _REQUIRED_KEYS}
    return model, vocab, meta
