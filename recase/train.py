from __future__ import annotations

import argparse
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import torch
from torch import nn

from recase.config import get, load_yaml_config, save_yaml_config
from recase.data.text_dataset import CharSplitBatches
from recase.models.char_rnn import CharRNN, CharRNNConfig
from recase.models.checkpoint import save_checkpoint
from recase.utils.device import resolve_device
from recase.utils.io import write_json
from recase.utils.logging_setup import setup_logging
from recase.utils.repro import configure_determinism, seed_all


@dataclass
class TrainState:
    step: int = 0
    best_val_loss: float = float("inf")


def _nll(log_probs: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
    # log_probs: (B,T,V), targets: (B,T)
    return nn.functional.nll_loss(log_probs.reshape(-1, log_probs.size(-1)), targets.reshape(-1))


@torch.no_grad()
def _eval_loss(model: CharRNN, loader: CharSplitBatches, split: str, device: torch.device) -> float:
    n = loader.num_batches(split)
    if n == 0:
        return float("nan")
    model.eval()
    loader.reset(split)
    total = 0.0
    state = model.init_state(loader.batch_size, device)
    for _ in range(n):
        x, y = loader.next_batch(split)
        log_probs, state = model(x.to(device), state)
        total += float(_nll(log_probs, y.to(device)).item())
    return total / n


def is_new_best(val_loss: float, state: TrainState) -> bool:
    # Without validation data every epoch supersedes the previous best.
    if math.isnan(val_loss):
        return True
    return val_loss < state.best_val_loss


def build_model(cfg: Dict[str, Any], vocab_size: int) -> CharRNN:
    return CharRNN(
        CharRNNConfig(
            vocab_size=vocab_size,
            rnn_size=int(get(cfg, "model.rnn_size", 128)),
            num_layers=int(get(cfg, "model.num_layers", 2)),
            cell=str(get(cfg, "model.cell", "lstm")),
            dropout=float(get(cfg, "model.dropout", 0.0)),
        )
    )


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Train a character-level language model for case restoration.")
    ap.add_argument("--config", type=str, required=True, help="YAML config path.")
    ap.add_argument("--set", action="append", default=None, help="Override config keys, e.g. model.rnn_size=256")
    ap.add_argument("--run-dir", type=str, required=True, help="Run directory.")
    args = ap.parse_args(argv)

    cfg = load_yaml_config(args.config, overrides=args.set)
    setup_logging(str(get(cfg, "log_level", "INFO")))
    run_dir = Path(args.run_dir)
    (run_dir / "checkpoints").mkdir(parents=True, exist_ok=True)

    seed = int(get(cfg, "seed", 123))
    seed_all(seed)
    configure_determinism(bool(get(cfg, "deterministic", False)))
    device = resolve_device(str(get(cfg, "device", "auto")))

    loader = CharSplitBatches(
        str(get(cfg, "data.data_dir", "data")),
        batch_size=int(get(cfg, "train.batch_size", 50)),
        seq_length=int(get(cfg, "train.seq_length", 50)),
        split_fractions=[float(x) for x in get(cfg, "data.split_fractions", [0.95, 0.05, 0.0])],
    )
    model = build_model(cfg, loader.vocab.logit_size)
    model.to(device)

    opt = torch.optim.AdamW(
        model.parameters(),
        lr=float(get(cfg, "train.lr", 2e-3)),
        weight_decay=float(get(cfg, "train.weight_decay", 0.0)),
    )
    grad_clip = float(get(cfg, "train.grad_clip_norm", 5.0))
    epochs = int(get(cfg, "train.epochs", 1))
    log_every = int(get(cfg, "train.log_every_steps", 50))

    save_yaml_config(run_dir / "config_resolved.yaml", cfg)
    write_json(
        run_dir / "meta.json",
        {
            "created_at_unix": time.time(),
            "seed": seed,
            "device": str(device),
            "model": model.cfg.to_dict(),
            "vocab_size": len(loader.vocab),
        },
    )

    state = TrainState()
    for ep in range(1, epochs + 1):
        model.train()
        loader.reset("train")
        hidden = model.init_state(loader.batch_size, device)
        t0 = time.time()
        for _ in range(loader.num_batches("train")):
            state.step += 1
            x, y = loader.next_batch("train")
            # Truncated BPTT: carry the state across batches, not the graph.
            hidden = [h.detach() for h in hidden]

            opt.zero_grad(set_to_none=True)
            log_probs, hidden = model(x.to(device), hidden)
            loss = _nll(log_probs, y.to(device))
            loss.backward()
            if grad_clip > 0:
                torch.nn.utils.clip_grad_norm_(model.parameters(), max_norm=grad_clip)
            opt.step()

            if state.step % log_every == 0:
                dt = time.time() - t0
                print(f"epoch={ep} step={state.step} loss={loss.item():.4f} dt={dt:.1f}s")

        val_loss = _eval_loss(model, loader, "val", device)
        print(f"epoch={ep} val_loss={val_loss:.4f}")

        extra = {"step": state.step, "epoch": ep, "val_loss": val_loss, "config": cfg}
        save_checkpoint(run_dir / "checkpoints" / "last.pt", model, loader.vocab, extra)
        if is_new_best(val_loss, state):
            if not math.isnan(val_loss):
                state.best_val_loss = val_loss
            save_checkpoint(run_dir / "checkpoints" / "best.pt", model, loader.vocab, extra)


if __name__ == "__main__":
    main()
