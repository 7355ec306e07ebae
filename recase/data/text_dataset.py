"""Contiguous character minibatches for language-model training."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import torch

from recase.text.vocab import Vocabulary
from recase.utils.io import read_text

logger = logging.getLogger(__name__)

SPLITS = ("train", "val", "test")


def _to_batches(data: torch.Tensor, batch_size: int, seq_length: int) -> Tuple[List[torch.Tensor], List[torch.Tensor]]:
    chunk = batch_size * seq_length
    n = (data.numel() // chunk) * chunk
    if n == 0:
        raise ValueError(
            f"Text has {data.numel()} tokens, fewer than batch_size*seq_length={chunk}; use smaller values."
        )
    if n != data.numel():
        logger.info("cutting off end of data so that the batches/sequences divide evenly")
    data = data[:n]
    # Targets are the next character; the last one wraps around to the first.
    ydata = torch.roll(data, shifts=-1)
    xs = list(data.view(batch_size, -1).split(seq_length, dim=1))
    ys = list(ydata.view(batch_size, -1).split(seq_length, dim=1))
    return xs, ys


class CharSplitBatches:
    """
    Reads `input.txt` (and `val_input.txt` if present) from `data_dir`.

    The vocabulary is built from `input.txt` and saved to `vocab.json` on first use,
    then reused. Without a validation file the batches are split train/val/test by
    `split_fractions`; with one, validation batches come from it and test is empty.
    """

    def __init__(
        self,
        data_dir: str | Path,
        batch_size: int,
        seq_length: int,
        split_fractions: Sequence[float] = (0.9, 0.05, 0.05),
        vocab: Optional[Vocabulary] = None,
    ) -> None:
        for name, frac in zip(SPLITS, split_fractions):
            if not 0.0 <= float(frac) <= 1.0:
                raise ValueError(f"bad split fraction {frac} for {name}, not between 0 and 1")

        self.data_dir = Path(data_dir)
        self.batch_size = int(batch_size)
        self.seq_length = int(seq_length)

        text = read_text(self.data_dir / "input.txt")
        vocab_path = self.data_dir / "vocab.json"
        if vocab is None:
            if vocab_path.exists():
                vocab = Vocabulary.load(vocab_path)
            else:
                vocab = Vocabulary.build(text)
                vocab.save(vocab_path)
        self.vocab = vocab

        xs, ys = _to_batches(self._encode(text), self.batch_size, self.seq_length)
        val_path = self.data_dir / "val_input.txt"
        self.has_val_data = val_path.exists()
        if self.has_val_data:
            vxs, vys = _to_batches(self._encode(read_text(val_path)), self.batch_size, self.seq_length)
            self._batches = {"train": (xs, ys), "val": (vxs, vys), "test": ([], [])}
        else:
            n = len(xs)
            ntrain = int(n * float(split_fractions[0]))
            if float(split_fractions[2]) == 0:
                nval = n - ntrain
            else:
                nval = int(n * float(split_fractions[1]))
            self._batches = {
                "train": (xs[:ntrain], ys[:ntrain]),
                "val": (xs[ntrain : ntrain + nval], ys[ntrain : ntrain + nval]),
                "test": (xs[ntrain + nval :], ys[ntrain + nval :]),
            }
        self._pointer = {s: 0 for s in SPLITS}
        if len(xs) < 50:
            logger.warning("less than 50 batches in total; consider a smaller batch_size and/or seq_length")
        logger.info(
            "data load done. batches train: %d, val: %d, test: %d",
            self.num_batches("train"),
            self.num_batches("val"),
            self.num_batches("test"),
        )

    def _encode(self, text: str) -> torch.Tensor:
        return torch.tensor(self.vocab.encode(text), dtype=torch.long)

    def num_batches(self, split: str) -> int:
        return len(self._batches[split][0])

    def reset(self, split: str) -> None:
        self._pointer[split] = 0

    def next_batch(self, split: str) -> Tuple[torch.Tensor, torch.Tensor]:
        xs, ys = self._batches[split]
        if not xs:
            raise ValueError(f"Requested a batch for split {split!r}, but this split has no data")
        i = self._pointer[split]
        self._pointer[split] = (i + 1) % len(xs)
        return xs[i], ys[i]
