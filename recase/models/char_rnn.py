from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import torch
from torch import nn

_CELLS = {"lstm": nn.LSTMCell, "gru": nn.GRUCell, "rnn": nn.RNNCell}


@dataclass(frozen=True)
class CharRNNConfig:
    vocab_size: int
    rnn_size: int = 128
    num_layers: int = 2
    cell: str = "lstm"  # lstm | gru | rnn
    dropout: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CharRNNConfig":
        return cls(
            vocab_size=int(d["vocab_size"]),
            rnn_size=int(d.get("rnn_size", 128)),
            num_layers=int(d.get("num_layers", 2)),
            cell=str(d.get("cell", "lstm")),
            dropout=float(d.get("dropout", 0.0)),
        )


class CharRNN(nn.Module):
    """
    Character language model built from stacked recurrent cells.

    State is a flat list of (B, rnn_size) tensors: [c, h] per layer for LSTM,
    [h] per layer otherwise. Dropout is applied between layers and before the
    output projection.
    """

    def __init__(self, cfg: CharRNNConfig):
        super().__init__()
        if cfg.cell not in _CELLS:
            raise ValueError(f"Unknown cell: {cfg.cell} (expected one of {sorted(_CELLS)})")
        if cfg.num_layers < 1:
            raise ValueError(f"num_layers must be >= 1, got {cfg.num_layers}")
        self.cfg = cfg
        self.embed = nn.Embedding(cfg.vocab_size, cfg.rnn_size)
        cell_cls = _CELLS[cfg.cell]
        self.cells = nn.ModuleList([cell_cls(cfg.rnn_size, cfg.rnn_size) for _ in range(cfg.num_layers)])
        self.drop = nn.Dropout(cfg.dropout)
        self.proj = nn.Linear(cfg.rnn_size, cfg.vocab_size)

    @property
    def is_lstm(self) -> bool:
        return self.cfg.cell == "lstm"

    @property
    def state_size(self) -> int:
        return self.cfg.num_layers * (2 if self.is_lstm else 1)

    def init_state(self, batch_size: int = 1, device: Optional[torch.device] = None) -> List[torch.Tensor]:
        if device is None:
            device = self.proj.weight.device
        return [torch.zeros(batch_size, self.cfg.rnn_size, device=device) for _ in range(self.state_size)]

    def _cell_step(self, x: torch.Tensor, states: Sequence[torch.Tensor]) -> Tuple[List[torch.Tensor], torch.Tensor]:
        # x: (B,D) embedded input for one timestep
        new_states: List[torch.Tensor] = []
        h = x
        for layer, cell in enumerate(self.cells):
            if layer > 0:
                h = self.drop(h)
            if self.is_lstm:
                c_prev, h_prev = states[2 * layer], states[2 * layer + 1]
                h, c = cell(h, (h_prev, c_prev))
                new_states.extend([c, h])
            else:
                h = cell(h, states[layer])
                new_states.append(h)
        logits = self.proj(self.drop(h))
        return new_states, torch.log_softmax(logits, dim=-1)

    def forward(
        self, ids: torch.Tensor, states: Optional[Sequence[torch.Tensor]] = None
    ) -> Tuple[torch.Tensor, List[torch.Tensor]]:
        """
        ids: (B,T) -> log_probs (B,T,V) and the states after the last timestep.
        """
        if ids.dim() != 2:
            raise ValueError(f"Expected (B,T), got {tuple(ids.shape)}")
        cur = list(states) if states is not None else self.init_state(ids.size(0), ids.device)
        x = self.embed(ids)  # (B,T,D)
        outs = []
        for t in range(ids.size(1)):
            cur, lp = self._cell_step(x[:, t], cur)
            outs.append(lp)
        return torch.stack(outs, dim=1), cur

    @torch.no_grad()
    def step(self, prev_ids: torch.Tensor, states: Sequence[torch.Tensor]) -> Tuple[List[torch.Tensor], torch.Tensor]:
        """One batched timestep: prev_ids (B,), states list of (B,H) -> (new states, (B,V) log-probs)."""
        if len(states) != self.state_size:
            raise ValueError(f"Expected {self.state_size} state tensors, got {len(states)}")
        x = self.embed(prev_ids.to(self.proj.weight.device).long())
        return self._cell_step(x, states)
