"""Shared fixtures: a tiny vocabulary and a table-driven step oracle."""

from __future__ import annotations

from typing import Dict, List, Sequence

import pytest
import torch

from recase.text.vocab import Vocabulary


class TableOracle:
    """
    Log-probabilities depend only on the previous token id; rows not in the table
    get `default` everywhere. States are incremented so tests can see them flow.
    """

    def __init__(self, table: Dict[int, Sequence[float]], width: int, default: float = -5.0) -> None:
        self.table = table
        self.width = width
        self.default = default
        self.calls: List[List[int]] = []

    def step(self, prev_ids: torch.Tensor, states: Sequence[torch.Tensor]):
        ids = prev_ids.tolist()
        self.calls.append(ids)
        rows = [list(self.table.get(i, [self.default] * self.width)) for i in ids]
        return [s + 1.0 for s in states], torch.tensor(rows, dtype=torch.float32)


@pytest.fixture
def small_vocab() -> Vocabulary:
    return Vocabulary({"a": 1, "A": 2, "b": 3, "<unk>": 4})


@pytest.fixture
def table_oracle():
    return TableOracle


@pytest.fixture
def zero_state() -> List[torch.Tensor]:
    return [torch.zeros(1, 3), torch.zeros(1, 3)]
