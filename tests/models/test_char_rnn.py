from __future__ import annotations

import pytest
import torch

from recase.config import DecodeConfig
from recase.models.char_rnn import CharRNN, CharRNNConfig
from recase.text.beam_decode import BeamSearchDecoder
from recase.text.vocab import Vocabulary


def _model(cell: str = "lstm", layers: int = 2) -> CharRNN:
    torch.manual_seed(0)
    m = CharRNN(CharRNNConfig(vocab_size=7, rnn_size=8, num_layers=layers, cell=cell))
    return m.eval()


@pytest.mark.parametrize("cell, expected", [("lstm", 4), ("gru", 2), ("rnn", 2)])
def test_state_layout(cell: str, expected: int) -> None:
    m = _model(cell)
    state = m.init_state(3)
    assert m.state_size == expected
    assert len(state) == expected
    assert all(s.shape == (3, 8) and torch.all(s == 0) for s in state)


def test_step_returns_normalized_log_probs() -> None:
    m = _model()
    states, log_probs = m.step(torch.tensor([1, 2, 3]), m.init_state(3))
    assert log_probs.shape == (3, 7)
    assert torch.allclose(log_probs.exp().sum(dim=-1), torch.ones(3), atol=1e-5)
    assert [s.shape for s in states] == [(3, 8)] * 4
    assert not log_probs.requires_grad


def test_step_rows_are_independent() -> None:
    m = _model("gru")
    _, batched = m.step(torch.tensor([1, 5]), m.init_state(2))
    _, single = m.step(torch.tensor([5]), m.init_state(1))
    assert torch.allclose(batched[1], single[0], atol=1e-6)


def test_step_matches_forward() -> None:
    m = _model()
    ids = torch.tensor([[1, 4, 2]])
    full, _ = m(ids)

    state = m.init_state(1)
    for t in range(ids.size(1)):
        state, lp = m.step(ids[:, t], state)
        assert torch.allclose(lp[0], full[0, t], atol=1e-5)


def test_bad_config() -> None:
    with pytest.raises(ValueError, match="cell"):
        CharRNN(CharRNNConfig(vocab_size=4, cell="transformer"))
    with pytest.raises(ValueError, match="state tensors"):
        _model().step(torch.tensor([1]), [torch.zeros(1, 8)])


def test_decoder_runs_on_char_rnn() -> None:
    vocab = Vocabulary({"<unk>": 0, " ": 1, "a": 2, "A": 3, "b": 4, "B": 5, ".": 6})
    m = _model()
    dec = BeamSearchDecoder(m, vocab, m.init_state(1), DecodeConfig.create(beam_size=3))

    out = dec.decode("ab ba.")

    assert out.lower() == "ab ba."
    assert dec.decode("ab ba.") == out
