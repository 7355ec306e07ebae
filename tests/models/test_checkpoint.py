from __future__ import annotations

import pytest
import torch

from recase.models.char_rnn import CharRNN, CharRNNConfig
from recase.models.checkpoint import load_checkpoint, save_checkpoint
from recase.text.vocab import Vocabulary


def test_save_and_load_checkpoint(tmp_path) -> None:
    vocab = Vocabulary.build("Hello world")
    torch.manual_seed(0)
    model = CharRNN(CharRNNConfig(vocab_size=vocab.logit_size, rnn_size=6, num_layers=1, cell="gru")).eval()
    path = tmp_path / "ckpt" / "best.pt"
    save_checkpoint(path, model, vocab, {"epoch": 3})

    loaded, loaded_vocab, meta = load_checkpoint(path, torch.device("cpu"))

    assert loaded_vocab.to_dict() == vocab.to_dict()
    assert meta == {"epoch": 3}
    assert not loaded.training
    ids = torch.tensor([vocab.id_of("H")])
    _, expected = model.step(ids, model.init_state(1))
    _, got = loaded.step(ids, loaded.init_state(1))
    assert torch.allclose(expected, got)


def test_missing_checkpoint_is_fatal(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_checkpoint(tmp_path / "missing.pt", torch.device("cpu"))


def test_incomplete_checkpoint_is_fatal(tmp_path) -> None:
    path = tmp_path / "bad.pt"
    torch.save({"model": {}, "model_config": {"vocab_size": 3}}, path)
    with pytest.raises(KeyError, match="vocab"):
        load_checkpoint(path, torch.device("cpu"))
