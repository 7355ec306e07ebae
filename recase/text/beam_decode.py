"""
Forced re-casing beam search over a character language model.

At every input position the decoder may emit the input token itself or, when it
differs and the model knows it, the token's uppercase form. Candidate strings are
scored by the sum of the model's (temperature-scaled) log-probabilities and pruned
with a threshold rule: everything scoring at least the K-th best score survives,
so exact ties at the boundary all stay in the beam.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import torch

from recase.config import DecodeConfig
from recase.text.tokenizer import detokenize, tokenize, upper_variant
from recase.text.vocab import Vocabulary
from recase.utils.logging_setup import visible

logger = logging.getLogger(__name__)

State = List[torch.Tensor]


class StepOracle(Protocol):
    """
    prev_ids: (B,) long tensor, states: list of (B, H) tensors.
    Returns new states (same layout) and (B, V) log-probabilities; row k of every
    output belongs to row k of the input.
    """

    def step(self, prev_ids: torch.Tensor, states: Sequence[torch.Tensor]) -> Tuple[State, torch.Tensor]:
        ...


def clone_state(state: Sequence[torch.Tensor]) -> State:
    return [t.clone() for t in state]


@dataclass
class Hypothesis:
    tokens: Tuple[str, ...] = ()
    score: float = 0.0
    state: State = field(default_factory=list)
    last_token: Optional[str] = None

    @property
    def text(self) -> str:
        return detokenize(list(self.tokens))

    @property
    def is_empty(self) -> bool:
        return len(self.tokens) == 0

    def extend(self, token: str, score: float, state: State) -> "Hypothesis":
        return Hypothesis(tokens=self.tokens + (token,), score=score, state=state, last_token=token)


Beam = Dict[int, Hypothesis]


@dataclass
class DecodeResult:
    text: str
    score: float
    steps: int
    oracle_calls: int


class BeamSearchDecoder:
    def __init__(
        self,
        oracle: StepOracle,
        vocab: Vocabulary,
        default_state: Sequence[torch.Tensor],
        config: DecodeConfig = DecodeConfig(),
    ) -> None:
        self.oracle = oracle
        self.vocab = vocab
        self.default_state = clone_state(default_state)
        self.beam_size = max(1, int(config.beam_size))
        self.temperature = float(config.temperature)
        self.oracle_calls = 0

    def initial_beam(self) -> Beam:
        return {0: Hypothesis(state=clone_state(self.default_state))}

    def candidates_for(self, token: str) -> List[str]:
        out = [token]
        up = upper_variant(token)
        if up != token and up in self.vocab:
            out.append(up)
        return out

    def _score_batch(self, beam: Beam) -> Dict[int, Tuple[int, State, torch.Tensor]]:
        """One oracle call for every non-empty hypothesis; maps beam key -> (row, states, log_probs)."""
        keys = [k for k, hyp in beam.items() if not hyp.is_empty]
        if not keys:
            return {}

        first = beam[keys[0]].state
        prev_ids = torch.tensor(
            [self.vocab.id_of(beam[k].last_token) for k in keys],
            dtype=torch.long,
            device=first[0].device if first else None,
        )
        states = [torch.cat([beam[k].state[i] for k in keys], dim=0) for i in range(len(first))]

        new_states, log_probs = self.oracle.step(prev_ids, states)
        self.oracle_calls += 1
        if log_probs.size(0) != len(keys):
            raise ValueError(f"Oracle returned {log_probs.size(0)} rows for a batch of {len(keys)}")
        log_probs = (log_probs / self.temperature).detach().cpu()
        return {k: (row, new_states, log_probs) for row, k in enumerate(keys)}

    def expand(self, beam: Beam, token: str) -> Beam:
        scored = self._score_batch(beam)
        cands = self.candidates_for(token)
        debug = logger.isEnabledFor(logging.DEBUG)
        if debug:
            logger.debug("char(%s)", visible(token))

        out: Beam = {}
        for key, hyp in beam.items():
            if debug:
                logger.debug("sco=%s", hyp.score)
            for c in cands:
                if key in scored:
                    row, new_states, log_probs = scored[key]
                    lp = float(log_probs[row, self.vocab.id_of(c)].item())
                    score = hyp.score + lp
                    state = [s[row : row + 1].clone() for s in new_states]
                    if debug:
                        logger.debug("\ttesting %s score = %s", visible(c), lp)
                else:
                    # No context yet: the first token is taken as-is, unscored.
                    score = hyp.score
                    state = clone_state(self.default_state)
                    if debug:
                        logger.debug("\ttesting %s", visible(c))
                out[len(out)] = hyp.extend(c, score, state)
        return out

    def threshold(self, scores: Sequence[float]) -> float:
        ordered = sorted(scores)
        return ordered[max(len(ordered) - self.beam_size, 0)]

    def prune(self, candidates: Beam) -> Beam:
        if not candidates:
            return {}
        thr = self.threshold([h.score for h in candidates.values()])
        survivors = {k: h for k, h in candidates.items() if h.score >= thr}
        logger.debug("beam: %d/%d survive, threshold=%s", len(survivors), len(candidates), thr)
        return survivors

    def search(self, tokens: Sequence[str]) -> Beam:
        beam = self.initial_beam()
        for tok in tokens:
            beam = self.prune(self.expand(beam, tok))
        return beam

    @staticmethod
    def best(beam: Beam) -> Hypothesis:
        """Highest score; among equal scores the lowest key, i.e. the earliest generated candidate."""
        top = max(h.score for h in beam.values())
        return beam[min(k for k, h in beam.items() if h.score == top)]

    def decode_tokens(self, tokens: Sequence[str]) -> DecodeResult:
        calls_before = self.oracle_calls
        if not tokens:
            return DecodeResult(text="", score=0.0, steps=0, oracle_calls=0)
        best = self.best(self.search(tokens))
        return DecodeResult(
            text=best.text.strip(),
            score=best.score,
            steps=len(tokens),
            oracle_calls=self.oracle_calls - calls_before,
        )

    def decode(self, line: str | bytes) -> str:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("processing %s...", visible(line if isinstance(line, str) else repr(line)))
        return self.decode_tokens(tokenize(line)).text
