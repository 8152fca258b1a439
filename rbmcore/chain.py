"""Running Gibbs chains on an RBM's buffers.

This is the sampling half of a Contrastive Divergence (CD-k) training step: After GibbsChain.run, the engine's buffers
hold everything needed to compute the positive (v1, h1) and negative (v2, h2) statistics. Computing gradients from those
and updating the parameters is up to the training driver.

GibbsChain works with anything that looks like an RBM (see ActivationEngine), so it does not care about unit types.
"""
from __future__ import annotations

from typing import Protocol

import torch

from .types import LayerFloat, VectorFloat


class ActivationEngine(Protocol):
    generator: torch.Generator

    v1: VectorFloat
    h1_a: VectorFloat
    h1_s: VectorFloat
    v2_a: VectorFloat
    v2_s: VectorFloat
    h2_a: VectorFloat
    h2_s: VectorFloat

    def activate_hidden(self,
                        v_a: LayerFloat,
                        v_s: LayerFloat | None = None,
                        h_a: LayerFloat | None = None,
                        h_s: LayerFloat | None = None,
                        compute_mean: bool = True,
                        compute_sample: bool = True) -> tuple[LayerFloat | None, LayerFloat | None]:
        ...

    def activate_visible(self,
                         h_a: LayerFloat | None,
                         h_s: LayerFloat,
                         v_a: LayerFloat | None = None,
                         v_s: LayerFloat | None = None,
                         compute_mean: bool = True,
                         compute_sample: bool = True) -> tuple[LayerFloat | None, LayerFloat | None]:
        ...


class GibbsChain:
    def __init__(self,
                 engine: ActivationEngine,
                 k: int = 1,
                 sample_visible_input: bool = False):
        """Gibbs sampling driver for CD-k.

        Parameters:
            engine: The model whose chain buffers are used. Usually an rbmcore.RBM.
            k: Number of Gibbs steps per run. One step means sampling h given v *and* then v given h.
            sample_visible_input: If True, hidden units are computed from the sampled reconstructions v2_s. Else we use
                                  the reconstruction means v2_a, which gives less noisy statistics.
        """
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}.")
        self.engine = engine
        self.k = k
        self.sample_visible_input = sample_visible_input

    def _visible_input(self) -> VectorFloat:
        return self.engine.v2_s if self.sample_visible_input else self.engine.v2_a

    def run(self,
            visible: VectorFloat):
        """Run k Gibbs steps starting from a data vector, filling all chain buffers of the engine.

        Afterwards, v1/h1_a/h1_s hold the positive phase and v2_a/v2_s/h2_a/h2_s the state after the last step.
        """
        engine = self.engine
        engine.v1.copy_(visible)

        engine.activate_hidden(engine.v1, engine.v1, engine.h1_a, engine.h1_s)
        engine.activate_visible(engine.h1_a, engine.h1_s, engine.v2_a, engine.v2_s)
        engine.activate_hidden(self._visible_input(), engine.v2_s, engine.h2_a, engine.h2_s)

        for _ in range(self.k - 1):
            engine.activate_visible(engine.h2_a, engine.h2_s, engine.v2_a, engine.v2_s)
            engine.activate_hidden(self._visible_input(), engine.v2_s, engine.h2_a, engine.h2_s)

    def reconstruct(self,
                    visible: LayerFloat) -> LayerFloat:
        """One pass up and down, returning the mean of p(v|h).

        Works on batches as well and does not touch the chain buffers.
        """
        _, hidden = self.engine.activate_hidden(visible, visible, compute_mean=False)
        reconstruction, _ = self.engine.activate_visible(None, hidden, compute_sample=False)
        return reconstruction

    def sample(self,
               n_steps: int,
               start: VectorFloat | None = None) -> VectorFloat:
        """Let the chain run freely for a while and return the final visible sample.

        Parameters:
            n_steps: Number of Gibbs steps to run.
            start: Visible vector to start from. If None, we start from uniform noise in [0, 1), drawn from the engine's
                   own generator.

        Only the round-2 buffers (v2_*, h2_*) are overwritten, so the positive phase of the last run survives.
        """
        engine = self.engine
        if start is None:
            start = torch.rand(engine.v2_s.shape, generator=engine.generator, dtype=engine.v2_s.dtype,
                               device=engine.v2_s.device)
        engine.v2_s.copy_(start)
        engine.v2_a.copy_(start)
        for _ in range(n_steps):
            engine.activate_hidden(self._visible_input(), engine.v2_s, engine.h2_a, engine.h2_s)
            engine.activate_visible(engine.h2_a, engine.h2_s, engine.v2_a, engine.v2_s)
        return engine.v2_s.clone()
