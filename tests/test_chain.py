"""Tests for the Gibbs chain driver."""

import pytest
import torch

from rbmcore import RBM, GibbsChain, UnitType


class RecordingEngine:
    """Duck-typed engine that records which activation calls were made."""

    def __init__(self, num_visible=3, num_hidden=2):
        self.generator = torch.Generator().manual_seed(0)
        self.calls = []
        for name, n_units in (("v1", num_visible), ("h1_a", num_hidden), ("h1_s", num_hidden),
                              ("v2_a", num_visible), ("v2_s", num_visible), ("h2_a", num_hidden),
                              ("h2_s", num_hidden)):
            setattr(self, name, torch.zeros(n_units))

    def _name_of(self, tensor):
        for name in ("v1", "h1_a", "h1_s", "v2_a", "v2_s", "h2_a", "h2_s"):
            if getattr(self, name) is tensor:
                return name
        return None

    def activate_hidden(self, v_a, v_s=None, h_a=None, h_s=None, compute_mean=True, compute_sample=True):
        self.calls.append(("hidden", self._name_of(v_a), self._name_of(h_a)))
        return h_a, h_s

    def activate_visible(self, h_a, h_s, v_a=None, v_s=None, compute_mean=True, compute_sample=True):
        self.calls.append(("visible", self._name_of(h_s), self._name_of(v_a)))
        return v_a, v_s


class TestGibbsChainOrder:
    """The chain must touch the buffers in CD-k order."""

    def test_cd1(self):
        engine = RecordingEngine()
        GibbsChain(engine, k=1).run(torch.ones(3))
        assert engine.calls == [("hidden", "v1", "h1_a"),
                                ("visible", "h1_s", "v2_a"),
                                ("hidden", "v2_a", "h2_a")]
        assert torch.equal(engine.v1, torch.ones(3))

    def test_cd3(self):
        engine = RecordingEngine()
        GibbsChain(engine, k=3).run(torch.ones(3))
        assert [call[0] for call in engine.calls] == ["hidden", "visible", "hidden"] + ["visible", "hidden"] * 2
        assert engine.calls[-2] == ("visible", "h2_s", "v2_a")

    def test_sampled_visible_input(self):
        engine = RecordingEngine()
        GibbsChain(engine, k=1, sample_visible_input=True).run(torch.ones(3))
        assert engine.calls[-1] == ("hidden", "v2_s", "h2_a")

    def test_invalid_k(self):
        with pytest.raises(ValueError, match="k must be at least 1"):
            GibbsChain(RecordingEngine(), k=0)


class TestGibbsChainOnRBM:
    """Running chains on an actual RBM."""

    @pytest.fixture
    def data(self):
        return torch.tensor([1., 0., 1., 1., 0., 0.])

    def test_run_fills_buffers(self, binary_rbm, data):
        GibbsChain(binary_rbm, k=2).run(data)
        assert torch.equal(binary_rbm.v1, data)
        for name in ("h1_s", "v2_s", "h2_s"):
            assert set(getattr(binary_rbm, name).unique().tolist()) <= {0.0, 1.0}
        for name in ("h1_a", "v2_a", "h2_a"):
            values = getattr(binary_rbm, name)
            assert ((values > 0) & (values < 1)).all()

    def test_positive_phase_matches_read_out(self, binary_rbm, data):
        GibbsChain(binary_rbm).run(data)
        torch.testing.assert_close(binary_rbm.h1_a, binary_rbm.activation_probabilities(data))

    def test_reproducible(self, data):
        results = []
        for _ in range(2):
            rbm = RBM(6, 4, seed=21)
            GibbsChain(rbm, k=5).run(data)
            results.append(rbm.v2_s.clone())
        assert torch.equal(results[0], results[1])

    def test_reconstruct_batches(self, binary_rbm):
        batch = torch.bernoulli(torch.full((4, 6), 0.5))
        reconstruction = GibbsChain(binary_rbm).reconstruct(batch)
        assert reconstruction.shape == (4, 6)
        assert torch.count_nonzero(binary_rbm.v2_a) == 0

    def test_gaussian_reconstruction(self):
        rbm = RBM(5, 3, visible_unit=UnitType.GAUSSIAN, hidden_unit=UnitType.RELU, seed=9)
        data = torch.randn(5)
        reconstruction = GibbsChain(rbm).reconstruct(data)
        assert reconstruction.shape == (5,)
        assert torch.isfinite(reconstruction).all()

    def test_free_running_sample(self, binary_rbm, data):
        chain = GibbsChain(binary_rbm)
        chain.run(data)
        h1 = binary_rbm.h1_a.clone()
        sample = chain.sample(n_steps=10)
        assert sample.shape == (6,)
        assert set(sample.unique().tolist()) <= {0.0, 1.0}
        assert torch.equal(binary_rbm.h1_a, h1)
        assert torch.equal(binary_rbm.v1, data)

    def test_sample_from_start(self, binary_rbm, data):
        sample = GibbsChain(binary_rbm).sample(n_steps=0, start=data)
        assert torch.equal(sample, data)
