from __future__ import annotations

from numbers import Integral

import torch
from torch import nn

from .checks import nan_check_deep
from .types import LayerFloat, TabularBatchFloat, VectorFloat, WeightMatrixFloat
from .units import UnitType, check_unit_types, mean_activation, sample_from_mean


class RBM(nn.Module):
    def __init__(self,
                 num_visible: int,
                 num_hidden: int,
                 visible_unit: UnitType | str = UnitType.BINARY,
                 hidden_unit: UnitType | str = UnitType.BINARY,
                 dtype: torch.dtype = torch.float32,
                 device: str | torch.device = "cpu",
                 seed: int | None = None):
        """Restricted Boltzmann Machine with configurable unit types.

        This class holds the parameters, the state of the Gibbs chain used in Contrastive Divergence and the functions
        computing activations/samples of one layer given the other. It does *not* train itself: A training driver
        reads the chain buffers after running the chain (see rbmcore.chain) and updates w, b and c directly.

        Instances cannot be copied or pickled. Two copies would run independent Gibbs chains while looking like the
        same model. If you really need a duplicate, construct a new RBM and use load_state_dict, which transfers the
        parameters only. For the same reason, dtype and device cannot be changed after construction: to(), double(),
        cuda() and friends raise TypeError.

        Parameters:
            num_visible: Number of visible units.
            num_hidden: Number of hidden units.
            visible_unit: Distribution family of the visible layer. One of BINARY, GAUSSIAN, RELU.
            hidden_unit: Distribution family of the hidden layer. One of BINARY, RELU, RELU6, RELU1, SOFTMAX.
            dtype: Floating point precision of all parameters and buffers.
            device: Where all tensors live. Fixed for the lifetime of the instance, since the random generator is
                    bound to it.
            seed: Seed for the instance's random generator, which drives weight initialization as well as all
                  sampling. Pass None for a nondeterministic seed.
        """
        for name, value in (("num_visible", num_visible), ("num_hidden", num_hidden)):
            if isinstance(value, bool) or not isinstance(value, Integral) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}.")
        if not dtype.is_floating_point:
            raise ValueError(f"dtype must be a floating point type, got {dtype}.")
        visible_unit, hidden_unit = check_unit_types(visible_unit, hidden_unit)

        super().__init__()
        self._num_visible = int(num_visible)
        self._num_hidden = int(num_hidden)
        self._visible_unit = visible_unit
        self._hidden_unit = hidden_unit

        self.generator = torch.Generator(device=device)
        if seed is None:
            self.generator.seed()
        else:
            self.generator.manual_seed(seed)

        def zeros(n_units: int) -> torch.Tensor:
            return torch.zeros(n_units, dtype=dtype, device=device)

        # zero-mean gaussian with standard deviation 0.1
        self.w = nn.Parameter(torch.randn(self._num_visible, self._num_hidden, generator=self.generator, dtype=dtype,
                                          device=device) * 0.1)
        self.b = nn.Parameter(zeros(self._num_hidden))
        self.c = nn.Parameter(zeros(self._num_visible))

        # Gibbs chain state: round 1 starts from the data in v1, round 2 holds the last CD step
        for name, n_units in (("v1", self._num_visible),
                              ("h1_a", self._num_hidden), ("h1_s", self._num_hidden),
                              ("v2_a", self._num_visible), ("v2_s", self._num_visible),
                              ("h2_a", self._num_hidden), ("h2_s", self._num_hidden),
                              ("hidden_scratch", self._num_hidden), ("visible_scratch", self._num_visible)):
            self.register_buffer(name, zeros(n_units), persistent=False)

    @property
    def num_visible(self) -> int:
        return self._num_visible

    @property
    def num_hidden(self) -> int:
        return self._num_hidden

    @property
    def visible_unit(self) -> UnitType:
        return self._visible_unit

    @property
    def hidden_unit(self) -> UnitType:
        return self._hidden_unit

    @property
    def weights(self) -> WeightMatrixFloat:
        return self.w

    @property
    def hidden_bias(self) -> VectorFloat:
        return self.b

    @property
    def visible_bias(self) -> VectorFloat:
        return self.c

    def input_size(self) -> int:
        return self._num_visible

    def output_size(self) -> int:
        return self._num_hidden

    def display(self):
        print(f"RBM: {self._num_visible} -> {self._num_hidden} "
              f"({self._visible_unit.value} -> {self._hidden_unit.value})")

    def extra_repr(self) -> str:
        return (f"num_visible={self._num_visible}, num_hidden={self._num_hidden}, "
                f"visible_unit={self._visible_unit.name}, hidden_unit={self._hidden_unit.name}")

    def __copy__(self):
        raise TypeError("RBM instances cannot be copied. Construct a new RBM and use load_state_dict instead.")

    def __deepcopy__(self, memo):
        raise TypeError("RBM instances cannot be copied. Construct a new RBM and use load_state_dict instead.")

    def __reduce_ex__(self, protocol):
        raise TypeError("RBM instances cannot be pickled. Save the state_dict instead.")

    def _apply(self, fn, *args, **kwargs):
        # the generator cannot follow a device move, and precision is part of the configuration
        raise TypeError("dtype and device of an RBM are fixed at construction. Construct a new RBM with the desired "
                        "dtype/device and use load_state_dict instead.")

    @staticmethod
    def _pre_activation(inputs: LayerFloat,
                        bias: VectorFloat,
                        weights: torch.Tensor,
                        scratch: VectorFloat | None) -> LayerFloat:
        """bias + inputs @ weights, where weights are oriented (input units x output units).

        Single vectors are accumulated into scratch if it is given. Batches always get fresh storage.
        """
        if inputs.dim() == 1:
            if scratch is None:
                return torch.addmv(bias, weights.T, inputs)
            return torch.addmv(bias, weights.T, inputs, out=scratch)
        return torch.addmm(bias, inputs, weights)

    @staticmethod
    def _store(target: torch.Tensor | None,
               values: torch.Tensor) -> torch.Tensor:
        if target is None:
            return values
        target.copy_(values)
        return target

    def _activate(self,
                  unit_type: UnitType,
                  inputs: LayerFloat,
                  bias: VectorFloat,
                  weights: torch.Tensor,
                  scratch: VectorFloat | None,
                  mean_out: LayerFloat | None,
                  sample_out: LayerFloat | None,
                  compute_mean: bool,
                  compute_sample: bool,
                  layer_name: str) -> tuple[LayerFloat | None, LayerFloat | None]:
        """Shared implementation of activate_hidden and activate_visible."""
        if not (compute_mean or compute_sample):
            return mean_out, sample_out
        inputs = inputs.to(dtype=weights.dtype, device=weights.device)
        pre_activation = self._pre_activation(inputs, bias, weights, scratch)
        # sigmoid and the clipped ReLUs would squash an overflow back into finite values
        nan_check_deep(pre_activation, f"{layer_name} pre-activations")

        if compute_mean:
            mean = mean_out = self._store(mean_out, mean_activation(unit_type, pre_activation))
        else:
            # only needed to sample from, mean_out stays untouched
            mean = mean_activation(unit_type, pre_activation)
        nan_check_deep(mean, f"{layer_name} activations")

        if compute_sample:
            sample_out = self._store(sample_out, sample_from_mean(unit_type, mean, self.generator))
            nan_check_deep(sample_out, f"{layer_name} samples")
        return mean_out, sample_out

    @torch.no_grad()
    def activate_hidden(self,
                        v_a: LayerFloat,
                        v_s: LayerFloat | None = None,
                        h_a: LayerFloat | None = None,
                        h_s: LayerFloat | None = None,
                        compute_mean: bool = True,
                        compute_sample: bool = True,
                        bias: VectorFloat | None = None,
                        weights: WeightMatrixFloat | None = None,
                        scratch: VectorFloat | None = None) -> tuple[LayerFloat | None, LayerFloat | None]:
        """Compute p(h|v) and/or sample from it.

        The pre-activation is b + v_a @ w. Pass either the visible means or the visible samples as v_a, depending on
        which variant of CD you want. v_s is only there to mirror activate_visible and is ignored.

        Parameters:
            v_a: Visible input, a vector of num_visible units or a (batch x num_visible) batch.
            v_s: Ignored.
            h_a: If given, the mean-field activations are written into this tensor in place. Else a new tensor is
                 returned.
            h_s: Same as h_a, for the samples.
            compute_mean: If False, h_a is left untouched.
            compute_sample: If False, h_s is left untouched. If True together with compute_mean, samples are drawn
                            from the very mean-field activations returned in h_a.
            bias, weights: Use these instead of the instance's b and w. They are only read.
            scratch: Storage for the pre-activation of a single vector. Defaults to the instance's scratch buffer if
                     the instance weights are used.

        Returns:
            (h_a, h_s). Skipped outputs are returned as they were passed in (so possibly None).

        Raises:
            NumericalDivergenceError: If any computed output is not finite.
        """
        if weights is None:
            weights = self.w
            if scratch is None:
                scratch = self.hidden_scratch
        bias = self.b if bias is None else bias
        return self._activate(self._hidden_unit, v_a, bias, weights, scratch, h_a, h_s, compute_mean, compute_sample,
                              "hidden")

    @torch.no_grad()
    def activate_visible(self,
                         h_a: LayerFloat | None,
                         h_s: LayerFloat,
                         v_a: LayerFloat | None = None,
                         v_s: LayerFloat | None = None,
                         compute_mean: bool = True,
                         compute_sample: bool = True,
                         bias: VectorFloat | None = None,
                         weights: WeightMatrixFloat | None = None,
                         scratch: VectorFloat | None = None) -> tuple[LayerFloat | None, LayerFloat | None]:
        """Compute p(v|h) and/or sample from it.

        The mirror image of activate_hidden: The pre-activation is c + w @ h_s, i.e. the *hidden samples* are the
        input and h_a is ignored. For GAUSSIAN visible units, v_a is the noise-free reconstruction while v_s adds unit
        variance noise to it.

        Parameters: See activate_hidden, with the roles of the layers swapped. weights must still be oriented
                    (num_visible x num_hidden).
        """
        if weights is None:
            weights = self.w
            if scratch is None:
                scratch = self.visible_scratch
        bias = self.c if bias is None else bias
        return self._activate(self._visible_unit, h_s, bias, weights.T, scratch, v_a, v_s, compute_mean,
                              compute_sample, "visible")

    @torch.no_grad()
    def activation_probabilities(self,
                                 sample,
                                 out: LayerFloat | None = None) -> VectorFloat | TabularBatchFloat:
        """Hidden mean-field activations for an input that is not part of the Gibbs chain.

        Meant for inference, e.g. computing features for a downstream model. The chain buffers are left alone and no
        samples are drawn, so the random generator does not advance either.

        Parameters:
            sample: Anything torch.as_tensor understands (tensor, numpy array, list) with num_visible entries, or a
                    batch of such.
            out: Optional tensor to write the result to.
        """
        item = torch.as_tensor(sample, dtype=self.w.dtype, device=self.w.device)
        result, _ = self.activate_hidden(item, item, h_a=out, compute_sample=False)
        return result
