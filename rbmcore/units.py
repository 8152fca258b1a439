"""Unit types, i.e. the distribution families a layer of an RBM can use.

Each unit type defines two things: A mean-field nonlinearity mapping pre-activations to the expected unit states, and a
way of drawing samples given those expected states. Both are looked up once per call from the tables at the bottom of
this module, and then applied to the entire layer at once.

All functions here work on single vectors as well as batches of vectors (units along the last axis).
"""
from __future__ import annotations

from collections.abc import Callable
from enum import Enum

import torch

from .types import LayerFloat


class UnitType(Enum):
    BINARY = "binary"
    GAUSSIAN = "gaussian"
    RELU = "relu"
    RELU6 = "relu6"
    RELU1 = "relu1"
    SOFTMAX = "softmax"

    @classmethod
    def parse(cls,
              unit_type: UnitType | str) -> UnitType:
        """Accept either a UnitType or its (case-insensitive) name, e.g. 'binary' or 'ReLU6'."""
        if isinstance(unit_type, cls):
            return unit_type
        try:
            return cls(str(unit_type).lower())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown unit type {unit_type!r}. Allowed are {allowed}.") from None


VISIBLE_UNIT_TYPES = frozenset({UnitType.BINARY, UnitType.GAUSSIAN, UnitType.RELU})
HIDDEN_UNIT_TYPES = frozenset({UnitType.BINARY, UnitType.RELU, UnitType.RELU6, UnitType.RELU1, UnitType.SOFTMAX})


def check_unit_types(visible_unit: UnitType | str,
                     hidden_unit: UnitType | str) -> tuple[UnitType, UnitType]:
    """Parse and validate a (visible, hidden) unit type pairing.

    Raises ValueError if either layer asks for a unit type it does not support.
    """
    visible_unit = UnitType.parse(visible_unit)
    hidden_unit = UnitType.parse(hidden_unit)
    if visible_unit not in VISIBLE_UNIT_TYPES:
        raise ValueError(f"Unsupported visible unit type {visible_unit.name}. Allowed are "
                         f"{sorted(unit.name for unit in VISIBLE_UNIT_TYPES)}.")
    if hidden_unit not in HIDDEN_UNIT_TYPES:
        raise ValueError(f"Unsupported hidden unit type {hidden_unit.name}. Allowed are "
                         f"{sorted(unit.name for unit in HIDDEN_UNIT_TYPES)}.")
    return visible_unit, hidden_unit


def bernoulli(probabilities: LayerFloat,
              generator: torch.Generator | None = None) -> LayerFloat:
    """Binary samples with the given probabilities of being 1."""
    return torch.bernoulli(probabilities, generator=generator)


def _standard_normal(like: torch.Tensor,
                     generator: torch.Generator | None) -> torch.Tensor:
    return torch.randn(like.shape, generator=generator, dtype=like.dtype, device=like.device)


def logistic_noise(values: LayerFloat,
                   generator: torch.Generator | None = None) -> LayerFloat:
    """Add zero-mean Gaussian noise whose standard deviation is the logistic sigmoid of each value.

    NOTE this is only a rough approximation of sampling from (noisy) rectified linear units. It is kept as is so that
    results stay comparable with models trained this way.
    """
    return values + torch.sigmoid(values) * _standard_normal(values, generator)


def ranged_noise(values: LayerFloat,
                 max_value: float,
                 generator: torch.Generator | None = None) -> LayerFloat:
    """Add unit Gaussian noise, keeping results inside [0, max_value].

    Values sitting exactly on either bound stay where they are. Like logistic_noise, this is a crude stand-in for a
    proper sampler of bounded rectified units.
    """
    noisy = torch.clamp(values + _standard_normal(values, generator), 0.0, max_value)
    on_bound = (values == 0) | (values == max_value)
    return torch.where(on_bound, values, noisy)


def gaussian_noise(values: LayerFloat,
                   generator: torch.Generator | None = None) -> LayerFloat:
    """Sample from unit-variance Gaussians centered at values."""
    return values + _standard_normal(values, generator)


def one_if_max(values: LayerFloat) -> LayerFloat:
    """One-hot encoding of the arg-max along the unit axis (first index wins ties)."""
    one_hot = torch.zeros_like(values)
    return one_hot.scatter_(-1, values.argmax(dim=-1, keepdim=True), 1.0)


_MEAN_ACTIVATIONS: dict[UnitType, Callable[[torch.Tensor], torch.Tensor]] = {
    UnitType.BINARY: torch.sigmoid,
    UnitType.GAUSSIAN: torch.clone,  # identity, but never aliasing the pre-activation storage
    UnitType.RELU: torch.relu,
    UnitType.RELU6: lambda x: torch.clamp(x, 0.0, 6.0),
    UnitType.RELU1: lambda x: torch.clamp(x, 0.0, 1.0),
    UnitType.SOFTMAX: lambda x: torch.softmax(x, dim=-1),
}

_SAMPLERS: dict[UnitType, Callable[[torch.Tensor, torch.Generator | None], torch.Tensor]] = {
    UnitType.BINARY: bernoulli,
    UnitType.GAUSSIAN: gaussian_noise,
    UnitType.RELU: logistic_noise,
    UnitType.RELU6: lambda x, generator: ranged_noise(x, 6.0, generator),
    UnitType.RELU1: lambda x, generator: ranged_noise(x, 1.0, generator),
    UnitType.SOFTMAX: lambda x, generator: one_if_max(x),
}


def mean_activation(unit_type: UnitType,
                    pre_activation: LayerFloat) -> LayerFloat:
    """Mean-field activation (expected unit state) for the given pre-activation."""
    return _MEAN_ACTIVATIONS[unit_type](pre_activation)


def sample_from_mean(unit_type: UnitType,
                     mean: LayerFloat,
                     generator: torch.Generator | None = None) -> LayerFloat:
    """Draw unit states given their mean-field activations."""
    return _SAMPLERS[unit_type](mean, generator)
