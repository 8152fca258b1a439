"""This module uses jaxtyping to add various more specific tensor types."""
from typing import TypeAlias, TypeVar

from jaxtyping import Float
from torch import Tensor


VectorFloat: TypeAlias = Float[Tensor, "units"]
TabularBatchFloat: TypeAlias = Float[Tensor, "batch units"]

# activation functions work on single vectors and on batches alike
LayerFloat = TypeVar("LayerFloat", VectorFloat, TabularBatchFloat)

WeightMatrixFloat: TypeAlias = Float[Tensor, "visible hidden"]
