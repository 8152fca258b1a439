import torch


class NumericalDivergenceError(RuntimeError):
    """Raised when an RBM computation produced NaN or infinite values.

    This is meant to be fatal. A diverged RBM cannot produce anything meaningful anymore, and continuing would only
    push the corrupted values into further training steps (or into models stacked on top).
    """
    def __init__(self,
                 name: str,
                 n_nan: int,
                 n_inf: int,
                 n_total: int):
        self.name = name
        self.n_nan = n_nan
        self.n_inf = n_inf
        self.n_total = n_total
        super().__init__(f"Non-finite values in {name}: {n_nan} NaN and {n_inf} infinite out of {n_total} elements. "
                         "The RBM has diverged.")


def nan_check_deep(tensor: torch.Tensor | None,
                   name: str = "tensor"):
    """Make sure every element of tensor is finite, raising NumericalDivergenceError otherwise.

    None is accepted and ignored, so outputs that were skipped can be passed through without special-casing.
    """
    if tensor is None:
        return
    finite = torch.isfinite(tensor)
    if not bool(finite.all()):
        raise NumericalDivergenceError(name,
                                       n_nan=int(torch.isnan(tensor).sum()),
                                       n_inf=int(torch.isinf(tensor).sum()),
                                       n_total=tensor.numel())
