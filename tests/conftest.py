"""
Pytest configuration - runs before any test imports.

Plots are rendered with the non-interactive Agg backend so tests never open windows.
"""
import matplotlib

matplotlib.use("Agg")

import pytest
import torch

from rbmcore import RBM


@pytest.fixture
def binary_rbm():
    """Small binary-binary RBM with a fixed seed."""
    return RBM(num_visible=6, num_hidden=4, seed=1234)


@pytest.fixture
def visible_vector():
    """Binary visible vector matching binary_rbm."""
    return torch.tensor([1., 0., 1., 1., 0., 0.])
