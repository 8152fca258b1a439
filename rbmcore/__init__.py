"""This package contains the numerical core of Restricted Boltzmann Machines (RBMs).

An RBM is defined by its weights, two bias vectors and the unit types of its two layers. The RBM class computes the
conditional distributions p(h|v) and p(v|h), both as mean-field activations and as samples, and keeps the Gibbs chain
buffers a Contrastive Divergence driver works with. Training itself (gradients, optimizers, data) happens elsewhere.
"""
from .chain import ActivationEngine, GibbsChain
from .checks import NumericalDivergenceError, nan_check_deep
from .model import RBM
from .units import HIDDEN_UNIT_TYPES, VISIBLE_UNIT_TYPES, UnitType
