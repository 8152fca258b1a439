"""In this module you can find helpers for looking at what an RBM has learned."""
from .image import plot_filters, plot_image_grid
