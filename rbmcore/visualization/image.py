from collections.abc import Iterable

import numpy as np
import torch
from matplotlib import pyplot as plt
from matplotlib.figure import Figure
from torch.utils.tensorboard import SummaryWriter

from ..types import WeightMatrixFloat


def plot_image_grid(images: torch.Tensor,
                    figure_size: tuple[int, int],
                    title: str,
                    n_rows: int,
                    n_cols: int | None = None,
                    subtitles: Iterable[str] | None = None,
                    colormap="Greys",
                    writer: SummaryWriter | None = None,
                    step: int | None = None,
                    suppress_plots: bool = False) -> Figure:
    """Make a grid from a batch of single-channel images.

    Parameters:
        images: (b x h x w) batch of images with values in [0, 1]. Values outside are clipped. At most n_rows*n_cols
                images are plotted.
        figure_size: The size of the figure.
        title: Will be used as figure title as well as for naming Tensorboard summaries.
        n_rows: Will plot this many rows, and n_rows**2 many images in total if n_cols is not given.
        n_cols: Will plot this many columns of images. Defaults to n_rows.
        subtitles: If given, should be an iterable of strings, one per image. Each is used as title for the respective
                   image's subplot.
        colormap: Which colormap to use to display images.
        writer: If given, the figure is also added to this TensorBoard writer (requires step).
        step: Global step for the TensorBoard summary.
        suppress_plots: If True, close the figure instead of showing it. Useful if you only want it in TensorBoard.
    """
    if n_cols is None:
        n_cols = n_rows
    with torch.inference_mode():
        images = np.clip(images.detach().cpu().numpy(), 0, 1)[:n_rows * n_cols]
    subtitles = list(subtitles) if subtitles is not None else None

    figure = plt.figure(figsize=figure_size)
    for ind, img in enumerate(images):
        plt.subplot(n_rows, n_cols, ind + 1)
        plt.imshow(img, vmin=0, vmax=1, cmap=colormap)
        plt.axis("off")
        if subtitles is not None:
            plt.title(subtitles[ind], fontsize=8)
    plt.suptitle(title)

    if writer is not None and step is not None:
        writer.add_figure(title, figure, step, close=False)
    if suppress_plots:
        plt.close(figure)
    else:
        plt.show()
    return figure


def plot_filters(weights: WeightMatrixFloat,
                 image_shape: tuple[int, int],
                 n_rows: int,
                 n_cols: int | None = None,
                 figure_size: tuple[int, int] = (12, 12),
                 title: str = "RBM filters",
                 writer: SummaryWriter | None = None,
                 step: int | None = None,
                 suppress_plots: bool = False) -> Figure:
    """Show the incoming weights of hidden units as images ("receptive fields").

    Each filter is min-max scaled to [0, 1] on its own, so only the pattern is visible, not the absolute scale.

    Parameters:
        weights: (num_visible x num_hidden) weight matrix, e.g. rbm.w. num_visible must equal the product of
                 image_shape.
        image_shape: (h, w) shape of the visible layer when seen as an image.
        Other arguments: See plot_image_grid.
    """
    n_visible = weights.shape[0]
    if n_visible != int(np.prod(image_shape)):
        raise ValueError(f"Weights with {n_visible} visible units can't be shown as images of shape {image_shape}.")
    filters = weights.detach().T.reshape(-1, *image_shape)
    lowest = filters.amin(dim=(1, 2), keepdim=True)
    highest = filters.amax(dim=(1, 2), keepdim=True)
    filters = (filters - lowest) / (highest - lowest).clamp_min(1e-12)
    return plot_image_grid(filters, figure_size, title, n_rows, n_cols, writer=writer, step=step,
                           suppress_plots=suppress_plots)
