from typing import Iterable, Union

import numpy as np
import matplotlib as mpl
import matplotlib.axes

from .curves import Curve


def _new_axes(ax, three_d):
    import matplotlib.pyplot as plt
    if ax is not None:
        return ax
    fig = plt.figure()
    if three_d:
        return fig.add_subplot(projection='3d')
    return fig.add_subplot()


def plot_curve(
    curve: Curve,
    n: int=100,
    ax: Union[mpl.axes.Axes, None]=None,
    ctrl_color: str='#1b9e77',
    interior_color: str='#7570b3',
    show: bool=False,
    ) -> mpl.axes.Axes:
    """
    Plot a curve and its control polygon using Matplotlib.

    Curves lying in the plane `z = 0` are drawn on 2D axes, other curves on 3D axes.

    Parameters
    ----------
    curve : Curve
        The curve to draw.
    n : int, optional
        Number of evaluation points. By default, 100.
    ax : Union[mpl.axes.Axes, None], optional
        Matplotlib axes for plotting. If None, creates a new figure and axes.
        Must be a 3D axes (created with `projection='3d'`) for a non planar curve.
    ctrl_color : str, optional
        Color of the control polygon. By default, '#1b9e77' (green).
    interior_color : str, optional
        Color of the curve. By default, '#7570b3' (purple).
    show : bool, optional
        If True, call `plt.show()`. By default, False.

    Returns
    -------
    ax : mpl.axes.Axes
        The axes drawn on.
    """
    pts = curve.sample(n)
    ctrl = curve.control_points()
    three_d = not (np.allclose(pts[2], 0) and np.allclose(ctrl[2], 0))
    ax = _new_axes(ax, three_d)
    nb_dim = 3 if three_d else 2
    ax.plot(*ctrl[:nb_dim], marker='o', linestyle='--', color=ctrl_color, label="Control polygon")
    ax.plot(*pts[:nb_dim], color=interior_color, label="Curve")
    if not three_d:
        ax.set_aspect('equal')
    ax.legend()
    if show:
        import matplotlib.pyplot as plt
        plt.show()
    return ax


def plot_patch(
    patch,
    resolution: Union[int, Iterable[int]]=(20, 20),
    ax: Union[mpl.axes.Axes, None]=None,
    ctrl_color: str='#1b9e77',
    interior_color: str='#7570b3',
    border_color: str='#d95f02',
    show: bool=False,
    ) -> mpl.axes.Axes:
    """
    Plot a tensor-product patch on 3D axes: the surface, its border and the
    control polygons of its generator curves.

    Parameters
    ----------
    patch : TensorProductPatch
        The patch to draw.
    resolution : Union[int, Iterable[int]], optional
        Number of cells along `u` and `v`. By default, (20, 20).
    ax : Union[mpl.axes.Axes, None], optional
        3D Matplotlib axes. If None, creates a new figure and axes.
    ctrl_color : str, optional
        Color of the generator control polygons. By default, '#1b9e77' (green).
    interior_color : str, optional
        Face color of the surface (with transparency). By default, '#7570b3' (purple).
    border_color : str, optional
        Color of the patch border. By default, '#d95f02' (orange).
    show : bool, optional
        If True, call `plt.show()`. By default, False.

    Returns
    -------
    ax : mpl.axes.Axes
        The axes drawn on.
    """
    if np.ndim(resolution) == 0:
        resolution = (resolution, resolution)
    nu, nv = resolution
    (u0, u1), (v0, v1) = patch.domain
    pts = patch.grid(np.linspace(u0, u1, nu + 1), np.linspace(v0, v1, nv + 1))
    ax = _new_axes(ax, True)
    ax.plot_surface(*pts, color=interior_color, alpha=0.5, linewidth=0)
    for border in (pts[:, 0, :], pts[:, -1, :], pts[:, :, 0], pts[:, :, -1]):
        ax.plot(*border, color=border_color)
    for i, curve in enumerate(patch.curves):
        ax.plot(*curve.control_points(), marker='o', linestyle='--', color=ctrl_color,
                label="Control polygons" if i == 0 else None)
    ax.set_xlabel('x')
    ax.set_ylabel('y')
    ax.set_zlabel('z')
    ax.legend()
    if show:
        import matplotlib.pyplot as plt
        plt.show()
    return ax
