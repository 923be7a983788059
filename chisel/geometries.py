# %% Imports
from functools import lru_cache

import numpy as np

from .coordinates import compose, rotate_matrix, scale_matrix, translate_matrix
from .curves import BezierCurve, composite_bezier_curve
from .patches import TensorProductPatch, bezier_patch

# %% Placement
def _placement_matrix(center, normal):
    """
    Matrix moving the plane `z = 0` so that the origin goes to `center` and `e_z`
    to the unit vector along `normal`.
    """
    # The unit vector pointing upwards
    e_z = np.array([0, 0, 1], dtype='float')
    normal = np.array(normal, dtype='float')
    normal /= np.linalg.norm(normal)
    axis = np.cross(e_z, normal)
    angle = np.arccos(np.clip(np.dot(e_z, normal), -1, 1))
    if np.linalg.norm(axis) == 0:
        axis = np.array([1, 0, 0], dtype='float')
    return compose(translate_matrix(*np.asarray(center, dtype='float')), rotate_matrix(axis, angle))

# %% Arcs
def _unit_arc_segments(start_angle, end_angle):
    sweep = end_angle - start_angle
    if sweep == 0 or abs(sweep) > 2*np.pi*(1 + 1e-12):
        raise ValueError(f"The swept angle must be non zero and at most a full turn, got {sweep}.")
    # at most a quarter turn per rational quadratic segment
    nb_seg = int(np.ceil(abs(sweep)/(np.pi/2) - 1e-12))
    bounds = np.linspace(start_angle, end_angle, nb_seg + 1)
    half = sweep/(2*nb_seg)
    w = np.cos(half)
    segments = []
    for a, b in zip(bounds[:-1], bounds[1:]):
        mid = (a + b)/2
        segments.append([(np.cos(a), np.sin(a), 0),
                         (np.cos(mid), np.sin(mid), 0, w),
                         (np.cos(b), np.sin(b), 0)])
    return segments

def circle_arc(center=(0, 0, 0), radius: float=1., start_angle: float=0., end_angle: float=np.pi/2, normal=(0, 0, 1)) -> BezierCurve:
    """
    Exact circular arc as a composite rational quadratic Bezier curve over [0, 1].

    The arc is split into segments of equal angle, at most a quarter turn each. The
    middle control point of a segment of half angle `h` lies at the intersection of
    the end tangents with the weight `cos(h)`.

    Parameters
    ----------
    center : array_like, optional
        The center of the arc. By default, the origin.
    radius : float, optional
        The radius of the arc. By default, 1.
    start_angle : float, optional
        Start angle in radians, measured in the plane of the arc. By default, 0.
    end_angle : float, optional
        End angle in radians. By default, pi/2.
    normal : array_like, optional
        The normal vector of the plane of the arc. By default, `e_z`.

    Returns
    -------
    arc : BezierCurve
        The arc. Its parametrization is not proportional to the arc length.

    Examples
    --------
    >>> arc = circle_arc(radius=2)
    >>> np.round(arc(1.), 12) + 0.
    array([0., 2., 0.])
    """
    if not radius > 0:
        raise ValueError(f"The radius must be positive, got {radius}.")
    arc = composite_bezier_curve(_unit_arc_segments(start_angle, end_angle))
    return arc.linear_transform(compose(_placement_matrix(center, normal), scale_matrix((radius, radius, 1))))

def circle(center=(0, 0, 0), radius: float=1., normal=(0, 0, 1)) -> BezierCurve:
    """
    Exact full circle made of four rational quadratic quarter arcs, starting and
    ending on the local x axis.
    """
    return circle_arc(center, radius, 0., 2*np.pi, normal)

def ellipse(center=(0, 0, 0), a: float=1., b: float=1., normal=(0, 0, 1)) -> BezierCurve:
    """
    Exact ellipse of semi-axes `a` (local x axis) and `b` (local y axis).
    """
    if not (a > 0 and b > 0):
        raise ValueError(f"The semi-axes must be positive, got {a} and {b}.")
    unit = composite_bezier_curve(_unit_arc_segments(0., 2*np.pi))
    return unit.linear_transform(compose(_placement_matrix(center, normal), scale_matrix((a, b, 1))))

@lru_cache(maxsize=None)
def unit_circle() -> BezierCurve:
    """
    The unit circle of the plane `z = 0` centered at the origin. Built once and shared:
    curves are immutable.
    """
    return circle()

# %% Surfaces
def cylinder(center=(0, 0, 0), radius: float=1., height: float=1., normal=(0, 0, 1)) -> TensorProductPatch:
    """
    Exact lateral surface of a cylinder: ruled patch between the bottom circle
    (`v = 0`, centered at `center`) and the top circle (`v = 1`, `height` further
    along `normal`). `u` runs around the axis.
    """
    if not height > 0:
        raise ValueError(f"The height must be positive, got {height}.")
    bottom = circle((0, 0, 0), radius)
    top = bottom.linear_transform(translate_matrix(0, 0, height))
    return bezier_patch([bottom, top]).linear_transform(_placement_matrix(center, normal))
