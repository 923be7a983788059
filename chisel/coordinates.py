# %% Imports
from functools import reduce
from typing import Iterable, Union

import numpy as np

from .errors import DegenerateWeightError
from .protocols import Transformable

AXES = {"x": 0, "y": 1, "z": 2}

# %% Vector arithmetic
def _check_operands(vectors):
    if len(vectors) < 2:
        raise ValueError("At least two vectors are needed !")
    arrs = [np.asarray(v, dtype='float') for v in vectors]
    shape = arrs[0].shape
    if shape[:1] not in ((3,), (4,)):
        raise ValueError(f"Vectors must have 3 or 4 components, got shape {shape}.")
    for arr in arrs[1:]:
        if arr.shape != shape:
            raise ValueError(f"Can't combine vectors of shapes {shape} and {arr.shape}.")
    return arrs

def add(*vectors) -> np.ndarray[np.floating]:
    """
    Pointwise sum of two or more vectors of 3 (Euclidean) or 4 (homogeneous) components.

    Examples
    --------
    >>> add([1, 2, 3], [1, 1, 1], [0, 0, 1])
    array([2., 3., 5.])
    """
    return reduce(np.add, _check_operands(vectors))

def difference(*vectors) -> np.ndarray[np.floating]:
    """
    Pointwise difference `v1 - v2 - ...` of two or more vectors.

    Examples
    --------
    >>> difference([1, 2, 3], [1, 1, 1])
    array([0., 1., 2.])
    """
    return reduce(np.subtract, _check_operands(vectors))

def scale(c: float, v) -> np.ndarray[np.floating]:
    """
    Multiply every component of `v` (weight included) by `c`.
    """
    return c*np.asarray(v, dtype='float')

# %% Homogeneous coordinates
def _pad_to_3d(pts):
    if pts.shape[0] == 2:
        pts = np.concatenate((pts, np.zeros((1, *pts.shape[1:]))), axis=0)
    if pts.shape[0] != 3:
        raise ValueError(f"Euclidean points must have 2 or 3 coordinates, got shape {pts.shape}.")
    return pts

def to_homogeneous(point, weight: Union[float, np.ndarray[np.floating]]=1.) -> np.ndarray[np.floating]:
    """
    Lift a Euclidean point to a weighted control point `(w*x, w*y, w*z, w)`.

    Parameters
    ----------
    point : array_like
        Euclidean coordinates, shape (3,) or (3, ...) (coordinates first).
        2D points are placed in the plane `z = 0`.
    weight : Union[float, np.ndarray[np.floating]], optional
        Rational weight of the point(s). By default, 1.

    Returns
    -------
    h : np.ndarray[np.floating]
        Homogeneous coordinates, shape (4,) or (4, ...).

    Raises
    ------
    DegenerateWeightError
        If a weight is 0.

    Examples
    --------
    >>> to_homogeneous([1, 2, 3], 0.5)
    array([0.5, 1. , 1.5, 0.5])
    """
    pts = _pad_to_3d(np.asarray(point, dtype='float'))
    w = np.broadcast_to(np.asarray(weight, dtype='float'), pts.shape[1:])
    if np.any(w == 0):
        raise DegenerateWeightError("Can't lift a point with a zero weight !")
    return np.concatenate((pts*w, w[None]), axis=0)

def as_homogeneous(points: Iterable) -> np.ndarray[np.floating]:
    """
    Convert a sequence of points into an array of homogeneous control points.

    Points given with 4 components are taken as already homogeneous
    `(w*x, w*y, w*z, w)`. Points with 3 components get a weight of 1 and
    points with 2 components are placed in the plane `z = 0`.

    Parameters
    ----------
    points : Iterable
        Sequence of points, one point per item.

    Returns
    -------
    ctrl_pts : np.ndarray[np.floating]
        Homogeneous control points of shape (4, number of points).

    Examples
    --------
    >>> as_homogeneous([(0, 0, 0), (1, 1, 0, 1), (2, 0)])
    array([[0., 1., 2.],
           [0., 1., 0.],
           [0., 0., 0.],
           [1., 1., 1.]])
    """
    columns = []
    for pt in points:
        pt = np.asarray(pt, dtype='float')
        if pt.shape == (4,):
            columns.append(pt)
        elif pt.shape in ((2,), (3,)):
            columns.append(to_homogeneous(pt))
        else:
            raise ValueError(f"Can't interpret {pt} as a point.")
    if not columns:
        return np.empty((4, 0), dtype='float')
    return np.stack(columns, axis=1)

def project(h) -> np.ndarray[np.floating]:
    """
    Project homogeneous coordinates to Euclidean space by dividing by the weight.

    Parameters
    ----------
    h : array_like
        Homogeneous coordinates of shape (4,) or (4, ...).

    Returns
    -------
    point : np.ndarray[np.floating]
        Euclidean coordinates of shape (3,) or (3, ...).

    Raises
    ------
    DegenerateWeightError
        If a weight is 0.
    """
    h = np.asarray(h, dtype='float')
    if h.shape[:1] != (4,):
        raise ValueError(f"Homogeneous coordinates must have 4 components, got shape {h.shape}.")
    w = h[3]
    if np.any(w == 0):
        raise DegenerateWeightError("Can't project a point with a zero weight !")
    return h[:3]/w

# %% 4x4 affine matrices
def _axis_index(axis):
    if isinstance(axis, str):
        if axis not in AXES:
            raise ValueError(f"Non valid axis {axis} given, only {list(AXES)} are supported.")
        return AXES[axis]
    if axis not in (0, 1, 2):
        raise ValueError(f"Non valid axis {axis} given, only {list(AXES)} are supported.")
    return axis

def translate_matrix(dx: float=0., dy: float=0., dz: float=0.) -> np.ndarray[np.floating]:
    """
    Affine matrix translating points by `(dx, dy, dz)`.
    """
    T = np.eye(4)
    T[:3, 3] = (dx, dy, dz)
    return T

def scale_matrix(s: Union[float, Iterable[float]]) -> np.ndarray[np.floating]:
    """
    Affine matrix scaling points about the origin, uniformly if `s` is a
    scalar or per axis if `s` holds 3 factors.
    """
    S = np.eye(4)
    S[:3, :3] = np.diag(np.broadcast_to(np.asarray(s, dtype='float'), (3,)))
    return S

def flip_matrix(axis: Union[str, int]) -> np.ndarray[np.floating]:
    """
    Affine matrix mirroring points across the plane normal to `axis`
    (the coordinate on `axis` changes sign).

    Examples
    --------
    >>> flip_matrix('x') @ [1, 2, 3, 1]
    array([-1.,  2.,  3.,  1.])
    """
    F = np.eye(4)
    idx = _axis_index(axis)
    F[idx, idx] = -1
    return F

def rotate_matrix(axis: Union[str, Iterable[float]], angle: float) -> np.ndarray[np.floating]:
    """
    Affine matrix rotating points by `angle` (radians) about an axis through the origin.

    Parameters
    ----------
    axis : Union[str, Iterable[float]]
        Either 'x', 'y', 'z' or a direction vector (normalized here).
    angle : float
        Rotation angle in radians, counterclockwise when looking down the axis.
    """
    if isinstance(axis, str):
        direction = np.zeros(3)
        direction[_axis_index(axis)] = 1
    else:
        direction = np.asarray(axis, dtype='float')
        direction = direction/np.linalg.norm(direction)
    P = np.expand_dims(direction, axis=1)@np.expand_dims(direction, axis=0)
    I = np.eye(3)
    Q = np.cross(I, direction)
    R = np.eye(4)
    R[:3, :3] = P + np.cos(angle)*(I - P) + np.sin(angle)*Q
    return R

def compose(*matrices) -> np.ndarray[np.floating]:
    """
    Compose affine matrices as a plain matrix product: the rightmost matrix
    is applied first, so `compose(m2, m1)` maps `x` to `m2 @ (m1 @ x)`.

    Examples
    --------
    >>> M = compose(translate_matrix(1, 0, 0), scale_matrix(2))
    >>> M @ [1, 1, 1, 1]
    array([3., 2., 2., 1.])
    """
    if not matrices:
        raise ValueError("At least one matrix is needed !")
    return reduce(np.matmul, [_as_matrix(m) for m in matrices])

def _as_matrix(matrix):
    matrix = np.asarray(matrix, dtype='float')
    if matrix.shape != (4, 4):
        raise ValueError(f"Transform matrices must be 4x4, got shape {matrix.shape}.")
    return matrix

# %% Polymorphic transform
def linear_transform(entity, matrix):
    """
    Apply an affine matrix to a vector, an array of points, a curve or a patch.

    Parameters
    ----------
    entity : Union[Transformable, array_like]
        - a `Transformable` (curve, patch, ...): its own `linear_transform` is used,
        - homogeneous coordinates of shape (4,) or (4, ...): multiplied directly,
        - Euclidean coordinates of shape (3,) or (3, ...): lifted with a weight 1,
          transformed and projected back.
    matrix : array_like
        4x4 affine matrix.

    Returns
    -------
    new_entity
        A new entity of the same kind. `entity` is never modified.
    """
    matrix = _as_matrix(matrix)
    if isinstance(entity, Transformable):
        return entity.linear_transform(matrix)
    arr = np.asarray(entity, dtype='float')
    if arr.shape[:1] == (4,):
        return np.tensordot(matrix, arr, 1)
    if arr.shape[:1] == (3,):
        return project(np.tensordot(matrix, to_homogeneous(arr), 1))
    raise ValueError(f"Can't transform an entity of shape {arr.shape}.")
