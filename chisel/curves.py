# %% Imports
from typing import Callable, Iterable, Sequence, Union

import numpy as np
import scipy.sparse as sps
from scipy.special import comb

from .b_spline_basis import BSplineBasis
from .coordinates import _as_matrix, as_homogeneous, project
from .errors import MalformedKnotVectorError, ParameterOutOfDomainError, PatchIncompatibleError

DOMAIN_TOL = 1e-12


def _frozen(arr):
    arr = np.array(arr, dtype='float')
    arr.flags.writeable = False
    return arr


def _same_values(a, b, tol):
    a = np.asarray(a, dtype='float')
    b = np.asarray(b, dtype='float')
    if a.shape != b.shape:
        return False
    scale = max(1., np.abs(a).max(initial=0.), np.abs(b).max(initial=0.))
    return bool(np.all(np.abs(a - b) <= tol*scale))


def _check_interval(interval, domain):
    t0, t1 = (float(t) for t in interval)
    if not t0 < t1:
        raise ValueError(f"The interval [{t0}, {t1}] is empty !")
    if t0 < domain[0] or t1 > domain[1]:
        raise ParameterOutOfDomainError(f"The interval [{t0}, {t1}] is not included in the domain {domain} !")
    return t0, t1


# %% Curve base class
class Curve:
    """
    Base class of the rational parametric curves.

    A curve maps a parameter interval (its `domain`) to 3D points. Control points
    are kept in homogeneous coordinates `(w*x, w*y, w*z, w)` so that weights
    survive every operation: evaluation blends homogeneous control points and
    projects once at the end.

    Subclasses define `domain`, `order`, `blending` and the few methods
    rebuilding a curve of the same variant. Curves are immutable: control
    points are read-only and every operation returns a new curve.

    Attributes
    ----------
    ctrl_pts : np.ndarray[np.floating]
        Homogeneous control points, shape (4, `nb_ctrl_pts`).
    """

    ctrl_pts: np.ndarray[np.floating]

    @property
    def domain(self) -> tuple[float, float]:
        raise NotImplementedError

    @property
    def order(self) -> int:
        raise NotImplementedError

    @property
    def nb_ctrl_pts(self) -> int:
        return self.ctrl_pts.shape[1]

    def control_points(self) -> np.ndarray[np.floating]:
        """
        Euclidean control points, shape (3, `nb_ctrl_pts`).
        """
        return project(self.ctrl_pts)

    def weights(self) -> np.ndarray[np.floating]:
        """
        Rational weights of the control points, shape (`nb_ctrl_pts`,).
        """
        return self.ctrl_pts[3].copy()

    def blending(self, t: np.ndarray[np.floating]) -> sps.spmatrix:
        """
        Sparse matrix of the blending functions evaluated at `t`, shape
        (`t.size`, `nb_ctrl_pts`).
        """
        raise NotImplementedError

    def evaluate_homogeneous(self, t: Union[float, np.ndarray[np.floating]]) -> np.ndarray[np.floating]:
        """
        Evaluate the curve in homogeneous coordinates, without projecting.

        Parameters
        ----------
        t : Union[float, np.ndarray[np.floating]]
            Parameter value(s) inside `domain`.

        Returns
        -------
        h : np.ndarray[np.floating]
            Homogeneous point(s) of shape (4, *`t.shape`).

        Raises
        ------
        ParameterOutOfDomainError
            If a parameter lies outside `domain`.
        """
        t = np.asarray(t, dtype='float')
        B = self.blending(t.ravel())
        h = (B @ self.ctrl_pts.T).T
        return h.reshape((4, *t.shape))

    def evaluate(self, t: Union[float, np.ndarray[np.floating]]) -> np.ndarray[np.floating]:
        """
        Evaluate the curve.

        Parameters
        ----------
        t : Union[float, np.ndarray[np.floating]]
            Parameter value(s) inside `domain`.

        Returns
        -------
        points : np.ndarray[np.floating]
            Euclidean point(s) of shape (3, *`t.shape`).

        Raises
        ------
        ParameterOutOfDomainError
            If a parameter lies outside `domain`.
        DegenerateWeightError
            If the blended weight vanishes.
        """
        return project(self.evaluate_homogeneous(t))

    def __call__(self, t):
        return self.evaluate(t)

    def _with_ctrl_pts(self, ctrl_pts) -> "Curve":
        raise NotImplementedError

    def linear_transform(self, matrix: np.ndarray[np.floating]) -> "Curve":
        """
        Apply a 4x4 affine matrix to the homogeneous control points.
        Weights are carried through, parameters are unchanged.
        """
        return self._with_ctrl_pts(np.tensordot(_as_matrix(matrix), self.ctrl_pts, 1))

    def reparametrize(self, lower: float, upper: float) -> "Curve":
        raise NotImplementedError

    def cut(self, interval: tuple[float, float]) -> "Curve":
        raise NotImplementedError

    def sample(self, n: int, drop_first: bool=False, drop_last: bool=False) -> np.ndarray[np.floating]:
        """
        Evaluate the curve at `n` evenly spaced parameters of its domain.

        Returns
        -------
        points : np.ndarray[np.floating]
            Euclidean points of shape (3, `n`).
        """
        lo, hi = self.domain
        params = resolve_points(n, lambda s: lo + s*(hi - lo), drop_first=drop_first, drop_last=drop_last)
        params = np.array(params)
        params[params > hi] = hi
        return self.evaluate(params)

    def _structure(self):
        raise NotImplementedError

    def compatible_with(self, other: "Curve", tol: float=DOMAIN_TOL) -> bool:
        """
        Whether `self` and `other` can be blended into one patch: same variant,
        same number of control points, same parametrization structure (degree and
        knot vector, or segment degrees and breakpoints) and same domain, all
        compared with the relative tolerance `tol`.
        """
        if type(self) is not type(other) or self.nb_ctrl_pts != other.nb_ctrl_pts:
            return False
        if not _same_values(self.domain, other.domain, tol):
            return False
        kind_a, degrees_a, params_a = self._structure()
        kind_b, degrees_b, params_b = other._structure()
        return kind_a == kind_b and degrees_a == degrees_b and _same_values(params_a, params_b, tol)


# %% B-spline curve
class BSplineCurve(Curve):
    """
    Rational B-spline curve: a `BSplineBasis` and one homogeneous control point per
    basis function.

    Parameters
    ----------
    basis : BSplineBasis
        Degree and knot vector of the curve.
    ctrl_pts : array_like
        Homogeneous control points, shape (4, `basis.n + 1`).

    Raises
    ------
    MalformedKnotVectorError
        If the number of control points doesn't match the basis.
    """

    basis: BSplineBasis

    def __init__(self, basis: BSplineBasis, ctrl_pts):
        ctrl_pts = _frozen(ctrl_pts)
        if ctrl_pts.ndim != 2 or ctrl_pts.shape[0] != 4:
            raise ValueError(f"Control points must be homogeneous of shape (4, n), got {ctrl_pts.shape}.")
        if ctrl_pts.shape[1] != basis.n + 1:
            raise MalformedKnotVectorError(
                f"{basis.knot.size} knots and degree {basis.p} need {basis.n + 1} control points, "
                f"got {ctrl_pts.shape[1]} (len(knot) = n_ctrl + order + 1)."
            )
        self.basis = basis
        self.ctrl_pts = ctrl_pts

    def __repr__(self) -> str:
        return f"BSplineCurve(order={self.order}, nb_ctrl_pts={self.nb_ctrl_pts}, domain={self.domain})"

    @property
    def domain(self) -> tuple[float, float]:
        return self.basis.span

    @property
    def order(self) -> int:
        return self.basis.p

    @property
    def knot(self) -> np.ndarray[np.floating]:
        return self.basis.knot

    def blending(self, t):
        return self.basis.N(t)

    def _with_ctrl_pts(self, ctrl_pts):
        return BSplineCurve(self.basis, ctrl_pts)

    def _structure(self):
        return "bspline", (self.order,), self.knot

    def reparametrize(self, lower, upper):
        return BSplineCurve(self.basis.reparametrize(lower, upper), self.ctrl_pts)

    def insert_knots(self, knots_to_add: Iterable[float]) -> "BSplineCurve":
        """
        Refine the knot vector without changing the geometry.

        Examples
        --------
        >>> curve = clamped_b_spline([(0, 0, 0), (1, 1, 0), (2, 0, 0)], [0, 0, 0, 1, 1, 1], 2)
        >>> curve.insert_knots([0.5]).nb_ctrl_pts
        4
        """
        basis, D = self.basis.insert_knots(knots_to_add)
        return BSplineCurve(basis, (D @ self.ctrl_pts.T).T)

    def elevate_degree(self, t: int) -> "BSplineCurve":
        """
        Raise the degree by `t` without changing the geometry. Needs a clamped knot vector.
        """
        basis, STD = self.basis.elevate_degree(t)
        return BSplineCurve(basis, (STD @ self.ctrl_pts.T).T)

    def cut(self, interval):
        """
        Restrict the curve to `interval`, keeping the original parameter values.

        Both bounds are inserted until their multiplicity reaches `order + 1`,
        then the knots and control points outside the interval are dropped.
        """
        t0, t1 = _check_interval(interval, self.domain)
        p = self.order
        to_add = []
        for t in (t0, t1):
            to_add += [t]*(p + 1 - self.basis.multiplicity(t))
        curve = self.insert_knots(to_add) if to_add else self
        knot = curve.knot
        start = int(np.searchsorted(knot, t0, side='left'))
        stop = int(np.searchsorted(knot, t1, side='right')) - 1
        return BSplineCurve(BSplineBasis(p, knot[start:stop + 1]), curve.ctrl_pts[:, start:stop - p])


# %% Bezier curve
def _split_bezier(P, s):
    """
    Split the homogeneous control points `P` (4, k) of one Bezier segment at the
    local parameter `s` (de Casteljau). Returns the control points of both halves.
    """
    left = [P[:, 0]]
    right = [P[:, -1]]
    Q = P
    while Q.shape[1] > 1:
        Q = (1 - s)*Q[:, :-1] + s*Q[:, 1:]
        left.append(Q[:, 0])
        right.append(Q[:, -1])
    return np.stack(left, axis=1), np.stack(right[::-1], axis=1)


def _sub_bezier(P, a, b):
    if b < 1:
        P = _split_bezier(P, b)[0]
    if a > 0:
        P = _split_bezier(P, a/b)[1]
    return P


def _elevate_bezier(P, t):
    for _ in range(t):
        d = P.shape[1] - 1
        alpha = np.arange(1, d + 1)/(d + 1)
        inner = alpha*P[:, :-1] + (1 - alpha)*P[:, 1:]
        P = np.concatenate((P[:, :1], inner, P[:, -1:]), axis=1)
    return P


class BezierCurve(Curve):
    """
    Composite rational Bezier curve: consecutive Bezier segments, each of its own
    degree, glued at increasing breakpoints.

    Parameters
    ----------
    segments : Sequence[array_like]
        Homogeneous control points of each segment, shapes (4, k_i) with k_i >= 2.
    breakpoints : array_like
        Strictly increasing parameter values, one more than the number of segments.
        Segment `i` covers [`breakpoints[i]`, `breakpoints[i + 1]`].

    Notes
    -----
    A parameter lying on an interior breakpoint is evaluated on the later segment,
    the end of the domain on the last one.
    """

    segments: tuple[np.ndarray[np.floating], ...]
    breakpoints: np.ndarray[np.floating]

    def __init__(self, segments: Sequence, breakpoints):
        segments = tuple(_frozen(seg) for seg in segments)
        if not segments:
            raise ValueError("A Bezier curve needs at least one segment !")
        for i, seg in enumerate(segments):
            if seg.ndim != 2 or seg.shape[0] != 4:
                raise ValueError(f"Segment {i} must be homogeneous of shape (4, k), got {seg.shape}.")
            if seg.shape[1] < 2:
                raise ValueError(f"Segment {i} has {seg.shape[1]} control point, at least 2 are needed.")
        breakpoints = _frozen(breakpoints)
        if breakpoints.shape != (len(segments) + 1,):
            raise ValueError(f"{len(segments)} segments need {len(segments) + 1} breakpoints, got {breakpoints.size}.")
        if np.any(np.diff(breakpoints) <= 0):
            raise ValueError(f"Breakpoints must be strictly increasing, got {breakpoints}.")
        self.segments = segments
        self.breakpoints = breakpoints
        self.ctrl_pts = _frozen(np.concatenate(segments, axis=1))
        self._offsets = np.cumsum([0] + [seg.shape[1] for seg in segments])

    def __repr__(self) -> str:
        return f"BezierCurve(degrees={self.degrees}, domain={self.domain})"

    @property
    def domain(self) -> tuple[float, float]:
        return float(self.breakpoints[0]), float(self.breakpoints[-1])

    @property
    def degrees(self) -> tuple[int, ...]:
        return tuple(seg.shape[1] - 1 for seg in self.segments)

    @property
    def order(self) -> int:
        return max(self.degrees)

    def segment_index(self, t: np.ndarray[np.floating]) -> np.ndarray[np.integer]:
        """
        Index of the segment evaluating each parameter of `t`.
        """
        idx = np.searchsorted(self.breakpoints, t, side='right') - 1
        return np.clip(idx, 0, len(self.segments) - 1)

    def blending(self, t):
        t = np.asarray(t, dtype='float')
        lo, hi = self.domain
        outside = ~np.logical_and(t >= lo, t <= hi)
        if np.any(outside):
            raise ParameterOutOfDomainError(f"{t[outside][0]} is outside the domain {self.domain} !")
        seg_idx = self.segment_index(t)
        vals = []
        row = []
        col = []
        for i, seg in enumerate(self.segments):
            rows = np.nonzero(seg_idx == i)[0]
            if rows.size == 0:
                continue
            a, b = self.breakpoints[i], self.breakpoints[i + 1]
            s = ((t[rows] - a)/(b - a))[:, None]
            d = seg.shape[1] - 1
            j = np.arange(d + 1)
            vals.append((comb(d, j)*s**j*(1 - s)**(d - j)).ravel())
            row.append(np.repeat(rows, d + 1))
            col.append(np.tile(self._offsets[i] + j, rows.size))
        if vals:
            vals, row, col = np.concatenate(vals), np.concatenate(row), np.concatenate(col)
        return sps.coo_matrix((vals, (row, col)), shape=(t.size, self.nb_ctrl_pts))

    def _with_ctrl_pts(self, ctrl_pts):
        return BezierCurve(np.split(ctrl_pts, self._offsets[1:-1], axis=1), self.breakpoints)

    def _structure(self):
        return "bezier", self.degrees, self.breakpoints

    def reparametrize(self, lower, upper):
        if not lower < upper:
            raise ValueError(f"Can't map the domain onto the empty interval [{lower}, {upper}].")
        a, b = self.domain
        new_bp = lower + (self.breakpoints - a)*((upper - lower)/(b - a))
        new_bp[0] = lower
        new_bp[-1] = upper
        return BezierCurve(self.segments, new_bp)

    def cut(self, interval):
        """
        Restrict the curve to `interval`, keeping the original parameter values.
        Segments crossed by a bound are split with de Casteljau's algorithm.
        """
        t0, t1 = _check_interval(interval, self.domain)
        bp = self.breakpoints
        first = int(self.segment_index(t0))
        last = max(int(np.searchsorted(bp, t1, side='left')) - 1, 0)
        segments = []
        for i in range(first, last + 1):
            width = bp[i + 1] - bp[i]
            a = (max(t0, bp[i]) - bp[i])/width
            b = (min(t1, bp[i + 1]) - bp[i])/width
            segments.append(_sub_bezier(self.segments[i], a, b))
        breakpoints = np.concatenate(([t0], bp[first + 1:last + 1], [t1]))
        return BezierCurve(segments, breakpoints)

    def split_at(self, params: Iterable[float]) -> "BezierCurve":
        """
        Insert breakpoints at `params` without changing the geometry.
        """
        params = np.unique(np.asarray(list(params), dtype='float'))
        lo, hi = self.domain
        params = params[np.logical_and(params > lo, params < hi)]
        params = params[~np.isin(params, self.breakpoints)]
        if params.size == 0:
            return self
        bounds = np.union1d(self.breakpoints, params)
        pieces = [self.cut((a, b)) for a, b in zip(bounds[:-1], bounds[1:])]
        return BezierCurve([piece.segments[0] for piece in pieces], bounds)

    def elevate_degree(self, t: int) -> "BezierCurve":
        """
        Raise the degree of every segment by `t` without changing the geometry.
        """
        if t < 0:
            raise ValueError(f"Can't elevate the degree by {t}.")
        return BezierCurve([_elevate_bezier(seg, t) for seg in self.segments], self.breakpoints)

    def elevate_to(self, degrees: Sequence[int]) -> "BezierCurve":
        """
        Raise segment `i` to degree `degrees[i]`.
        """
        if len(degrees) != len(self.segments):
            raise ValueError(f"Expected {len(self.segments)} degrees, got {len(degrees)}.")
        return BezierCurve(
            [_elevate_bezier(seg, int(d) - (seg.shape[1] - 1)) for seg, d in zip(self.segments, degrees)],
            self.breakpoints,
        )


# %% Constructors
def clamped_b_spline(control_points: Iterable, knot_vector: Iterable[float], order: int) -> BSplineCurve:
    """
    Build a B-spline curve from its control points, knot vector and order.

    Parameters
    ----------
    control_points : Iterable
        Points as 3-tuples (weight 1) or homogeneous 4-tuples `(w*x, w*y, w*z, w)`.
    knot_vector : Iterable[float]
        Non-decreasing knots, `len(knot_vector) == len(control_points) + order + 1`.
    order : int
        Polynomial degree of the curve.

    Returns
    -------
    curve : BSplineCurve

    Raises
    ------
    MalformedKnotVectorError
        If the lengths don't match or the knot vector is decreasing.

    Examples
    --------
    >>> curve = clamped_b_spline([(0, 0, 0), (1, 1, 0), (2, 0, 0)], [0, 0, 0, 1, 1, 1], 2)
    >>> curve(0.5)
    array([1. , 0.5, 0. ])
    """
    ctrl_pts = as_homogeneous(control_points)
    knot = np.asarray(knot_vector, dtype='float')
    if knot.size != ctrl_pts.shape[1] + order + 1:
        raise MalformedKnotVectorError(
            f"{ctrl_pts.shape[1]} control points of order {order} need "
            f"{ctrl_pts.shape[1] + order + 1} knots, got {knot.size}."
        )
    return BSplineCurve(BSplineBasis(order, knot), ctrl_pts)


def clamped_uniform_b_spline(control_points: Iterable, order: int) -> BSplineCurve:
    """
    Build a B-spline over [0, 1] with the clamped uniform knot vector: end knots
    repeated `order + 1` times, interior knots evenly spaced.

    Raises
    ------
    MalformedKnotVectorError
        If there are fewer than `order + 1` control points.
    """
    ctrl_pts = as_homogeneous(control_points)
    return BSplineCurve(BSplineBasis.clamped_uniform(ctrl_pts.shape[1], order), ctrl_pts)


def bezier_curve(control_points: Iterable) -> BezierCurve:
    """
    Build a single-segment Bezier curve over [0, 1]. The degree is the number of
    control points minus one.
    """
    return BezierCurve((as_homogeneous(control_points),), [0., 1.])


def composite_bezier_curve(segments: Iterable[Iterable], breakpoints: Union[Iterable[float], None]=None) -> BezierCurve:
    """
    Build a composite Bezier curve.

    Parameters
    ----------
    segments : Iterable[Iterable]
        Control points of each segment (2 or more points each). A rational point is
        given as a homogeneous 4-tuple `(w*x, w*y, w*z, w)`.
    breakpoints : Union[Iterable[float], None], optional
        Strictly increasing breakpoints, one more than the number of segments. By
        default, [0, 1] is split evenly between the segments.

    Returns
    -------
    curve : BezierCurve

    Examples
    --------
    >>> curve = composite_bezier_curve([[(0, 0, 0), (1, 0, 0)], [(1, 0, 0), (1, 1, 0)]])
    >>> curve.breakpoints
    array([0. , 0.5, 1. ])
    """
    segments = [as_homogeneous(seg) for seg in segments]
    if breakpoints is None:
        breakpoints = np.linspace(0, 1, len(segments) + 1)
    return BezierCurve(segments, breakpoints)


# %% Operations
def unify_curve(curve: Curve, target_length: float=1.) -> Curve:
    """
    Re-parametrize `curve` onto [0, `target_length`] by an affine map of its knots
    or breakpoints. The geometry is unchanged and the end values are exact.
    """
    if not target_length > 0:
        raise ValueError(f"The target length must be positive, got {target_length}.")
    return curve.reparametrize(0., target_length)


def unify_curves(curves: Iterable[Curve], target_length: float=1.) -> list[Curve]:
    """
    Bring a family of curves of the same variant onto a common parametrization so
    that they can generate a patch.

    Every curve is mapped onto [0, `target_length`]. Unclamped B-splines are
    clamped by cutting them to their own domain, then B-splines are raised to
    the highest degree of the family and refined to the union of the knot vectors;
    composite Bezier curves are split at the union of the breakpoints and each
    segment is raised to the highest degree found at that position.

    Raises
    ------
    PatchIncompatibleError
        If the family mixes B-spline and Bezier curves.

    Examples
    --------
    >>> a = clamped_b_spline([(0, 0, 0), (1, 0, 0)], [0, 0, 1, 1], 1)
    >>> b = clamped_uniform_b_spline([(0, 1, 0), (1, 2, 0), (2, 1, 0)], 2)
    >>> a2, b2 = unify_curves([a, b])
    >>> a2.compatible_with(b2)
    True
    """
    curves = [unify_curve(c, target_length) for c in curves]
    if not curves:
        return curves
    if all(isinstance(c, BSplineCurve) for c in curves):
        curves = [c if c.basis.is_clamped() else c.cut(c.domain) for c in curves]
        p = max(c.order for c in curves)
        curves = [c.elevate_degree(p - c.order) for c in curves]
        values = np.unique(np.concatenate([c.knot for c in curves]))
        target = {x: max(c.basis.multiplicity(x) for c in curves) for x in values}
        unified = []
        for c in curves:
            to_add = [x for x in values for _ in range(target[x] - c.basis.multiplicity(x))]
            unified.append(c.insert_knots(to_add) if to_add else c)
        return unified
    if all(isinstance(c, BezierCurve) for c in curves):
        bounds = np.unique(np.concatenate([c.breakpoints for c in curves]))
        curves = [c.split_at(bounds) for c in curves]
        degrees = np.max([c.degrees for c in curves], axis=0)
        return [c.elevate_to(degrees) for c in curves]
    raise PatchIncompatibleError("Can't unify a family mixing B-spline and Bezier curves.")


def cut_curve(curve: Curve, interval: tuple[float, float]) -> Curve:
    """
    Restrict `curve` to `interval` = (a, b) inside its domain. The result keeps the
    original parameter values: its domain is [a, b] and it evaluates like `curve`
    there.

    Raises
    ------
    ParameterOutOfDomainError
        If the interval isn't included in the domain.
    ValueError
        If the interval is empty.
    """
    return curve.cut(interval)


def insert_knots(curve: BSplineCurve, knots: Iterable[float]) -> BSplineCurve:
    """
    Refine the knot vector of a B-spline curve without changing its geometry.
    """
    return curve.insert_knots(knots)


def elevate_degree(curve: Curve, t: int) -> Curve:
    """
    Raise the degree of a curve by `t` without changing its geometry.
    """
    return curve.elevate_degree(t)


def resolve_points(n: int, f: Callable[[float], object], drop_first: bool=False, drop_last: bool=False) -> list:
    """
    Map `f` over `n` evenly spaced parameters of [0, 1].

    Parameters
    ----------
    n : int
        Number of parameters.
    f : Callable[[float], object]
        Function applied to each parameter.
    drop_first : bool, optional
        Leave 0 out: parameters `1/n, ..., 1`. By default, False.
    drop_last : bool, optional
        Leave 1 out: parameters `0, ..., (n - 1)/n`. By default, False.

    Returns
    -------
    values : list
        `f` applied to each parameter, in increasing order.

    Examples
    --------
    >>> resolve_points(5, lambda t: t)
    [0.0, 0.25, 0.5, 0.75, 1.0]
    >>> resolve_points(4, lambda t: t, drop_last=True)
    [0.0, 0.25, 0.5, 0.75]
    """
    if n < 1:
        raise ValueError(f"At least one point is needed, got {n}.")
    if drop_first and drop_last:
        params = np.arange(1, n + 1)/(n + 1)
    elif drop_first:
        params = np.arange(1, n + 1)/n
    elif drop_last:
        params = np.arange(n)/n
    else:
        params = np.linspace(0, 1, n)
    return [f(float(t)) for t in params]
