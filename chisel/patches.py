# %% Imports
from functools import partial
from typing import Callable, Iterable, Sequence, Union

import numpy as np

from .coordinates import _as_matrix, project
from .curves import Curve, _check_interval, bezier_curve, clamped_uniform_b_spline, cut_curve
from .errors import MalformedKnotVectorError, PatchIncompatibleError
from .mesh import triangle_mesh as _triangle_mesh


class _CutConstructor:
    """
    Curve constructor restricting the curves built by `constructor` to `interval`.
    Kept as a class so that patches stay picklable.
    """

    def __init__(self, constructor: Callable, interval: tuple[float, float]):
        self.constructor = constructor
        self.interval = interval

    def __call__(self, points) -> Curve:
        return cut_curve(self.constructor(points), self.interval)


class TensorProductPatch:
    """
    Tensor-product patch generated by a family of curves.

    The parameter `u` runs along the generator curves and `v` runs across them:
    the generator curves are evaluated at `u` in homogeneous coordinates, these
    points become the control points of the cross curve built by
    `curve_constructor`, and that curve is evaluated at `v`. The result is projected
    only at the end, so rational weights blend correctly in both directions.

    Parameters
    ----------
    curve_constructor : Callable
        Builds a curve from a sequence of homogeneous points, one per generator curve.
        Its control points must be the given points for `linear_transform` to hold.
    curves : Iterable[Curve]
        At least 2 generator curves, pairwise compatible (see `Curve.compatible_with`).

    Raises
    ------
    PatchIncompatibleError
        If the curves aren't compatible, or if `curve_constructor` rejects their count.

    Attributes
    ----------
    curve_constructor : Callable
        Cross curve constructor.
    curves : tuple[Curve, ...]
        Generator curves.
    """

    curve_constructor: Callable
    curves: tuple[Curve, ...]

    def __init__(self, curve_constructor: Callable, curves: Iterable[Curve]):
        curves = tuple(curves)
        if len(curves) < 2:
            raise PatchIncompatibleError(f"A patch needs at least 2 generator curves, got {len(curves)}.")
        first = curves[0]
        for i, curve in enumerate(curves[1:], start=1):
            if not first.compatible_with(curve):
                raise PatchIncompatibleError(
                    f"Curve {i} ({curve!r}) is not compatible with curve 0 ({first!r}). "
                    "Use `unify_curves` to bring them to a common parametrization."
                )
        self.curve_constructor = curve_constructor
        self.curves = curves
        try:
            probe = self.cross_curve(first.domain[0])
        except MalformedKnotVectorError as err:
            raise PatchIncompatibleError(f"The curve constructor can't blend {len(curves)} curves: {err}") from err
        self._v_domain = probe.domain

    def __repr__(self) -> str:
        return f"TensorProductPatch(nb_curves={len(self.curves)}, domain={self.domain})"

    @property
    def domain(self) -> tuple[tuple[float, float], tuple[float, float]]:
        """
        Parametric domain `((u_min, u_max), (v_min, v_max))`.
        """
        return self.curves[0].domain, self._v_domain

    def cross_curve(self, u: float) -> Curve:
        """
        Curve across the generator curves at the parameter `u`.
        """
        points = [curve.evaluate_homogeneous(u) for curve in self.curves]
        return self.curve_constructor(points)

    def row(self, u: float, vs: np.ndarray[np.floating]) -> np.ndarray[np.floating]:
        """
        Euclidean points of the cross curve at `u`, evaluated at each of `vs`.
        Shape (3, `vs.size`).
        """
        return project(self.cross_curve(u).evaluate_homogeneous(vs))

    def evaluate_homogeneous(self, u, v) -> np.ndarray[np.floating]:
        """
        Evaluate the patch in homogeneous coordinates.

        Parameters
        ----------
        u, v : Union[float, np.ndarray[np.floating]]
            Parameters, broadcast against each other.

        Returns
        -------
        h : np.ndarray[np.floating]
            Homogeneous point(s) of shape (4, *broadcast shape).

        Raises
        ------
        ParameterOutOfDomainError
            If a parameter lies outside the domain.
        """
        u, v = np.broadcast_arrays(np.asarray(u, dtype='float'), np.asarray(v, dtype='float'))
        if u.ndim == 0:
            return self.cross_curve(float(u)).evaluate_homogeneous(float(v))
        out = np.empty((4, u.size), dtype='float')
        for k, (ui, vi) in enumerate(zip(u.ravel(), v.ravel())):
            out[:, k] = self.cross_curve(ui).evaluate_homogeneous(vi)
        return out.reshape((4, *u.shape))

    def evaluate(self, u, v) -> np.ndarray[np.floating]:
        """
        Evaluate the patch.

        Parameters
        ----------
        u, v : Union[float, np.ndarray[np.floating]]
            Parameters, broadcast against each other.

        Returns
        -------
        points : np.ndarray[np.floating]
            Euclidean point(s) of shape (3, *broadcast shape).

        Examples
        --------
        >>> bottom = bezier_curve([(0, 0, 0), (1, 0, 0)])
        >>> top = bezier_curve([(0, 0, 1), (1, 0, 1)])
        >>> bezier_patch([bottom, top]).evaluate(0.5, 0.5)
        array([0.5, 0. , 0.5])
        """
        return project(self.evaluate_homogeneous(u, v))

    def __call__(self, u, v):
        return self.evaluate(u, v)

    def grid_homogeneous(self, us, vs) -> np.ndarray[np.floating]:
        """
        Evaluate the patch on the tensor grid `us` x `vs` in homogeneous coordinates.
        Shape (4, `us.size`, `vs.size`).
        """
        us = np.asarray(us, dtype='float').ravel()
        vs = np.asarray(vs, dtype='float').ravel()
        # (nb curves, 4, nu)
        H = np.stack([curve.evaluate_homogeneous(us) for curve in self.curves])
        rows = [self.curve_constructor(H[:, :, i]).evaluate_homogeneous(vs) for i in range(us.size)]
        return np.stack(rows, axis=1)

    def grid(self, us, vs) -> np.ndarray[np.floating]:
        """
        Evaluate the patch on the tensor grid `us` x `vs`. Shape (3, `us.size`, `vs.size`).
        """
        return project(self.grid_homogeneous(us, vs))

    def linear_transform(self, matrix: np.ndarray[np.floating]) -> "TensorProductPatch":
        """
        Apply a 4x4 affine matrix to every generator curve. Returns a new patch.
        """
        matrix = _as_matrix(matrix)
        return TensorProductPatch(self.curve_constructor, [curve.linear_transform(matrix) for curve in self.curves])

    def _axis_domain(self, axis):
        if axis not in ("u", "v"):
            raise ValueError(f"Non valid axis {axis} given, only 'u' and 'v' are supported.")
        return self.domain[0] if axis=="u" else self.domain[1]

    def cut(self, interval: tuple[float, float], axis: str="u") -> "TensorProductPatch":
        """
        Restrict the patch to `interval` along `axis`, keeping the original parameter
        values.

        Cutting along `u` cuts every generator curve, cutting along `v` cuts every
        cross curve.

        Raises
        ------
        ParameterOutOfDomainError
            If the interval isn't included in the domain along `axis`.
        """
        interval = _check_interval(interval, self._axis_domain(axis))
        if axis=="u":
            return TensorProductPatch(self.curve_constructor, [cut_curve(curve, interval) for curve in self.curves])
        return TensorProductPatch(_CutConstructor(self.curve_constructor, interval), self.curves)

    def part(self, subdivisions: int, index: int, axis: str="u") -> "TensorProductPatch":
        """
        Cut the domain along `axis` into `subdivisions` equal parts and keep the part
        number `index`.

        Examples
        --------
        >>> bottom = bezier_curve([(0, 0, 0), (1, 0, 0)])
        >>> top = bezier_curve([(0, 0, 1), (1, 0, 1)])
        >>> bezier_patch([bottom, top]).part(4, 1).domain
        ((0.25, 0.5), (0.0, 1.0))
        """
        if int(subdivisions) != subdivisions or subdivisions < 1:
            raise ValueError(f"The number of subdivisions must be a positive integer, got {subdivisions}.")
        if int(index) != index or not 0 <= index < subdivisions:
            raise ValueError(f"Part index {index} is out of range for {subdivisions} subdivisions.")
        lo, hi = self._axis_domain(axis)
        bounds = np.linspace(lo, hi, int(subdivisions) + 1)
        return self.cut((bounds[int(index)], bounds[int(index) + 1]), axis)

    def triangle_mesh(self, resolution: Union[int, Sequence[int]], **kwargs):
        """
        Tessellate the patch, see `chisel.mesh.triangle_mesh`.
        """
        return _triangle_mesh(self, resolution, **kwargs)


# %% Constructors
def tensor_product_patch(curve_constructor: Callable, curves: Iterable[Curve]) -> TensorProductPatch:
    """
    Build the tensor-product patch generated by `curves`, blended across by the curves
    `curve_constructor` builds.
    """
    return TensorProductPatch(curve_constructor, curves)


def clamped_uniform_b_spline_patch(control_curves: Iterable[Curve], order: int) -> TensorProductPatch:
    """
    Patch blending the control curves with clamped uniform B-splines of degree `order`
    across. Needs at least `order + 1` curves.
    """
    return TensorProductPatch(partial(clamped_uniform_b_spline, order=order), control_curves)


def bezier_patch(control_curves: Sequence[Curve]) -> TensorProductPatch:
    """
    Ruled patch linearly blending exactly two curves.

    Raises
    ------
    PatchIncompatibleError
        If not exactly two curves are given.
    """
    control_curves = tuple(control_curves)
    if len(control_curves) != 2:
        raise PatchIncompatibleError(f"A bezier patch blends exactly 2 curves, got {len(control_curves)}.")
    return TensorProductPatch(bezier_curve, control_curves)


def cut_patch(patch: TensorProductPatch, interval: tuple[float, float], axis: str="u") -> TensorProductPatch:
    """
    Restrict `patch` to `interval` along `axis` ('u' or 'v'), keeping the original
    parameter values.
    """
    return patch.cut(interval, axis)


def patch_part(patch: TensorProductPatch, subdivisions: int, index: int, axis: str="u") -> TensorProductPatch:
    """
    Part number `index` of `patch` cut into `subdivisions` equal parts along `axis`.
    """
    return patch.part(subdivisions, index, axis)
