from typing import Iterable

import numpy as np
import numba as nb
import scipy.sparse as sps
from scipy.special import comb

from .errors import MalformedKnotVectorError, ParameterOutOfDomainError


class BSplineBasis:
    """
    BSpline basis in 1D.

    A one-dimensional B-spline basis: a degree and a knot vector. Provides basis
    evaluation and the knot arithmetic used by the curves (knot insertion,
    degree elevation, re-parametrization). Instances are never modified: every
    operation returns a new basis, together with the matrix mapping the old
    control points onto the new ones when the operation changes them.

    Attributes
    ----------
    p : int
        Degree of the polynomials composing the basis. This is the `order`
        argument of the curve constructors.
    knot : np.ndarray[np.floating]
        Knot vector defining the B-spline basis. Contains non-decreasing sequence
        of parameter values. Read-only.
    m : int
        Last index of the knot vector (size - 1).
    n : int
        Last index of the basis functions. When evaluated, returns an array of size
        `n + 1`.
    span : tuple[float, float]
        Interval of definition of the basis `(knot[p], knot[m - p])`.

    Notes
    -----
    A parameter lying on a knot belongs to the knot span starting at that knot,
    so on an interior repeated knot the span with the higher index is used. The
    end of the domain is the exception: it belongs to the last non-empty span,
    which makes a clamped basis interpolate its last control point.
    """

    p: int
    knot: np.ndarray[np.floating]
    m: int
    n: int
    span: tuple[float, float]

    def __init__(self, p: int, knot: Iterable[float]):
        """
        Initialize a B-spline basis with specified degree and knot vector.

        Parameters
        ----------
        p : int
            Degree of the B-spline polynomials.
        knot : Iterable[float]
            Knot vector defining the B-spline basis. Must be a non-decreasing sequence
            of real numbers of size at least `p + 2`.

        Raises
        ------
        MalformedKnotVectorError
            If the knot vector is too short, decreasing, repeats a knot more than
            `p + 1` times, or spans an empty domain.

        Examples
        --------
        >>> basis = BSplineBasis(2, [0., 0., 0., 1., 1., 1.])
        >>> basis.span
        (0.0, 1.0)
        """
        if int(p) != p or p < 0:
            raise MalformedKnotVectorError(f"The degree must be a non negative integer, got {p}.")
        knot = np.array(knot, dtype='float')
        if knot.ndim != 1 or knot.size < p + 2:
            raise MalformedKnotVectorError(f"A degree {p} basis needs at least {p + 2} knots, got {knot.size}.")
        if np.any(np.diff(knot) < 0):
            raise MalformedKnotVectorError(f"The knot vector must be non-decreasing, got {knot}.")
        _, counts = np.unique(knot, return_counts=True)
        if counts.max() > p + 1:
            raise MalformedKnotVectorError(f"A knot of a degree {p} basis can't be repeated more than {p + 1} times, got {knot}.")
        knot.flags.writeable = False
        self.p = int(p)
        self.knot = knot
        self.m = self.knot.size - 1
        self.n = self.m - self.p - 1
        self.span = (float(self.knot[self.p]), float(self.knot[self.m - self.p]))
        if not self.span[0] < self.span[1]:
            raise MalformedKnotVectorError(f"The knot vector {knot} defines an empty domain for degree {p}.")

    @classmethod
    def clamped_uniform(cls, nb_func: int, p: int) -> "BSplineBasis":
        """
        Create the clamped uniform basis of `nb_func` functions over [0, 1]:
        end knots repeated `p + 1` times, interior knots evenly spaced.

        Raises
        ------
        MalformedKnotVectorError
            If `nb_func < p + 1`.

        Examples
        --------
        >>> BSplineBasis.clamped_uniform(5, 2).knot
        array([0.        , 0.        , 0.        , 0.33333333, 0.66666667,
               1.        , 1.        , 1.        ])
        """
        if nb_func < p + 1:
            raise MalformedKnotVectorError(f"A degree {p} B-spline needs at least {p + 1} control points, got {nb_func}.")
        interior = np.linspace(0, 1, nb_func - p + 1)[1:-1]
        knot = np.concatenate((np.zeros(p + 1), interior, np.ones(p + 1)))
        return cls(p, knot)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BSplineBasis):
            return NotImplemented
        return self.p == other.p and np.array_equal(self.knot, other.knot)

    def __repr__(self) -> str:
        return f"BSplineBasis(p={self.p}, knot={self.knot.tolist()})"

    def is_clamped(self) -> bool:
        """
        Whether both end knots are repeated `p + 1` times.
        """
        return self.multiplicity(self.knot[0]) == self.p + 1 and self.multiplicity(self.knot[-1]) == self.p + 1

    def multiplicity(self, xi: float) -> int:
        """
        Number of times `xi` appears in the knot vector.
        """
        return int(np.count_nonzero(self.knot == xi))

    def greville_abscissa(self) -> np.ndarray[np.floating]:
        """
        Compute the Greville abscissa: the parameter attached to each control point,
        average of the `p` knots following its index.

        Examples
        --------
        >>> BSplineBasis(2, [0., 0., 0., 0.5, 1., 1., 1.]).greville_abscissa()
        array([0.  , 0.25, 0.75, 1.  ])
        """
        if self.p == 0:
            return 0.5*(self.knot[:-1] + self.knot[1:])
        windows = np.lib.stride_tricks.sliding_window_view(self.knot[1:-1], self.p)
        return windows.mean(axis=1)

    def linspace(self, n_eval_per_elem: int=10) -> np.ndarray[np.floating]:
        """
        Generate evenly spaced points over the basis span.

        Points are distributed uniformly within each knot span (element); spacing
        may vary between elements.

        Examples
        --------
        >>> basis = BSplineBasis(2, [0., 0., 0., 1., 1., 1.])
        >>> basis.linspace(5)
        array([0. , 0.2, 0.4, 0.6, 0.8, 1. ])
        """
        knot_uniq = np.unique(
            self.knot[
                np.logical_and(self.knot >= self.span[0], self.knot <= self.span[1])
            ]
        )
        xi = np.linspace(knot_uniq[-2], knot_uniq[-1], n_eval_per_elem + 1)
        for i in range(knot_uniq.size - 2, 0, -1):
            xi = np.append(
                np.linspace(
                    knot_uniq[i - 1], knot_uniq[i], n_eval_per_elem, endpoint=False
                ),
                xi,
            )
        return xi

    def check_domain(self, XI: np.ndarray[np.floating]):
        """
        Raise a `ParameterOutOfDomainError` if any value of `XI` lies outside `span`.
        """
        XI = np.asarray(XI, dtype='float')
        outside = ~np.logical_and(XI >= self.span[0], XI <= self.span[1])
        if np.any(outside):
            raise ParameterOutOfDomainError(f"{XI[outside].ravel()[0]} is outside the domain {self.span} !")

    def N(self, XI: np.ndarray[np.floating]) -> sps.coo_matrix:
        """
        Evaluate the B-spline basis functions at specified points.

        Parameters
        ----------
        XI : np.ndarray[np.floating]
            Points in the parametric space at which to evaluate the basis functions.

        Returns
        -------
        N : sps.coo_matrix
            Sparse matrix of shape (`XI.size`, `n + 1`): one row per evaluation point,
            one column per basis function.

        Raises
        ------
        ParameterOutOfDomainError
            If a point lies outside `span`.

        Examples
        --------
        >>> basis = BSplineBasis(2, [0., 0., 0., 1., 1., 1.])
        >>> basis.N(np.array([0., 0.5, 1.])).toarray()
        array([[1.  , 0.  , 0.  ],
               [0.25, 0.5 , 0.25],
               [0.  , 0.  , 1.  ]])
        """
        XI = np.array(XI, dtype=np.float64).ravel()
        self.check_domain(XI)
        knot = np.array(self.knot)
        vals, row, col = _N(self.p, self.m, self.n, knot, XI, self.span[1])
        N = sps.coo_matrix((vals, (row, col)), shape=(XI.size, self.n + 1))
        return N

    def reparametrize(self, lower: float, upper: float) -> "BSplineBasis":
        """
        Map the knot vector affinely so that the span becomes [`lower`, `upper`].

        Knots equal to the old span ends are set exactly to the new ones, so the
        new domain ends are exact.

        Examples
        --------
        >>> BSplineBasis(2, [0., 0., 0., 2., 2., 2.]).reparametrize(0, 1).knot
        array([0., 0., 0., 1., 1., 1.])
        """
        if not lower < upper:
            raise ValueError(f"Can't map the domain onto the empty interval [{lower}, {upper}].")
        a, b = self.span
        new_knot = lower + (self.knot - a)*((upper - lower)/(b - a))
        new_knot[self.knot == a] = lower
        new_knot[self.knot == b] = upper
        return BSplineBasis(self.p, new_knot)

    def _funcDElem(self, i, j, new_knot, p):
        """
        Compute the ij value of the knot insertion matrix D.

        Parameters
        ----------
        i : int
            Row index of D.
        j : int
            Column index of D.
        new_knot : numpy.array of float
            New knot vector to use.
        p : int
            Degree of the BSpline.

        Returns
        -------
        D_ij : float
            Value of D at the index ij.
        """
        if p == 0:
            return int(new_knot[i] >= self.knot[j] and new_knot[i] < self.knot[j + 1])
        if self.knot[j + p] != self.knot[j]:
            rec_p = (new_knot[i + p] - self.knot[j]) / (self.knot[j + p] - self.knot[j])
            rec_p *= self._funcDElem(i, j, new_knot, p - 1)
        else:
            rec_p = 0
        if self.knot[j + p + 1] != self.knot[j + 1]:
            rec_j = (self.knot[j + p + 1] - new_knot[i + p]) / (
                self.knot[j + p + 1] - self.knot[j + 1]
            )
            rec_j *= self._funcDElem(i, j + 1, new_knot, p - 1)
        else:
            rec_j = 0
        D_ij = rec_p + rec_j
        return D_ij

    def _D(self, new_knot):
        """
        Compute the `D` matrix such that new control points = `D` @ old control points
        when the basis is refined to `new_knot`.
        """
        new_m = new_knot.size - 1
        new_n = new_m - self.p - 1
        loop1 = new_n + 1
        loop2 = self.p + 1
        knot = np.array(self.knot)
        vals = []
        row = []
        col = []
        for i in range(loop1):
            # find {elem} so that new_knot_i \in [knot_{elem}, knot_{{elem} + 1}[
            elem = _findElem(self.p, self.m, self.n, knot, new_knot[i])
            # only the D_ij with j in [elem - p, elem] can be non zero
            for ind2 in range(loop2):
                j = ind2 + elem - self.p
                if 0 <= j <= elem:
                    vals.append(self._funcDElem(i, j, new_knot, self.p))
                    row.append(i)
                    col.append(j)
        D = sps.coo_matrix((vals, (row, col)), shape=(new_n + 1, self.n + 1))
        return D

    def insert_knots(self, knots_to_add: Iterable[float]) -> tuple["BSplineBasis", sps.coo_matrix]:
        """
        Insert knots into the basis.

        Parameters
        ----------
        knots_to_add : Iterable[float]
            Knots to insert, inside `span`. A value may be repeated.

        Returns
        -------
        basis : BSplineBasis
            The refined basis.
        D : sps.coo_matrix
            Transformation matrix such that new control points = `D` @ old control points.

        Raises
        ------
        ParameterOutOfDomainError
            If a knot lies outside `span`.
        MalformedKnotVectorError
            If a knot would end up with a multiplicity above `p + 1`.

        Examples
        --------
        >>> basis = BSplineBasis(2, [0, 0, 0, 1, 1, 1])
        >>> new_basis, D = basis.insert_knots([0.5])
        >>> new_basis.knot
        array([0. , 0. , 0. , 0.5, 1. , 1. , 1. ])
        >>> D.toarray()
        array([[1. , 0. , 0. ],
               [0.5, 0.5, 0. ],
               [0. , 0.5, 0.5],
               [0. , 0. , 1. ]])
        """
        knots_to_add = np.asarray(knots_to_add, dtype='float').ravel()
        self.check_domain(knots_to_add)
        new_knot = np.sort(np.concatenate((self.knot, knots_to_add)))
        _, counts = np.unique(new_knot[self.p:new_knot.size - self.p], return_counts=True)
        if counts.size and counts.max() > self.p + 1:
            raise MalformedKnotVectorError(f"A knot of a degree {self.p} basis can't be repeated more than {self.p + 1} times.")
        D = self._D(new_knot)
        return BSplineBasis(self.p, new_knot), D

    def elevate_degree(self, t: int) -> tuple["BSplineBasis", sps.coo_matrix]:
        """
        Elevate the polynomial degree of a clamped basis.

        Parameters
        ----------
        t : int
            Amount by which to increase the basis degree.

        Returns
        -------
        basis : BSplineBasis
            The basis of degree `p + t`, every knot multiplicity raised by `t`.
        STD : sps.coo_matrix
            Transformation matrix such that new control points = `STD` @ old control points.

        Notes
        -----
        The method:
        1. Separates B-spline into Bézier segments via knot insertion
        2. Elevates degree of each Bézier segment
        3. Recombines segments into elevated B-spline via knot removal

        Examples
        --------
        >>> basis = BSplineBasis(2, [0, 0, 0, 1, 1, 1])
        >>> new_basis, STD = basis.elevate_degree(1)
        >>> STD.toarray()
        array([[1.        , 0.        , 0.        ],
               [0.33333333, 0.66666667, 0.        ],
               [0.        , 0.66666667, 0.33333333],
               [0.        , 0.        , 1.        ]])
        """
        if t < 0:
            raise ValueError(f"Can't elevate the degree by {t}.")
        if t == 0:
            return self, sps.identity(self.n + 1, format='coo')
        if not self.is_clamped():
            raise ValueError("Degree elevation needs a clamped knot vector.")
        no_dup, counts = np.unique(self.knot, return_counts=True)
        missed = self.p + 1 - counts
        p1 = self.p
        p2 = p1 + t
        knot0 = self.knot
        knot1 = np.sort(np.concatenate((knot0, np.repeat(no_dup, missed)), axis=0))
        knot2 = np.sort(np.repeat(no_dup, p2 + 1))
        knot3 = np.sort(np.concatenate((knot0, np.repeat(no_dup, t)), axis=0))
        # step 1 : separate the B-spline in bezier curves by knot insertion
        D = self._D(knot1)
        # step 2 : perform the order elevation on every bezier curve
        num_bezier = no_dup.size - 1
        vals = []
        row = []
        col = []
        for segment in range(num_bezier):
            i_offset = segment*(p2 + 1)
            j_offset = segment*(p1 + 1)
            for i in range(p2 + 1):
                inv_denom = 1 / comb(p2, i)
                for j in range(max(0, i - t), min(i, p1) + 1):
                    vals.append(comb(p1, j) * comb(t, i - j) * inv_denom)
                    row.append(i_offset + i)
                    col.append(j_offset + j)
        T = sps.coo_matrix(
            (vals, (row, col)), shape=((p2 + 1) * num_bezier, (p1 + 1) * num_bezier)
        )
        # step 3 : come back to B-spline by removing useless knots
        S = BSplineBasis(p2, knot2)._D(knot3)
        STD = S @ T @ D
        return BSplineBasis(p2, knot3), sps.coo_matrix(STD)


# %% fast functions for evaluation


@nb.njit(nb.float64(nb.int64, nb.int64, nb.float64[:], nb.float64, nb.float64), cache=True)
def _funcNElemOneXi(i, p, knot, xi, end):
    """
    Evaluate the basis function N_i^p(xi) of the BSpline.

    Parameters
    ----------
    i : int
        Index of the basis function wanted.
    p : int
        Degree of the BSpline evaluated.
    knot : numpy.array of float
        Knot vector of the BSpline basis.
    xi : float
        Value in the parametric space at which the BSpline is evaluated.
    end : float
        Upper bound of the domain, evaluated as a left limit.

    Returns
    -------
    N_i : float
        Value of the BSpline basis function N_i^p(xi).
    """
    if p == 0:
        if xi == end:
            return 1. if (knot[i] < knot[i + 1] and knot[i + 1] == end) else 0.
        return 1. if (xi >= knot[i] and xi < knot[i + 1]) else 0.
    if knot[i + p] != knot[i]:
        rec_p = (xi - knot[i]) / (knot[i + p] - knot[i])
        rec_p *= _funcNElemOneXi(i, p - 1, knot, xi, end)
    else:
        rec_p = 0.
    if knot[i + p + 1] != knot[i + 1]:
        rec_i = (knot[i + p + 1] - xi) / (knot[i + p + 1] - knot[i + 1])
        rec_i *= _funcNElemOneXi(i + 1, p - 1, knot, xi, end)
    else:
        rec_i = 0.
    N_i = rec_p + rec_i
    return N_i


@nb.njit(nb.int64(nb.int64, nb.int64, nb.int64, nb.float64[:], nb.float64), cache=True)
def _findElem(p, m, n, knot, xi):
    """
    Find `i` so that `xi` belongs to
    [ `knot`[`i`], `knot`[`i` + 1] [.

    Parameters
    ----------
    p : int
        Degree of the polynomials composing the basis.
    m : int
        Last index of the knot vector.
    n : int
        Last index of the basis.
    knot : numpy.array of float
        Knot vector of the BSpline basis.
    xi : float
        Value in the parametric space.

    Raises
    ------
    ValueError
        If the value of `xi` is outside the definition interval
        of the spline.

    Returns
    -------
    i : int
        Index of the first knot of the interval in which `xi` is bounded.
    """
    if xi == knot[m - p]:
        return n
    i = 0
    pastrouve = True
    while i <= n and pastrouve:
        pastrouve = xi < knot[i] or xi >= knot[i + 1]
        i += 1
    if pastrouve:
        raise ValueError("xi is outside the definition interval of the spline !")
    i -= 1
    return i


@nb.njit(
    nb.types.UniTuple.from_types((nb.float64[:], nb.int64[:], nb.int64[:]))(
        nb.int64, nb.int64, nb.int64, nb.float64[:], nb.float64[:], nb.float64
    ),
    cache=True,
)
def _N(p, m, n, knot, XI, end):
    """
    Compute the BSpline basis functions for a set of values in the
    parametric space.

    Returns
    -------
    (vals, row, col) : (numpy.array of float, numpy.array of int, numpy.array of int)
        Values and indices of the basis functions in the columns for each
        value of `XI` in the rows.
    """
    loop1 = XI.size
    loop2 = p + 1
    nb_val_max = loop1 * loop2
    vals = np.empty(nb_val_max, dtype="float")
    row = np.empty(nb_val_max, dtype="int")
    col = np.empty(nb_val_max, dtype="int")
    nb_put = 0
    for i_xi in range(loop1):
        xi = XI[i_xi]
        # find {elem} so that \xi \in [\xi_{elem}, \xi_{{elem} + 1}[
        elem = _findElem(p, m, n, knot, xi)
        # determine N_i(\xi) for the values of i where we know N_i(\xi) not equal to 0
        for ind2 in range(loop2):
            i = ind2 + elem - p
            if i >= 0:
                vals[nb_put] = _funcNElemOneXi(i, p, knot, xi, end)
                row[nb_put] = i_xi
                col[nb_put] = i
                nb_put += 1
    return (vals[:nb_put], row[:nb_put], col[:nb_put])
