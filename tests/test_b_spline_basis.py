import numpy as np
import pytest
from chisel.b_spline_basis import BSplineBasis
from chisel.errors import MalformedKnotVectorError, ParameterOutOfDomainError

@pytest.fixture
def quadratic_basis():
    return BSplineBasis(2, np.array([0, 0, 0, 0.5, 1, 1, 1], dtype='float'))

@pytest.fixture
def cubic_basis():
    """Create a cubic B-spline basis with internal knots for testing."""
    return BSplineBasis(3, [0., 0., 0., 0., 0.3, 0.7, 1., 1., 1., 1.])

def test___init__():
    p = 2
    knot = np.array([0, 0, 0, 0.5, 1, 1, 1], dtype='float')
    basis = BSplineBasis(p, knot)
    assert (basis.p==p
            and np.all(basis.knot==knot)
            and basis.m==knot.size - 1
            and basis.n==basis.m - p - 1
            and basis.span==(basis.knot[basis.p], basis.knot[basis.m - basis.p]))

@pytest.mark.parametrize("p, knot", [
    (2, [0, 0, 0, 1, 0.5, 1, 1]),  # decreasing
    (2, [0, 0, 1]),                # too short
    (1, [0, 0, 0, 0]),             # empty domain
    (2, [0, 0, 0, 0, 1, 1, 1]),    # knot repeated p + 2 times
    (1, [0, 0.5, 0.5, 0.5, 1]),    # interior knot repeated p + 2 times
    (-1, [0, 1]),                  # negative degree
])
def test_malformed_knot_vector(p, knot):
    with pytest.raises(MalformedKnotVectorError):
        BSplineBasis(p, knot)

def test_knot_is_read_only(quadratic_basis):
    with pytest.raises(ValueError):
        quadratic_basis.knot[0] = -1.

def test_N(quadratic_basis):
    XI = np.linspace(0, 1, 11)
    N = np.array([(XI<=0.5)*( 4*XI**2 - 4*XI + 1)                                 ,
                  (XI<=0.5)*(-6*XI**2 + 4*XI + 0) + (XI>0.5)*( 2*XI**2 - 4*XI + 2),
                  (XI<=0.5)*( 2*XI**2 + 0*XI + 0) + (XI>0.5)*(-6*XI**2 + 8*XI - 2),
                                                    (XI>0.5)*( 4*XI**2 - 4*XI + 1)], dtype='float')
    np.testing.assert_allclose(quadratic_basis.N(XI).toarray(), N.T, atol=1e-12)

def test_N_domain_ends_interpolate(cubic_basis):
    N = cubic_basis.N(np.array([0., 1.])).toarray()
    np.testing.assert_allclose(N[0], np.eye(cubic_basis.n + 1)[0], atol=1e-12)
    np.testing.assert_allclose(N[1], np.eye(cubic_basis.n + 1)[-1], atol=1e-12)

def test_N_degree_zero():
    basis = BSplineBasis(0, [0, 0.5, 1])
    N = basis.N(np.array([0., 0.25, 0.5, 1.])).toarray()
    np.testing.assert_array_equal(N, [[1, 0], [1, 0], [0, 1], [0, 1]])

def test_N_read_only_points(quadratic_basis):
    XI = np.linspace(0, 1, 5)
    XI.flags.writeable = False
    N = quadratic_basis.N(XI).toarray()
    np.testing.assert_allclose(N.sum(axis=1), 1., atol=1e-12)
    # the knot vector itself is read-only
    N_knots = quadratic_basis.N(quadratic_basis.knot[2:5]).toarray()
    np.testing.assert_allclose(N_knots[[0, 2]], [[1, 0, 0, 0], [0, 0, 0, 1]], atol=1e-12)

def test_N_repeated_interior_knot_uses_later_span():
    basis = BSplineBasis(1, [0, 0, 0.5, 0.5, 1, 1])
    np.testing.assert_array_equal(basis.N(np.array([0.5])).toarray(), [[0, 0, 1, 0]])

def test_N_unclamped_end_is_left_limit():
    basis = BSplineBasis(2, [0, 1, 2, 3, 4, 5])
    assert basis.span==(2., 3.)
    N_end = basis.N(np.array([3.])).toarray()
    N_before = basis.N(np.array([3. - 1e-9])).toarray()
    np.testing.assert_almost_equal(N_end.sum(), 1.)
    np.testing.assert_array_almost_equal(N_end, N_before, decimal=8)

def test_N_out_of_domain(quadratic_basis):
    with pytest.raises(ParameterOutOfDomainError):
        quadratic_basis.N(np.array([0.5, 1.2]))
    with pytest.raises(ParameterOutOfDomainError):
        quadratic_basis.N(np.array([-1e-3]))

def test_partition_of_unity(cubic_basis):
    xi = np.linspace(0, 1, 37)
    np.testing.assert_array_almost_equal(cubic_basis.N(xi).toarray().sum(axis=1), np.ones(xi.size))

def test_insert_knots(quadratic_basis):
    ctrlPts = np.array([[0, 1, 1, 0], [0, 1, 2, 3]], dtype='float')
    XI = np.linspace(0, 1, 11)
    pts_before = (quadratic_basis.N(XI) @ ctrlPts.T).T
    knots_to_add = np.array([0.5, 0.75], dtype='float')
    new_basis, D = quadratic_basis.insert_knots(knots_to_add)
    new_ctrlPts = (D@ctrlPts.T).T
    pts_after = (new_basis.N(XI) @ new_ctrlPts.T).T
    np.testing.assert_allclose(pts_before, pts_after, atol=1e-12)
    # the original basis is left untouched
    np.testing.assert_array_equal(quadratic_basis.knot, [0, 0, 0, 0.5, 1, 1, 1])

def test_multiple_knot_insertion(cubic_basis):
    """Test multiple knot insertions and their effects."""
    knots_to_add = np.array([0.4, 0.5, 0.5, 0.6])  # Note: repeated knot
    new_basis, D = cubic_basis.insert_knots(knots_to_add)
    assert new_basis.multiplicity(0.5)==2
    assert new_basis.multiplicity(0.4)==1
    assert new_basis.multiplicity(0.6)==1
    D_array = D.toarray()
    assert D_array.shape==(new_basis.n + 1, cubic_basis.n + 1)
    # Check partition of unity
    np.testing.assert_array_almost_equal(np.sum(D_array, axis=1), np.ones(D_array.shape[0]))

def test_insert_knots_errors(quadratic_basis):
    with pytest.raises(ParameterOutOfDomainError):
        quadratic_basis.insert_knots([1.5])
    with pytest.raises(MalformedKnotVectorError):
        quadratic_basis.insert_knots([0.5, 0.5, 0.5])

def test_elevate_degree(quadratic_basis):
    ctrlPts = np.array([[0, 1, 1, 0], [0, 1, 2, 3]], dtype='float')
    XI = np.linspace(0, 1, 11)
    pts_before = (quadratic_basis.N(XI) @ ctrlPts.T).T
    new_basis, STD = quadratic_basis.elevate_degree(2)
    assert new_basis.p==4
    np.testing.assert_array_equal(new_basis.knot, [0]*5 + [0.5]*3 + [1]*5)
    pts_after = (new_basis.N(XI) @ (STD@ctrlPts.T)).T
    np.testing.assert_allclose(pts_before, pts_after, atol=1e-12)
    assert quadratic_basis.p==2

def test_elevate_degree_needs_clamped_knots():
    with pytest.raises(ValueError):
        BSplineBasis(2, [0, 1, 2, 3, 4, 5]).elevate_degree(1)

def test_clamped_uniform():
    basis = BSplineBasis.clamped_uniform(5, 2)
    np.testing.assert_allclose(basis.knot, [0, 0, 0, 1/3, 2/3, 1, 1, 1])
    assert basis.n + 1==5 and basis.is_clamped()
    with pytest.raises(MalformedKnotVectorError):
        BSplineBasis.clamped_uniform(2, 2)

def test_greville_abscissa(quadratic_basis):
    np.testing.assert_allclose(quadratic_basis.greville_abscissa(), [0, 0.25, 0.75, 1])

def test_reparametrize(quadratic_basis):
    new_basis = quadratic_basis.reparametrize(2., 6.)
    assert new_basis.span==(2., 6.)
    np.testing.assert_allclose(new_basis.knot, [2, 2, 2, 4, 6, 6, 6])
    XI = np.linspace(0, 1, 9)
    np.testing.assert_allclose(quadratic_basis.N(XI).toarray(), new_basis.N(2 + 4*XI).toarray(), atol=1e-12)
    with pytest.raises(ValueError):
        quadratic_basis.reparametrize(1., 1.)

def test_linspace(quadratic_basis):
    xi = quadratic_basis.linspace(2)
    np.testing.assert_allclose(xi, [0, 0.25, 0.5, 0.75, 1])
