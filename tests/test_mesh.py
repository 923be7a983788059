import numpy as np
import pytest
import meshio as io
from chisel.mesh import triangle_mesh, grid_faces, face_normals, merge_meshes
from chisel.patches import bezier_patch, clamped_uniform_b_spline_patch
from chisel.curves import bezier_curve, clamped_uniform_b_spline
from chisel.coordinates import translate_matrix

@pytest.fixture
def ruled_patch():
    bottom = bezier_curve([(0, 0, 0), (1, 0, 0)])
    top = bezier_curve([(0, 0, 10), (1, 0, 10)])
    return bezier_patch([bottom, top])

@pytest.fixture
def spline_patch():
    profile = clamped_uniform_b_spline([(0, 0, 0), (1, 1, 0), (2, -1, 0), (3, 0, 0)], 2)
    curves = [profile.linear_transform(translate_matrix(0, 0.2*k*k, k)) for k in range(4)]
    return clamped_uniform_b_spline_patch(curves, 2)

def test_single_cell_mesh(ruled_patch):
    mesh = triangle_mesh(ruled_patch, [1, 1])
    assert isinstance(mesh, io.Mesh)
    assert mesh.points.shape==(4, 3)
    np.testing.assert_array_equal(mesh.cells_dict["quad"], [[0, 2, 3, 1]])
    np.testing.assert_allclose(mesh.points, [[0, 0, 0], [0, 0, 10], [1, 0, 0], [1, 0, 10]])

@pytest.mark.parametrize("resolution", [(1, 1), (3, 2), (4, 7)])
def test_mesh_counts(spline_patch, resolution):
    nu, nv = resolution
    quads = triangle_mesh(spline_patch, resolution)
    assert quads.points.shape==((nu + 1)*(nv + 1), 3)
    assert quads.cells_dict["quad"].shape==(nu*nv, 4)
    tris = spline_patch.triangle_mesh(resolution, triangulate=True)
    assert tris.cells_dict["triangle"].shape==(2*nu*nv, 3)
    np.testing.assert_array_equal(tris.points, quads.points)

def test_mesh_corners(spline_patch):
    nu, nv = 5, 3
    mesh = triangle_mesh(spline_patch, (nu, nv))
    (u0, u1), (v0, v1) = spline_patch.domain
    corners = {0: (u0, v0), nv: (u0, v1), nu*(nv + 1): (u1, v0), (nu + 1)*(nv + 1) - 1: (u1, v1)}
    for idx, (u, v) in corners.items():
        np.testing.assert_allclose(mesh.points[idx], spline_patch(u, v), rtol=0, atol=1e-13)

def test_vertex_ordering(spline_patch):
    nu, nv = 3, 4
    mesh = triangle_mesh(spline_patch, (nu, nv))
    us = np.linspace(0, 1, nu + 1)
    vs = np.linspace(0, 1, nv + 1)
    i, j = 2, 3
    np.testing.assert_allclose(mesh.points[i*(nv + 1) + j], spline_patch(us[i], vs[j]))

def test_integer_resolution(spline_patch):
    mesh = triangle_mesh(spline_patch, 3)
    assert mesh.points.shape==(16, 3)

@pytest.mark.parametrize("resolution", [(0, 1), (1, -2), (1.5, 2), (1, 2, 3), 0])
def test_bad_resolution(ruled_patch, resolution):
    with pytest.raises(ValueError):
        triangle_mesh(ruled_patch, resolution)

def test_grid_faces():
    quads = grid_faces(2, 1)
    np.testing.assert_array_equal(quads, [[0, 2, 3, 1], [2, 4, 5, 3]])
    tris = grid_faces(2, 1, triangulate=True)
    np.testing.assert_array_equal(tris, [[0, 2, 3], [0, 3, 1], [2, 4, 5], [2, 5, 3]])

def test_face_normals(ruled_patch):
    mesh = triangle_mesh(ruled_patch, (2, 2), triangulate=True)
    normals = face_normals(mesh)
    assert normals.shape==(8, 3)
    np.testing.assert_allclose(normals, np.tile([0, -1, 0], (8, 1)), atol=1e-12)

def test_face_normals_degenerate():
    mesh = io.Mesh(np.zeros((3, 3)), {"triangle": np.array([[0, 1, 2]])})
    np.testing.assert_array_equal(face_normals(mesh), [[0, 0, 0]])

def test_parallel_tessellation(spline_patch):
    sequential = triangle_mesh(spline_patch, (6, 4), num_blocks=1)
    parallel = triangle_mesh(spline_patch, (6, 4), num_blocks=2)
    np.testing.assert_array_equal(sequential.points, parallel.points)
    np.testing.assert_array_equal(sequential.cells_dict["quad"], parallel.cells_dict["quad"])

def test_merge_meshes(ruled_patch, spline_patch):
    a = triangle_mesh(ruled_patch, (1, 1))
    b = triangle_mesh(spline_patch, (2, 2))
    merged = merge_meshes([a, b])
    assert merged.points.shape==(4 + 9, 3)
    quads = merged.cells_dict["quad"]
    assert quads.shape==(1 + 4, 4)
    np.testing.assert_array_equal(quads[1], b.cells_dict["quad"][0] + 4)
    with pytest.raises(ValueError):
        merge_meshes([])

def test_merge_quad_and_triangle_meshes(ruled_patch, spline_patch):
    a = triangle_mesh(ruled_patch, (1, 1))
    b = triangle_mesh(spline_patch, (2, 2), triangulate=True)
    merged = merge_meshes([a, b])
    assert set(merged.cells_dict)=={"quad", "triangle"}
    np.testing.assert_array_equal(merged.cells_dict["quad"], a.cells_dict["quad"])
    np.testing.assert_array_equal(merged.cells_dict["triangle"], b.cells_dict["triangle"] + 4)
