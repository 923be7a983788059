from typing import Iterable, Sequence, Union

import numpy as np
import meshio as io

from .parallel_utils import parallel_blocks


def _check_resolution(resolution):
    if np.ndim(resolution) == 0:
        resolution = (resolution, resolution)
    if len(resolution) != 2:
        raise ValueError(f"The resolution must be an int or a pair of ints, got {resolution}.")
    nu, nv = resolution
    for n in (nu, nv):
        if int(n) != n or n < 1:
            raise ValueError(f"The resolution must be made of positive integers, got {resolution}.")
    return int(nu), int(nv)


def grid_faces(nu: int, nv: int, triangulate: bool=False) -> np.ndarray[np.integer]:
    """
    Connectivity of a `(nu + 1) x (nv + 1)` vertex grid whose vertex `(i, j)` has the
    index `i*(nv + 1) + j`.

    Each grid cell gives the quad `[a, b, c, d]` with `a = (i, j)`, `b = (i + 1, j)`,
    `c = (i + 1, j + 1)` and `d = (i, j + 1)`, or the two triangles `[a, b, c]` and
    `[a, c, d]` when `triangulate` is set. Cells are listed row by row.

    Returns
    -------
    faces : np.ndarray[np.integer]
        Shape (`nu*nv`, 4), or (2*`nu*nv`, 3) if `triangulate`.

    Examples
    --------
    >>> grid_faces(1, 1)
    array([[0, 2, 3, 1]])
    >>> grid_faces(1, 1, triangulate=True)
    array([[0, 2, 3],
           [0, 3, 1]])
    """
    nu, nv = _check_resolution((nu, nv))
    idx = np.arange((nu + 1)*(nv + 1)).reshape((nu + 1, nv + 1))
    a = idx[:-1, :-1]
    b = idx[1:, :-1]
    c = idx[1:, 1:]
    d = idx[:-1, 1:]
    quads = np.stack((a, b, c, d), axis=-1).reshape((-1, 4))
    if not triangulate:
        return quads
    return np.stack((quads[:, [0, 1, 2]], quads[:, [0, 2, 3]]), axis=1).reshape((-1, 3))


def _evaluate_row(patch, u, vs):
    return patch.row(u, vs)


def triangle_mesh(patch,
                  resolution: Union[int, Sequence[int]],
                  triangulate: bool=False,
                  num_blocks: int=1,
                  verbose: bool=False) -> io.Mesh:
    """
    Sample a patch on a regular parameter grid and build its surface mesh.

    Parameters
    ----------
    patch : Evaluable
        Patch with a `domain` `((u0, u1), (v0, v1))` and a `row(u, vs)` method
        (see `TensorProductPatch`).
    resolution : Union[int, Sequence[int]]
        Number of cells `(nu, nv)` along `u` and `v`, or a single int for both.
        The grid holds `(nu + 1)*(nv + 1)` vertices spanning the full domain,
        corners included.
    triangulate : bool, optional
        If True, split each quad cell into two triangles. By default, False.
    num_blocks : int, optional
        Number of worker processes sharing the grid rows. By default, 1 (sequential).
        The result doesn't depend on it.
    verbose : bool, optional
        If True, report progress. By default, False.

    Returns
    -------
    mesh : io.Mesh
        Points of shape (`(nu + 1)*(nv + 1)`, 3) and a single "quad" (or "triangle")
        cell block, see `grid_faces` for the vertex ordering.

    Raises
    ------
    ValueError
        If the resolution is not made of positive integers.

    Examples
    --------
    >>> from chisel import bezier_curve, bezier_patch
    >>> bottom = bezier_curve([(0, 0, 0), (1, 0, 0)])
    >>> top = bezier_curve([(0, 0, 10), (1, 0, 10)])
    >>> mesh = triangle_mesh(bezier_patch([bottom, top]), [1, 1])
    >>> mesh.points.shape, mesh.cells_dict["quad"]
    ((4, 3), array([[0, 2, 3, 1]]))
    """
    nu, nv = _check_resolution(resolution)
    (u0, u1), (v0, v1) = patch.domain
    us = np.linspace(u0, u1, nu + 1)
    vs = np.linspace(v0, v1, nv + 1)
    rows = parallel_blocks(
        _evaluate_row,
        [(patch, u, vs) for u in us],
        num_blocks=num_blocks,
        verbose=verbose,
        pbar_title="Tessellating",
    )
    # (3, nu + 1, nv + 1) -> (N, 3) with vertex (i, j) at i*(nv + 1) + j
    points = np.stack(rows, axis=1).reshape((3, -1)).T
    cell_type = "triangle" if triangulate else "quad"
    cells = {cell_type: grid_faces(nu, nv, triangulate)}
    if verbose:
        print(f"Mesh: {points.shape[0]} vertices, {cells[cell_type].shape[0]} {cell_type}s")
    return io.Mesh(points, cells)


def face_normals(mesh: io.Mesh) -> np.ndarray[np.floating]:
    """
    Unit normal of each face of a single-block mesh, from its first three vertices
    `(a, b, c)` as `(b - a) x (c - a)`. Degenerate faces get a null normal.

    Returns
    -------
    normals : np.ndarray[np.floating]
        Shape (number of faces, 3).
    """
    faces = mesh.cells[0].data
    a, b, c = (mesh.points[faces[:, k]] for k in range(3))
    normals = np.cross(b - a, c - a)
    norms = np.linalg.norm(normals, axis=1, keepdims=True)
    return np.divide(normals, norms, out=np.zeros_like(normals), where=norms > 0)


def merge_meshes(meshes: Iterable[io.Mesh]) -> io.Mesh:
    """
    Merge several meshes (for example the meshes of the patches of one part)
    into a single mesh. Vertices are stacked and the cell indices of each mesh are
    shifted by the number of vertices before it. Every cell type found in any
    of the meshes is kept.
    """
    meshes = list(meshes)
    if not meshes:
        raise ValueError("At least one mesh is needed !")
    vertices = np.vstack([m.points for m in meshes])
    cells = {}
    counter = 0
    for m in meshes:
        for cell_type, data in m.cells_dict.items():
            cells.setdefault(cell_type, []).append(data + counter)
        counter += m.points.shape[0]
    cells = {cell_type: np.vstack(data) for cell_type, data in cells.items()}
    return io.Mesh(vertices, cells)
