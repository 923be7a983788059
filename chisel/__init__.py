"""
.. include:: ../README.md
"""
from chisel.errors import (ChiselError,
                           MalformedKnotVectorError,
                           ParameterOutOfDomainError,
                           PatchIncompatibleError,
                           DegenerateWeightError)
from chisel.protocols import Transformable, Evaluable, Meshable
from chisel.coordinates import (AXES,
                                add,
                                difference,
                                scale,
                                to_homogeneous,
                                as_homogeneous,
                                project,
                                translate_matrix,
                                scale_matrix,
                                flip_matrix,
                                rotate_matrix,
                                compose,
                                linear_transform)
from chisel.b_spline_basis import BSplineBasis
from chisel.curves import (DOMAIN_TOL,
                           Curve,
                           BSplineCurve,
                           BezierCurve,
                           clamped_b_spline,
                           clamped_uniform_b_spline,
                           bezier_curve,
                           composite_bezier_curve,
                           unify_curve,
                           unify_curves,
                           cut_curve,
                           insert_knots,
                           elevate_degree,
                           resolve_points)
from chisel.patches import (TensorProductPatch,
                            tensor_product_patch,
                            clamped_uniform_b_spline_patch,
                            bezier_patch,
                            cut_patch,
                            patch_part)
from chisel.mesh import triangle_mesh, grid_faces, face_normals, merge_meshes
from chisel.geometries import circle_arc, circle, ellipse, unit_circle, cylinder
from chisel.parallel_utils import parallel_blocks
from chisel.plotting import plot_curve, plot_patch
