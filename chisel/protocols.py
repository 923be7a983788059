from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class Transformable(Protocol):
    """
    Anything an affine map can be applied to.

    `linear_transform` must return a new entity of the same shape and leave
    `self` untouched.
    """

    def linear_transform(self, matrix: np.ndarray[np.floating]) -> "Transformable": ...


@runtime_checkable
class Evaluable(Protocol):
    """
    A parametric entity (curve or patch) mapping its domain to Euclidean points.
    """

    @property
    def domain(self): ...

    def evaluate(self, *params) -> np.ndarray[np.floating]: ...


@runtime_checkable
class Meshable(Protocol):
    """
    A 2-parameter entity that can be sampled into a mesh.
    """

    def triangle_mesh(self, resolution, **kwargs): ...
