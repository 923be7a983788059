class ChiselError(Exception):
    """
    Base class of every error raised by the kernel.
    """


class MalformedKnotVectorError(ChiselError, ValueError):
    """
    The knot vector is inconsistent with the control points and the order:
    wrong length, decreasing values, or too few control points.
    """


class ParameterOutOfDomainError(ChiselError, ValueError):
    """
    A parameter lies outside the domain of the curve or patch it is applied to.
    """


class PatchIncompatibleError(ChiselError, ValueError):
    """
    The curves fed to a patch disagree in variant, number of control points,
    order, knot structure or domain.
    """


class DegenerateWeightError(ChiselError, ZeroDivisionError):
    """
    A homogeneous point with a zero weight was projected to Euclidean space.
    """
