"""
Error taxonomy for ecommath.

Every computation reports failure to its caller with one of these
exceptions. Nothing is retried: all computations are deterministic.
"""


class EcomMathError(Exception):
    """Base class for all ecommath errors."""


class EmptyInput(EcomMathError, ValueError):
    """Raised when a computation receives no rows (or no columns)."""


class ShapeMismatch(EcomMathError, ValueError):
    """Raised when two inputs that must agree in shape do not."""


class TypeMismatch(EcomMathError, ValueError):
    """Raised when a value does not match its column type."""


class ZeroVariance(EcomMathError, ArithmeticError):
    """Raised when a column has zero standard deviation."""


class SingularCovariance(EcomMathError, ArithmeticError):
    """Raised when a covariance matrix cannot be inverted."""


class SingularCorrelation(EcomMathError, ArithmeticError):
    """Raised when a correlation matrix cannot be inverted."""


class SingularInput(EcomMathError, ArithmeticError):
    """Raised when a correlation matrix is not positive semi-definite."""
