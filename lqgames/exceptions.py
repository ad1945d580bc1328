"""
Exceptions raised by `lqgames`. Each one subclasses the builtin exception that
would otherwise be raised in the same situation, so callers catching
`ValueError` or `LinAlgError` continue to work.
"""

import numpy as np


class DimensionMismatch(ValueError):
    """Dimensions of dynamics, costs, strategies or the control partition are
    inconsistent. Raised at construction time."""
    pass


class SingularGainSystem(np.linalg.LinAlgError):
    """The linear system for the feedback gains and feedforward terms of an LQ
    game is singular (or numerically singular) at some time step."""
    def __init__(self, message, time_index=None):
        super().__init__(message)
        self.time_index = time_index


class DifferentiationFailure(ArithmeticError):
    """Derivatives of the dynamics or a cost function could not be evaluated at
    an operating point."""
    def __init__(self, message, time_index=None):
        super().__init__(message)
        self.time_index = time_index
