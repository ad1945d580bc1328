"""
Differentiation providers. Models in `lqgames.game` receive one of these by
injection and use it for any derivative they don't implement analytically. A
provider is any object with a method `jacobian(fun, x0, f0=None)` following the
conventions of `FiniteDifference.jacobian`, so an automatic differentiation
wrapper can be substituted for finite differences.
"""

import numpy as np
from scipy.optimize import _numdiff


_METHODS = ('2-point', '3-point', 'cs')


class FiniteDifference:
    """
    Batched finite difference approximation of Jacobians of array-valued
    functions, modified from `scipy.optimize._numdiff.approx_derivative` to
    allow for functions evaluated at multiple inputs at once.
    """
    def __init__(self, method='3-point', rel_step=None, abs_step=None):
        """
        Parameters
        ----------
        method : {'3-point', '2-point', 'cs'}, default='3-point'
            Finite difference scheme:

                * '2-point' - first order forward difference.
                * '3-point' - second order central difference.
                * 'cs' - complex step. Assumes the function is real-valued and
                         can be analytically continued to the complex plane.
        rel_step : array_like, optional
            Relative step size. By default chosen as `EPS**(1/s)` with `s=2`
            for '2-point' and `s=3` for '3-point', which approximately
            minimizes the sum of truncation and round-off errors.
        abs_step : array_like, optional
            Absolute step size. Used instead of `rel_step` if given.
        """
        if method not in _METHODS:
            raise ValueError(f"Unknown method '{method}'. Must be one of "
                             f"{_METHODS}")
        self.method = method
        self.rel_step = rel_step
        self.abs_step = abs_step

    def __repr__(self):
        return f"{type(self).__name__}(method='{self.method}')"

    def jacobian(self, fun, x0, f0=None):
        """
        Approximate the Jacobian of `fun` at one or more points.

        Parameters
        ----------
        fun : callable
            Function to differentiate. Called as `fun(x)` with `x` of shape
            `(n,)` or `(n, n_points)`, it must return a float or an array of
            shape `(n_points,)`, `(m_1, ..., m_l)` or
            `(m_1, ..., m_l, n_points)`, depending on the shape of `x`.
        x0 : (n,) or (n, n_points) array
            Point(s) at which to differentiate.
        f0 : array_like, optional
            `fun(x0)`, if already evaluated.

        Returns
        -------
        dfdx : (n,), (n, n_points), (m_1, ..., m_l, n), or \
                (m_1, ..., m_l, n, n_points) array
            Jacobian(s), with `dfdx[i, j]` the partial derivative of `f[i]`
            with respect to `x[j]`.
        """
        x0 = np.atleast_1d(x0)
        if not np.issubdtype(x0.dtype, np.inexact):
            x0 = x0.astype(float)

        scalar_output = [False]

        def fun_wrapped(x):
            f = np.asarray(fun(x))
            if f.ndim < 1:
                scalar_output[0] = True
            return np.atleast_1d(f)

        if f0 is None:
            f0 = fun_wrapped(x0)
        else:
            f0 = np.atleast_1d(f0)

        h = self._step_size(x0, f0)
        partials = [self._partial(fun_wrapped, x0, f0, h, i)
                    for i in range(x0.shape[0])]
        # Differentiation axis goes before the batch axis, if there is one
        dfdx = np.stack(partials, axis=-1 if x0.ndim < 2 else -2)

        if scalar_output[0]:
            return dfdx[0]
        return dfdx

    def _step_size(self, x0, f0):
        if self.abs_step is None:
            return _numdiff._compute_absolute_step(self.rel_step, x0, f0,
                                                   self.method)

        # A step which doesn't change x0 (x0 very large) falls back to the
        # automatic relative step
        sign_x0 = (x0 >= 0).astype(float) * 2 - 1
        h = np.broadcast_to(self.abs_step, x0.shape).astype(float)
        h_alt = (_numdiff._eps_for_method(x0.dtype, f0.dtype, self.method)
                 * sign_x0 * np.maximum(1., np.abs(x0)))
        return np.where((x0 + h) - x0 == 0, h_alt, h)

    def _partial(self, fun, x0, f0, h, i):
        """Difference quotient of `fun` along coordinate `i` of `x0`."""
        if self.method == 'cs':
            x = x0.astype(complex)
            x[i] += h[i] * 1.j
            return fun(x).imag / h[i]

        x_plus = np.copy(x0)
        x_plus[i] += h[i]
        if self.method == '2-point':
            # Divide by the step actually taken
            return (fun(x_plus) - f0) / (x_plus[i] - x0[i])

        x_minus = np.copy(x0)
        x_minus[i] -= h[i]
        return (fun(x_plus) - fun(x_minus)) / (x_plus[i] - x_minus[i])
