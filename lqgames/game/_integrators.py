import numpy as np


class ExplicitRungeKutta:
    """
    Base class for fixed stepsize explicit Runge-Kutta maps, used to turn
    continuous-time vector fields into discrete-time dynamics. Controls are held
    constant over each step. Subclasses define the Butcher tableau `C`, `A`,
    `B`.
    """
    C: np.ndarray = NotImplemented
    A: np.ndarray = NotImplemented
    B: np.ndarray = NotImplemented

    @classmethod
    def step(cls, fun, x, u, t, dt):
        """
        Advance `dx/dt = fun(x, u, t)` by one step of length `dt`.

        Parameters
        ----------
        fun : callable
            Vector field with signature `fun(x, u, t)`, vectorized over the
            last axis of `x` and `u`.
        x : (n_states,) or (n_states, n_points) array
            State(s) at the start of the step.
        u : (n_controls,) or (n_controls, n_points) array
            Control(s) held over the step.
        t : float or (n_points,) array
            Time(s) at the start of the step.
        dt : float
            Step length.

        Returns
        -------
        x_next : array with same shape as `x`
            State(s) at `t + dt`.
        """
        K = []
        for c, a in zip(cls.C, cls.A):
            dx = sum((a_j * k_j for a_j, k_j in zip(a, K) if a_j != 0.),
                     np.zeros_like(x))
            K.append(fun(x + dt * dx, u, t + c * dt))

        return x + dt * sum(b * k for b, k in zip(cls.B, K) if b != 0.)


class Euler(ExplicitRungeKutta):
    """Explicit Euler method, first order."""
    C = np.array([0.])
    A = np.array([[0.]])
    B = np.array([1.])


class Midpoint(ExplicitRungeKutta):
    """Explicit midpoint method, second order."""
    C = np.array([0., 1/2])
    A = np.array([[0., 0.],
                  [1/2, 0.]])
    B = np.array([0., 1.])


class RK4(ExplicitRungeKutta):
    """Classic fourth order Runge-Kutta method."""
    C = np.array([0., 1/2, 1/2, 1.])
    A = np.array([[0., 0., 0., 0.],
                  [1/2, 0., 0., 0.],
                  [0., 1/2, 0., 0.],
                  [0., 0., 1., 0.]])
    B = np.array([1/6, 1/3, 1/3, 1/6])


METHODS = {'Euler': Euler, 'Midpoint': Midpoint, 'RK4': RK4}
