import numpy as np

from .exceptions import DimensionMismatch
from .utilities import pack_dataframe


class Trajectory:
    """
    Immutable state-control trajectory over a finite horizon. States are given
    at `horizon + 1` time points and controls at the first `horizon` of them.
    """
    def __init__(self, t, x, u):
        """
        Parameters
        ----------
        t : (horizon + 1,) array
            Time stamps of the states.
        x : (n_states, horizon + 1) array
            States, `x[:, 0]` is the initial condition.
        u : (n_controls, horizon) array
            Controls, `u[:, k]` is applied between `t[k]` and `t[k + 1]`.
        """
        self.t = np.array(t, dtype=float).reshape(-1)
        self.x = np.array(x, dtype=float)
        self.u = np.array(u, dtype=float)

        if self.x.ndim != 2 or self.x.shape[1] != self.t.shape[0]:
            raise DimensionMismatch(f"x must have shape (n_states, "
                                    f"{self.t.shape[0]})")
        if self.u.ndim != 2 or self.u.shape[1] != self.t.shape[0] - 1:
            raise DimensionMismatch(f"u must have shape (n_controls, "
                                    f"{self.t.shape[0] - 1})")

        for arr in (self.t, self.x, self.u):
            arr.flags.writeable = False

    def __repr__(self):
        return (f"{type(self).__name__}(n_states={self.n_states}, "
                f"n_controls={self.n_controls}, horizon={self.horizon})")

    @property
    def n_states(self):
        return self.x.shape[0]

    @property
    def n_controls(self):
        return self.u.shape[0]

    @property
    def horizon(self):
        return self.u.shape[1]

    def change(self, other):
        """
        Maximum absolute difference between the states and controls of two
        trajectories of the same shape.

        Parameters
        ----------
        other : `Trajectory`

        Returns
        -------
        change : float
        """
        if self.x.shape != other.x.shape or self.u.shape != other.u.shape:
            raise DimensionMismatch("Trajectories must have the same shape")
        return float(max(np.max(np.abs(self.x - other.x)),
                         np.max(np.abs(self.u - other.u))))

    def is_finite(self):
        """`True` if all states and controls are finite."""
        return bool(np.all(np.isfinite(self.x)) and np.all(np.isfinite(self.u)))

    def to_dataframe(self):
        """
        Pack the trajectory into a `DataFrame` with columns
        't', 'x1', ..., 'xn', 'u1', ..., 'um'. Controls are `NaN` at the final
        time.

        Returns
        -------
        data : DataFrame
        """
        return pack_dataframe(self.t, self.x, self.u)


def _initial_state(dynamics, x0):
    try:
        return np.reshape(x0, (dynamics.n_states,)).astype(float)
    except ValueError:
        raise DimensionMismatch(f"x0 must have shape ({dynamics.n_states},)")


def rollout(dynamics, x0, u, t):
    """
    Simulate discrete-time dynamics in open loop.

    Parameters
    ----------
    dynamics : `DynamicsModel`
        Discrete-time dynamics `x[k+1] = dynamics(x[k], u[k], t[k])`.
    x0 : (n_states,) array
        Initial state.
    u : (n_controls, horizon) array
        Control sequence.
    t : (horizon + 1,) array
        Time stamps.

    Returns
    -------
    trajectory : `Trajectory`
    """
    x0 = _initial_state(dynamics, x0)
    t = np.reshape(t, -1)
    horizon = t.shape[0] - 1
    try:
        u = np.reshape(u, (dynamics.n_controls, horizon)).astype(float)
    except ValueError:
        raise DimensionMismatch(f"u must have shape ({dynamics.n_controls}, "
                                f"{horizon})")

    x = np.empty((x0.shape[0], horizon + 1))
    x[:, 0] = x0
    for k in range(horizon):
        x[:, k + 1] = dynamics(x[:, k], u[:, k], t[k])

    return Trajectory(t, x, u)


def rollout_feedback(dynamics, x0, strategy, t):
    """
    Simulate discrete-time dynamics in closed loop with a feedback strategy,
    `u[k] = strategy.control(k, x[k])`.

    Parameters
    ----------
    dynamics : `DynamicsModel`
        Discrete-time dynamics `x[k+1] = dynamics(x[k], u[k], t[k])`.
    x0 : (n_states,) array
        Initial state.
    strategy : `FeedbackStrategy`
        Strategy with one stage per time step.
    t : (horizon + 1,) array
        Time stamps.

    Returns
    -------
    trajectory : `Trajectory`
    """
    x0 = _initial_state(dynamics, x0)
    t = np.reshape(t, -1)
    horizon = t.shape[0] - 1
    if len(strategy) != horizon:
        raise DimensionMismatch(f"Strategy has {len(strategy)} stages but the "
                                f"horizon is {horizon}")

    x = np.empty((x0.shape[0], horizon + 1))
    u = np.empty((dynamics.n_controls, horizon))
    x[:, 0] = x0
    for k in range(horizon):
        u[:, k] = strategy.control(k, x[:, k])
        x[:, k + 1] = dynamics(x[:, k], u[:, k], t[k])

    return Trajectory(t, x, u)
