import numpy as np

from ._integrators import METHODS
from ..differentiation import FiniteDifference
from ..exceptions import DimensionMismatch
from ..trajectory import rollout, rollout_feedback
from ..utilities import check_float_input, check_int_input, reshape_inputs


class DynamicsModel:
    """
    Template superclass for discrete-time dynamics shared by all players,
    `x[k+1] = f(x[k], u[k], t[k])`, where `u` stacks every player's controls
    in control index order. Subclasses implement `n_states`, `n_controls`, and
    `__call__`, and may implement `jac` analytically.

    All methods accept a single point or a batch of points arranged along the
    last axis.
    """
    def __init__(self, differentiator=None):
        """
        Parameters
        ----------
        differentiator : object, default=`FiniteDifference()`
            Differentiation provider implementing `jacobian(fun, x0, f0=None)`,
            used by the default `jac`.
        """
        if differentiator is None:
            differentiator = FiniteDifference()
        self.differentiator = differentiator

    @property
    def n_states(self):
        """The number of system states (positive int)."""
        raise NotImplementedError

    @property
    def n_controls(self):
        """The total number of control inputs of all players (positive int)."""
        raise NotImplementedError

    def __call__(self, x, u, t=0.):
        """
        Evaluate the state transition.

        Parameters
        ----------
        x : (n_states,) or (n_states, n_points) array
            State(s).
        u : (n_controls,) or (n_controls, n_points) array
            Control(s).
        t : float or (n_points,) array, default=0.
            Time(s).

        Returns
        -------
        x_next : (n_states,) or (n_states, n_points) array
            Next state(s) `f(x, u, t)`.
        """
        raise NotImplementedError

    def jac(self, x, u, t=0., return_dfdx=True, return_dfdu=True, f0=None):
        """
        Evaluate the Jacobians of the state transition, $df/dx (x,u,t)$ and
        $df/du (x,u,t)$, at one or more points. The default implementation
        uses `self.differentiator`.

        Parameters
        ----------
        x : (n_states,) or (n_states, n_points) array
            State(s).
        u : (n_controls,) or (n_controls, n_points) array
            Control(s).
        t : float or (n_points,) array, default=0.
            Time(s).
        return_dfdx : bool, default=True
            If `True`, compute the Jacobian with respect to states.
        return_dfdu : bool, default=True
            If `True`, compute the Jacobian with respect to controls.
        f0 : (n_states,) or (n_states, n_points) array, optional
            `self(x, u, t)`, if already evaluated.

        Returns
        -------
        dfdx : (n_states, n_states) or (n_states, n_states, n_points) array
            State Jacobian(s).
        dfdu : (n_states, n_controls) or (n_states, n_controls, n_points) array
            Control Jacobian(s).
        """
        if f0 is None:
            f0 = self(x, u, t)

        if return_dfdx:
            dfdx = self.differentiator.jacobian(lambda x: self(x, u, t), x,
                                                f0=f0)
            if not return_dfdu:
                return dfdx

        if return_dfdu:
            dfdu = self.differentiator.jacobian(lambda u: self(x, u, t), u,
                                                f0=f0)
            if not return_dfdx:
                return dfdu

        return dfdx, dfdu


class DiscretizedDynamics(DynamicsModel):
    """
    Template for continuous-time dynamics `dx/dt = g(x, u, t)` discretized with
    a fixed-step explicit Runge-Kutta method, holding the controls constant
    over each step of length `dt`. Subclasses implement `n_states`,
    `n_controls`, and `dxdt`.
    """
    def __init__(self, dt, method='RK4', differentiator=None):
        """
        Parameters
        ----------
        dt : float
            Time step, must be positive.
        method : {'RK4', 'Midpoint', 'Euler'}, default='RK4'
            Runge-Kutta method used to step the vector field.
        differentiator : object, default=`FiniteDifference()`
            Differentiation provider, see `DynamicsModel`.
        """
        self.dt = check_float_input(dt, 'dt', low=0., strict_low=True)
        if method not in METHODS:
            raise ValueError(f"method={method} is not one of the allowed "
                             f"options, {list(METHODS)}")
        self.method = method
        self._integrator = METHODS[method]
        super().__init__(differentiator=differentiator)

    def dxdt(self, x, u, t=0.):
        """
        Evaluate the continuous-time vector field.

        Parameters
        ----------
        x : (n_states,) or (n_states, n_points) array
            State(s).
        u : (n_controls,) or (n_controls, n_points) array
            Control(s).
        t : float or (n_points,) array, default=0.
            Time(s).

        Returns
        -------
        dxdt : (n_states,) or (n_states, n_points) array
            Vector field $dx/dt = g(x,u,t)$.
        """
        raise NotImplementedError

    def __call__(self, x, u, t=0.):
        return self._integrator.step(self.dxdt, x, u, t, self.dt)


class PlayerCost:
    """
    Template superclass for one player's cost. The player's total cost of a
    trajectory is
    `sum(L(x[k], u[k], t[k]) for k < horizon) + F(x[horizon], t[horizon])`,
    where `L` is the running cost (`__call__`) and `F` the terminal cost
    (`terminal`). Subclasses implement `n_states`, `n_controls`, and
    `__call__`, and may override the derivatives.

    All methods accept a single point or a batch of points arranged along the
    last axis.
    """
    def __init__(self, differentiator=None):
        """
        Parameters
        ----------
        differentiator : object, default=`FiniteDifference()`
            Differentiation provider implementing `jacobian(fun, x0, f0=None)`,
            used by the default derivatives.
        """
        if differentiator is None:
            differentiator = FiniteDifference()
        self.differentiator = differentiator

    @property
    def n_states(self):
        """The number of system states (positive int)."""
        raise NotImplementedError

    @property
    def n_controls(self):
        """The total number of control inputs of all players (positive int)."""
        raise NotImplementedError

    def __call__(self, x, u, t=0.):
        """
        Evaluate the running cost `L(x, u, t)`.

        Parameters
        ----------
        x : (n_states,) or (n_states, n_points) array
            State(s).
        u : (n_controls,) or (n_controls, n_points) array
            Control(s) of all players.
        t : float or (n_points,) array, default=0.
            Time(s).

        Returns
        -------
        L : float or (n_points,) array
            Running cost at each point.
        """
        raise NotImplementedError

    def terminal(self, x, t=0.):
        """
        Evaluate the terminal cost `F(x, t)`. Defaults to the running cost
        with all controls zero.

        Parameters
        ----------
        x : (n_states,) or (n_states, n_points) array
            State(s).
        t : float or (n_points,) array, default=0.
            Time(s).

        Returns
        -------
        F : float or (n_points,) array
            Terminal cost at each point.
        """
        u = np.zeros((self.n_controls,) + np.shape(x)[1:])
        return self(x, u, t)

    def grad(self, x, u, t=0., return_dLdx=True, return_dLdu=True, L0=None):
        """
        Evaluate the gradients of the running cost, $dL/dx (x,u,t)$ and
        $dL/du (x,u,t)$. The default implementation uses `self.differentiator`.

        Parameters
        ----------
        x : (n_states,) or (n_states, n_points) array
            State(s).
        u : (n_controls,) or (n_controls, n_points) array
            Control(s).
        t : float or (n_points,) array, default=0.
            Time(s).
        return_dLdx : bool, default=True
            If `True`, compute the gradient with respect to states.
        return_dLdu : bool, default=True
            If `True`, compute the gradient with respect to controls.
        L0 : float or (n_points,) array, optional
            `self(x, u, t)`, if already evaluated.

        Returns
        -------
        dLdx : (n_states,) or (n_states, n_points) array
            State gradient(s).
        dLdu : (n_controls,) or (n_controls, n_points) array
            Control gradient(s).
        """
        if L0 is None:
            L0 = self(x, u, t)

        if return_dLdx:
            dLdx = self.differentiator.jacobian(lambda x: self(x, u, t), x,
                                                f0=L0)
            if not return_dLdu:
                return dLdx

        if return_dLdu:
            dLdu = self.differentiator.jacobian(lambda u: self(x, u, t), u,
                                                f0=L0)
            if not return_dLdx:
                return dLdu

        return dLdx, dLdu

    def hess(self, x, u, t=0., return_dLdx=True, return_dLdu=True):
        """
        Evaluate the Hessians of the running cost, $d^2L/dx^2 (x,u,t)$ and
        $d^2L/du^2 (x,u,t)$. The default implementation differentiates `grad`
        with `self.differentiator`.

        Parameters
        ----------
        x : (n_states,) or (n_states, n_points) array
            State(s).
        u : (n_controls,) or (n_controls, n_points) array
            Control(s).
        t : float or (n_points,) array, default=0.
            Time(s).
        return_dLdx : bool, default=True
            If `True`, compute the Hessian with respect to states.
        return_dLdu : bool, default=True
            If `True`, compute the Hessian with respect to controls.

        Returns
        -------
        d2Ldx2 : (n_states, n_states) or (n_states, n_states, n_points) array
            State Hessian(s).
        d2Ldu2 : (n_controls, n_controls) or \
                (n_controls, n_controls, n_points) array
            Control Hessian(s).
        """
        if return_dLdx:
            g = lambda x: self.grad(x, u, t, return_dLdu=False)
            d2Ldx2 = self.differentiator.jacobian(g, x)
            if not return_dLdu:
                return d2Ldx2

        if return_dLdu:
            g = lambda u: self.grad(x, u, t, return_dLdx=False)
            d2Ldu2 = self.differentiator.jacobian(g, u)
            if not return_dLdx:
                return d2Ldu2

        return d2Ldx2, d2Ldu2

    def terminal_grad(self, x, t=0.):
        """Gradient of the terminal cost, $dF/dx (x,t)$, with the same shape
        as `x`."""
        return self.differentiator.jacobian(lambda x: self.terminal(x, t), x)

    def terminal_hess(self, x, t=0.):
        """Hessian of the terminal cost, $d^2F/dx^2 (x,t)$, of shape
        `(n_states, n_states)` or `(n_states, n_states, n_points)`."""
        return self.differentiator.jacobian(
            lambda x: self.terminal_grad(x, t), x)


class QuadraticCost(PlayerCost):
    """
    Quadratic tracking cost with running cost
    `L(x, u) = 1/2 (x - xg).T @ Q @ (x - xg) + 1/2 (u - ug).T @ R @ (u - ug)`
    and terminal cost `F(x) = 1/2 (x - xg).T @ Qf @ (x - xg)`, with analytic
    derivatives.
    """
    def __init__(self, Q, R, xg=0., ug=0., Qf=None):
        """
        Parameters
        ----------
        Q : (n_states, n_states) array
            Symmetric state cost matrix. May be indefinite, e.g. for players
            who want to move the state away from `xg`.
        R : (n_controls, n_controls) array
            Symmetric cost matrix on all players' controls, in control index
            order.
        xg : {(n_states,) array, float}, default=0.
            Goal state. If float, broadcast to all states.
        ug : {(n_controls,) array, float}, default=0.
            Nominal control. If float, broadcast to all controls.
        Qf : (n_states, n_states) array, optional
            Symmetric terminal state cost matrix. Defaults to `Q`.
        """
        Q = np.atleast_2d(Q).astype(float)
        if Q.shape[0] != Q.shape[1] or not np.allclose(Q, Q.T):
            raise DimensionMismatch("State cost matrix Q must be square and "
                                    "symmetric")
        R = np.atleast_2d(R).astype(float)
        if R.shape[0] != R.shape[1] or not np.allclose(R, R.T):
            raise DimensionMismatch("Control cost matrix R must be square and "
                                    "symmetric")

        self.Q, self.R = Q, R

        if Qf is None:
            self.Qf = self.Q
        else:
            try:
                self.Qf = np.reshape(Qf, Q.shape).astype(float)
            except ValueError:
                raise DimensionMismatch("Terminal cost matrix Qf must have the "
                                        "same shape as Q")

        self.xg = np.broadcast_to(np.reshape(xg, -1), (self.n_states,))
        self.ug = np.broadcast_to(np.reshape(ug, -1), (self.n_controls,))

        super().__init__()

    @property
    def n_states(self):
        return self.Q.shape[0]

    @property
    def n_controls(self):
        return self.R.shape[0]

    def _center(self, x, u):
        x, u, squeeze = reshape_inputs(x, u, self.n_states, self.n_controls)
        return x - self.xg[:, None], u - self.ug[:, None], squeeze

    def __call__(self, x, u, t=0.):
        x_err, u_err, squeeze = self._center(x, u)

        L = 0.5 * np.einsum('ij,ij->j', x_err, self.Q @ x_err)
        L += 0.5 * np.einsum('ij,ij->j', u_err, self.R @ u_err)

        if squeeze:
            return L[0]
        return L

    def terminal(self, x, t=0.):
        x_err = np.reshape(x, (self.n_states, -1)) - self.xg[:, None]
        F = 0.5 * np.einsum('ij,ij->j', x_err, self.Qf @ x_err)
        if np.ndim(x) < 2:
            return F[0]
        return F

    def grad(self, x, u, t=0., return_dLdx=True, return_dLdu=True, L0=None):
        x_err, u_err, squeeze = self._center(x, u)

        dLdx = self.Q @ x_err
        dLdu = self.R @ u_err
        if squeeze:
            dLdx, dLdu = dLdx[:, 0], dLdu[:, 0]

        if not return_dLdu:
            return dLdx
        if not return_dLdx:
            return dLdu
        return dLdx, dLdu

    def hess(self, x, u, t=0., return_dLdx=True, return_dLdu=True):
        x, u, squeeze = reshape_inputs(x, u, self.n_states, self.n_controls)

        d2Ldx2, d2Ldu2 = np.copy(self.Q), np.copy(self.R)
        if not squeeze:
            d2Ldx2 = np.tile(d2Ldx2[..., None], (1, 1, x.shape[1]))
            d2Ldu2 = np.tile(d2Ldu2[..., None], (1, 1, u.shape[1]))

        if not return_dLdu:
            return d2Ldx2
        if not return_dLdx:
            return d2Ldu2
        return d2Ldx2, d2Ldu2

    def terminal_grad(self, x, t=0.):
        x_err = np.reshape(x, (self.n_states, -1)) - self.xg[:, None]
        dFdx = self.Qf @ x_err
        if np.ndim(x) < 2:
            return dFdx[:, 0]
        return dFdx

    def terminal_hess(self, x, t=0.):
        if np.ndim(x) < 2:
            return np.copy(self.Qf)
        return np.tile(self.Qf[..., None], (1, 1, np.shape(x)[1]))


class NonlinearGame:
    """
    A finite horizon, general-sum dynamic game: shared discrete-time dynamics,
    one `PlayerCost` per player, and a `ControlPartition` assigning the
    controls to players.
    """
    def __init__(self, dynamics, player_costs, partition, horizon, dt=None,
                 t0=0.):
        """
        Parameters
        ----------
        dynamics : `DynamicsModel`
            Discrete-time dynamics of the joint state.
        player_costs : list of `PlayerCost`
            Cost of each player, in player order.
        partition : `ControlPartition`
            Assignment of controls to players.
        horizon : int
            Number of time steps.
        dt : float, optional
            Time between steps, used only to time stamp trajectories. Defaults
            to `dynamics.dt` if it exists, otherwise 1.
        t0 : float, default=0.
            Initial time.

        Raises
        ------
        DimensionMismatch
            If the dynamics, costs, and partition don't agree on the number of
            players, states, or controls.
        """
        self.dynamics = dynamics
        self.player_costs = tuple(player_costs)
        self.partition = partition
        self.horizon = check_int_input(horizon, 'horizon', low=1)

        if dt is None:
            dt = getattr(dynamics, 'dt', 1.)
        self.dt = check_float_input(dt, 'dt', low=0., strict_low=True)
        self.t0 = check_float_input(t0, 't0')

        if dynamics.n_controls != partition.n_controls:
            raise DimensionMismatch(
                f"dynamics.n_controls = {dynamics.n_controls} but the "
                f"partition has {partition.n_controls} controls")
        if len(self.player_costs) != partition.n_players:
            raise DimensionMismatch(
                f"Got {len(self.player_costs)} player costs for "
                f"{partition.n_players} players")
        for i, cost in enumerate(self.player_costs):
            if (cost.n_states != dynamics.n_states
                    or cost.n_controls != dynamics.n_controls):
                raise DimensionMismatch(
                    f"Cost of player {i} has dimensions ({cost.n_states}, "
                    f"{cost.n_controls}) but dynamics have "
                    f"({dynamics.n_states}, {dynamics.n_controls})")

    @property
    def n_states(self):
        return self.dynamics.n_states

    @property
    def n_controls(self):
        return self.partition.n_controls

    @property
    def n_players(self):
        return self.partition.n_players

    @property
    def time_points(self):
        """(horizon + 1,) array. Time stamps of the trajectory states."""
        return self.t0 + self.dt * np.arange(self.horizon + 1)

    def rollout(self, x0, u=None):
        """
        Simulate the dynamics in open loop.

        Parameters
        ----------
        x0 : (n_states,) array
            Initial state.
        u : (n_controls, horizon) array, optional
            Control sequence. Defaults to all zeros.

        Returns
        -------
        trajectory : `Trajectory`
        """
        if u is None:
            u = np.zeros((self.n_controls, self.horizon))
        return rollout(self.dynamics, x0, u, self.time_points)

    def rollout_strategy(self, x0, strategy):
        """
        Simulate the dynamics in closed loop with a `FeedbackStrategy`.

        Parameters
        ----------
        x0 : (n_states,) array
            Initial state.
        strategy : `FeedbackStrategy`
            Strategy for every time step.

        Returns
        -------
        trajectory : `Trajectory`
        """
        return rollout_feedback(self.dynamics, x0, strategy, self.time_points)

    def player_costs_of(self, trajectory):
        """
        Evaluate every player's total cost of a trajectory.

        Parameters
        ----------
        trajectory : `Trajectory`
            State-control trajectory over the game's horizon.

        Returns
        -------
        costs : (n_players,) array
            `costs[i]` is the sum of player `i`'s running costs and terminal
            cost.
        """
        x, u, t = trajectory.x, trajectory.u, trajectory.t
        costs = np.empty(self.n_players)
        for i, cost in enumerate(self.player_costs):
            costs[i] = (np.sum(cost(x[:, :-1], u, t[:-1]))
                        + cost.terminal(x[:, -1], t[-1]))
        return costs

    def total_cost(self, trajectory):
        """Sum of all players' costs of a trajectory (float)."""
        return float(np.sum(self.player_costs_of(trajectory)))
