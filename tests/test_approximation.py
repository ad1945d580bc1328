import numpy as np
import pytest

from lqgames.approximation import approximate, approximate_trajectory
from lqgames.exceptions import DifferentiationFailure, DimensionMismatch
from lqgames.game import (ControlPartition, DiscretizedDynamics,
                          FiniteHorizonLQGame, NonlinearGame, QuadraticCost)
from lqgames.solve import solve_lq_game
from lqgames.trajectory import Trajectory

from ._problems import (LinearDynamics, Pendulum, SmoothCost,
                        linear_team_game)


rng = np.random.default_rng(123)


def _pendulum_game(horizon=8):
    dynamics = Pendulum(0.1, method='Euler')
    costs = [SmoothCost(player=0, weight=1.), SmoothCost(player=1, weight=3.)]
    return NonlinearGame(dynamics, costs, ControlPartition([0], [1]), horizon)


def test_approximate_point():
    game = _pendulum_game()
    x = rng.normal(size=2)
    u = rng.normal(size=2)

    system, costs = approximate(game, x, u)

    A, B = game.dynamics.euler_jac(x)
    np.testing.assert_allclose(system.A, A, rtol=1e-06, atol=1e-09)
    np.testing.assert_allclose(system.B, B, rtol=1e-06, atol=1e-09)

    assert len(costs) == 2
    for i, (cost, lq_cost) in enumerate(zip(game.player_costs, costs)):
        dLdx, dLdu, d2Ldx2, d2Ldu2 = cost.analytic_derivatives(x, u)
        np.testing.assert_allclose(lq_cost.l, dLdx, rtol=1e-06, atol=1e-08)
        np.testing.assert_allclose(lq_cost.Q, d2Ldx2, rtol=1e-04, atol=1e-04)
        np.testing.assert_allclose(lq_cost.Q, lq_cost.Q.T)
        for j in range(2):
            np.testing.assert_allclose(lq_cost.r[j], dLdu[[j]], rtol=1e-06,
                                       atol=1e-08)
            np.testing.assert_allclose(lq_cost.R[j], d2Ldu2[j, j],
                                       rtol=1e-04, atol=1e-04)


def test_approximate_trajectory():
    horizon = 8
    game = _pendulum_game(horizon)
    x0 = rng.normal(size=2)
    trajectory = game.rollout(x0, rng.normal(size=(2, horizon)))

    lq_game = approximate_trajectory(game, trajectory)

    assert isinstance(lq_game, FiniteHorizonLQGame)
    assert lq_game.horizon == horizon
    assert lq_game.partition == game.partition

    # Batched approximation agrees with pointwise approximation
    for k in range(horizon):
        system_k, costs_k = approximate(game, trajectory.x[:, k],
                                        trajectory.u[:, k], trajectory.t[k])
        lq_system, lq_costs = lq_game[k]
        np.testing.assert_allclose(lq_system.A, system_k.A, atol=1e-10)
        np.testing.assert_allclose(lq_system.B, system_k.B, atol=1e-10)
        for lq_cost, cost_k in zip(lq_costs, costs_k):
            np.testing.assert_allclose(lq_cost.l, cost_k.l, atol=1e-08)
            np.testing.assert_allclose(lq_cost.Q, cost_k.Q, atol=1e-06)

    # Terminal costs are taken at the final state
    x_H = trajectory.x[:, -1]
    for cost, terminal in zip(game.player_costs, lq_game.terminal_costs):
        dFdx, _, d2Fdx2, _ = cost.analytic_derivatives(x_H, np.zeros(2))
        np.testing.assert_allclose(terminal.l, dFdx, rtol=1e-06, atol=1e-08)
        np.testing.assert_allclose(terminal.Q, d2Fdx2, rtol=1e-04, atol=1e-04)


def test_approximate_linear_quadratic():
    """Approximating an LQ problem recovers it exactly, and the solution of
    the approximation around the optimum has no feedforward term."""
    game = linear_team_game(horizon=10)
    x0 = np.array([1., -1.])
    cost = game.player_costs[0]

    # Zero controls
    trajectory = game.rollout(x0)
    lq_game = approximate_trajectory(game, trajectory)
    for k in range(game.horizon):
        system, costs = lq_game[k]
        np.testing.assert_allclose(system.A, game.dynamics.A)
        np.testing.assert_allclose(system.B, game.dynamics.B)
        for lq_cost in costs:
            np.testing.assert_allclose(lq_cost.Q, cost.Q)
            np.testing.assert_allclose(lq_cost.l,
                                       cost.Q @ (trajectory.x[:, k] - cost.xg))
            np.testing.assert_allclose(lq_cost.R[0], cost.R[:1, :1])
            np.testing.assert_allclose(lq_cost.R[1], cost.R[1:, 1:])

    # Roll out the exact solution in the deviation variables and re-approximate
    strategy = solve_lq_game(lq_game).with_reference(trajectory.x,
                                                     trajectory.u)
    optimum = game.rollout_strategy(x0, strategy)
    strategy = solve_lq_game(approximate_trajectory(game, optimum))
    np.testing.assert_allclose(strategy.alpha, 0., atol=1e-08)


class _ExplodingDynamics(DiscretizedDynamics):
    @property
    def n_states(self):
        return 1

    @property
    def n_controls(self):
        return 1

    def dxdt(self, x, u, t=0.):
        return np.sqrt(x - 1.) + u


@pytest.mark.parametrize('x_bad', [0, 4])
def test_differentiation_failure(x_bad):
    """Derivatives which can't be evaluated at some point in the trajectory
    raise `DifferentiationFailure`."""
    horizon = 6
    game = NonlinearGame(_ExplodingDynamics(0.1, method='Euler'),
                         [QuadraticCost(np.eye(1), np.eye(1))],
                         ControlPartition([0]), horizon)

    x = np.full((1, horizon + 1), 2.)
    x[0, x_bad] = 0.5
    trajectory = Trajectory(game.time_points, x, np.zeros((1, horizon)))

    with pytest.raises(DifferentiationFailure):
        approximate_trajectory(game, trajectory)


class _SingularPointDynamics(LinearDynamics):
    """Linear dynamics reporting an infinite Jacobian at time step 3."""
    def jac(self, x, u, t=0., return_dfdx=True, return_dfdu=True, f0=None):
        dfdx, dfdu = super().jac(x, u, t)
        dfdx = np.array(dfdx)
        dfdx[0, 0, 3] = np.inf
        return dfdx, dfdu


def test_non_finite_derivative():
    horizon = 5
    game = linear_team_game(horizon)
    game = NonlinearGame(_SingularPointDynamics(game.dynamics.A,
                                                game.dynamics.B),
                         game.player_costs, game.partition, horizon)
    trajectory = game.rollout(np.ones(2))

    with pytest.raises(DifferentiationFailure) as exc_info:
        approximate_trajectory(game, trajectory)

    assert exc_info.value.time_index == 3


def test_approximate_bad_dimensions():
    game = linear_team_game(horizon=5)
    with pytest.raises(DimensionMismatch):
        approximate(game, np.zeros(3), np.zeros(2))
    with pytest.raises(DimensionMismatch):
        approximate(game, np.zeros(2), np.zeros(1))

    trajectory = Trajectory(np.arange(5.), np.zeros((2, 5)), np.zeros((2, 4)))
    with pytest.raises(DimensionMismatch):
        approximate_trajectory(game, trajectory)
