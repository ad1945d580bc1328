"""
Linear-quadratic approximation of a `NonlinearGame` around a trajectory: the
dynamics are linearized and every player's cost is expanded to second order,
giving a `FiniteHorizonLQGame` in the state and control deviations from the
trajectory.
"""

import warnings

import numpy as np

from .exceptions import DifferentiationFailure, DimensionMismatch
from .game.linear_quadratic import (LinearSystem, QuadraticPlayerCost,
                                    FiniteHorizonLQGame)


def approximate(game, x, u, t=0.):
    """
    Approximate a game at a single state and control.

    Parameters
    ----------
    game : `NonlinearGame`
        Game to approximate.
    x : (n_states,) array
        Operating state.
    u : (n_controls,) array
        Operating control of all players, in control index order.
    t : float, default=0.
        Operating time.

    Returns
    -------
    system : `LinearSystem`
        Jacobians `A = df/dx` and `B = df/du` of the discrete dynamics.
    costs : list of `QuadraticPlayerCost`
        Second order expansion of each player's running cost. The mixed
        state-control term and the off-diagonal control blocks are dropped.

    Raises
    ------
    DifferentiationFailure
        If evaluating the derivatives fails or gives non-finite values.
    DimensionMismatch
        If `x`, `u`, or the returned derivatives have the wrong shape.
    """
    x = _reshape(x, (game.n_states, 1), 'x')
    u = _reshape(u, (game.n_controls, 1), 'u')
    t = np.reshape(t, (1,)).astype(float)

    systems, costs = _approximate_stages(game, x, u, t)
    return systems[0], costs[0]


def approximate_trajectory(game, trajectory):
    """
    Approximate a game around a whole trajectory, evaluating all derivatives
    for all time steps in one batch.

    Parameters
    ----------
    game : `NonlinearGame`
        Game to approximate.
    trajectory : `Trajectory`
        Nominal trajectory with `game.horizon` steps.

    Returns
    -------
    lq_game : `FiniteHorizonLQGame`
        Time-varying LQ game in the deviations `dx = x - x_bar` and
        `du = u - u_bar`. The terminal costs are the second order expansion of
        each player's terminal cost at the final state.

    Raises
    ------
    DifferentiationFailure
        If evaluating the derivatives fails or gives non-finite values at some
        time step.
    DimensionMismatch
        If the trajectory or the returned derivatives have the wrong shape.
    """
    if (trajectory.n_states != game.n_states
            or trajectory.n_controls != game.n_controls
            or trajectory.horizon != game.horizon):
        raise DimensionMismatch(
            f"Trajectory has dimensions ({trajectory.n_states}, "
            f"{trajectory.n_controls}, {trajectory.horizon}) but the game has "
            f"({game.n_states}, {game.n_controls}, {game.horizon})")

    systems, costs = _approximate_stages(game, trajectory.x[:, :-1],
                                         trajectory.u, trajectory.t[:-1])
    terminal_costs = _approximate_terminal(game, trajectory.x[:, -1],
                                           trajectory.t[-1])

    return FiniteHorizonLQGame(systems, costs, game.partition,
                               terminal_costs=terminal_costs)


def _approximate_stages(game, x, u, t):
    n, m, n_points = game.n_states, game.n_controls, x.shape[1]
    partition = game.partition

    dfdx, dfdu = _evaluate(game.dynamics.jac, x, u, t,
                           description='dynamics Jacobians')
    _check(dfdx, (n, n, n_points), 'df/dx')
    _check(dfdu, (n, m, n_points), 'df/du')

    derivatives = []
    for i, cost in enumerate(game.player_costs):
        dLdx, dLdu = _evaluate(cost.grad, x, u, t,
                               description=f'gradients of player {i} cost')
        d2Ldx2, d2Ldu2 = _evaluate(cost.hess, x, u, t,
                                   description=f'Hessians of player {i} cost')
        _check(dLdx, (n, n_points), f'dL/dx of player {i}')
        _check(dLdu, (m, n_points), f'dL/du of player {i}')
        _check(d2Ldx2, (n, n, n_points), f'd2L/dx2 of player {i}')
        _check(d2Ldu2, (m, m, n_points), f'd2L/du2 of player {i}')
        derivatives.append((dLdx, dLdu, _symmetrize(d2Ldx2),
                            _symmetrize(d2Ldu2)))

    systems, costs = [], []
    for k in range(n_points):
        systems.append(LinearSystem(dfdx[..., k], dfdu[..., k]))
        costs.append([
            QuadraticPlayerCost.from_full(d2Ldx2[..., k], dLdx[:, k],
                                          d2Ldu2[..., k], partition,
                                          r=dLdu[:, k])
            for dLdx, dLdu, d2Ldx2, d2Ldu2 in derivatives])

    return systems, costs


def _approximate_terminal(game, x, t):
    n, k = game.n_states, game.horizon
    zero_blocks = [np.zeros((m_j, m_j)) for m_j in game.partition.sizes]

    terminal_costs = []
    for i, cost in enumerate(game.player_costs):
        dFdx = _evaluate(cost.terminal_grad, x, t, time_index=k,
                         description=f'terminal gradient of player {i} cost')
        d2Fdx2 = _evaluate(cost.terminal_hess, x, t, time_index=k,
                           description=f'terminal Hessian of player {i} cost')
        _check(dFdx, (n,), f'dF/dx of player {i}', time_index=k)
        _check(d2Fdx2, (n, n), f'd2F/dx2 of player {i}', time_index=k)
        terminal_costs.append(
            QuadraticPlayerCost(_symmetrize(d2Fdx2), dFdx, zero_blocks))

    return terminal_costs


def _evaluate(fun, *args, description='derivatives', time_index=None):
    """Call `fun(*args)`, converting floating point warnings and evaluation
    errors to `DifferentiationFailure`."""
    with warnings.catch_warnings():
        warnings.simplefilter('error', RuntimeWarning)
        with np.errstate(over='warn', divide='warn', invalid='warn'):
            try:
                return fun(*args)
            except DimensionMismatch:
                raise
            except (RuntimeWarning, FloatingPointError, ValueError,
                    ZeroDivisionError, OverflowError) as e:
                raise DifferentiationFailure(
                    f"Failed to evaluate {description}: {e}",
                    time_index=time_index) from e


def _check(value, shape, name, time_index=None):
    """Check the shape of a batch of derivatives and that they are finite. The
    last axis of `value` is time unless `time_index` is given."""
    value = np.asarray(value)
    if value.shape != shape:
        raise DimensionMismatch(f"{name} has shape {value.shape}, expected "
                                f"{shape}")

    finite = np.isfinite(value)
    if np.all(finite):
        return

    if time_index is None:
        bad_points = ~np.all(finite.reshape(-1, shape[-1]), axis=0)
        time_index = int(np.argmax(bad_points))
    raise DifferentiationFailure(f"{name} is not finite at time step "
                                 f"{time_index}", time_index=time_index)


def _reshape(array, shape, name):
    try:
        return np.reshape(array, shape).astype(float)
    except ValueError:
        raise DimensionMismatch(f"{name} must have shape {shape[:1]}")


def _symmetrize(hess):
    return 0.5 * (hess + np.swapaxes(hess, 0, 1))
