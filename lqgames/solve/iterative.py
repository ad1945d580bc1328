import warnings

import numpy as np
from tqdm import tqdm

from ..approximation import approximate_trajectory
from ..exceptions import (DifferentiationFailure, DimensionMismatch,
                          SingularGainSystem)
from ..strategies import AffineStrategy, FeedbackStrategy
from ..utilities import check_float_input, check_int_input
from .lq_game import solve_lq_game


class SolverConfig:
    """
    Immutable, validated options for `solve_iterative`. Set options as keyword
    arguments, e.g. `SolverConfig(max_iterations=50, tolerance=1e-04)`, and
    derive modified copies with `replace`.

    Options
    -------
    max_iterations : int, default=100
        Maximum number of outer iterations.
    tolerance : float, default=1e-03
        Converge when the maximum absolute change of states and controls
        between consecutive nominal trajectories is smaller than this.
    cost_tolerance : float, default=0.
        If positive, also converge when the total cost decreases by no more
        than `cost_tolerance * max(1, |J|)`, where `J` is the previous total
        cost.
    initial_step : float, default=1.
        First step size tried in the line search.
    backtrack_factor : float, default=0.5
        Factor in `(0, 1)` by which the line search reduces the step size.
    min_step : float, default=1e-04
        The line search fails if the step size drops below this.
    verbose : {0, 1, 2}, default=0
        Level of algorithm's verbosity:

            * 0 (default) : work silently.
            * 1 : display a termination report.
            * 2 : display progress during iterations.
    """
    _defaults = {'max_iterations': 100,
                 'tolerance': 1e-03,
                 'cost_tolerance': 0.,
                 'initial_step': 1.,
                 'backtrack_factor': 0.5,
                 'min_step': 1e-04,
                 'verbose': 0}

    def __init__(self, **options):
        unknown = set(options).difference(self._defaults)
        if unknown:
            raise TypeError(f"Unknown solver options {sorted(unknown)}")

        params = {**self._defaults, **options}

        params['max_iterations'] = check_int_input(params['max_iterations'],
                                                   'max_iterations', low=1)
        params['tolerance'] = check_float_input(params['tolerance'],
                                                'tolerance', low=0.,
                                                strict_low=True)
        params['cost_tolerance'] = check_float_input(params['cost_tolerance'],
                                                     'cost_tolerance', low=0.)
        params['initial_step'] = check_float_input(params['initial_step'],
                                                   'initial_step', low=0.,
                                                   strict_low=True)
        params['backtrack_factor'] = check_float_input(
            params['backtrack_factor'], 'backtrack_factor', low=0., high=1.,
            strict_low=True, strict_high=True)
        params['min_step'] = check_float_input(params['min_step'], 'min_step',
                                               low=0.,
                                               high=params['initial_step'],
                                               strict_low=True)
        params['verbose'] = check_int_input(params['verbose'], 'verbose', low=0)
        if params['verbose'] > 2:
            raise ValueError("verbose must be 0, 1, or 2")

        self.__dict__.update(params)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable, use "
                             f"replace() to change options")

    def __repr__(self):
        options = ", ".join(f"{k}={v!r}" for k, v in self.as_dict().items())
        return f"{type(self).__name__}({options})"

    def __eq__(self, other):
        return (isinstance(other, SolverConfig)
                and self.as_dict() == other.as_dict())

    def as_dict(self):
        """
        Return all options in the form of a dict.

        Returns
        -------
        options : dict
        """
        return {key: getattr(self, key) for key in self._defaults}

    def replace(self, **changes):
        """Return a new `SolverConfig` with some options changed."""
        return SolverConfig(**{**self.as_dict(), **changes})


class IterativeSolution:
    """
    Result of `solve_iterative`. Unpacks as the tuple
    `(converged, trajectory, strategy)`.
    """
    def __init__(self, trajectory, strategy, status, message, n_iterations,
                 costs, history=None):
        self.trajectory = trajectory
        """`Trajectory`. The final nominal trajectory."""
        self.strategy = strategy
        """`FeedbackStrategy`. Strategy which reproduces `trajectory` from its
        initial state through the nonlinear dynamics."""
        self.status = int(status)
        """int. Reason for solver termination. `status==0` indicates success;
        other values indicate various failure modes. See `message` for details.
        """
        self.message = str(message)
        """str. Human-readable description of `status`."""
        self.n_iterations = int(n_iterations)
        """int. Number of outer iterations performed."""
        self.costs = np.asarray(costs, dtype=float)
        """(n_accepted + 1,) array. Total cost of the initial and of every
        accepted nominal trajectory."""
        self.history = history
        """list of `Trajectory`. Initial and accepted nominal trajectories, if
        requested."""

    @property
    def converged(self):
        """bool. `True` if `status==0`."""
        return self.status == 0

    def __iter__(self):
        return iter((self.converged, self.trajectory, self.strategy))

    def __repr__(self):
        return (f"{type(self).__name__}(status={self.status}, "
                f"n_iterations={self.n_iterations}, "
                f"cost={self.costs[-1]:1.4e})")


_MESSAGES = {0: "Converged: change in nominal trajectory is within tolerance.",
             1: "Maximum number of iterations exceeded.",
             2: "Line search failed to decrease the total cost."}


def solve_iterative(game, x0, config=None, u_init=None, return_history=False):
    """
    Compute a local feedback Nash equilibrium of a nonlinear game with the
    iterative LQ game algorithm. Starting from the rollout of `u_init`, each
    iteration approximates the game by an LQ game around the nominal
    trajectory, solves it with `solve_lq_game`, and searches along the
    feedforward terms for a step which strictly decreases the sum of all
    players' costs. The candidate control for step size `s` is
    `u[k] = u_bar[k] - s * alpha[k] - P[k] @ (x[k] - x_bar[k])`, simulated
    through the nonlinear dynamics.

    Parameters
    ----------
    game : `NonlinearGame`
        The game to solve.
    x0 : (n_states,) array
        Initial state.
    config : `SolverConfig` or dict, optional
        Solver options. Defaults to `SolverConfig()`.
    u_init : (n_controls, horizon) array, optional
        Initial guess for the controls. Defaults to all zeros.
    return_history : bool, default=False
        If `True`, keep every accepted nominal trajectory in `sol.history`.

    Returns
    -------
    sol : `IterativeSolution`
        Unpacks as `(converged, trajectory, strategy)`. Should only be trusted
        if `sol.status==0`. Possible values of `sol.status`:

            * 0 : converged.
            * 1 : maximum number of iterations exceeded.
            * 2 : line search exhausted without decreasing the total cost.
            * 3 : numerical failure of the LQ approximation or solution.

        Unless `status==0`, the trajectory is the last accepted nominal.

    Raises
    ------
    DimensionMismatch
        If `x0` or `u_init` have the wrong shape.
    """
    if config is None:
        config = SolverConfig()
    elif isinstance(config, dict):
        config = SolverConfig(**config)

    try:
        x0 = np.reshape(x0, (game.n_states,)).astype(float)
    except ValueError:
        raise DimensionMismatch(f"x0 must have shape ({game.n_states},)")
    if u_init is None:
        u_init = np.zeros((game.n_controls, game.horizon))
    elif np.shape(u_init) != (game.n_controls, game.horizon):
        raise DimensionMismatch(f"u_init must have shape ({game.n_controls}, "
                                f"{game.horizon})")

    with np.errstate(over='ignore', invalid='ignore'):
        nominal = game.rollout(x0, u_init)
        cost = game.total_cost(nominal)

    strategy = _open_loop_strategy(game, nominal.u)
    costs = [cost]
    history = [nominal] if return_history else None

    if not nominal.is_finite() or not np.isfinite(cost):
        sol = IterativeSolution(nominal, strategy, 3,
                                "Rollout of the initial guess is not finite.",
                                0, costs, history)
        _report(sol, config.verbose)
        return sol

    if config.verbose >= 2:
        print(f"Initial total cost: {cost:1.4e}")

    n_iterations = 0
    while True:
        if n_iterations >= config.max_iterations:
            status, message = 1, _MESSAGES[1]
            break

        n_iterations += 1

        try:
            lq_game = approximate_trajectory(game, nominal)
            lq_strategy = solve_lq_game(lq_game)
        except (SingularGainSystem, DifferentiationFailure) as e:
            status, message = 3, str(e)
            break

        lq_strategy = lq_strategy.with_reference(nominal.x, nominal.u)

        step = config.initial_step
        accepted = None
        fixed_point = False
        while step >= config.min_step:
            candidate_strategy = lq_strategy.scaled(step)
            with np.errstate(over='ignore', invalid='ignore'):
                candidate = game.rollout_strategy(x0, candidate_strategy)
                candidate_cost = game.total_cost(candidate)
                change = candidate.change(nominal)

            finite = candidate.is_finite() and np.isfinite(candidate_cost)

            if step == config.initial_step and change < config.tolerance:
                fixed_point = True
                if finite and candidate_cost <= cost:
                    accepted = candidate, candidate_strategy, candidate_cost
                break

            if finite and candidate_cost < cost:
                accepted = candidate, candidate_strategy, candidate_cost
                break

            if not finite:
                warnings.warn(f"Rollout diverged with step size {step:1.2e} in "
                              f"iteration {n_iterations:d}", RuntimeWarning)

            step *= config.backtrack_factor

        if accepted is None and not fixed_point:
            status, message = 2, _MESSAGES[2]
            break

        previous_cost = cost
        if accepted is not None:
            nominal, strategy, cost = accepted
            costs.append(cost)
            if return_history:
                history.append(nominal)

        if config.verbose >= 2:
            print(f"Iteration {n_iterations:d}: total cost = {cost:1.4e}, "
                  f"step size = {step:1.2e}, change = {change:1.2e}")

        if fixed_point or change < config.tolerance:
            status, message = 0, _MESSAGES[0]
            break

        cost_decrease = previous_cost - cost
        if (config.cost_tolerance > 0.
                and cost_decrease <= config.cost_tolerance
                * max(1., abs(previous_cost))):
            status = 0
            message = "Converged: change in total cost is within tolerance."
            break

    sol = IterativeSolution(nominal, strategy, status, message, n_iterations,
                            costs, history)
    _report(sol, config.verbose)
    return sol


def monte_carlo(game, x0s, config=None):
    """
    Solve a game independently for a batch of initial states.

    Parameters
    ----------
    game : `NonlinearGame`
        The game to solve.
    x0s : (n_states, n_initial_conditions) array
        Initial states.
    config : `SolverConfig` or dict, optional
        Solver options used for every initial state.

    Returns
    -------
    sols : (n_initial_conditions,) object array
        `IterativeSolution` for each initial state.
    status : (n_initial_conditions,) int array
        `sols[i].status` for each initial state.
    """
    x0s = np.reshape(x0s, (game.n_states, -1)).T
    n_solves = x0s.shape[0]

    sols = np.empty(n_solves, dtype=object)
    status = np.zeros(n_solves, dtype=int)

    print(f"Solving game for {n_solves:d} initial conditions...")
    for i in tqdm(range(n_solves)):
        sols[i] = solve_iterative(game, x0s[i], config=config)
        status[i] = sols[i].status

    return sols, status


def _open_loop_strategy(game, u):
    """Zero gain strategy reproducing the controls `u`."""
    stages = [[AffineStrategy(np.zeros((idx.size, game.n_states)), - u[idx, k])
               for idx in game.partition]
              for k in range(game.horizon)]
    return FeedbackStrategy(stages, game.partition)


def _report(sol, verbose):
    if verbose:
        print(f"Iterative LQ game solver finished after {sol.n_iterations:d} "
              f"iterations: status = {sol.status:d}: {sol.message}")
