"""
The `solve` module contains the game solvers. `solve_lq_game` computes the
exact feedback Nash equilibrium of a finite horizon LQ game, and
`solve_iterative` uses it repeatedly to find local feedback Nash equilibria of
nonlinear games.

---

* [`solve_lq_game`](solve/lq_game#solve_lq_game):
    Coupled backward recursion for finite horizon LQ games.

* [`solve_iterative`](solve/iterative#solve_iterative):
    Iterative LQ game solver for a single initial condition.

* [`monte_carlo`](solve/iterative#monte_carlo):
    Run `solve_iterative` for multiple initial conditions.

* [`SolverConfig`](solve/iterative#SolverConfig):
    Options for `solve_iterative`.

* [`IterativeSolution`](solve/iterative#IterativeSolution):
    Result of `solve_iterative`.
"""

from .lq_game import solve_lq_game
from .iterative import (SolverConfig, IterativeSolution, solve_iterative,
                        monte_carlo)
