"""
The `game` module implements the games solved by `lqgames`. `NonlinearGame`
bundles discrete-time dynamics shared by all players, one cost per player, and
a `ControlPartition` assigning control inputs to players. `DynamicsModel` and
`PlayerCost` are templates for user-defined dynamics and costs, which
differentiate themselves by finite differences unless derivatives are
implemented analytically. `FiniteHorizonLQGame` is the time-varying
linear-quadratic game obtained by approximating a `NonlinearGame` around a
trajectory, and is solved exactly by `lqgames.solve.solve_lq_game`.

---

* [`NonlinearGame`](game/nonlinear#NonlinearGame):
    Finite horizon nonlinear game.

* [`DynamicsModel`](game/nonlinear#DynamicsModel):
    Template for discrete-time dynamics.

* [`DiscretizedDynamics`](game/nonlinear#DiscretizedDynamics):
    Template for continuous-time dynamics discretized by a fixed-step
    Runge-Kutta method.

* [`PlayerCost`](game/nonlinear#PlayerCost):
    Template for one player's running and terminal costs.

* [`QuadraticCost`](game/nonlinear#QuadraticCost):
    Quadratic tracking cost with analytic derivatives.

* [`ControlPartition`](game/linear_quadratic#ControlPartition):
    Assignment of control indices to players.

* [`LinearSystem`](game/linear_quadratic#LinearSystem),
  [`QuadraticPlayerCost`](game/linear_quadratic#QuadraticPlayerCost),
  [`FiniteHorizonLQGame`](game/linear_quadratic#FiniteHorizonLQGame):
    Building blocks of finite horizon LQ games.
"""

from .linear_quadratic import (ControlPartition, LinearSystem,
                               QuadraticPlayerCost, FiniteHorizonLQGame)
from .nonlinear import (DynamicsModel, DiscretizedDynamics, PlayerCost,
                        QuadraticCost, NonlinearGame)
