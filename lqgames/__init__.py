"""
`lqgames` computes local feedback Nash equilibria of multi-player, general-sum,
nonlinear dynamic games over a finite time horizon using the iterative linear-
quadratic (LQ) game method.

Each iteration linearizes the dynamics and quadraticizes the players' costs
around a nominal trajectory, solves the resulting finite-horizon LQ game by the
coupled Riccati recursion of Basar and Olsder (ref. [1], Corollary 6.1), and
rolls the nonlinear dynamics forward with a backtracking line search on the
feedforward terms. See ref. [2] for details of the iterative scheme.

---

* [`game`](lqgames/game):
    Nonlinear games (dynamics, player costs) and their finite-horizon LQ
    approximations.

* [`approximation`](lqgames/approximation):
    Linearization and quadraticization of a `NonlinearGame` around an operating
    point or a whole trajectory.

* [`solve`](lqgames/solve):
    The LQ game solver and the iterative solver for nonlinear games.

* [`strategies`](lqgames/strategies):
    Time-varying affine feedback strategies returned by the solvers.

* [`trajectory`](lqgames/trajectory):
    State-control trajectories and forward rollouts.

* [`differentiation`](lqgames/differentiation):
    Pluggable differentiation providers used by the models.

##### References

1. T. Basar and G. J. Olsder, *Dynamic Noncooperative Game Theory*, 2nd ed.,
    SIAM, Philadelphia, 1999. https://doi.org/10.1137/1.9781611971132
2. D. Fridovich-Keil, E. Ratner, L. Peters, A. D. Dragan, and C. J. Tomlin,
    *Efficient iterative linear-quadratic approximations for nonlinear
    multi-player general-sum differential games*, in IEEE International
    Conference on Robotics and Automation, 2020, pp. 1475-1481.
    https://doi.org/10.1109/ICRA40945.2020.9197129
"""

__version__ = '0.1.0'
