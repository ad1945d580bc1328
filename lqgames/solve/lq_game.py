import warnings

import numpy as np
from scipy import linalg

from ..exceptions import SingularGainSystem
from ..strategies import AffineStrategy, FeedbackStrategy


def solve_lq_game(game):
    """
    Compute the feedback Nash equilibrium of a finite horizon LQ game by the
    coupled backward recursion of Basar and Olsder (1999).

    At each time step `k`, going backwards from the end of the horizon, the
    players' gains and feedforward terms solve the linear system `S X = Y`,
    where for players `i` and `j`
    ```
    S_ij = R_i[i] + B_i.T @ Z_i @ B_i    if i == j
         = B_i.T @ Z_i @ B_j             otherwise,
    Y_i = [B_i.T @ Z_i @ A, B_i.T @ zeta_i + r_i[i]],
    ```
    and `X = [P, alpha]` stacks all players' gains `P_i` and feedforward terms
    `alpha_i`. Each player's quadratic and linear cost-to-go, `Z_i` and
    `zeta_i`, is then propagated through the closed loop
    `F = A - B @ P`, `beta = - B @ alpha`:
    ```
    Z_i <- F.T @ Z_i @ F + sum_j P_j.T @ R_i[j] @ P_j + Q_i,
    zeta_i <- F.T @ (zeta_i + Z_i @ beta)
              + sum_j P_j.T @ (R_i[j] @ alpha_j - r_i[j]) + l_i.
    ```

    Parameters
    ----------
    game : `FiniteHorizonLQGame`
        The LQ game to solve. If it has no terminal costs, the costs of the
        last time step initialize the cost-to-go.

    Returns
    -------
    strategy : `FeedbackStrategy`
        Feedback Nash equilibrium strategy, `strategy[k][i]` is the
        `AffineStrategy` of player `i` at step `k`. The control law
        `u_i = - P_i @ x - alpha_i` acts on the state of the LQ game.

    Raises
    ------
    SingularGainSystem
        If `S` is singular or numerically singular at some step.
    """
    partition = game.partition
    n_states, n_players = game.n_states, game.n_players

    offsets = np.cumsum([0] + partition.sizes)
    blocks = [slice(offsets[i], offsets[i + 1]) for i in range(n_players)]
    n_stacked = offsets[-1]

    if game.terminal_costs is None:
        terminal_costs = game.player_costs[-1]
    else:
        terminal_costs = game.terminal_costs

    Z = [np.array(cost.Q) for cost in terminal_costs]
    zeta = [np.array(cost.l) for cost in terminal_costs]

    stages = [None] * game.horizon

    for k in reversed(range(game.horizon)):
        system, costs = game[k]
        A = system.A
        B = system.player_B(partition)

        S = np.empty((n_stacked, n_stacked))
        Y = np.empty((n_stacked, n_states + 1))

        for i in range(n_players):
            BiZ = B[i].T @ Z[i]
            for j in range(n_players):
                S[blocks[i], blocks[j]] = BiZ @ B[j]
            S[blocks[i], blocks[i]] += costs[i].R[i]
            Y[blocks[i], :n_states] = BiZ @ A
            Y[blocks[i], n_states] = B[i].T @ zeta[i] + costs[i].r[i]

        X = _solve_gain_system(S, Y, k)
        P, alpha = X[:, :n_states], X[:, n_states]
        P_players = [P[b] for b in blocks]
        alpha_players = [alpha[b] for b in blocks]

        # Player-stacked B matches the row order of X
        B_stacked = np.hstack(B)
        F = A - B_stacked @ P
        beta = - B_stacked @ alpha

        for i, cost in enumerate(costs):
            Z_next = F.T @ Z[i] @ F + cost.Q
            zeta_next = F.T @ (zeta[i] + Z[i] @ beta) + cost.l
            for j in range(n_players):
                P_j, alpha_j = P_players[j], alpha_players[j]
                Z_next += P_j.T @ cost.R[j] @ P_j
                zeta_next += P_j.T @ (cost.R[j] @ alpha_j - cost.r[j])
            Z[i], zeta[i] = Z_next, zeta_next

        stages[k] = [AffineStrategy(P_i, alpha_i)
                     for P_i, alpha_i in zip(P_players, alpha_players)]

    return FeedbackStrategy(stages, partition)


def _solve_gain_system(S, Y, k):
    """Solve `S X = Y` at time step `k`, raising `SingularGainSystem` if `S` is
    singular, ill-conditioned, or not finite."""
    with warnings.catch_warnings():
        warnings.simplefilter('error', linalg.LinAlgWarning)
        try:
            return linalg.solve(S, Y)
        except (np.linalg.LinAlgError, linalg.LinAlgWarning) as e:
            raise SingularGainSystem(f"Gain system is singular at time step "
                                     f"{k}: {e}", time_index=k) from e
        except ValueError as e:
            raise SingularGainSystem(f"Gain system is not finite at time step "
                                     f"{k}: {e}", time_index=k) from e
