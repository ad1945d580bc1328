import numpy as np

from ..exceptions import DimensionMismatch
from ..utilities import check_int_input


def _frozen(array, shape=None, name='array'):
    """Copy an array_like to a read-only float array, optionally checking its
    shape."""
    array = np.array(array, dtype=float)
    if shape is not None and array.shape != shape:
        raise DimensionMismatch(f"{name} must have shape {shape}, got "
                                f"{array.shape}")
    array.flags.writeable = False
    return array


class ControlPartition:
    """
    Assignment of control input indices to players. Each player owns a
    non-empty set of indices, the sets are pairwise disjoint, and their union
    is `{0, ..., n_controls - 1}`.
    """
    def __init__(self, *player_indices):
        """
        Parameters
        ----------
        *player_indices : int arrays, lists, or ranges
            The control indices owned by each player, in player order.

        Raises
        ------
        DimensionMismatch
            If a player owns no controls, indices are repeated, or the indices
            don't cover `0, ..., n_controls - 1` exactly.
        """
        if len(player_indices) < 1:
            raise DimensionMismatch("A ControlPartition needs at least one "
                                    "player")

        indices = []
        for i, idx in enumerate(player_indices):
            idx = np.atleast_1d(np.asarray(idx))
            if idx.ndim != 1 or idx.size < 1:
                raise DimensionMismatch(f"Player {i} must own a non-empty 1d "
                                        f"set of control indices")
            if not np.issubdtype(idx.dtype, np.integer):
                raise DimensionMismatch(f"Control indices of player {i} must "
                                        f"be integers")
            idx = idx.astype(int)
            idx.flags.writeable = False
            indices.append(idx)

        all_idx = np.concatenate(indices)
        if np.unique(all_idx).size != all_idx.size:
            raise DimensionMismatch("Control indices of different players must "
                                    "not overlap")
        if not np.array_equal(np.sort(all_idx), np.arange(all_idx.size)):
            raise DimensionMismatch(f"Control indices must cover 0, ..., "
                                    f"{all_idx.size - 1} without gaps")

        self._indices = tuple(indices)
        self._order = all_idx
        self._order.flags.writeable = False

    @classmethod
    def contiguous(cls, *n_player_controls):
        """
        Build a partition of consecutive index ranges.

        Parameters
        ----------
        *n_player_controls : ints
            Number of controls owned by each player.

        Returns
        -------
        partition : `ControlPartition`
            Player `i` owns indices
            `sum(n_player_controls[:i]), ..., sum(n_player_controls[:i+1]) - 1`.
        """
        sizes = [check_int_input(m, 'n_player_controls', low=1)
                 for m in n_player_controls]
        offsets = np.cumsum([0] + sizes)
        return cls(*[range(offsets[i], offsets[i + 1])
                     for i in range(len(sizes))])

    def __len__(self):
        return len(self._indices)

    def __getitem__(self, player):
        return self._indices[player]

    def __iter__(self):
        return iter(self._indices)

    def __eq__(self, other):
        if not isinstance(other, ControlPartition) or len(self) != len(other):
            return False
        return all(np.array_equal(a, b) for a, b in zip(self, other))

    def __repr__(self):
        return (f"{type(self).__name__}("
                + ", ".join(str(idx.tolist()) for idx in self) + ")")

    @property
    def n_players(self):
        """Number of players (positive int)."""
        return len(self._indices)

    @property
    def n_controls(self):
        """Total control dimension (positive int)."""
        return self._order.size

    @property
    def sizes(self):
        """List of each player's control dimension."""
        return [idx.size for idx in self._indices]

    @property
    def order(self):
        """(n_controls,) int array. Concatenation of the players' indices, i.e.
        the permutation taking player-stacked vectors to control order."""
        return self._order

    def stack(self, blocks, axis=0):
        """
        Arrange per-player blocks along `axis` in control index order.

        Parameters
        ----------
        blocks : list of arrays
            `blocks[i]` has `self.sizes[i]` entries along `axis`.
        axis : int, default=0
            Axis along which to stack.

        Returns
        -------
        stacked : array
            Array with `n_controls` entries along `axis`, where entries
            `self[i]` come from `blocks[i]`.
        """
        player_stacked = np.concatenate(blocks, axis=axis)
        stacked = np.empty_like(player_stacked)
        index = [slice(None)] * stacked.ndim
        index[axis] = self._order
        stacked[tuple(index)] = player_stacked
        return stacked


class LinearSystem:
    """
    Discrete-time linear dynamics for one time step,
    `x[k+1] = A @ x[k] + sum_i B_i @ u_i[k]`, where `B_i = B[:, idx_i]` are
    the columns of `B` belonging to player `i`.
    """
    def __init__(self, A, B):
        """
        Parameters
        ----------
        A : (n_states, n_states) array
            State matrix.
        B : (n_states, n_controls) array
            Control matrix of all players' controls, in control index order.
        """
        A = np.atleast_2d(A)
        n_states = A.shape[0]
        self.A = _frozen(A, (n_states, n_states), 'A')
        B = np.asarray(B, dtype=float)
        if B.ndim == 1:
            B = B.reshape(n_states, -1)
        self.B = _frozen(B, (n_states, B.shape[-1]), 'B')

    @property
    def n_states(self):
        return self.A.shape[0]

    @property
    def n_controls(self):
        return self.B.shape[1]

    def player_B(self, partition):
        """List of each player's control matrix `B_i`."""
        return [self.B[:, idx] for idx in partition]

    def __call__(self, x, u):
        return self.A @ x + self.B @ u


class QuadraticPlayerCost:
    """
    One player's quadratic cost for one time step,
    ```
    1/2 x.T @ Q @ x + l.T @ x
        + sum_j (1/2 u_j.T @ R[j] @ u_j + r[j].T @ u_j),
    ```
    where `u_j` are the controls of player `j`. `R[i]` for the player's own
    controls must be positive definite for the LQ game to be well-posed;
    `R[j]`, `j != i`, is the cost the player sees from the other players'
    controls.
    """
    def __init__(self, Q, l, R, r=None):
        """
        Parameters
        ----------
        Q : (n_states, n_states) array
            Symmetric state cost matrix.
        l : (n_states,) array
            Linear state cost.
        R : list of arrays
            `R[j]` is an `(m_j, m_j)` matrix, the cost on player `j`'s
            controls.
        r : list of arrays, optional
            `r[j]` is an `(m_j,)` array, the linear cost on player `j`'s
            controls. Zero by default.
        """
        Q = np.atleast_2d(Q)
        n_states = Q.shape[0]
        self.Q = _frozen(Q, (n_states, n_states), 'Q')
        if not np.allclose(self.Q, self.Q.T):
            raise DimensionMismatch("State cost matrix Q must be symmetric")
        self.l = _frozen(np.reshape(l, -1), (n_states,), 'l')

        self.R = tuple(_frozen(np.atleast_2d(R_j), name=f'R[{j}]')
                       for j, R_j in enumerate(R))
        for j, R_j in enumerate(self.R):
            if R_j.shape[0] != R_j.shape[1]:
                raise DimensionMismatch(f"R[{j}] must be square")

        if r is None:
            r = [np.zeros(R_j.shape[0]) for R_j in self.R]
        if len(r) != len(self.R):
            raise DimensionMismatch("r must have one entry per player")
        self.r = tuple(_frozen(np.reshape(r_j, -1), (R_j.shape[0],), f'r[{j}]')
                       for j, (r_j, R_j) in enumerate(zip(r, self.R)))

    @classmethod
    def from_full(cls, Q, l, R, partition, r=None):
        """
        Build a `QuadraticPlayerCost` from a full control cost matrix. Only the
        diagonal blocks belonging to each player are kept.

        Parameters
        ----------
        Q : (n_states, n_states) array
            Symmetric state cost matrix.
        l : (n_states,) array
            Linear state cost.
        R : (n_controls, n_controls) array
            Control cost matrix in control index order.
        partition : `ControlPartition`
            Assignment of controls to players.
        r : (n_controls,) array, optional
            Linear control cost in control index order.

        Returns
        -------
        cost : `QuadraticPlayerCost`
        """
        m = partition.n_controls
        R = np.reshape(R, (m, m))
        R_blocks = [R[np.ix_(idx, idx)] for idx in partition]
        if r is not None:
            r = np.reshape(r, (m,))
            r = [r[idx] for idx in partition]
        return cls(Q, l, R_blocks, r)

    @property
    def n_states(self):
        return self.Q.shape[0]

    @property
    def n_players(self):
        return len(self.R)

    def __call__(self, x, u, partition):
        """Evaluate the cost at a state `x` and control `u` (control order)."""
        x = np.reshape(x, -1)
        u = np.reshape(u, -1)
        cost = 0.5 * x @ self.Q @ x + self.l @ x
        for R_j, r_j, idx in zip(self.R, self.r, partition):
            cost += 0.5 * u[idx] @ R_j @ u[idx] + r_j @ u[idx]
        return cost


class FiniteHorizonLQGame:
    """
    Time-varying, finite horizon linear-quadratic game: a sequence of
    `LinearSystem`s and, for each time step, one `QuadraticPlayerCost` per
    player, together with the `ControlPartition` assigning controls to
    players. Immutable once constructed.
    """
    def __init__(self, dynamics, player_costs, partition, terminal_costs=None):
        """
        Parameters
        ----------
        dynamics : list of `LinearSystem`
            Dynamics at each time step, `len(dynamics) == horizon`.
        player_costs : list of lists of `QuadraticPlayerCost`
            `player_costs[k][i]` is the cost of player `i` at time step `k`.
        partition : `ControlPartition`
            Assignment of controls to players.
        terminal_costs : list of `QuadraticPlayerCost`, optional
            Cost of each player on the state after the last step. Only `Q` and
            `l` are used. If `None`, the cost-to-go is initialized with
            `player_costs[-1]`.

        Raises
        ------
        DimensionMismatch
            If any dimension is inconsistent with the others or with
            `partition`.
        """
        if not isinstance(partition, ControlPartition):
            raise TypeError("partition must be a ControlPartition")

        self.dynamics = tuple(dynamics)
        self.player_costs = tuple(tuple(costs) for costs in player_costs)
        self.partition = partition
        self.terminal_costs = (None if terminal_costs is None
                               else tuple(terminal_costs))

        if len(self.dynamics) < 1:
            raise DimensionMismatch("The horizon must be at least one step")
        if len(self.dynamics) != len(self.player_costs):
            raise DimensionMismatch(
                f"Got {len(self.dynamics)} dynamics but "
                f"{len(self.player_costs)} sets of player costs")

        n_states = self.dynamics[0].n_states
        sizes = partition.sizes

        for k, system in enumerate(self.dynamics):
            if system.n_states != n_states:
                raise DimensionMismatch(f"State dimension at step {k} is "
                                        f"{system.n_states} != {n_states}")
            if system.n_controls != partition.n_controls:
                raise DimensionMismatch(
                    f"B has {system.n_controls} columns at step {k} but the "
                    f"partition has {partition.n_controls} controls")

        all_costs = list(enumerate(self.player_costs))
        if self.terminal_costs is not None:
            all_costs.append(('terminal', self.terminal_costs))

        for k, costs in all_costs:
            if len(costs) != partition.n_players:
                raise DimensionMismatch(f"Got {len(costs)} player costs at "
                                        f"step {k} for "
                                        f"{partition.n_players} players")
            for i, cost in enumerate(costs):
                if cost.n_states != n_states:
                    raise DimensionMismatch(f"Cost of player {i} at step {k} "
                                            f"has state dimension "
                                            f"{cost.n_states} != {n_states}")
                if [R_j.shape[0] for R_j in cost.R] != sizes:
                    raise DimensionMismatch(f"Control cost blocks of player "
                                            f"{i} at step {k} don't match "
                                            f"player control sizes {sizes}")

    @classmethod
    def time_invariant(cls, system, costs, partition, horizon,
                       terminal_costs=None):
        """Repeat the same dynamics and costs over `horizon` steps."""
        horizon = check_int_input(horizon, 'horizon', low=1)
        return cls([system] * horizon, [costs] * horizon, partition,
                   terminal_costs=terminal_costs)

    @property
    def n_states(self):
        return self.dynamics[0].n_states

    @property
    def n_controls(self):
        return self.partition.n_controls

    @property
    def n_players(self):
        return self.partition.n_players

    @property
    def horizon(self):
        return len(self.dynamics)

    @property
    def control_indices(self):
        """Tuple of each player's control indices."""
        return tuple(self.partition)

    def __len__(self):
        return self.horizon

    def __getitem__(self, k):
        return self.dynamics[k], self.player_costs[k]
