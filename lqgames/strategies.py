import numpy as np

from .exceptions import DimensionMismatch


class AffineStrategy:
    """
    One player's affine feedback law at one time step, `u_i = -P @ dx - alpha`,
    where `dx` is the deviation of the state from a reference.
    """
    def __init__(self, P, alpha):
        """
        Parameters
        ----------
        P : (m_i, n_states) array
            Feedback gain.
        alpha : (m_i,) array
            Feedforward term.
        """
        self.P = np.array(np.atleast_2d(P), dtype=float)
        self.alpha = np.array(alpha, dtype=float).reshape(-1)
        if self.P.ndim != 2 or self.P.shape[0] != self.alpha.shape[0]:
            raise DimensionMismatch(f"P has shape {self.P.shape} but alpha has "
                                    f"shape {self.alpha.shape}")
        self.P.flags.writeable = False
        self.alpha.flags.writeable = False

    def __repr__(self):
        return f"{type(self).__name__}(P={self.P!r}, alpha={self.alpha!r})"

    @property
    def n_states(self):
        return self.P.shape[1]

    @property
    def n_controls(self):
        return self.P.shape[0]

    def __call__(self, dx):
        """
        Evaluate the feedback law.

        Parameters
        ----------
        dx : (n_states,) or (n_states, n_points) array
            State deviation(s).

        Returns
        -------
        u : (m_i,) or (m_i, n_points) array
            Player control(s) `-P @ dx - alpha`.
        """
        if np.ndim(dx) < 2:
            return - self.P @ dx - self.alpha
        return - self.P @ dx - self.alpha[:, None]

    def jac(self, dx=None):
        """Jacobian of the feedback law with respect to the state, `-P`."""
        return - self.P


class FeedbackStrategy:
    """
    Time-indexed sequence of per-player `AffineStrategy`s over a finite horizon.
    Stacked gains and feedforward terms are stored in control index order.

    The strategy may carry a reference trajectory `(x_ref, u_ref)`, in which
    case the control at step `k` is
    `u_ref[:, k] - P[k] @ (x - x_ref[:, k]) - alpha[k]`. Without a reference,
    it is `-P[k] @ x - alpha[k]`.
    """
    def __init__(self, stages, partition, x_ref=None, u_ref=None):
        """
        Parameters
        ----------
        stages : list of lists of `AffineStrategy`
            `stages[k][i]` is the strategy of player `i` at step `k`.
        partition : `ControlPartition`
            Assignment of controls to players.
        x_ref : (n_states, horizon) or (n_states, horizon + 1) array, optional
            Reference states. Only the first `horizon` columns are used.
        u_ref : (n_controls, horizon) array, optional
            Reference controls. Must be given with `x_ref`.
        """
        self.stages = tuple(tuple(stage) for stage in stages)
        self.partition = partition

        if len(self.stages) < 1:
            raise DimensionMismatch("A FeedbackStrategy needs at least one "
                                    "stage")

        for k, stage in enumerate(self.stages):
            if len(stage) != partition.n_players:
                raise DimensionMismatch(f"Stage {k} has {len(stage)} player "
                                        f"strategies for "
                                        f"{partition.n_players} players")
            sizes = [strategy.n_controls for strategy in stage]
            if sizes != partition.sizes:
                raise DimensionMismatch(f"Player strategy sizes {sizes} at "
                                        f"stage {k} don't match partition "
                                        f"sizes {partition.sizes}")

        self._P = np.stack([partition.stack([s.P for s in stage])
                            for stage in self.stages])
        self._alpha = np.stack([partition.stack([s.alpha for s in stage])
                                for stage in self.stages])
        self._P.flags.writeable = False
        self._alpha.flags.writeable = False

        if (x_ref is None) != (u_ref is None):
            raise ValueError("x_ref and u_ref must be given together")
        if x_ref is not None:
            x_ref = np.array(x_ref, dtype=float)
            u_ref = np.array(u_ref, dtype=float)
            horizon, n_controls, n_states = self._P.shape
            if (x_ref.ndim != 2 or x_ref.shape[0] != n_states
                    or x_ref.shape[1] < horizon):
                raise DimensionMismatch(f"x_ref must have shape ({n_states}, "
                                        f"{horizon}) or ({n_states}, "
                                        f"{horizon + 1})")
            if u_ref.shape != (n_controls, horizon):
                raise DimensionMismatch(f"u_ref must have shape ({n_controls}, "
                                        f"{horizon})")
            x_ref = x_ref[:, :horizon]
            x_ref.flags.writeable = False
            u_ref.flags.writeable = False
        self.x_ref, self.u_ref = x_ref, u_ref

    def __len__(self):
        return len(self.stages)

    def __getitem__(self, k):
        return self.stages[k]

    def __iter__(self):
        return iter(self.stages)

    @property
    def horizon(self):
        return len(self.stages)

    @property
    def n_states(self):
        return self._P.shape[2]

    @property
    def n_controls(self):
        return self._P.shape[1]

    @property
    def P(self):
        """(horizon, n_controls, n_states) array. Stacked feedback gains."""
        return self._P

    @property
    def alpha(self):
        """(horizon, n_controls) array. Stacked feedforward terms."""
        return self._alpha

    def control(self, k, x):
        """
        Evaluate the joint control of all players at step `k`.

        Parameters
        ----------
        k : int
            Time step.
        x : (n_states,) array
            Current state.

        Returns
        -------
        u : (n_controls,) array
            Controls of all players in control index order.
        """
        if self.x_ref is None:
            return - self._P[k] @ x - self._alpha[k]
        return (self.u_ref[:, k] - self._P[k] @ (x - self.x_ref[:, k])
                - self._alpha[k])

    def scaled(self, step):
        """
        Copy of the strategy with every feedforward term multiplied by `step`,
        keeping the gains and reference.

        Parameters
        ----------
        step : float
            Scale factor.

        Returns
        -------
        strategy : `FeedbackStrategy`
        """
        stages = [[AffineStrategy(s.P, step * s.alpha) for s in stage]
                  for stage in self.stages]
        return FeedbackStrategy(stages, self.partition, x_ref=self.x_ref,
                                u_ref=self.u_ref)

    def with_reference(self, x_ref, u_ref):
        """Copy of the strategy applied to deviations from a new reference
        trajectory."""
        return FeedbackStrategy(self.stages, self.partition, x_ref=x_ref,
                                u_ref=u_ref)
