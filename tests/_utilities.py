import numpy as np

from lqgames.differentiation import FiniteDifference


def compare_finite_difference(x, jac, fun, method='3-point',
                              rtol=1e-06, atol=1e-12):
    expected_jac = FiniteDifference(method=method).jacobian(fun, x)
    np.testing.assert_allclose(jac, expected_jac, rtol=rtol, atol=atol)


def make_LQ_params(n_states, n_controls, seed=None):
    """Generate random dynamics matrices `A` and `B` of specified size and
    corresponding positive definite cost matrices `Q` and `R`."""
    rng = np.random.default_rng(seed)

    A = rng.normal(scale=1/2, size=(n_states, n_states))
    B = rng.normal(scale=1/2, size=(n_states, n_controls))
    Q = rng.normal(scale=1/2, size=(n_states, n_states))
    Q = Q.T @ Q
    R = rng.normal(scale=1/2, size=(n_controls, n_controls))
    R = R.T @ R + np.eye(n_controls)

    return A, B, Q, R


def riccati_gains(A, B, Q, R, horizon):
    """Finite horizon discrete-time LQR gains by the standard Riccati
    recursion, with the stage cost `Q` also used as terminal cost."""
    Z = Q
    gains = [None] * horizon
    for k in reversed(range(horizon)):
        P = np.linalg.solve(R + B.T @ Z @ B, B.T @ Z @ A)
        Z = Q + A.T @ Z @ A - A.T @ Z @ B @ P
        gains[k] = P
    return np.stack(gains)


def lyapunov_iterations(A, B1, B2, Q1, Q2, R11, R12, R21, R22, n_iter=100):
    """Stationary feedback gains of a two-player, time-invariant LQ game by
    coupled Lyapunov iterations."""
    Z1, Z2 = Q1, Q2

    P1 = np.linalg.solve(R11 + B1.T @ Z1 @ B1, B1.T @ Z1 @ A)
    P2 = np.linalg.solve(R22 + B2.T @ Z2 @ B2, B2.T @ Z2 @ A)

    for _ in range(n_iter):
        P1_old, P2_old = P1, P2

        P1 = np.linalg.solve(R11 + B1.T @ Z1 @ B1,
                             B1.T @ Z1 @ (A - B2 @ P2_old))
        P2 = np.linalg.solve(R22 + B2.T @ Z2 @ B2,
                             B2.T @ Z2 @ (A - B1 @ P1_old))

        F = A - B1 @ P1 - B2 @ P2
        Z1 = F.T @ Z1 @ F + P1.T @ R11 @ P1 + P2.T @ R12 @ P2 + Q1
        Z2 = F.T @ Z2 @ F + P1.T @ R21 @ P1 + P2.T @ R22 @ P2 + Q2

    return P1, P2
