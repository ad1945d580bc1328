import numpy as np
import pytest

from lqgames.exceptions import DimensionMismatch
from lqgames.game import ControlPartition
from lqgames.strategies import AffineStrategy, FeedbackStrategy
from lqgames.trajectory import Trajectory, rollout, rollout_feedback

from ._problems import LinearDynamics


rng = np.random.default_rng(123)


def _random_strategy(partition, n_states, horizon, **kwargs):
    stages = [[AffineStrategy(rng.normal(size=(m_i, n_states)),
                              rng.normal(size=m_i))
               for m_i in partition.sizes]
              for _ in range(horizon)]
    return FeedbackStrategy(stages, partition, **kwargs)


@pytest.mark.parametrize('n_points', [0, 3])
def test_affine_strategy(n_points):
    P = rng.normal(size=(2, 3))
    alpha = rng.normal(size=2)
    strategy = AffineStrategy(P, alpha)

    assert strategy.n_states == 3
    assert strategy.n_controls == 2
    np.testing.assert_array_equal(strategy.jac(), - P)

    if n_points == 0:
        dx = rng.normal(size=3)
        expected = - P @ dx - alpha
    else:
        dx = rng.normal(size=(3, n_points))
        expected = - P @ dx - alpha[:, None]
    np.testing.assert_allclose(strategy(dx), expected)

    with pytest.raises(DimensionMismatch):
        AffineStrategy(P, np.zeros(3))


def test_feedback_strategy_stacking():
    partition = ControlPartition([2], [0, 1])
    strategy = _random_strategy(partition, 4, 5)

    assert len(strategy) == strategy.horizon == 5
    assert strategy.n_states == 4
    assert strategy.n_controls == 3
    assert strategy.P.shape == (5, 3, 4)
    assert strategy.alpha.shape == (5, 3)

    for k, stage in enumerate(strategy):
        np.testing.assert_array_equal(strategy.P[k, [2]], stage[0].P)
        np.testing.assert_array_equal(strategy.P[k, :2], stage[1].P)
        np.testing.assert_array_equal(strategy.alpha[k, [2]], stage[0].alpha)
        np.testing.assert_array_equal(strategy.alpha[k, :2], stage[1].alpha)

        x = rng.normal(size=4)
        u = strategy.control(k, x)
        np.testing.assert_allclose(u[[2]], stage[0](x))
        np.testing.assert_allclose(u[:2], stage[1](x))

    with pytest.raises(ValueError):
        strategy.P[0, 0, 0] = 1.


def test_feedback_strategy_reference_and_scaling():
    partition = ControlPartition([0], [1])
    horizon = 4
    x_ref = rng.normal(size=(2, horizon + 1))
    u_ref = rng.normal(size=(2, horizon))
    strategy = _random_strategy(partition, 2, horizon, x_ref=x_ref,
                                u_ref=u_ref)

    x = rng.normal(size=2)
    for k in range(horizon):
        expected = (u_ref[:, k] - strategy.P[k] @ (x - x_ref[:, k])
                    - strategy.alpha[k])
        np.testing.assert_allclose(strategy.control(k, x), expected)
        # The reference trajectory is reproduced without feedforward terms
        np.testing.assert_allclose(strategy.scaled(0.).control(k, x_ref[:, k]),
                                   u_ref[:, k])

    scaled = strategy.scaled(0.25)
    np.testing.assert_array_equal(scaled.P, strategy.P)
    np.testing.assert_allclose(scaled.alpha, 0.25 * strategy.alpha)
    np.testing.assert_array_equal(scaled.x_ref, strategy.x_ref)

    unreferenced = _random_strategy(partition, 2, horizon)
    assert unreferenced.x_ref is None
    referenced = unreferenced.with_reference(x_ref, u_ref)
    np.testing.assert_array_equal(referenced.P, unreferenced.P)
    np.testing.assert_array_equal(referenced.u_ref, u_ref)


def test_feedback_strategy_bad_dimensions():
    partition = ControlPartition([0], [1, 2])
    good = [AffineStrategy(np.ones((1, 2)), [0.]),
            AffineStrategy(np.ones((2, 2)), [0., 0.])]

    with pytest.raises(DimensionMismatch):
        FeedbackStrategy([], partition)
    with pytest.raises(DimensionMismatch):
        FeedbackStrategy([good[:1]], partition)
    with pytest.raises(DimensionMismatch):
        FeedbackStrategy([good[::-1]], partition)
    with pytest.raises(DimensionMismatch):
        FeedbackStrategy([good], partition, x_ref=np.zeros((3, 2)),
                         u_ref=np.zeros((3, 1)))
    with pytest.raises(DimensionMismatch):
        FeedbackStrategy([good], partition, x_ref=np.zeros((2, 2)),
                         u_ref=np.zeros((2, 1)))
    with pytest.raises(ValueError):
        FeedbackStrategy([good], partition, x_ref=np.zeros((2, 2)))


def test_trajectory():
    t = np.arange(4.)
    x = rng.normal(size=(2, 4))
    u = rng.normal(size=(1, 3))
    trajectory = Trajectory(t, x, u)

    assert trajectory.n_states == 2
    assert trajectory.n_controls == 1
    assert trajectory.horizon == 3
    assert trajectory.is_finite()
    assert trajectory.change(trajectory) == 0.

    other = Trajectory(t, x + 0.5, u - 2.)
    assert trajectory.change(other) == pytest.approx(2.)

    data = trajectory.to_dataframe()
    assert list(data.columns) == ['t', 'x1', 'x2', 'u1']
    assert data.shape == (4, 4)
    assert np.isnan(data['u1'].iloc[-1])

    with pytest.raises(ValueError):
        trajectory.x[0, 0] = 1.
    with pytest.raises(DimensionMismatch):
        Trajectory(t, x, rng.normal(size=(1, 4)))
    with pytest.raises(DimensionMismatch):
        Trajectory(t, x[:, :3], u)
    with pytest.raises(DimensionMismatch):
        trajectory.change(Trajectory(t[:3], x[:, :3], u[:, :2]))

    x_bad = np.copy(x)
    x_bad[1, 2] = np.nan
    assert not Trajectory(t, x_bad, u).is_finite()


def test_rollouts():
    A = np.array([[1., 0.1], [0., 1.]])
    B = np.array([[0., 0.], [0.1, 0.05]])
    dynamics = LinearDynamics(A, B)
    partition = ControlPartition([0], [1])
    horizon = 6
    t = 0.1 * np.arange(horizon + 1)
    x0 = np.array([1., -1.])

    strategy = _random_strategy(partition, 2, horizon)
    closed_loop = rollout_feedback(dynamics, x0, strategy, t)

    x = x0
    for k in range(horizon):
        u = - strategy.P[k] @ x - strategy.alpha[k]
        np.testing.assert_allclose(closed_loop.u[:, k], u)
        x = A @ x + B @ u
        np.testing.assert_allclose(closed_loop.x[:, k + 1], x)

    # Open loop rollout of the same controls gives the same trajectory
    open_loop = rollout(dynamics, x0, closed_loop.u, t)
    np.testing.assert_allclose(open_loop.x, closed_loop.x)

    with pytest.raises(DimensionMismatch):
        rollout_feedback(dynamics, x0, strategy, t[:-1])
